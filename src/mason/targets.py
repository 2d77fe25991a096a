"""Map build target triples onto GNU binutils toolchains."""

from __future__ import annotations

from dataclasses import dataclass

from mason.errors import UnsupportedTarget


@dataclass(frozen=True)
class Target:
    """Describe a build target from its triple."""

    triple: str

    # CPU architecture to generate code for, passed as -march
    cpu_arch: str
    # Architecture family naming the binutils executables
    gnu_prefix: str
    # Pointer width in bits
    width: int
    abi: str

    @property
    def toolchain_prefix(self) -> str:
        return f"{self.gnu_prefix}-linux-gnu-"

    @staticmethod
    def from_triple(triple: str) -> Target:
        """Select the target from the first component of *triple*.

        The vendor, OS and ABI parts are ignored.
        """
        arch = triple.split("-", 1)[0]
        match arch:
            case "riscv32imac":
                return Target(
                    triple=triple,
                    cpu_arch="rv32imac",
                    gnu_prefix="riscv32",
                    width=32,
                    abi="ilp32",
                )
            case "riscv64imac":
                return Target(
                    triple=triple,
                    cpu_arch="rv64imac",
                    gnu_prefix="riscv64",
                    width=64,
                    abi="lp64",
                )
            case "riscv64gc":
                return Target(
                    triple=triple,
                    cpu_arch="rv64gc",
                    gnu_prefix="riscv64",
                    width=64,
                    abi="lp64",
                )
            case _:
                raise UnsupportedTarget(triple)


_ARCHITECTURES = ("riscv32imac", "riscv64imac", "riscv64gc")


def supported_architectures() -> tuple[str, ...]:
    return _ARCHITECTURES


def resolve(target_triple: str) -> str:
    """Return the toolchain prefix for *target_triple*, eg `riscv64-linux-gnu-`."""
    return Target.from_triple(target_triple).toolchain_prefix
