"""Shared test helpers for the mason test suite."""

from __future__ import annotations

import subprocess
import threading
import time
from collections.abc import Sequence
from pathlib import Path

from mason.targets import Target
from mason.toolchain import GnuToolchain, ToolchainRunner, ToolResult


class RecordingToolchain(ToolchainRunner):
    """Fake toolchain that records invocations instead of running binutils.

    Assembling writes the source text into the object file, archiving
    writes the member names, one per line, so tests can inspect order.
    """

    def __init__(self, prefix: str = "riscv64-linux-gnu-") -> None:
        self.prefix = prefix
        self.assembled: list[tuple[Path, Path, Path]] = []
        self.archived: list[tuple[list[Path], Path]] = []
        self._lock = threading.Lock()

    def assemble(self, source: Path, output: Path, *, cwd: Path) -> ToolResult:
        with self._lock:
            self.assembled.append((source, output, cwd))
        output.write_text(source.read_text())
        return ToolResult(command=(f"{self.prefix}as", str(source)), returncode=0)

    def archive(self, objects: Sequence[Path], output: Path) -> ToolResult:
        with self._lock:
            self.archived.append((list(objects), output))
        output.write_text("".join(f"{o.name}\n" for o in objects))
        return ToolResult(command=(f"{self.prefix}ar", str(output)), returncode=0)

    @property
    def assembled_sources(self) -> list[str]:
        return [source.name for source, _, _ in self.assembled]


class FailingToolchain(RecordingToolchain):
    """Fails to assemble any source whose name is in *fail_on*."""

    def __init__(self, *fail_on: str, fail_archive: bool = False, delay: float = 0.0) -> None:
        super().__init__()
        self.fail_on = set(fail_on)
        self.fail_archive = fail_archive
        self.delay = delay

    def assemble(self, source: Path, output: Path, *, cwd: Path) -> ToolResult:
        if source.name in self.fail_on:
            with self._lock:
                self.assembled.append((source, output, cwd))
            return ToolResult(
                command=(f"{self.prefix}as", str(source)),
                returncode=1,
                stderr=f"{source.name}:3: Error: unrecognized opcode `bogus'\n",
            )
        time.sleep(self.delay)
        return super().assemble(source, output, cwd=cwd)

    def archive(self, objects: Sequence[Path], output: Path) -> ToolResult:
        if self.fail_archive:
            return ToolResult(
                command=(f"{self.prefix}ar",), returncode=2, stderr="ar: out of disk\n",
            )
        return super().archive(objects, output)


class DelayedToolchain(RecordingToolchain):
    """Finishes sources in the reverse of submission order."""

    def __init__(self, delays: dict[str, float]) -> None:
        super().__init__()
        self.delays = delays

    def assemble(self, source: Path, output: Path, *, cwd: Path) -> ToolResult:
        time.sleep(self.delays.get(source.name, 0.0))
        return super().assemble(source, output, cwd=cwd)


class HostToolchain(GnuToolchain):
    """Runs the host's own `as` and `ar`, for directive-only sources.

    Stubs use only generic GNU as directives, so the host assembler
    produces the same symbols a cross assembler would.
    """

    def __init__(self) -> None:
        super().__init__(Target.from_triple("riscv64gc-unknown-none-elf"))
        self.prefix = ""

    def assemble_command(self, source: Path, output: Path, *, cwd: Path) -> list[str]:
        return [self.as_exec, "-I", str(cwd), "-o", str(output), str(source)]


def defined_symbols(archive: Path, nm: str = "riscv64-linux-gnu-nm") -> dict[str, int]:
    """Map each defined global symbol in *archive* to its value."""
    proc = subprocess.run(
        [nm, "-g", "--defined-only", str(archive)],
        capture_output=True,
        text=True,
        check=True,
    )
    symbols = {}
    for line in proc.stdout.splitlines():
        parts = line.split()
        if len(parts) == 3:
            value, _, name = parts
            symbols[name] = int(value, 16)
    return symbols
