"""Invoke the target's GNU assembler and archiver."""

from __future__ import annotations

import logging
import shlex
import shutil
import subprocess
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from mason.errors import ToolNotFound
from mason.targets import Target

logger = logging.getLogger(__name__)

# Create, replace members, write a symbol index, deterministic timestamps/uids
ARCHIVE_FLAGS = "crsD"


@dataclass(frozen=True)
class ToolResult:
    """Outcome of one external tool run."""

    command: tuple[str, ...]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class ToolchainRunner(ABC):
    """Capability to run the assembler and archiver for one target."""

    prefix: str

    @abstractmethod
    def assemble(self, source: Path, output: Path, *, cwd: Path) -> ToolResult:
        """Assemble *source* into the object file *output*.

        :param source: Assembly file as input
        :param output: Object file as output
        :param cwd: Working directory, so relative includes in *source* resolve
        """
        ...

    @abstractmethod
    def archive(self, objects: Sequence[Path], output: Path) -> ToolResult:
        """Package *objects*, in order, into the static archive *output*."""
        ...


class GnuToolchain(ToolchainRunner):
    """Runs `<prefix>as` and `<prefix>ar` from GNU binutils."""

    def __init__(
        self,
        target: Target,
        prefix: str | None = None,
        extra_flags: Sequence[str] = (),
    ) -> None:
        self.target = target
        self.prefix = prefix or target.toolchain_prefix
        self.extra_flags = tuple(extra_flags)

    @property
    def as_exec(self) -> str:
        return f"{self.prefix}as"

    @property
    def ar_exec(self) -> str:
        return f"{self.prefix}ar"

    def is_installed(self) -> bool:
        return all(shutil.which(exe) for exe in (self.as_exec, self.ar_exec))

    def assemble_command(self, source: Path, output: Path, *, cwd: Path) -> list[str]:
        cmd = [self.as_exec]

        # Target selection
        cmd.append(f"-march={self.target.cpu_arch}")
        cmd.append(f"-mabi={self.target.abi}")
        cmd.extend(["--defsym", f"ptrwidth={self.target.width}"])

        # Include dir
        cmd.extend(["-I", str(cwd)])

        cmd.extend(self.extra_flags)
        cmd.extend(["-o", str(output), str(source)])
        return cmd

    def archive_command(self, objects: Sequence[Path], output: Path) -> list[str]:
        cmd = [self.ar_exec, ARCHIVE_FLAGS, str(output)]
        cmd.extend(str(o) for o in objects)
        return cmd

    def assemble(self, source: Path, output: Path, *, cwd: Path) -> ToolResult:
        return self._run(self.assemble_command(source, output, cwd=cwd), cwd=cwd)

    def archive(self, objects: Sequence[Path], output: Path) -> ToolResult:
        return self._run(self.archive_command(objects, output), cwd=output.parent)

    def _run(self, cmd: list[str], *, cwd: Path) -> ToolResult:
        logger.debug("running %s (in %s)", shlex.join(cmd), cwd)
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                cwd=cwd,
            )
        except (FileNotFoundError, PermissionError):
            raise ToolNotFound(cmd[0])

        return ToolResult(
            command=tuple(cmd),
            returncode=result.returncode,
            stdout=result.stdout,
            stderr=result.stderr,
        )
