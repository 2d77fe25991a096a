"""Build errors and colored diagnostic rendering."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


class Severity(Enum):
    ERROR = "error"
    WARNING = "warning"


# ANSI color codes
_COLORS = {
    Severity.ERROR: "\033[1;31m",    # bold red
    Severity.WARNING: "\033[1;33m",  # bold yellow
}
_BOLD = "\033[1m"
_BLUE = "\033[1;34m"
_RESET = "\033[0m"

# Warning codes
EMPTY_ARCHIVE = "W001"
EMPTY_ASM_DIR = "W002"


@dataclass
class Diagnostic:
    """A single diagnostic message with the paths it concerns."""

    severity: Severity
    code: str
    message: str
    paths: list[Path] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)


def warning(code: str, message: str, *paths: Path) -> Diagnostic:
    return Diagnostic(Severity.WARNING, code, message, paths=list(paths))


class DiagnosticRenderer:
    """Renders diagnostics as `error[E003]: message` blocks."""

    def __init__(self, *, color: bool = True) -> None:
        self.color = color

    def _c(self, code: str) -> str:
        return code if self.color else ""

    def render(self, diag: Diagnostic) -> str:
        lines: list[str] = []
        sev = diag.severity
        color = _COLORS[sev]

        lines.append(
            f"{self._c(color)}{sev.value}[{diag.code}]{self._c(_RESET)}"
            f"{self._c(_BOLD)}: {diag.message}{self._c(_RESET)}"
        )

        for path in diag.paths:
            lines.append(f"  {self._c(_BLUE)}-->{self._c(_RESET)} {path}")

        # Notes carry tool output, which may span several lines
        for note in diag.notes:
            note_lines = note.rstrip("\n").splitlines() or [""]
            lines.append(
                f"  {self._c(_BLUE)}={self._c(_RESET)} note: {note_lines[0]}"
            )
            for extra in note_lines[1:]:
                lines.append(f"  {self._c(_BLUE)}|{self._c(_RESET)} {extra}")

        return "\n".join(lines)


class MasonError(Exception):
    """Fatal build error. Every subclass aborts the whole build."""

    code = "E000"

    def __init__(self, message: str, *, paths: list[Path] | None = None,
                 notes: list[str] | None = None) -> None:
        self.message = message
        self.paths = paths or []
        self.notes = notes or []
        super().__init__(message)

    def diagnostic(self) -> Diagnostic:
        return Diagnostic(
            Severity.ERROR, self.code, self.message,
            paths=list(self.paths), notes=list(self.notes),
        )


class UnsupportedTarget(MasonError):
    code = "E001"

    def __init__(self, triple: str) -> None:
        self.triple = triple
        super().__init__(f"unsupported target '{triple}'")


class MissingPath(MasonError):
    code = "E002"

    def __init__(self, path: Path, what: str = "path",
                 problem: str = "does not exist") -> None:
        self.path = path
        super().__init__(f"{what} {path} {problem}", paths=[path])


class DuplicateLeafname(MasonError):
    """Two binary files would export the same `_binary_<leaf>_*` symbols."""

    code = "E003"

    def __init__(self, leafname: str, first: Path, second: Path,
                 symbol_leaf: str | None = None) -> None:
        self.leafname = leafname
        self.first = first
        self.second = second
        self.symbol_leaf = symbol_leaf or leafname
        notes = []
        if first.name != second.name:
            notes.append(
                f"'{first.name}' and '{second.name}' both become "
                f"_binary_{self.symbol_leaf}_* symbols"
            )
        super().__init__(
            f"duplicate binary leafname '{leafname}'",
            paths=[first, second], notes=notes,
        )


class UnreadableFile(MasonError):
    code = "E004"

    def __init__(self, path: Path, reason: str = "") -> None:
        self.path = path
        self.reason = reason
        message = f"cannot read {path}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, paths=[path])


class AssemblyFailed(MasonError):
    code = "E005"

    def __init__(self, path: Path, exit_code: int, stderr: str = "") -> None:
        self.path = path
        self.exit_code = exit_code
        self.stderr = stderr
        super().__init__(
            f"assembling {path} failed (exit {exit_code})",
            paths=[path], notes=[stderr] if stderr else [],
        )


class ArchiveFailed(MasonError):
    code = "E006"

    def __init__(self, path: Path, exit_code: int, stderr: str = "") -> None:
        self.path = path
        self.exit_code = exit_code
        self.stderr = stderr
        super().__init__(
            f"archiving {path} failed (exit {exit_code})",
            paths=[path], notes=[stderr] if stderr else [],
        )


class ToolNotFound(MasonError):
    code = "E007"

    def __init__(self, executable: str) -> None:
        self.executable = executable
        super().__init__(
            f"toolchain executable '{executable}' not found",
            notes=["install GNU binutils for the target or set toolchain_prefix"],
        )


class UnwritableOutput(MasonError):
    code = "E008"

    def __init__(self, path: Path, reason: str = "") -> None:
        self.path = path
        self.reason = reason
        message = f"cannot write {path}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, paths=[path])


@contextmanager
def writing(path: Path) -> Iterator[None]:
    """Report filesystem failures while producing *path* as UnwritableOutput."""
    try:
        yield
    except OSError as e:
        raise UnwritableOutput(path, e.strerror or str(e)) from e


def make_dirs(path: Path) -> None:
    with writing(path):
        path.mkdir(parents=True, exist_ok=True)
