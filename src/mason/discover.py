"""Discover and validate assembly sources and binary files."""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

from mason.errors import (
    EMPTY_ASM_DIR,
    Diagnostic,
    DuplicateLeafname,
    MissingPath,
    UnreadableFile,
    warning,
)

logger = logging.getLogger(__name__)

ASSEMBLY_SUFFIXES = (".s", ".asm")

_ILLEGAL_SYMBOL_CHARS = re.compile(r"[^A-Za-z0-9_]")


def symbol_name(leafname: str) -> str:
    """Turn a file leafname into the symbol-safe leaf, eg font.bin -> font_bin."""
    return _ILLEGAL_SYMBOL_CHARS.sub("_", leafname)


@dataclass(frozen=True)
class AssemblySourceSet:
    """Assembly files found directly inside one configured directory."""

    directory: Path
    sources: tuple[Path, ...]
    index: int = 0

    @property
    def empty(self) -> bool:
        return not self.sources


@dataclass(frozen=True)
class BinaryFileEntry:
    path: Path
    leafname: str
    symbol_leaf: str
    size: int

    @property
    def symbols(self) -> tuple[str, str, str]:
        prefix = f"_binary_{self.symbol_leaf}"
        return (f"{prefix}_start", f"{prefix}_end", f"{prefix}_size")


@dataclass
class Inputs:
    """The build's work list, in configuration order."""

    asm_sets: list[AssemblySourceSet] = field(default_factory=list)
    binaries: list[BinaryFileEntry] = field(default_factory=list)
    warnings: list[Diagnostic] = field(default_factory=list)

    @property
    def source_count(self) -> int:
        return sum(len(s.sources) for s in self.asm_sets)


def scan_directory(directory: Path, index: int = 0) -> AssemblySourceSet:
    """Collect assembly files directly inside *directory*, sorted by name."""
    if not directory.exists():
        raise MissingPath(directory, "assembly directory")
    if not directory.is_dir():
        raise MissingPath(directory, "assembly path", "is not a directory")

    try:
        entries = list(directory.iterdir())
    except PermissionError as e:
        raise UnreadableFile(directory, e.strerror or "permission denied") from e

    sources = sorted(
        (p for p in entries if p.is_file() and p.suffix in ASSEMBLY_SUFFIXES),
        key=lambda p: p.name,
    )
    return AssemblySourceSet(directory=directory, sources=tuple(sources), index=index)


def binary_entry(path: Path) -> BinaryFileEntry:
    if not path.exists():
        raise MissingPath(path, "binary file")
    if not path.is_file():
        raise UnreadableFile(path, "not a regular file")
    try:
        size = path.stat().st_size
    except OSError as e:
        raise UnreadableFile(path, e.strerror or str(e)) from e
    return BinaryFileEntry(
        path=path,
        leafname=path.name,
        symbol_leaf=symbol_name(path.name),
        size=size,
    )


def discover(asm_dirs: Sequence[Path], binary_files: Sequence[Path]) -> Inputs:
    """Enumerate and validate every configured input.

    Raises MissingPath, UnreadableFile or DuplicateLeafname. Must finish
    before any tool runs: the leafname check is the only shared state.
    """
    inputs = Inputs()

    for index, directory in enumerate(asm_dirs):
        source_set = scan_directory(Path(directory), index)
        if source_set.empty:
            logger.warning("no assembly files in %s", source_set.directory)
            inputs.warnings.append(warning(
                EMPTY_ASM_DIR,
                f"no assembly files found in {source_set.directory}",
                source_set.directory,
            ))
        inputs.asm_sets.append(source_set)

    seen: dict[str, BinaryFileEntry] = {}
    for path in binary_files:
        entry = binary_entry(Path(path))
        previous = seen.get(entry.symbol_leaf)
        if previous is not None:
            raise DuplicateLeafname(
                entry.leafname, previous.path, entry.path, entry.symbol_leaf,
            )
        seen[entry.symbol_leaf] = entry
        inputs.binaries.append(entry)

    logger.debug(
        "discovered %d assembly file(s) in %d dir(s), %d binary file(s)",
        inputs.source_count, len(inputs.asm_sets), len(inputs.binaries),
    )
    return inputs
