"""Assemble directories of hand-written assembly into object files."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from mason.discover import AssemblySourceSet
from mason.errors import AssemblyFailed, make_dirs
from mason.toolchain import ToolchainRunner

logger = logging.getLogger(__name__)

OBJECTS_DIR = "objects"


@dataclass(frozen=True)
class ObjectArtifact:
    """An object file produced by this build.

    *symbols* lists the exports mason guarantees. It is empty for
    hand-written assembly, whose symbols are whatever the source declares.
    """

    path: Path
    source: Path
    symbols: tuple[str, ...] = ()


def objects_dir(out_dir: Path) -> Path:
    return out_dir / OBJECTS_DIR


def object_path_for(source_set: AssemblySourceSet, source: Path, out_dir: Path) -> Path:
    """Object path for *source*, eg objects/asm0-start.s.o.

    The directory index keeps basenames unique across directories, since
    archive members are stored by basename.
    """
    return objects_dir(out_dir) / f"asm{source_set.index}-{source.name}.o"


def assemble_file(
    source: Path, output: Path, toolchain: ToolchainRunner,
) -> ObjectArtifact:
    """Assemble one file with the working directory set to its directory."""
    make_dirs(output.parent)
    result = toolchain.assemble(source.resolve(), output.resolve(), cwd=source.resolve().parent)
    if not result.ok:
        raise AssemblyFailed(source, result.returncode, result.stderr)
    logger.info("assembled %s -> %s", source, output)
    return ObjectArtifact(path=output, source=source)


def assemble(
    source: AssemblySourceSet, toolchain: ToolchainRunner, out_dir: Path,
) -> list[ObjectArtifact]:
    """Assemble every file in *source*, one object per file, in order."""
    return [
        assemble_file(src, object_path_for(source, src, out_dir), toolchain)
        for src in source.sources
    ]
