"""Package object files into one static archive and announce it to the linker."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from mason.assembler import ObjectArtifact
from mason.discover import Inputs
from mason.errors import EMPTY_ARCHIVE, ArchiveFailed, Diagnostic, make_dirs, warning, writing
from mason.toolchain import ToolchainRunner

logger = logging.getLogger(__name__)

DEFAULT_ARCHIVE_NAME = "mason"

# Global header of a System V / GNU ar archive with no members
EMPTY_ARCHIVE_BYTES = b"!<arch>\n"


@dataclass(frozen=True)
class Archive:
    path: Path
    name: str
    members: tuple[Path, ...] = ()

    @property
    def directory(self) -> Path:
        return self.path.parent

    def directives(self) -> list[str]:
        """Tell the link step where to find the archive and to link it."""
        return [
            f"cargo:rustc-link-search=native={self.directory}",
            f"cargo:rustc-link-lib=static={self.name}",
        ]


def archive_path_for(out_dir: Path, name: str = DEFAULT_ARCHIVE_NAME) -> Path:
    return out_dir / f"lib{name}.a"


def rerun_directives(inputs: Inputs) -> list[str]:
    """Ask the build pipeline to rerun when any input changes."""
    paths: list[Path] = []
    for entry in inputs.binaries:
        paths.append(entry.path)
    for source_set in inputs.asm_sets:
        paths.append(source_set.directory)
        paths.extend(source_set.sources)
    return [f"cargo:rerun-if-changed={p}" for p in paths]


def build_archive(
    artifacts: Sequence[ObjectArtifact],
    toolchain: ToolchainRunner,
    out_dir: Path,
    name: str = DEFAULT_ARCHIVE_NAME,
    *,
    warnings: list[Diagnostic] | None = None,
) -> Archive:
    """Archive *artifacts* in the given order into `<out_dir>/lib<name>.a`.

    An empty artifact list still yields an (empty) archive; a warning is
    appended to *warnings*. Raises ArchiveFailed if the archiver fails.
    """
    make_dirs(out_dir)
    path = archive_path_for(out_dir, name)

    # ar would otherwise update an existing archive, keeping stale members
    with writing(path):
        path.unlink(missing_ok=True)

    if not artifacts:
        logger.warning("no objects to archive, writing empty %s", path)
        with writing(path):
            path.write_bytes(EMPTY_ARCHIVE_BYTES)
        if warnings is not None:
            warnings.append(warning(
                EMPTY_ARCHIVE,
                "no assembly or binary inputs configured, archive is empty",
                path,
            ))
        return Archive(path=path, name=name)

    members = tuple(a.path.resolve() for a in artifacts)
    result = toolchain.archive(members, path.resolve())
    if not result.ok:
        raise ArchiveFailed(path, result.returncode, result.stderr)

    logger.info("archived %d object(s) into %s", len(members), path)
    return Archive(path=path, name=name, members=members)
