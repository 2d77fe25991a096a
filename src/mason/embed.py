"""Package raw binary files as linkable objects.

Every binary file becomes an object exporting three symbols, where
`leaf` is the file's leafname with non-symbol characters replaced by `_`:

    _binary_<leaf>_start
    _binary_<leaf>_end
    _binary_<leaf>_size

start and end bracket the file's bytes once located in memory. size is an
absolute symbol whose value is the byte count, computed by the assembler
from the two labels.
"""

from __future__ import annotations

import logging
from pathlib import Path

from mason.assembler import ObjectArtifact, assemble_file, objects_dir
from mason.discover import BinaryFileEntry
from mason.errors import UnreadableFile, make_dirs, writing
from mason.toolchain import ToolchainRunner

logger = logging.getLogger(__name__)

STUBS_DIR = "stubs"

_STUB_TEMPLATE = """\
/* Generated by mason from {path}. Do not edit. */
    .section .data
    .balign 8
    .global {start}
    .global {end}
    .global {size}
{start}:
    .incbin "{incbin}"
{end}:
    .set {size}, {end} - {start}
"""


def _quote(path: Path) -> str:
    """Escape a path for use inside a GNU as string literal."""
    return str(path).replace("\\", "\\\\").replace('"', '\\"')


def render_stub(entry: BinaryFileEntry) -> str:
    start, end, size = entry.symbols
    path = entry.path.resolve()
    return _STUB_TEMPLATE.format(
        path=path.name.replace("*/", ""),
        start=start,
        end=end,
        size=size,
        incbin=_quote(path),
    )


def stub_path_for(entry: BinaryFileEntry, out_dir: Path) -> Path:
    return out_dir / STUBS_DIR / f"{entry.symbol_leaf}.s"


def object_path_for(entry: BinaryFileEntry, out_dir: Path) -> Path:
    return objects_dir(out_dir) / f"bin-{entry.symbol_leaf}.o"


def embed(
    entry: BinaryFileEntry, toolchain: ToolchainRunner, out_dir: Path,
) -> ObjectArtifact:
    """Generate and assemble the stub for *entry*.

    Raises UnreadableFile if the binary can no longer be opened, and
    AssemblyFailed if the assembler rejects the stub.
    """
    try:
        with open(entry.path, "rb"):
            pass
    except OSError as e:
        raise UnreadableFile(entry.path, e.strerror or str(e)) from e

    stub = stub_path_for(entry, out_dir)
    make_dirs(stub.parent)
    with writing(stub):
        stub.write_text(render_stub(entry))
    logger.debug("wrote stub %s for %s", stub, entry.path)

    artifact = assemble_file(stub, object_path_for(entry, out_dir), toolchain)
    return ObjectArtifact(path=artifact.path, source=entry.path, symbols=entry.symbols)
