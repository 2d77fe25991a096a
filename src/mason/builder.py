"""Full build pipeline: target triple + inputs -> static archive."""

from __future__ import annotations

import logging
import os
from collections.abc import Callable
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from functools import partial
from pathlib import Path

from mason.archive import Archive, archive_path_for, build_archive
from mason.assembler import ObjectArtifact, assemble, objects_dir
from mason.config import MasonConfig
from mason.discover import BinaryFileEntry, Inputs, discover
from mason.embed import STUBS_DIR, embed
from mason.errors import Diagnostic, MasonError, make_dirs
from mason.targets import Target
from mason.toolchain import GnuToolchain, ToolchainRunner

logger = logging.getLogger(__name__)

WorkItem = Callable[[], list[ObjectArtifact]]


@dataclass
class BuildResult:
    """Outcome of a build."""

    ok: bool
    archive: Archive | None = None
    inputs: Inputs | None = None
    directives: list[str] = field(default_factory=list)
    diagnostics: list[Diagnostic] = field(default_factory=list)


def make_toolchain(config: MasonConfig) -> GnuToolchain:
    """Resolve the target and set up binutils for it. Raises UnsupportedTarget."""
    target = Target.from_triple(config.build.target)
    return GnuToolchain(
        target,
        prefix=config.build.toolchain_prefix,
        extra_flags=config.build.asflags,
    )


def resolve_toolchain(
    config: MasonConfig, toolchain: ToolchainRunner | None = None,
) -> ToolchainRunner:
    """Return *toolchain*, or binutils for the configured target.

    Raises UnsupportedTarget either way, before any filesystem access.
    """
    if toolchain is None:
        return make_toolchain(config)
    # An injected runner still only builds for supported targets
    Target.from_triple(config.build.target)
    return toolchain


def plan(config: MasonConfig, toolchain: ToolchainRunner | None = None) -> tuple[ToolchainRunner, Inputs]:
    """Resolve the target, then discover inputs. Runs no external tools."""
    toolchain = resolve_toolchain(config, toolchain)
    inputs = discover(config.inputs.asm_dirs, config.inputs.files)
    return toolchain, inputs


def _embed_one(
    entry: BinaryFileEntry, toolchain: ToolchainRunner, out_dir: Path,
) -> list[ObjectArtifact]:
    return [embed(entry, toolchain, out_dir)]


def _work_items(inputs: Inputs, toolchain: ToolchainRunner, out_dir: Path) -> list[WorkItem]:
    """One item per binary and per non-empty assembly set, binaries first."""
    items: list[WorkItem] = []
    for entry in inputs.binaries:
        items.append(partial(_embed_one, entry, toolchain, out_dir))
    for source_set in inputs.asm_sets:
        if not source_set.empty:
            items.append(partial(assemble, source_set, toolchain, out_dir))
    return items


def run_work(items: list[WorkItem], jobs: int | None = None) -> list[ObjectArtifact]:
    """Run *items* on up to *jobs* threads, keeping results in item order.

    The first failure cancels items not yet started; items already running
    are waited for. The earliest failing item's error is raised.
    """
    max_workers = max(1, min(len(items), jobs or os.cpu_count() or 1))

    if max_workers <= 1:
        results = [item() for item in items]
    else:
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            futures = [executor.submit(item) for item in items]
            wait(futures, return_when=FIRST_EXCEPTION)
            if any(f.done() and f.exception() is not None for f in futures):
                executor.shutdown(wait=True, cancel_futures=True)
                for future in futures:
                    if not future.cancelled() and future.exception() is not None:
                        raise future.exception()
            results = [future.result() for future in futures]

    return [artifact for batch in results for artifact in batch]


def remove_outputs(out_dir: Path, archive_name: str) -> None:
    """Delete the archive, objects and stubs of a failed build.

    Everything under objects/ and stubs/ belongs to mason, so outputs of
    earlier builds go too and nothing stale gets linked.
    """
    paths = [archive_path_for(out_dir, archive_name)]
    for directory, pattern in ((objects_dir(out_dir), "*.o"), (out_dir / STUBS_DIR, "*.s")):
        if directory.is_dir():
            paths.extend(sorted(directory.glob(pattern)))

    for path in paths:
        if not path.is_file():
            continue
        logger.debug("removing %s", path)
        try:
            path.unlink()
        except OSError as e:
            logger.warning("could not remove %s: %s", path, e)


def build(
    config: MasonConfig,
    toolchain: ToolchainRunner | None = None,
    *,
    warnings: list[Diagnostic] | None = None,
) -> tuple[Archive, Inputs]:
    """Run the pipeline: resolve -> discover -> assemble/embed -> archive.

    Raises the first MasonError met. Any failure after target resolution
    removes the archive and every object and stub in the output directory.
    """
    toolchain = resolve_toolchain(config, toolchain)
    out_dir = config.build.out_dir.resolve()
    name = config.build.archive_name

    try:
        inputs = discover(config.inputs.asm_dirs, config.inputs.files)
        if warnings is not None:
            warnings.extend(inputs.warnings)

        logger.info("building lib%s.a with %s toolchain", name, toolchain.prefix)
        make_dirs(out_dir)
        artifacts = run_work(_work_items(inputs, toolchain, out_dir), config.build.jobs)
        archive = build_archive(artifacts, toolchain, out_dir, name, warnings=warnings)
    except BaseException:
        remove_outputs(out_dir, name)
        raise

    return archive, inputs


def build_project(
    config: MasonConfig, toolchain: ToolchainRunner | None = None,
) -> BuildResult:
    """Build and report the outcome as a BuildResult instead of raising."""
    diagnostics: list[Diagnostic] = []
    try:
        archive, inputs = build(config, toolchain, warnings=diagnostics)
    except MasonError as e:
        diagnostics.append(e.diagnostic())
        return BuildResult(ok=False, diagnostics=diagnostics)

    return BuildResult(
        ok=True,
        archive=archive,
        inputs=inputs,
        directives=archive.directives(),
        diagnostics=diagnostics,
    )
