"""mason command line."""

from __future__ import annotations

import logging
import os
from collections.abc import Callable
from dataclasses import replace
from pathlib import Path
from typing import Any

import click

from mason import __version__
from mason.archive import rerun_directives
from mason.config import MasonConfig, find_config, load_config, merge_env
from mason.errors import DiagnosticRenderer, MasonError
from mason.targets import Target, supported_architectures
from mason.toolchain import GnuToolchain


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.ERROR,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _build_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """Options shared by `build` and `check`."""
    options = [
        click.argument("path", default=".", type=click.Path(exists=True, path_type=Path)),
        click.option("--target", help="Target triple, eg riscv64gc-unknown-none-elf."),
        click.option("--asm-dir", "asm_dirs", multiple=True, type=click.Path(path_type=Path),
                     help="Directory of assembly files (repeatable)."),
        click.option("--file", "files", multiple=True, type=click.Path(path_type=Path),
                     help="Binary file to embed (repeatable)."),
        click.option("--out-dir", type=click.Path(path_type=Path), help="Build output directory."),
        click.option("--jobs", "-j", type=click.IntRange(min=1), default=None,
                     help="Parallel assembler invocations."),
        click.option("--archive-name", default=None, help="Archive is named lib<NAME>.a."),
        click.option("--toolchain-prefix", default=None,
                     help="Override the binutils prefix, eg riscv64-unknown-elf-."),
        click.option("--env/--no-env", "use_env", default=True,
                     help="Read TARGET, OUT_DIR, MASON_ASM_DIRS and MASON_FILES."),
        click.option("--verbose", "-v", is_flag=True, help="Log every tool invocation."),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def _resolve_config(
    path: Path,
    *,
    use_env: bool,
    target: str | None,
    asm_dirs: tuple[Path, ...],
    files: tuple[Path, ...],
    out_dir: Path | None,
    jobs: int | None,
    archive_name: str | None,
    toolchain_prefix: str | None,
) -> MasonConfig:
    """Combine mason.toml, the environment and options, in rising precedence."""
    try:
        config = load_config(find_config(path))
    except FileNotFoundError:
        config = MasonConfig()
    except ValueError as e:
        # Includes malformed TOML
        click.echo(f"error: {e}", err=True)
        raise SystemExit(1)

    if use_env:
        try:
            config = merge_env(config, os.environ)
        except ValueError as e:
            click.echo(f"error: {e}", err=True)
            raise SystemExit(1)

    build = config.build
    if target:
        build = replace(build, target=target)
    if out_dir is not None:
        build = replace(build, out_dir=out_dir)
    if jobs is not None:
        build = replace(build, jobs=jobs)
    if archive_name:
        build = replace(build, archive_name=archive_name)
    if toolchain_prefix:
        build = replace(build, toolchain_prefix=toolchain_prefix)

    inputs = config.inputs
    if asm_dirs:
        inputs = replace(inputs, asm_dirs=list(asm_dirs))
    if files:
        inputs = replace(inputs, files=list(files))

    return MasonConfig(build=build, inputs=inputs)


def _require_target(config: MasonConfig) -> None:
    if not config.build.target:
        click.echo(
            "error: no target triple (use --target, TARGET or [build] target)",
            err=True,
        )
        raise SystemExit(1)


@click.group()
@click.version_option(__version__, prog_name="mason")
def main() -> None:
    """Assemble low-level code and package binaries for linking."""


@main.command()
@_build_options
@click.option("--rerun-directives", "rerun", is_flag=True,
              help="Also print cargo:rerun-if-changed lines for every input.")
def build(path: Path, rerun: bool, verbose: bool, **options: Any) -> None:
    """Assemble and archive all configured inputs."""
    _setup_logging(verbose)
    from mason.builder import build_project

    config = _resolve_config(path, **options)
    _require_target(config)

    result = build_project(config)

    renderer = DiagnosticRenderer(color=True)
    for diag in result.diagnostics:
        click.echo(renderer.render(diag), err=True)

    if not result.ok:
        raise SystemExit(1)

    archive = result.archive
    if archive is None:
        click.echo("error: build reported success without an archive", err=True)
        raise SystemExit(1)

    for directive in result.directives:
        click.echo(directive)
    if rerun and result.inputs is not None:
        for directive in rerun_directives(result.inputs):
            click.echo(directive)
    click.echo(f"built {archive.path.name} -> {archive.path}", err=True)


@main.command()
@_build_options
def check(path: Path, verbose: bool, **options: Any) -> None:
    """Resolve the target and validate inputs without running any tool."""
    _setup_logging(verbose)
    from mason.builder import plan

    config = _resolve_config(path, **options)
    _require_target(config)

    renderer = DiagnosticRenderer(color=True)
    try:
        toolchain, inputs = plan(config)
    except MasonError as e:
        click.echo(renderer.render(e.diagnostic()), err=True)
        raise SystemExit(1)

    for diag in inputs.warnings:
        click.echo(renderer.render(diag), err=True)

    line = f"toolchain: {toolchain.prefix}as, {toolchain.prefix}ar"
    if isinstance(toolchain, GnuToolchain):
        line += " (installed)" if toolchain.is_installed() else " (not found)"
    click.echo(line)
    for entry in inputs.binaries:
        click.echo(f"embed {entry.path} ({entry.size} bytes)")
        for symbol in entry.symbols:
            click.echo(f"  {symbol}")
    for source_set in inputs.asm_sets:
        for source in source_set.sources:
            click.echo(f"assemble {source}")


@main.command()
def targets() -> None:
    """List supported target architectures."""
    for arch in supported_architectures():
        target = Target.from_triple(f"{arch}-unknown-none-elf")
        click.echo(f"{arch}-*  ->  {target.toolchain_prefix}  (-march={target.cpu_arch} -mabi={target.abi})")
