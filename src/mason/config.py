"""Configuration loading from mason.toml and the build environment."""

from __future__ import annotations

import os
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path

CONFIG_NAME = "mason.toml"

# Environment variables set by the surrounding build pipeline
ENV_TARGET = "TARGET"
ENV_OUT_DIR = "OUT_DIR"
ENV_ASM_DIRS = "MASON_ASM_DIRS"
ENV_FILES = "MASON_FILES"
ENV_JOBS = "MASON_JOBS"


@dataclass
class BuildConfig:
    target: str = ""
    out_dir: Path = Path("build/mason")
    archive_name: str = "mason"
    jobs: int | None = None
    toolchain_prefix: str | None = None
    asflags: list[str] = field(default_factory=list)


@dataclass
class InputsConfig:
    asm_dirs: list[Path] = field(default_factory=list)
    files: list[Path] = field(default_factory=list)


@dataclass
class MasonConfig:
    build: BuildConfig = field(default_factory=BuildConfig)
    inputs: InputsConfig = field(default_factory=InputsConfig)


def find_config(start_path: Path | None = None) -> Path:
    """Walk up directories to find mason.toml. Raises FileNotFoundError."""
    path = (start_path or Path.cwd()).resolve()
    if path.is_file():
        path = path.parent
    while True:
        candidate = path / CONFIG_NAME
        if candidate.exists():
            return candidate
        parent = path.parent
        if parent == path:
            raise FileNotFoundError(f"No {CONFIG_NAME} found in any parent directory")
        path = parent


def _paths(values: list[str], base: Path) -> list[Path]:
    return [base / v for v in values]


def load_config(path: Path) -> MasonConfig:
    """Parse a mason.toml file into a MasonConfig.

    Relative paths are taken relative to the directory holding the file.
    """
    with open(path, "rb") as f:
        data = tomllib.load(f)

    base = path.resolve().parent
    config = MasonConfig()

    if "build" in data:
        bld = data["build"]
        config.build = BuildConfig(
            target=bld.get("target", ""),
            out_dir=base / bld.get("out_dir", "build/mason"),
            archive_name=bld.get("archive_name", "mason"),
            jobs=parse_jobs(bld["jobs"], "[build] jobs") if "jobs" in bld else None,
            toolchain_prefix=bld.get("toolchain_prefix") or None,
            asflags=list(bld.get("asflags", [])),
        )
    else:
        config.build.out_dir = base / config.build.out_dir

    if "inputs" in data:
        inp = data["inputs"]
        config.inputs = InputsConfig(
            asm_dirs=_paths(inp.get("asm_dirs", []), base),
            files=_paths(inp.get("files", []), base),
        )

    return config


def parse_jobs(value: object, source: str) -> int:
    """Validate a parallelism setting. Raises ValueError naming *source*."""
    try:
        jobs = int(value)  # type: ignore[call-overload]
    except (TypeError, ValueError):
        raise ValueError(f"{source} must be a positive integer, got {value!r}") from None
    if jobs < 1 or isinstance(value, bool):
        raise ValueError(f"{source} must be a positive integer, got {value!r}")
    return jobs


def split_path_list(value: str) -> list[Path]:
    """Split an os.pathsep separated list, ignoring empty elements."""
    return [Path(p) for p in value.split(os.pathsep) if p]


def merge_env(config: MasonConfig, environ: Mapping[str, str]) -> MasonConfig:
    """Overlay the build pipeline's environment variables on *config*.

    Only variables that are present override. Input lists from the
    environment replace, rather than extend, the configured ones.
    """
    build = config.build
    inputs = config.inputs

    if environ.get(ENV_TARGET):
        build = replace(build, target=environ[ENV_TARGET])
    if environ.get(ENV_OUT_DIR):
        build = replace(build, out_dir=Path(environ[ENV_OUT_DIR]))
    if environ.get(ENV_JOBS):
        build = replace(build, jobs=parse_jobs(environ[ENV_JOBS], ENV_JOBS))
    if ENV_ASM_DIRS in environ:
        inputs = replace(inputs, asm_dirs=split_path_list(environ[ENV_ASM_DIRS]))
    if ENV_FILES in environ:
        inputs = replace(inputs, files=split_path_list(environ[ENV_FILES]))

    return MasonConfig(build=build, inputs=inputs)


def config_from_env(environ: Mapping[str, str] | None = None) -> MasonConfig:
    """Build a config purely from environment variables."""
    return merge_env(MasonConfig(), os.environ if environ is None else environ)
