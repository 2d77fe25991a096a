"""Shared pytest fixtures for the mason test suite."""

from __future__ import annotations

import shutil

import pytest

from mason.config import BuildConfig, InputsConfig, MasonConfig
from tests.helpers import RecordingToolchain

BOOT_S = """\
    .section .text
    .global _start
_start:
    j _start
"""


@pytest.fixture
def toolchain():
    return RecordingToolchain()


@pytest.fixture
def project(tmp_path):
    """A project with one assembly directory and one 1024-byte binary."""
    asm = tmp_path / "asm"
    asm.mkdir()
    (asm / "boot.s").write_text(BOOT_S)
    assets = tmp_path / "assets"
    assets.mkdir()
    (assets / "font.bin").write_bytes(bytes(range(256)) * 4)
    return tmp_path


@pytest.fixture
def config(project):
    return MasonConfig(
        build=BuildConfig(
            target="riscv64gc-unknown-none-elf",
            out_dir=project / "out",
        ),
        inputs=InputsConfig(
            asm_dirs=[project / "asm"],
            files=[project / "assets" / "font.bin"],
        ),
    )


@pytest.fixture
def needs_binutils():
    """Skip test if the riscv64 GNU binutils are not installed."""
    for tool in ("riscv64-linux-gnu-as", "riscv64-linux-gnu-ar", "riscv64-linux-gnu-nm"):
        if shutil.which(tool) is None:
            pytest.skip(f"{tool} not available")


@pytest.fixture
def needs_host_binutils():
    """Skip test if the host assembler is not installed.

    ar and nm ship with as in binutils.
    """
    if shutil.which("as") is None:
        pytest.skip("as not available")
