"""Tests for the full build pipeline."""

from dataclasses import replace

import pytest

from mason.builder import build, build_project, plan, run_work
from mason.errors import (
    EMPTY_ARCHIVE,
    EMPTY_ASM_DIR,
    AssemblyFailed,
    DuplicateLeafname,
    MissingPath,
    Severity,
    UnsupportedTarget,
    UnwritableOutput,
)
from tests.helpers import DelayedToolchain, FailingToolchain


class TestBuild:
    def test_scenario(self, config, toolchain):
        archive, inputs = build(config, toolchain)

        assert archive.path == (config.build.out_dir / "libmason.a").resolve()
        assert [m.name for m in archive.members] == ["bin-font_bin.o", "asm0-boot.s.o"]
        assert sorted(toolchain.assembled_sources) == ["boot.s", "font_bin.s"]
        assert inputs.binaries[0].size == 1024

    def test_archive_order_independent_of_completion(self, project, config):
        asm2 = project / "asm2"
        asm2.mkdir()
        (asm2 / "late.s").write_text("")
        config.inputs.asm_dirs.append(asm2)
        config.build.jobs = 4

        slow = DelayedToolchain({"font_bin.s": 0.3, "boot.s": 0.15})
        archive, _ = build(config, slow)

        assert slow.assembled_sources[0] == "late.s"
        assert [m.name for m in archive.members] == [
            "bin-font_bin.o", "asm0-boot.s.o", "asm1-late.s.o",
        ]

    def test_sequential_and_parallel_agree(self, config, toolchain):
        config.build.jobs = 1
        sequential, _ = build(config, toolchain)
        first = sequential.path.read_bytes()
        config.build.jobs = 8
        parallel, _ = build(config, toolchain)
        assert parallel.path.read_bytes() == first

    def test_unsupported_target_before_discovery(self, config, toolchain, tmp_path):
        config.build.target = "x86_64-unknown-linux-gnu"
        config.inputs.asm_dirs = [tmp_path / "does-not-exist"]
        with pytest.raises(UnsupportedTarget):
            build(config, toolchain)
        assert toolchain.assembled == []

    def test_duplicate_leafname_before_assembly(self, project, config, toolchain):
        other = project / "other"
        other.mkdir()
        for d in (project / "assets", other):
            (d / "data.bin").write_bytes(b"data")
        config.inputs.files = [project / "assets" / "data.bin", other / "data.bin"]

        with pytest.raises(DuplicateLeafname) as exc:
            build(config, toolchain)
        assert exc.value.leafname == "data.bin"
        assert toolchain.assembled == []

    def test_failure_removes_partial_outputs(self, config):
        out = config.build.out_dir
        out.mkdir(parents=True)
        (out / "libmason.a").write_text("from an earlier build")

        failing = FailingToolchain("boot.s")
        with pytest.raises(AssemblyFailed):
            build(config, failing)

        assert not (out / "libmason.a").exists()
        assert list((out / "objects").glob("*.o")) == []
        assert list((out / "stubs").glob("*.s")) == []
        assert failing.archived == []

    def test_rebuild_after_binary_deleted_removes_stale_outputs(self, project, config, toolchain):
        out = config.build.out_dir
        build(config, toolchain)
        assert (out / "libmason.a").exists()
        assert list((out / "objects").glob("*.o"))

        (project / "assets" / "font.bin").unlink()
        with pytest.raises(MissingPath):
            build(config, toolchain)

        assert not (out / "libmason.a").exists()
        assert list((out / "objects").glob("*.o")) == []
        assert list((out / "stubs").glob("*.s")) == []

    def test_out_dir_is_a_file(self, project, config, toolchain):
        config.build.out_dir = project / "out"
        config.build.out_dir.write_text("not a directory")
        with pytest.raises(UnwritableOutput) as exc:
            build(config, toolchain)
        assert exc.value.path == config.build.out_dir.resolve()
        assert toolchain.assembled == []

    def test_failure_cancels_remaining_work(self, project, config):
        for i in range(6):
            (project / "asm" / f"extra{i}.s").write_text("")
        config.build.jobs = 1
        failing = FailingToolchain("font_bin.s")

        with pytest.raises(AssemblyFailed):
            build(config, failing)
        assert failing.assembled_sources == ["font_bin.s"]

    def test_empty_configuration(self, tmp_path, toolchain):
        from mason.config import BuildConfig, MasonConfig

        config = MasonConfig(build=BuildConfig(target="riscv64gc-x", out_dir=tmp_path / "out"))
        warnings = []
        archive, _ = build(config, toolchain, warnings=warnings)
        assert archive.members == ()
        assert archive.path.exists()
        assert [w.code for w in warnings] == [EMPTY_ARCHIVE]


class TestRunWork:
    def test_results_in_item_order(self):
        import time

        def item(value, delay):
            def run():
                time.sleep(delay)
                return [value]
            return run

        items = [item("a", 0.2), item("b", 0.0), item("c", 0.1)]
        assert run_work(items, jobs=3) == ["a", "b", "c"]

    def test_first_failing_item_raised(self):
        def ok():
            return ["ok"]

        def fail(name):
            def run():
                raise ValueError(name)
            return run

        with pytest.raises(ValueError, match="first"):
            run_work([ok, fail("first"), fail("second")], jobs=1)
        with pytest.raises(ValueError, match="first"):
            run_work([ok, fail("first"), fail("second")], jobs=3)

    def test_no_items(self):
        assert run_work([], jobs=4) == []


class TestBuildProject:
    def test_ok(self, config, toolchain):
        result = build_project(config, toolchain)
        assert result.ok
        assert result.archive is not None
        assert result.directives == result.archive.directives()
        assert result.diagnostics == []

    def test_error_becomes_diagnostic(self, config, toolchain):
        config = replace(config, build=replace(config.build, target="aarch64-apple-darwin"))
        result = build_project(config, toolchain)
        assert not result.ok
        assert result.archive is None
        assert [d.code for d in result.diagnostics] == ["E001"]
        assert result.diagnostics[0].severity == Severity.ERROR

    def test_unwritable_output_becomes_diagnostic(self, project, config, toolchain):
        (project / "out").write_text("not a directory")
        result = build_project(config, toolchain)
        assert not result.ok
        assert [d.code for d in result.diagnostics] == ["E008"]
        assert "cannot write" in result.diagnostics[0].message

    def test_stub_write_failure_becomes_diagnostic(self, config, toolchain, monkeypatch):
        from pathlib import Path

        def refuse(self, *args, **kwargs):
            raise PermissionError(13, "Permission denied", str(self))

        config.build.jobs = 1
        monkeypatch.setattr(Path, "write_text", refuse)
        result = build_project(config, toolchain)
        assert not result.ok
        assert [d.code for d in result.diagnostics] == ["E008"]
        assert "Permission denied" in result.diagnostics[0].message
        assert result.diagnostics[0].paths[0].name == "font_bin.s"

    def test_warnings_collected(self, project, config, toolchain):
        empty = project / "empty"
        empty.mkdir()
        config.inputs.asm_dirs.append(empty)
        result = build_project(config, toolchain)
        assert result.ok
        assert [d.code for d in result.diagnostics] == [EMPTY_ASM_DIR]


class TestPlan:
    def test_plan_runs_nothing(self, config, toolchain):
        runner, inputs = plan(config, toolchain)
        assert runner is toolchain
        assert len(inputs.binaries) == 1
        assert toolchain.assembled == []

    def test_plan_default_toolchain(self, config):
        config.build.toolchain_prefix = "riscv64-unknown-elf-"
        runner, _ = plan(config)
        assert runner.prefix == "riscv64-unknown-elf-"
