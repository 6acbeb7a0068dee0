"""Tests for multibuild_tooling.pipeline: build-{id} -> collect -> package."""

import zipfile
from collections.abc import Iterable

import pytest

from multibuild_tooling.build.backends import BuildBackend, BuildResult
from multibuild_tooling.errors import EnvironmentFailure, StagingStateError, ToolchainFailure
from multibuild_tooling.graph import TaskStatus
from multibuild_tooling.pipeline import (
    COLLECT_TASK,
    PACKAGE_TASK,
    build_release_graph,
    run_builds,
    run_release,
)
from multibuild_tooling.targets import lookup


class FakeBackend(BuildBackend):
    """Writes the expected output instead of running cargo; fails for targets in `fail`."""

    def __init__(self, config, calls: list[str], fail: Iterable[str] = (), unavailable: bool = False) -> None:
        super().__init__(config)
        self.calls = calls
        self.fail = set(fail)
        self.unavailable = unavailable

    def preflight(self) -> None:
        if self.unavailable:
            msg = "docker not found on PATH (needed for containerized targets)"
            raise EnvironmentFailure(msg)

    def execute(self, target) -> BuildResult:
        self.calls.append(target.identifier)
        if target.identifier in self.fail:
            output = "error: linking with `x86_64-w64-mingw32-gcc` failed"
            err = ToolchainFailure(target.identifier, 101, output, task=target.task_name)
            return BuildResult(target.identifier, [], 101, output, err)
        out = target.output_path(self.config)
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_bytes(f"binary for {target.identifier}".encode())
        return BuildResult(target.identifier, [], 0)


def factory(calls: list[str], **kwargs):
    return lambda target, config: FakeBackend(config, calls, **kwargs)


class TestReleaseGraph:
    def test_collect_depends_on_every_build(self, config) -> None:
        g = build_release_graph(config)
        assert g[COLLECT_TASK].deps == ("build-linux", "build-mac", "build-win")
        assert g[PACKAGE_TASK].deps == (COLLECT_TASK,)
        assert g.order()[-2:] == [COLLECT_TASK, PACKAGE_TASK]


class TestRunRelease:
    def test_three_targets_end_to_end(self, config) -> None:
        calls: list[str] = []
        result = run_release(config, backend_factory=factory(calls))
        assert result.ok
        assert sorted(calls) == ["linux", "mac", "win"]
        with zipfile.ZipFile(config.archive_path) as zf:
            top = {n[len(config.package_id) + 1 :].split("/")[0] for n in zf.namelist()} - {""}
        assert top == {
            "assets",
            "manifest.json",
            "opendeck-akp153-linux",
            "opendeck-akp153-mac",
            "opendeck-akp153-win.exe",
        }

    def test_failed_build_stops_before_collect(self, config) -> None:
        calls: list[str] = []
        result = run_release(config, backend_factory=factory(calls, fail=["win"]))
        assert not result.ok
        assert result.failed == ["build-win"]
        assert result.not_run == [COLLECT_TASK, PACKAGE_TASK]
        assert result.statuses["build-linux"] is TaskStatus.SUCCEEDED
        assert result.statuses["build-mac"] is TaskStatus.SUCCEEDED
        assert isinstance(result.failures["build-win"], ToolchainFailure)
        assert not config.package_root.exists()
        assert not config.archive_path.exists()

    def test_preflight_failure_runs_nothing(self, config) -> None:
        calls: list[str] = []
        with pytest.raises(EnvironmentFailure, match="docker not found"):
            run_release(config, backend_factory=factory(calls, unavailable=True))
        assert calls == []

    def test_rerun_requires_force_clean(self, config) -> None:
        calls: list[str] = []
        assert run_release(config, backend_factory=factory(calls)).ok
        calls.clear()
        with pytest.raises(StagingStateError, match="--force-clean"):
            run_release(config, backend_factory=factory(calls))
        assert calls == []
        assert run_release(config, force_clean=True, backend_factory=factory(calls)).ok


class TestRunBuilds:
    def test_builds_only_requested_targets(self, config) -> None:
        calls: list[str] = []
        linux = lookup(config.targets, "linux")
        result = run_builds(config, [linux], backend_factory=factory(calls))
        assert result.ok
        assert calls == ["linux"]
        assert list(result.statuses) == ["build-linux"]
        assert linux.output_path(config).exists()
        assert not config.staging_dir.exists()
