"""Tests for the multibuild CLI (main dispatch and subcommands)."""

import sys
from pathlib import Path
from unittest.mock import patch

import pytest

from multibuild_tooling.cli.main import main
from multibuild_tooling.errors import EnvironmentFailure, StagingStateError, ToolchainFailure
from multibuild_tooling.graph import GraphResult, TaskStatus


def _run(monkeypatch: pytest.MonkeyPatch, *args: str) -> int:
    monkeypatch.setattr(sys, "argv", ["multibuild", *args])
    with pytest.raises(SystemExit) as exc_info:
        main()
    return exc_info.value.code


class TestMainDispatch:
    def test_no_command_prints_usage(self, monkeypatch, capsys) -> None:
        assert _run(monkeypatch) == 1
        assert "Usage: multibuild" in capsys.readouterr().err

    def test_unknown_command(self, monkeypatch, capsys) -> None:
        assert _run(monkeypatch, "deploy") == 1
        assert "Unknown command: deploy" in capsys.readouterr().err

    def test_build_target_alias(self, monkeypatch, project: Path) -> None:
        ok = GraphResult(statuses={"build-linux": TaskStatus.SUCCEEDED})
        with patch("multibuild_tooling.cli.build.run_builds", return_value=ok) as m:
            assert _run(monkeypatch, "build-linux", "--project-root", str(project)) == 0
        targets = m.call_args[0][1]
        assert [t.identifier for t in targets] == ["linux"]

    def test_build_all(self, monkeypatch, project: Path) -> None:
        ok = GraphResult(statuses={})
        with patch("multibuild_tooling.cli.build.run_builds", return_value=ok) as m:
            assert _run(monkeypatch, "build", "all", "--project-root", str(project), "-j", "2") == 0
        assert [t.identifier for t in m.call_args[0][1]] == ["linux", "mac", "win"]
        assert m.call_args[1]["jobs"] == 2

    def test_build_unknown_target(self, monkeypatch, capsys, project: Path) -> None:
        assert _run(monkeypatch, "build-freebsd", "--project-root", str(project)) == 1
        assert "Unknown target: freebsd" in capsys.readouterr().err


class TestReleaseCommand:
    def test_failed_target_is_named(self, monkeypatch, capsys, project: Path) -> None:
        err = ToolchainFailure("win", 101, "error: linking with `cc` failed", task="build-win")
        failed = GraphResult(
            statuses={
                "build-linux": TaskStatus.SUCCEEDED,
                "build-win": TaskStatus.FAILED,
                "collect": TaskStatus.PENDING,
                "package": TaskStatus.PENDING,
            },
            failures={"build-win": err},
            not_run=["collect", "package"],
        )
        with patch("multibuild_tooling.cli.release_cmd.run_release", return_value=failed):
            assert _run(monkeypatch, "release", "--project-root", str(project)) == 1
        stderr = capsys.readouterr().err
        assert "build-win: ToolchainFailure" in stderr
        assert "linking with `cc` failed" in stderr
        assert "Not run: collect, package" in stderr

    def test_environment_failure_exit_code(self, monkeypatch, capsys, project: Path) -> None:
        with patch(
            "multibuild_tooling.cli.release_cmd.run_release",
            side_effect=EnvironmentFailure("docker not found on PATH"),
        ):
            assert _run(monkeypatch, "release", "--project-root", str(project)) == 2
        assert "EnvironmentFailure: docker not found" in capsys.readouterr().err

    def test_stale_staging_exit_code(self, monkeypatch, capsys, project: Path) -> None:
        stale = StagingStateError("build/pkg already has staged files from an earlier run", task="collect")
        with patch("multibuild_tooling.cli.release_cmd.run_release", side_effect=stale):
            assert _run(monkeypatch, "release", "--project-root", str(project)) == 1
        assert "collect: StagingStateError" in capsys.readouterr().err

    def test_success(self, monkeypatch, capsys, project: Path) -> None:
        ok = GraphResult(statuses={"package": TaskStatus.SUCCEEDED})
        with patch("multibuild_tooling.cli.release_cmd.run_release", return_value=ok) as m:
            assert _run(monkeypatch, "release", "--project-root", str(project), "--force-clean") == 0
        assert m.call_args[1]["force_clean"] is True
        assert "Release complete: build/opendeck-akp153.plugin.zip" in capsys.readouterr().out


class TestCollectAndPackageCommands:
    def test_collect_without_builds(self, monkeypatch, capsys, project: Path) -> None:
        assert _run(monkeypatch, "collect", "--project-root", str(project)) == 1
        assert "collect: ArtifactMissing" in capsys.readouterr().err

    def test_collect_then_package(self, monkeypatch, config, built, project: Path) -> None:
        built()
        assert _run(monkeypatch, "collect", "--project-root", str(project)) == 0
        assert _run(monkeypatch, "package", "--project-root", str(project)) == 0
        assert config.archive_path.exists()

    def test_package_before_collect(self, monkeypatch, capsys, project: Path) -> None:
        assert _run(monkeypatch, "package", "--project-root", str(project)) == 1
        assert "package: StagingStateError" in capsys.readouterr().err


class TestOtherCommands:
    def test_targets_lists_outputs(self, monkeypatch, capsys, project: Path) -> None:
        assert _run(monkeypatch, "targets", "--project-root", str(project)) == 0
        out = capsys.readouterr().out
        assert "mac: containerized (ghcr.io/rust-cross/cargo-zigbuild:sha-eba2d7e)" in out
        assert "opendeck-akp153-win.exe" in out

    def test_invalid_config(self, monkeypatch, capsys, project: Path) -> None:
        (project / "multibuild.yaml").write_text("targets: []\n")
        assert _run(monkeypatch, "targets", "--project-root", str(project)) == 1
        assert "Invalid release config" in capsys.readouterr().err

    def test_clean(self, monkeypatch, config, built, project: Path) -> None:
        built()
        config.package_root.mkdir(parents=True)
        assert _run(monkeypatch, "clean", "--staging-only", "--project-root", str(project)) == 0
        assert not config.staging_dir.exists()
        assert config.target_dir.exists()
        assert _run(monkeypatch, "clean", "--project-root", str(project)) == 0
        assert not config.target_dir.exists()

    def test_clean_refuses_project_root_as_staging_dir(self, monkeypatch, capsys, project: Path) -> None:
        (project / "multibuild.yaml").write_text("staging_dir: .\n")
        assert _run(monkeypatch, "clean", "--staging-only", "--project-root", str(project)) == 1
        assert "Invalid release config" in capsys.readouterr().err
        assert (project / "manifest.json").exists()
        assert (project / "assets" / "plugin.png").exists()
