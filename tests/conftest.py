"""Pytest fixtures for multibuild tooling tests."""

from collections.abc import Callable, Sequence
from pathlib import Path

import pytest

from multibuild_tooling.config import CONTAINER_RUNTIME_ENV, ReleaseConfig, resolve_config
from multibuild_tooling.targets import Target


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """Project root with manifest.json and an assets tree (no build output yet)."""
    (tmp_path / "manifest.json").write_text('{"Name": "AKP153", "Version": "1.0.0"}\n')
    icons = tmp_path / "assets" / "icons"
    icons.mkdir(parents=True)
    (icons / "key.png").write_bytes(b"\x89PNG key")
    (tmp_path / "assets" / "plugin.png").write_bytes(b"\x89PNG plugin")
    return tmp_path


@pytest.fixture
def config(project: Path, monkeypatch: pytest.MonkeyPatch) -> ReleaseConfig:
    """Default (linux native, mac containerized, win native) config rooted at project."""
    monkeypatch.delenv(CONTAINER_RUNTIME_ENV, raising=False)
    return resolve_config(None, project)


@pytest.fixture
def built(config: ReleaseConfig) -> Callable[..., None]:
    """Write fake release binaries where each target's backend would leave them."""

    def _write(targets: Sequence[Target] | None = None) -> None:
        for t in targets if targets is not None else config.targets:
            out = t.output_path(config)
            out.parent.mkdir(parents=True, exist_ok=True)
            out.write_bytes(f"binary for {t.identifier}".encode())

    return _write
