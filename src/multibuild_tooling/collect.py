"""Collect built binaries, manifest and assets into {staging_dir}/{package_id}.

Every input is checked before anything is written. Files are assembled in a
sibling `.{package_id}.partial` directory and renamed into place, so a failed
collect leaves no package directory. A non-empty package directory from an
earlier run is refused unless force_clean is set; a lock file keeps two collects
from writing the same staging directory.
"""

from __future__ import annotations

import logging
import os
import shutil
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from pathlib import Path

from multibuild_tooling.config import LOCK_NAME, ReleaseConfig
from multibuild_tooling.errors import ArtifactMissing, StagingStateError
from multibuild_tooling.helpers import display_path
from multibuild_tooling.targets import Target

log = logging.getLogger(__name__)


def expected_entries(config: ReleaseConfig, targets: Sequence[Target]) -> set[str]:
    """Top-level names the staged package must contain: manifest, assets dir, one binary per target."""
    names = {config.manifest.name, config.assets_dir.name}
    names.update(t.staged_name(config) for t in targets)
    return names


def validate_staging(config: ReleaseConfig, targets: Sequence[Target]) -> tuple[set[str], set[str]]:
    """Compare the staged package with expected_entries. Returns (missing, extra)."""
    root = config.package_root
    found = {p.name for p in root.iterdir()} if root.is_dir() else set()
    expected = expected_entries(config, targets)
    return expected - found, found - expected


def _check_inputs(config: ReleaseConfig, targets: Sequence[Target]) -> None:
    if not config.manifest.is_file():
        raise ArtifactMissing(config.manifest)
    if not config.assets_dir.is_dir():
        raise ArtifactMissing(config.assets_dir)
    for t in targets:
        src = t.output_path(config)
        if not src.is_file():
            raise ArtifactMissing(src, target=t.identifier)


def check_staging_state(config: ReleaseConfig, force_clean: bool = False, task: str = "collect") -> None:
    """Raise StagingStateError if the package root holds an earlier run's files and force_clean is off."""
    root = config.package_root
    if root.exists() and not root.is_dir():
        msg = f"{root} exists and is not a directory"
        raise StagingStateError(msg, task=task)
    if not force_clean and root.is_dir() and any(root.iterdir()):
        msg = (
            f"{display_path(root, config.project_root)} already has staged files "
            "from an earlier run; use --force-clean to replace them"
        )
        raise StagingStateError(msg, task=task)


def _prepare_package_root(config: ReleaseConfig, force_clean: bool) -> None:
    check_staging_state(config, force_clean)
    root = config.package_root
    if root.is_dir() and any(root.iterdir()):
        log.debug("removing stale %s", root)
        shutil.rmtree(root)
    elif root.is_dir():
        root.rmdir()
    if force_clean and config.archive_path.exists():
        config.archive_path.unlink()


@contextmanager
def staging_lock(config: ReleaseConfig) -> Iterator[Path]:
    """Exclusive ownership of the staging directory for the duration of a collect."""
    config.staging_dir.mkdir(parents=True, exist_ok=True)
    lock = config.staging_dir / LOCK_NAME
    try:
        fd = os.open(lock, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
    except FileExistsError:
        msg = f"{lock} exists: another collect is running (remove it if a previous run was killed)"
        raise StagingStateError(msg, task="collect") from None
    with os.fdopen(fd, "w") as f:
        f.write(str(os.getpid()))
    try:
        yield lock
    finally:
        lock.unlink(missing_ok=True)


def collect(
    config: ReleaseConfig,
    targets: Sequence[Target] | None = None,
    force_clean: bool = False,
) -> Path:
    """Stage manifest, assets and one renamed binary per target. Returns the package root.

    Raises ArtifactMissing if any input is absent, StagingStateError for stale or locked staging.
    """
    targets = list(targets if targets is not None else config.targets)
    root = config.project_root
    _check_inputs(config, targets)

    with staging_lock(config):
        _prepare_package_root(config, force_clean)
        partial = config.partial_root
        if partial.exists():
            shutil.rmtree(partial)
        partial.mkdir()
        try:
            shutil.copytree(config.assets_dir, partial / config.assets_dir.name)
            shutil.copy2(config.manifest, partial / config.manifest.name)
            for t in targets:
                src = t.output_path(config)
                dst = partial / t.staged_name(config)
                shutil.copy2(src, dst)
                dst.chmod(0o755)
                print(f"📦 Copying {t.identifier}: {display_path(src, root)} -> {dst.name}")
            os.replace(partial, config.package_root)
        except BaseException:
            shutil.rmtree(partial, ignore_errors=True)
            raise

    print(f"✅ Staged {len(targets)} binaries in {display_path(config.package_root, root)}/")
    return config.package_root
