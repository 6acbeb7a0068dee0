"""Release config loading.

Config YAML format (multibuild.yaml at the project root, every key optional):
- package_id: staging/archive root directory name
- binary_name: cargo binary produced for every target
- archive_name: file written next to the staging tree
- manifest, assets_dir: copied verbatim into the staging tree
- staging_dir, target_dir: where collect stages and where cargo builds
- container_runtime: docker (or podman); env MULTIBUILD_CONTAINER_RUNTIME wins
- environment_retries: retries for container environment failures
- targets: list of { id, backend: native|containerized, triple, extension?, image?, cargo_subcommand? }
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from multibuild_tooling.helpers import is_safe_name, is_safe_package_id, resolve_under
from multibuild_tooling.targets import Backend, Target

CONFIG_FILE_NAME = "multibuild.yaml"
CONTAINER_RUNTIME_ENV = "MULTIBUILD_CONTAINER_RUNTIME"
LOCK_NAME = ".collect.lock"

DEFAULT_CONFIG: dict[str, Any] = {
    "package_id": "st.lynx.plugins.opendeck-akp153.sdPlugin",
    "binary_name": "opendeck-akp153",
    "archive_name": "opendeck-akp153.plugin.zip",
    "manifest": "manifest.json",
    "assets_dir": "assets",
    "staging_dir": "build",
    "target_dir": "target",
    "container_runtime": "docker",
    "environment_retries": 2,
}

DEFAULT_TARGETS: list[dict[str, Any]] = [
    {"id": "linux", "backend": "native", "triple": "x86_64-unknown-linux-gnu"},
    {
        "id": "mac",
        "backend": "containerized",
        "triple": "universal2-apple-darwin",
        "image": "ghcr.io/rust-cross/cargo-zigbuild:sha-eba2d7e",
    },
    {"id": "win", "backend": "native", "triple": "x86_64-pc-windows-gnu", "extension": ".exe"},
]


@dataclass(frozen=True)
class ReleaseConfig:
    project_root: Path
    package_id: str
    binary_name: str
    archive_name: str
    manifest: Path
    assets_dir: Path
    staging_dir: Path
    target_dir: Path
    container_runtime: str
    environment_retries: int
    targets: tuple[Target, ...]

    @property
    def package_root(self) -> Path:
        """The staged tree: {staging_dir}/{package_id}."""
        return self.staging_dir / self.package_id

    @property
    def archive_path(self) -> Path:
        return self.staging_dir / self.archive_name

    @property
    def partial_root(self) -> Path:
        """Where collect assembles the package before renaming it to package_root."""
        return self.staging_dir / f".{self.package_id}.partial"


def parse_target(data: Any, index: int) -> Target:
    """Build a Target from one `targets` entry. Raises ValueError if invalid."""
    if not isinstance(data, dict):
        msg = f"targets[{index}] must be a mapping, got {type(data).__name__}"
        raise ValueError(msg)
    ident = str(data.get("id") or data.get("identifier") or "")
    if not is_safe_name(ident):
        msg = f"targets[{index}]: id must contain only letters, digits, underscore, and hyphen (got {ident!r})"
        raise ValueError(msg)
    try:
        backend = Backend(str(data.get("backend", "native")).lower())
    except ValueError:
        msg = f"target {ident}: unknown backend {data.get('backend')!r} (use native or containerized)"
        raise ValueError(msg) from None
    triple = str(data.get("triple") or "")
    if not triple:
        msg = f"target {ident}: triple is required"
        raise ValueError(msg)
    image = data.get("image")
    if backend is Backend.CONTAINERIZED and not image:
        msg = f"target {ident}: containerized targets need an image"
        raise ValueError(msg)
    extension = str(data.get("extension") or "")
    if extension and not extension.startswith("."):
        extension = f".{extension}"
    return Target(
        identifier=ident,
        backend=backend,
        triple=triple,
        extension=extension,
        image=str(image) if image else None,
        cargo_subcommand=str(data.get("cargo_subcommand") or ""),
    )


def parse_targets(entries: Any) -> tuple[Target, ...]:
    if not isinstance(entries, list) or not entries:
        msg = "targets must be a non-empty list"
        raise ValueError(msg)
    targets = tuple(parse_target(e, i) for i, e in enumerate(entries))
    seen: set[str] = set()
    for t in targets:
        if t.identifier in seen:
            msg = f"Duplicate target id: {t.identifier}"
            raise ValueError(msg)
        seen.add(t.identifier)
    return targets


def _check_output_dir(key: str, out_dir: Path, root: Path, inputs: tuple[Path, ...]) -> None:
    """Output dirs get removed by clean and --force-clean: they must not hold the project or its inputs."""
    resolved = out_dir.resolve()
    if resolved == root or resolved in root.parents:
        msg = f"{key} must not be the project root or one of its parents (got {out_dir})"
        raise ValueError(msg)
    for src in inputs:
        src = src.resolve()
        if src == resolved or resolved in src.parents:
            msg = f"{key} must not contain {src.name} (got {out_dir})"
            raise ValueError(msg)


def resolve_config(data: dict[str, Any] | None, project_root: Path) -> ReleaseConfig:
    """Merge data over DEFAULT_CONFIG, resolve paths under project_root, validate. Raises ValueError."""
    merged = dict(DEFAULT_CONFIG)
    if data:
        merged.update({k: v for k, v in data.items() if k in DEFAULT_CONFIG and v is not None})
    root = project_root.resolve()

    package_id = str(merged["package_id"])
    if not is_safe_package_id(package_id):
        msg = f"package_id must be a single directory name (got {package_id!r})"
        raise ValueError(msg)
    for key in ("binary_name", "archive_name"):
        value = str(merged[key])
        if not value or "/" in value or "\\" in value:
            msg = f"{key} must be a plain file name (got {value!r})"
            raise ValueError(msg)
    try:
        retries = int(merged["environment_retries"])
    except (TypeError, ValueError):
        msg = f"environment_retries must be an integer (got {merged['environment_retries']!r})"
        raise ValueError(msg) from None
    if retries < 0:
        msg = "environment_retries must be >= 0"
        raise ValueError(msg)

    archive_name = str(merged["archive_name"])
    reserved = {package_id, LOCK_NAME, f".{package_id}.partial"}
    if archive_name in reserved or f"{archive_name}.tmp" in reserved:
        msg = f"archive_name {archive_name!r} collides with the staged package or collect's working files"
        raise ValueError(msg)

    data = data or {}
    targets = parse_targets(data["targets"] if "targets" in data else DEFAULT_TARGETS)
    manifest = resolve_under(root, merged["manifest"])
    assets_dir = resolve_under(root, merged["assets_dir"])
    staging_dir = resolve_under(root, merged["staging_dir"])
    target_dir = resolve_under(root, merged["target_dir"])
    for key, out_dir in (("staging_dir", staging_dir), ("target_dir", target_dir)):
        _check_output_dir(key, out_dir, root, (manifest, assets_dir))
    if any(t.backend is Backend.CONTAINERIZED for t in targets):
        # The container only sees the project root mounted at /io.
        try:
            target_dir.resolve().relative_to(root)
        except ValueError:
            msg = f"target_dir must be inside the project root for containerized builds: {target_dir}"
            raise ValueError(msg) from None

    runtime = os.environ.get(CONTAINER_RUNTIME_ENV) or str(merged["container_runtime"])

    return ReleaseConfig(
        project_root=root,
        package_id=package_id,
        binary_name=str(merged["binary_name"]),
        archive_name=archive_name,
        manifest=manifest,
        assets_dir=assets_dir,
        staging_dir=staging_dir,
        target_dir=target_dir,
        container_runtime=runtime,
        environment_retries=retries,
        targets=targets,
    )


def load_config(project_root: Path, config_path: Path | None = None) -> ReleaseConfig:
    """Load config_path (default: {project_root}/multibuild.yaml if present) over the defaults.

    Raises ValueError for an invalid config and FileNotFoundError for an explicit
    config_path that does not exist.
    """
    path = config_path if config_path is not None else project_root / CONFIG_FILE_NAME
    data: dict[str, Any] = {}
    if config_path is not None or path.exists():
        with path.open() as f:
            loaded = yaml.safe_load(f) or {}
        if not isinstance(loaded, dict):
            msg = f"{path}: top level must be a mapping"
            raise ValueError(msg)
        data = loaded
    return resolve_config(data, project_root)
