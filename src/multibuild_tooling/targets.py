"""Target descriptors: which backend builds a target and where its binary lands.

Adding a target is a configuration change only; the graph, collector and packager
derive everything they need from these descriptors.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

from multibuild_tooling.helpers import build_task_name

if TYPE_CHECKING:
    from multibuild_tooling.config import ReleaseConfig


class Backend(str, Enum):
    NATIVE = "native"
    CONTAINERIZED = "containerized"


# Cargo subcommand each backend runs unless the target overrides it.
DEFAULT_CARGO_SUBCOMMAND: dict[Backend, str] = {
    Backend.NATIVE: "build",
    Backend.CONTAINERIZED: "zigbuild",
}


@dataclass(frozen=True)
class Target:
    identifier: str
    backend: Backend
    triple: str
    extension: str = ""
    image: str | None = None
    cargo_subcommand: str = ""

    @property
    def task_name(self) -> str:
        return build_task_name(self.identifier)

    @property
    def subcommand(self) -> str:
        return self.cargo_subcommand or DEFAULT_CARGO_SUBCOMMAND[self.backend]

    def build_dir(self, config: ReleaseConfig) -> Path:
        """Per-target cargo --target-dir, so concurrent builds never share output."""
        return config.target_dir / f"plugin-{self.identifier}"

    def output_path(self, config: ReleaseConfig) -> Path:
        """Where the backend leaves the release binary: {build_dir}/{triple}/release/{bin}{ext}."""
        return (
            self.build_dir(config)
            / self.triple
            / "release"
            / f"{config.binary_name}{self.extension}"
        )

    def staged_name(self, config: ReleaseConfig) -> str:
        """Name inside the staging tree: {bin}-{id}{ext} (e.g. opendeck-akp153-win.exe)."""
        return f"{config.binary_name}-{self.identifier}{self.extension}"


def lookup(targets: Iterable[Target], identifier: str) -> Target:
    """Return the target with this identifier. Raises KeyError naming the known ones."""
    known = []
    for t in targets:
        if t.identifier == identifier:
            return t
        known.append(t.identifier)
    msg = f"Unknown target: {identifier} (known: {', '.join(known) or 'none'})"
    raise KeyError(msg)


def backends_in_use(targets: Iterable[Target]) -> list[Backend]:
    """Distinct backends, in first-use order."""
    seen: list[Backend] = []
    for t in targets:
        if t.backend not in seen:
            seen.append(t.backend)
    return seen
