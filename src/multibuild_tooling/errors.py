"""Release failures. Each carries the name of the task it belongs to so the CLI can report it."""

from __future__ import annotations

from pathlib import Path


class ReleaseError(Exception):
    """Base for every failure the release pipeline reports."""

    kind = "ReleaseError"

    def __init__(self, message: str, task: str | None = None) -> None:
        super().__init__(message)
        self.task = task


class ToolchainFailure(ReleaseError):
    """Compiler/linker failed for a target. Deterministic: never retried."""

    kind = "ToolchainFailure"

    def __init__(
        self,
        target: str,
        returncode: int,
        output: str = "",
        task: str | None = None,
    ) -> None:
        super().__init__(
            f"toolchain failed for target {target} (exit {returncode})",
            task=task or f"build-{target}",
        )
        self.target = target
        self.returncode = returncode
        self.output = output


class EnvironmentFailure(ReleaseError):
    """Build environment unusable: toolchain or container runtime missing, image pull, mount."""

    kind = "EnvironmentFailure"

    def __init__(self, message: str, task: str | None = None, output: str = "") -> None:
        super().__init__(message, task=task)
        self.output = output


class ArtifactMissing(ReleaseError):
    """An expected input for staging is not where it should be."""

    kind = "ArtifactMissing"

    def __init__(self, path: Path, target: str | None = None, task: str | None = "collect") -> None:
        what = f"binary for target {target}" if target else "input"
        super().__init__(f"{what} not found: {path}", task=task)
        self.path = path
        self.target = target


class StagingStateError(ReleaseError):
    """Staging directory is stale, locked, or not yet collected."""

    kind = "StagingStateError"


class PackagingFailure(ReleaseError):
    """Archive could not be written."""

    kind = "PackagingFailure"
