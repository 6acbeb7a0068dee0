"""Build backends: host cargo for native targets, cargo inside a container for cross targets.

Both run `cargo <subcommand> --release --target {triple} --target-dir {target_dir}/plugin-{id}`
from the project root, so every target writes to its own directory and never into
another target's output. The containerized backend mounts the project root at /io and
runs the same command there (the host cannot produce binaries for that platform).

Failures are classified so the caller can tell infra problems from code problems:
- EnvironmentFailure: executable missing, container runtime error (exit 125/126/127)
- ToolchainFailure: any other non-zero exit (compile/link error)
Only EnvironmentFailure on the containerized backend is retried.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
import sys
import time
from collections.abc import Callable
from dataclasses import dataclass, field

from multibuild_tooling.config import ReleaseConfig
from multibuild_tooling.errors import EnvironmentFailure, ReleaseError, ToolchainFailure
from multibuild_tooling.helpers import backoff_wait, fibonacci_backoff_sequence
from multibuild_tooling.targets import Backend, Target

log = logging.getLogger(__name__)

TOOLCHAIN = "cargo"
CONTAINER_MOUNT = "/io"

# docker/podman run: 125 daemon/run error (pull, mount), 126 cannot invoke, 127 not found in image
CONTAINER_RUNTIME_EXIT_CODES = frozenset({125, 126, 127})


@dataclass
class BuildResult:
    target: str
    command: list[str]
    returncode: int | None
    output: str = ""
    error: ReleaseError | None = field(default=None)

    @property
    def ok(self) -> bool:
        return self.error is None


class BuildBackend:
    """Runs one target's build in its environment. Subclasses provide command() and preflight()."""

    backend: Backend

    def __init__(self, config: ReleaseConfig) -> None:
        self.config = config

    def command(self, target: Target) -> list[str]:
        raise NotImplementedError

    def preflight(self) -> None:
        """Raise EnvironmentFailure if this backend cannot run at all on this host."""
        raise NotImplementedError

    def classify(self, target: Target, returncode: int, output: str) -> ReleaseError:
        return ToolchainFailure(target.identifier, returncode, output, task=target.task_name)

    def cargo_args(self, target: Target) -> list[str]:
        build_dir = target.build_dir(self.config)
        try:
            target_dir = build_dir.relative_to(self.config.project_root).as_posix()
        except ValueError:
            target_dir = str(build_dir)
        return [
            TOOLCHAIN,
            target.subcommand,
            "--release",
            "--target",
            target.triple,
            "--target-dir",
            target_dir,
        ]

    def _run_once(self, target: Target) -> BuildResult:
        cmd = self.command(target)
        log.debug("%s: %s", target.task_name, " ".join(cmd))
        try:
            r = subprocess.run(
                cmd,
                cwd=str(self.config.project_root),
                capture_output=True,
                text=True,
            )
        except OSError as e:
            err = EnvironmentFailure(f"cannot run {cmd[0]}: {e}", task=target.task_name)
            return BuildResult(target.identifier, cmd, None, "", err)
        output = (r.stdout or "") + (r.stderr or "")
        if r.returncode != 0:
            return BuildResult(
                target.identifier, cmd, r.returncode, output, self.classify(target, r.returncode, output)
            )
        return BuildResult(target.identifier, cmd, 0, output)

    def execute(self, target: Target) -> BuildResult:
        if target.backend is not self.backend:
            msg = f"target {target.identifier} uses the {target.backend.value} backend, not {self.backend.value}"
            raise ValueError(msg)
        return self._run_once(target)


class NativeBackend(BuildBackend):
    backend = Backend.NATIVE

    def command(self, target: Target) -> list[str]:
        return self.cargo_args(target)

    def preflight(self) -> None:
        if shutil.which(TOOLCHAIN) is None:
            msg = f"{TOOLCHAIN} not found on PATH (needed for native targets)"
            raise EnvironmentFailure(msg)


class ContainerizedBackend(BuildBackend):
    backend = Backend.CONTAINERIZED

    def __init__(
        self,
        config: ReleaseConfig,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        super().__init__(config)
        self._sleep = sleep

    def command(self, target: Target) -> list[str]:
        return [
            self.config.container_runtime,
            "run",
            "--rm",
            "-v",
            f"{self.config.project_root}:{CONTAINER_MOUNT}",
            "-w",
            CONTAINER_MOUNT,
            str(target.image),
            *self.cargo_args(target),
        ]

    def classify(self, target: Target, returncode: int, output: str) -> ReleaseError:
        if returncode in CONTAINER_RUNTIME_EXIT_CODES:
            return EnvironmentFailure(
                f"{self.config.container_runtime} could not run {target.image} "
                f"for target {target.identifier} (exit {returncode})",
                task=target.task_name,
                output=output,
            )
        return super().classify(target, returncode, output)

    def execute(self, target: Target) -> BuildResult:
        retries = self.config.environment_retries
        sequence = fibonacci_backoff_sequence(max_total_seconds=60)
        attempt = 0
        while True:
            result = super().execute(target)
            if not isinstance(result.error, EnvironmentFailure) or attempt >= retries:
                return result
            wait_time = backoff_wait(attempt, sequence)
            print(
                f"Retry {attempt + 1}/{retries}: {target.task_name} environment error, waiting {wait_time}s...",
                file=sys.stderr,
            )
            self._sleep(wait_time)
            attempt += 1

    def preflight(self) -> None:
        runtime = self.config.container_runtime
        if shutil.which(runtime) is None:
            msg = f"{runtime} not found on PATH (needed for containerized targets)"
            raise EnvironmentFailure(msg)
        r = subprocess.run([runtime, "info"], capture_output=True, text=True)
        if r.returncode != 0:
            msg = f"{runtime} is installed but not usable ({runtime} info exited {r.returncode})"
            raise EnvironmentFailure(msg, output=(r.stderr or "").strip())


BACKENDS: dict[Backend, type[BuildBackend]] = {
    Backend.NATIVE: NativeBackend,
    Backend.CONTAINERIZED: ContainerizedBackend,
}


def backend_for(target: Target, config: ReleaseConfig) -> BuildBackend:
    """The backend instance that builds this target."""
    return BACKENDS[target.backend](config)


def run_native(target: Target, config: ReleaseConfig) -> BuildResult:
    return NativeBackend(config).execute(target)


def run_containerized(target: Target, config: ReleaseConfig) -> BuildResult:
    return ContainerizedBackend(config).execute(target)
