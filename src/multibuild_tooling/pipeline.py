"""Release graph: build-{id} per target -> collect -> package.

collect depends on every build task, package on collect. The graph never looks at
a target's backend; each build task asks backend_for() for the executor.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence

from multibuild_tooling.build.backends import BuildBackend, backend_for
from multibuild_tooling.collect import check_staging_state, collect
from multibuild_tooling.config import ReleaseConfig
from multibuild_tooling.graph import GraphResult, TaskGraph
from multibuild_tooling.package import package
from multibuild_tooling.targets import Target, backends_in_use

log = logging.getLogger(__name__)

COLLECT_TASK = "collect"
PACKAGE_TASK = "package"

BackendFactory = Callable[[Target, ReleaseConfig], BuildBackend]


def preflight(
    config: ReleaseConfig,
    targets: Sequence[Target],
    backend_factory: BackendFactory = backend_for,
) -> None:
    """Check every backend the targets need before any task runs. Raises EnvironmentFailure."""
    for kind in backends_in_use(targets):
        representative = next(t for t in targets if t.backend is kind)
        log.debug("preflight %s backend", kind.value)
        backend_factory(representative, config).preflight()


def build_action(
    target: Target,
    config: ReleaseConfig,
    backend_factory: BackendFactory = backend_for,
) -> Callable[[], None]:
    def _run() -> None:
        result = backend_factory(target, config).execute(target)
        if result.error is not None:
            raise result.error
        log.debug("%s finished: %s", target.task_name, target.output_path(config))

    return _run


def build_release_graph(
    config: ReleaseConfig,
    targets: Sequence[Target] | None = None,
    force_clean: bool = False,
    backend_factory: BackendFactory = backend_for,
) -> TaskGraph:
    targets = list(targets if targets is not None else config.targets)
    graph = TaskGraph()
    for t in targets:
        graph.add(t.task_name, build_action(t, config, backend_factory))
    graph.add(
        COLLECT_TASK,
        lambda: collect(config, targets, force_clean=force_clean),
        deps=[t.task_name for t in targets],
    )
    graph.add(PACKAGE_TASK, lambda: package(config), deps=[COLLECT_TASK])
    return graph


def run_release(
    config: ReleaseConfig,
    force_clean: bool = False,
    jobs: int | None = None,
    backend_factory: BackendFactory = backend_for,
) -> GraphResult:
    """Preflight, then build every target, collect, package. Raises EnvironmentFailure from preflight.

    Raises StagingStateError before any build when an earlier run's package is still staged
    and force_clean is off.
    """
    targets = list(config.targets)
    preflight(config, targets, backend_factory)
    check_staging_state(config, force_clean, task=COLLECT_TASK)
    graph = build_release_graph(config, targets, force_clean, backend_factory)
    return graph.run(jobs=jobs)


def run_builds(
    config: ReleaseConfig,
    targets: Sequence[Target],
    jobs: int | None = None,
    backend_factory: BackendFactory = backend_for,
) -> GraphResult:
    """Build only the given targets (no collect/package)."""
    preflight(config, targets, backend_factory)
    graph = build_release_graph(config, targets, backend_factory=backend_factory)
    return graph.run(goals=[t.task_name for t in targets], jobs=jobs)
