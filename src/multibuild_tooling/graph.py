"""Task graph: named tasks with dependencies, run in topological order.

A task starts only when every dependency has Succeeded. Independent tasks run
concurrently on a thread pool whose workers block on child processes (cargo,
docker). When a task fails, its transitive dependents are never started, while
unrelated tasks still run to a terminal state. A barrier task (one depending on
every build) therefore never starts while any build is still running or after
any build failed.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Callable, Iterable
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from enum import Enum

log = logging.getLogger(__name__)


class TaskStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class Task:
    name: str
    action: Callable[[], object]
    deps: tuple[str, ...] = ()
    status: TaskStatus = TaskStatus.PENDING
    error: BaseException | None = None


@dataclass
class GraphResult:
    statuses: dict[str, TaskStatus]
    failures: dict[str, BaseException] = field(default_factory=dict)
    not_run: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures and not self.not_run

    @property
    def failed(self) -> list[str]:
        return list(self.failures)


class TaskGraph:
    def __init__(self) -> None:
        self._tasks: dict[str, Task] = {}

    def __getitem__(self, name: str) -> Task:
        return self._tasks[name]

    def add(self, name: str, action: Callable[[], object], deps: Iterable[str] = ()) -> Task:
        """Register a task. Dependencies must already be registered, which also rules out cycles."""
        if name in self._tasks:
            msg = f"Duplicate task: {name}"
            raise ValueError(msg)
        deps = tuple(deps)
        missing = [d for d in deps if d not in self._tasks]
        if missing:
            msg = f"Task {name} depends on unknown task(s): {', '.join(missing)}"
            raise ValueError(msg)
        task = Task(name=name, action=action, deps=deps)
        self._tasks[name] = task
        return task

    def order(self) -> list[str]:
        """Deterministic topological order (Kahn, ties broken by registration order)."""
        indegree = {n: len(t.deps) for n, t in self._tasks.items()}
        out: list[str] = []
        ready = [n for n, d in indegree.items() if d == 0]
        while ready:
            n = ready.pop(0)
            out.append(n)
            for m, t in self._tasks.items():
                if n in t.deps:
                    indegree[m] -= 1
                    if indegree[m] == 0:
                        ready.append(m)
        if len(out) != len(self._tasks):
            stuck = sorted(set(self._tasks) - set(out))
            msg = f"Dependency cycle among: {', '.join(stuck)}"
            raise ValueError(msg)
        return out

    def closure(self, goals: Iterable[str]) -> set[str]:
        """Goals plus everything they transitively depend on."""
        seen: set[str] = set()
        stack = list(goals)
        while stack:
            n = stack.pop()
            if n not in self._tasks:
                msg = f"Unknown task: {n}"
                raise KeyError(msg)
            if n in seen:
                continue
            seen.add(n)
            stack.extend(self._tasks[n].deps)
        return seen

    def dependents(self, name: str) -> set[str]:
        """Tasks that transitively depend on name."""
        out: set[str] = set()
        frontier = {name}
        while frontier:
            nxt = {m for m, t in self._tasks.items() if frontier & set(t.deps)} - out
            out |= nxt
            frontier = nxt
        return out

    def _ready(self, names: list[str], blocked: set[str]) -> list[Task]:
        ready = []
        for n in names:
            t = self._tasks[n]
            if t.status is not TaskStatus.PENDING or n in blocked:
                continue
            if all(self._tasks[d].status is TaskStatus.SUCCEEDED for d in t.deps):
                ready.append(t)
        return ready

    def run(self, goals: Iterable[str] | None = None, jobs: int | None = None) -> GraphResult:
        """Run goals (default: every task) and their dependencies. Never raises for task failures."""
        selected = self.closure(goals) if goals is not None else set(self._tasks)
        names = [n for n in self.order() if n in selected]
        for n in names:
            self._tasks[n].status = TaskStatus.PENDING
            self._tasks[n].error = None

        blocked: set[str] = set()
        failures: dict[str, BaseException] = {}
        workers = jobs if jobs and jobs > 0 else max(1, len(names))
        log.debug("running %s with %d worker(s)", ", ".join(names), workers)

        with ThreadPoolExecutor(max_workers=workers) as pool:
            running: dict[Future, Task] = {}
            while True:
                for t in self._ready(names, blocked):
                    t.status = TaskStatus.RUNNING
                    print(f"🔨 {t.name}...")
                    running[pool.submit(t.action)] = t
                if not running:
                    break
                done, _ = wait(running, return_when=FIRST_COMPLETED)
                for fut in done:
                    t = running.pop(fut)
                    exc = fut.exception()
                    if exc is None:
                        t.status = TaskStatus.SUCCEEDED
                        print(f"✅ {t.name}")
                        continue
                    t.status = TaskStatus.FAILED
                    t.error = exc
                    failures[t.name] = exc
                    skipped = self.dependents(t.name) & selected
                    blocked |= skipped
                    print(f"❌ {t.name} failed: {exc}", file=sys.stderr)
                    if skipped:
                        log.debug("%s failed; not running %s", t.name, ", ".join(sorted(skipped)))

        not_run = [n for n in names if self._tasks[n].status is TaskStatus.PENDING]
        return GraphResult(
            statuses={n: self._tasks[n].status for n in names},
            failures=failures,
            not_run=not_run,
        )
