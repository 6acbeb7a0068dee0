"""Shared helpers for multibuild_tooling (names, paths, retry).

Used by config, build, collect, package and cli modules.
"""

from __future__ import annotations

import re
from pathlib import Path

_SAFE_NAME = re.compile(r"^[A-Za-z0-9_-]+$")
_SAFE_PACKAGE_ID = re.compile(r"^[A-Za-z0-9_][A-Za-z0-9_.-]*$")

# --- Naming ---


def is_safe_name(s: str) -> bool:
    """Target identifiers: letters, digits, underscore, hyphen."""
    return bool(_SAFE_NAME.match(s))


def is_safe_package_id(s: str) -> bool:
    """Package identifiers are reverse-DNS style (dots allowed) but never a path: no separators, no '..'."""
    return bool(_SAFE_PACKAGE_ID.match(s)) and ".." not in s


def build_task_name(identifier: str) -> str:
    """Task name for a target's build step (build-linux, build-win, ...)."""
    return f"build-{identifier}"


# --- Path ---


def display_path(path: Path, root: Path) -> str:
    """Path relative to root when it is inside root, else the absolute path."""
    try:
        return str(path.relative_to(root))
    except ValueError:
        return str(path)


def resolve_under(root: Path, value: str | Path) -> Path:
    """Resolve a configured path: absolute paths as-is, relative ones under root."""
    p = Path(value)
    return p if p.is_absolute() else root / p


def tail_lines(text: str, count: int = 40) -> str:
    """Last `count` lines of captured output (diagnostics for a failed task)."""
    lines = text.rstrip().splitlines()
    return "\n".join(lines[-count:])


# --- Retry ---


def fibonacci_backoff_sequence(max_total_seconds: int = 300) -> list[int]:
    """Generate Fibonacci backoff sequence (seconds) up to max_total_seconds."""
    sequence: list[int] = []
    total = 0
    a, b = 1, 1
    while total + a <= max_total_seconds:
        sequence.append(a)
        total += a
        a, b = b, a + b
    return sequence


def backoff_wait(attempt: int, sequence: list[int]) -> int:
    """Wait before retry `attempt` (0-based); the last step repeats once the sequence runs out."""
    if attempt < len(sequence):
        return sequence[attempt]
    return sequence[-1] if sequence else 1
