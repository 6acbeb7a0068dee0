"""Shared CLI pieces: common flags (--project-root, --config, --verbose), config loading, failure reports."""

from __future__ import annotations

import argparse
import logging
import sys
import textwrap
from pathlib import Path

import yaml

from multibuild_tooling.config import ReleaseConfig, load_config
from multibuild_tooling.errors import ReleaseError
from multibuild_tooling.graph import GraphResult
from multibuild_tooling.helpers import tail_lines

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_ENVIRONMENT = 2


def path_resolver(s: str) -> Path:
    """Resolve a path argument to absolute Path (e.g. --project-root, --config)."""
    return Path(s).resolve()


def add_common_args(ap: argparse.ArgumentParser) -> None:
    ap.add_argument(
        "--project-root",
        type=path_resolver,
        default=Path.cwd(),
        help="Project root (default: cwd)",
    )
    ap.add_argument(
        "--config",
        type=path_resolver,
        default=None,
        help="Release config YAML (default: <project-root>/multibuild.yaml if present)",
    )
    ap.add_argument("-v", "--verbose", action="store_true", help="Debug logging")


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def load_or_exit(args: argparse.Namespace) -> ReleaseConfig:
    """Load config for the parsed args; print the problem and exit 1 if it is invalid."""
    configure_logging(args.verbose)
    try:
        return load_config(args.project_root, args.config)
    except (OSError, ValueError, yaml.YAMLError) as e:
        print(f"❌ Invalid release config: {e}", file=sys.stderr)
        sys.exit(EXIT_FAILED)


def print_error(exc: BaseException) -> None:
    """Task identity, failure kind, message, then the tail of any captured diagnostics."""
    kind = getattr(exc, "kind", type(exc).__name__)
    task = getattr(exc, "task", None)
    where = f"{task}: " if task else ""
    print(f"❌ {where}{kind}: {exc}", file=sys.stderr)
    output = getattr(exc, "output", "")
    if output:
        print(textwrap.indent(tail_lines(output), "   "), file=sys.stderr)


def report(result: GraphResult, success_message: str) -> int:
    """Print the outcome of a graph run. Returns the exit code."""
    if result.ok:
        print(success_message)
        return EXIT_OK
    for name, exc in result.failures.items():
        if isinstance(exc, ReleaseError) and exc.task:
            print_error(exc)
        else:
            print(f"❌ {name}: {type(exc).__name__}: {exc}", file=sys.stderr)
    if result.not_run:
        print(f"⏭️  Not run: {', '.join(result.not_run)}", file=sys.stderr)
    print(f"❌ Failed: {', '.join(result.failed)}", file=sys.stderr)
    return EXIT_FAILED
