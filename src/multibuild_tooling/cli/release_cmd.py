"""`multibuild collect`, `multibuild package`, `multibuild release` (build all -> collect -> package)."""

import argparse
import sys

from multibuild_tooling.cli.parse_common import (
    EXIT_ENVIRONMENT,
    EXIT_FAILED,
    EXIT_OK,
    add_common_args,
    load_or_exit,
    print_error,
    report,
)
from multibuild_tooling.collect import collect
from multibuild_tooling.errors import EnvironmentFailure, ReleaseError
from multibuild_tooling.helpers import display_path
from multibuild_tooling.package import package
from multibuild_tooling.pipeline import run_release


def _argv(argv: list[str] | None) -> list[str]:
    if argv is None:
        return sys.argv[2:] if len(sys.argv) > 2 else []
    return argv


def run_collect_argv(argv: list[str] | None = None) -> None:
    """Stage already-built binaries, manifest and assets. Does not build."""
    ap = argparse.ArgumentParser(prog="multibuild collect", description="Stage built binaries and assets")
    ap.add_argument(
        "--force-clean",
        action="store_true",
        help="Replace a staging directory left by an earlier run",
    )
    add_common_args(ap)
    args = ap.parse_args(_argv(argv))
    config = load_or_exit(args)
    try:
        collect(config, force_clean=args.force_clean)
    except ReleaseError as e:
        print_error(e)
        sys.exit(EXIT_FAILED)
    sys.exit(EXIT_OK)


def run_package_argv(argv: list[str] | None = None) -> None:
    """Zip the staged package directory."""
    ap = argparse.ArgumentParser(prog="multibuild package", description="Archive the staging directory")
    add_common_args(ap)
    args = ap.parse_args(_argv(argv))
    config = load_or_exit(args)
    try:
        package(config)
    except ReleaseError as e:
        print_error(e)
        sys.exit(EXIT_FAILED)
    sys.exit(EXIT_OK)


def run_release_argv(argv: list[str] | None = None) -> None:
    """Build every target, then collect, then package. Stops before collect if any build fails."""
    ap = argparse.ArgumentParser(prog="multibuild release", description="Build all targets, collect, package")
    ap.add_argument(
        "--force-clean",
        action="store_true",
        help="Replace a staging directory left by an earlier run",
    )
    ap.add_argument("--jobs", "-j", type=int, default=None, help="Concurrent builds (default: one per target)")
    add_common_args(ap)
    args = ap.parse_args(_argv(argv))
    config = load_or_exit(args)
    try:
        result = run_release(config, force_clean=args.force_clean, jobs=args.jobs)
    except EnvironmentFailure as e:
        print_error(e)
        sys.exit(EXIT_ENVIRONMENT)
    except ReleaseError as e:
        print_error(e)
        sys.exit(EXIT_FAILED)
    archive = display_path(config.archive_path, config.project_root)
    sys.exit(report(result, f"🎉 Release complete: {archive}"))
