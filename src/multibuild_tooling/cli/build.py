"""`multibuild build <target>... | all` and `multibuild build-<target>`: build targets on their backends."""

import argparse
import sys

from multibuild_tooling.cli.parse_common import (
    EXIT_ENVIRONMENT,
    EXIT_FAILED,
    add_common_args,
    load_or_exit,
    print_error,
    report,
)
from multibuild_tooling.errors import EnvironmentFailure
from multibuild_tooling.pipeline import run_builds
from multibuild_tooling.targets import lookup


def run_build_argv(argv: list[str] | None = None) -> None:
    """Parse argv and build the named targets. argv defaults to sys.argv[2:] when called from main."""
    if argv is None:
        argv = sys.argv[2:] if len(sys.argv) > 2 else []
    ap = argparse.ArgumentParser(prog="multibuild build", description="Build targets (native or containerized)")
    ap.add_argument("targets", nargs="+", help="target ids, or 'all'")
    ap.add_argument("--jobs", "-j", type=int, default=None, help="Concurrent builds (default: one per target)")
    add_common_args(ap)
    args = ap.parse_args(argv)
    config = load_or_exit(args)

    if args.targets == ["all"]:
        targets = list(config.targets)
    else:
        try:
            targets = [lookup(config.targets, t) for t in dict.fromkeys(args.targets)]
        except KeyError as e:
            print(f"❌ {e.args[0]}", file=sys.stderr)
            sys.exit(EXIT_FAILED)

    try:
        result = run_builds(config, targets, jobs=args.jobs)
    except EnvironmentFailure as e:
        print_error(e)
        sys.exit(EXIT_ENVIRONMENT)
    names = ", ".join(t.identifier for t in targets)
    sys.exit(report(result, f"🎉 Built: {names}"))


def run_build_target_argv(target: str, argv: list[str] | None = None) -> None:
    """`multibuild build-<target> [flags]` is `multibuild build <target> [flags]`."""
    if argv is None:
        argv = sys.argv[2:] if len(sys.argv) > 2 else []
    run_build_argv([target, *argv])
