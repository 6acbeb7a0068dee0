"""`multibuild clean` and `multibuild targets`."""

import argparse
import shutil
import sys

from multibuild_tooling.cli.parse_common import EXIT_FAILED, EXIT_OK, add_common_args, load_or_exit
from multibuild_tooling.helpers import display_path


def run_clean_argv(argv: list[str] | None = None) -> None:
    """Remove build output (target dir) and the staging dir."""
    if argv is None:
        argv = sys.argv[2:] if len(sys.argv) > 2 else []
    ap = argparse.ArgumentParser(prog="multibuild clean", description="Remove build output and staging")
    ap.add_argument("--staging-only", action="store_true", help="Keep cargo output, remove staging only")
    add_common_args(ap)
    args = ap.parse_args(argv)
    config = load_or_exit(args)

    dirs = [config.staging_dir] if args.staging_only else [config.staging_dir, config.target_dir]
    for d in dirs:
        if not d.exists():
            continue
        try:
            shutil.rmtree(d)
        except OSError as e:
            print(f"❌ Could not remove {display_path(d, config.project_root)}: {e}", file=sys.stderr)
            print("   Files written by a container may be owned by root.", file=sys.stderr)
            sys.exit(EXIT_FAILED)
        print(f"🧹 Removed {display_path(d, config.project_root)}")
    sys.exit(EXIT_OK)


def run_targets_argv(argv: list[str] | None = None) -> None:
    """List configured targets: id, backend, triple, expected output, staged name."""
    if argv is None:
        argv = sys.argv[2:] if len(sys.argv) > 2 else []
    ap = argparse.ArgumentParser(prog="multibuild targets", description="List build targets")
    add_common_args(ap)
    args = ap.parse_args(argv)
    config = load_or_exit(args)
    for t in config.targets:
        image = f" ({t.image})" if t.image else ""
        print(f"{t.identifier}: {t.backend.value}{image} {t.triple}")
        print(f"  output: {display_path(t.output_path(config), config.project_root)}")
        print(f"  staged: {config.package_id}/{t.staged_name(config)}")
    sys.exit(EXIT_OK)
