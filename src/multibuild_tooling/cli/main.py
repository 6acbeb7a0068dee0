"""Main CLI entry point for multibuild tooling."""

import sys

from multibuild_tooling.cli import build as build_cli
from multibuild_tooling.cli import clean_cmd, release_cmd

USAGE = [
    "Usage: multibuild <command> [args...]",
    "Commands:",
    "  build <target>... | all  - Build targets on their backend (native cargo or container)",
    "  build-<target>           - Build one target (e.g. build-linux, build-mac, build-win)",
    "  collect [--force-clean]  - Stage built binaries, manifest and assets",
    "  package                  - Zip the staged package directory",
    "  release [--force-clean]  - build all -> collect -> package",
    "  targets                  - List configured targets and their output paths",
    "  clean [--staging-only]   - Remove build output and staging",
    "Common flags: --project-root DIR, --config FILE, --verbose",
]


def main() -> None:
    """Main CLI entry point."""
    if len(sys.argv) < 2 or sys.argv[1] in ("-h", "--help"):
        for line in USAGE:
            print(line, file=sys.stderr)
        sys.exit(1 if len(sys.argv) < 2 else 0)

    command = sys.argv[1]
    rest = sys.argv[2:]

    if command == "build":
        build_cli.run_build_argv(rest)
    elif command.startswith("build-") and len(command) > len("build-"):
        build_cli.run_build_target_argv(command[len("build-") :], rest)
    elif command == "collect":
        release_cmd.run_collect_argv(rest)
    elif command == "package":
        release_cmd.run_package_argv(rest)
    elif command == "release":
        release_cmd.run_release_argv(rest)
    elif command == "targets":
        clean_cmd.run_targets_argv(rest)
    elif command == "clean":
        clean_cmd.run_clean_argv(rest)
    else:
        print(f"Error: Unknown command: {command}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
