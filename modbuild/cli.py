"""Command-line entry point.

Usage::

    modbuild build                      # build libs + every module into ./build
    modbuild --build-root /tmp/b test   # test into an explicit build root
    modbuild -j 4 build                 # up to four delegates at once
    modbuild run core.build libs.test   # explicit delegate targets
    modbuild clean                      # remove the whole build root
    modbuild fmt-check

Inside a leaf module directory the same commands act on that module alone,
using its local ``target/`` directory unless ``--build-root`` is given.
"""

from __future__ import annotations

import argparse
import asyncio
import os
import sys
from pathlib import Path

from modbuild.adapters.base import Action, BuildUnit
from modbuild.config import DEFAULT_MODULE_ID, MANIFEST_NAME, ConfigurationError, ProjectConfig, parse_jobs
from modbuild.orchestrator import Orchestrator, load_unit
from modbuild.utils import console, print_error, print_success, print_summary_table, print_warning

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIG = 2

ACTION_COMMANDS = ("all", "build", "test", "clean", "fmt", "fmt-check")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="modbuild",
        description="Multi-module build orchestrator with isolated build roots",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  modbuild build\n"
            "  modbuild --build-root /tmp/b -j 4 test\n"
            "  modbuild run core.build libs.test\n"
        ),
    )
    parser.add_argument(
        "-C", "--directory",
        default=".",
        help=f"Directory holding {MANIFEST_NAME} (default: current directory)",
    )
    parser.add_argument(
        "--build-root",
        default=None,
        help="Shared build root (default: manifest build_root, or $MODBUILD_BUILD_ROOT)",
    )
    parser.add_argument(
        "-j", "--jobs",
        default=None,
        help="Maximum delegates running at once (default: manifest jobs, or $MODBUILD_JOBS)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Echo leaf command output even on success",
    )

    commands = parser.add_subparsers(dest="command", required=True, metavar="command")
    for name in ACTION_COMMANDS:
        commands.add_parser(name, help=f"Run the {name} action")
    run = commands.add_parser("run", help="Run explicit targets such as core.build")
    run.add_argument("targets", nargs="+", metavar="TARGET")
    commands.add_parser("targets", help="List declared modules and their targets")
    return parser


def _load_project(directory: Path, jobs: int | None, verbose: bool) -> tuple[BuildUnit, ProjectConfig | None]:
    """Load the unit for *directory*, applying environment overrides."""
    config: ProjectConfig | None = None
    if (directory / MANIFEST_NAME).is_file():
        config = ProjectConfig.load(directory / MANIFEST_NAME).with_env()
        if config.is_orchestrator:
            return Orchestrator(config, directory, jobs=jobs, verbose=verbose), config
    return load_unit(directory, verbose=verbose), config


def _print_targets(orchestrator: Orchestrator) -> None:
    rows = [
        (
            delegate.name,
            delegate.kind,
            delegate.unit.describe(),
            os.path.relpath(delegate.path, orchestrator.project_dir),
            ", ".join(delegate.targets()),
        )
        for delegate in orchestrator.delegates()
    ]
    print_summary_table(rows, ["Name", "Kind", "Unit", "Path", "Targets"], title=orchestrator.title)
    console.print(f"[dim]Build root: {orchestrator.default_build_root}[/dim]", highlight=False)


async def _run(args: argparse.Namespace) -> int:
    directory = Path(args.directory).resolve()
    jobs = parse_jobs(args.jobs) if args.jobs is not None else None
    unit, config = _load_project(directory, jobs, args.verbose)

    if isinstance(unit, Orchestrator):
        if args.command == "targets":
            _print_targets(unit)
            return EXIT_OK
        if args.command == "run":
            report = await unit.run_targets(args.targets, args.build_root)
        else:
            report = await unit.execute(args.command, args.build_root)
        return report.exit_code

    if args.command in ("run", "targets"):
        raise ConfigurationError(f"'{args.command}' needs a manifest that declares modules")

    if jobs is not None:
        print_warning("--jobs has no effect on a single module")

    # Standalone leaf: no build root unless one is given explicitly.
    module_id = config.name if config is not None else DEFAULT_MODULE_ID
    build_root = args.build_root or os.environ.get("MODBUILD_BUILD_ROOT") or None
    return await unit.run(Action(args.command), module_id, Path(build_root) if build_root else None)


def run_cli(argv: list[str] | None = None) -> int:
    """Parse *argv*, run the command and return the process exit code."""
    args = build_parser().parse_args(argv)
    try:
        code = asyncio.run(_run(args))
    except ConfigurationError as exc:
        print_error(f"Configuration error: {exc}")
        return EXIT_CONFIG
    except OSError as exc:
        # Build-root failures and leaf commands that cannot be started.
        print_error(str(exc))
        return EXIT_FAILED

    if code == EXIT_OK:
        print_success(f"{args.command}: done")
    else:
        print_error(f"{args.command}: failed")
    return code if code in (EXIT_OK, EXIT_FAILED) else EXIT_FAILED


def main() -> None:
    """CLI entry point for ``modbuild`` and ``python -m modbuild.cli``."""
    sys.exit(run_cli())


if __name__ == "__main__":
    main()
