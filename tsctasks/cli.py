"""Command line entry point for tsctasks."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import Optional, Sequence

from .app import TscTasksApp
from .config import TscTasksConfig, load_config
from .formatting import render_entry, render_error, summarize
from .orchestrator import Orchestrator
from .parser import Diagnostic, TaskError
from .process import AsyncioLauncher, ProcessLauncher
from .projects import find_monorepo_projects, find_projects, find_tsc_bin
from .tasks import Task, TaskConfigurationError, TaskOptions

logger = logging.getLogger(__name__)


def build_run_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tsctasks",
        description="Launch the tsctasks terminal UI for TypeScript projects.",
    )
    parser.add_argument(
        "workspace",
        nargs="?",
        default=".",
        help="Workspace directory to open (default: current directory)",
    )
    parser.add_argument(
        "--config",
        "-c",
        dest="config_path",
        help="Path to a .tsctasks.yml configuration file",
    )
    return parser


def build_check_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tsctasks check",
        description="Type-check TypeScript projects and print the diagnostics.",
    )
    parser.add_argument(
        "--workspace", default=".", help="Workspace directory (default: current directory)"
    )
    parser.add_argument("--config", "-c", dest="config_path", help="Configuration file")
    parser.add_argument(
        "--project",
        "-p",
        dest="projects",
        action="append",
        default=[],
        help="Project file to check; repeat for several (default: preset project)",
    )
    parser.add_argument(
        "--all",
        action="store_true",
        help="Check every project found in the workspace (monorepo aware)",
    )
    parser.add_argument("--preset", help="Named preset to start from")
    parser.add_argument("--watch", action="store_true", default=None, help="Run tsc --watch")
    parser.add_argument("--emit", action="store_true", default=None, help="Emit output files")
    parser.add_argument(
        "--incremental", action="store_true", default=None, help="Pass --incremental"
    )
    parser.add_argument("--bin", help="tsc executable (default: node_modules/.bin/tsc or tsc)")
    parser.add_argument(
        "--max-concurrency", type=int, help="Maximum number of concurrent checks"
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    return parser


def build_projects_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tsctasks projects",
        description="List tsconfig*.json files in a workspace.",
    )
    parser.add_argument(
        "--workspace", default=".", help="Workspace directory (default: current directory)"
    )
    parser.add_argument(
        "--monorepo",
        action="store_true",
        help="Drop the root tsconfig.json when nested projects exist",
    )
    return parser


def split_extra_flags(argv: list[str]) -> tuple[list[str], list[str]]:
    """Split off raw tsc flags given after a bare '--'."""
    if "--" not in argv:
        return argv, []
    index = argv.index("--")
    return argv[:index], argv[index + 1 :]


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def resolve_check_options(
    args: argparse.Namespace, config: TscTasksConfig, workspace: Path
) -> TaskOptions:
    if args.preset:
        options = config.get_preset(args.preset).options
    elif config.default_preset:
        options = config.get_preset(config.default_preset).options
    else:
        options = config.defaults
    overrides = {
        key: value
        for key, value in (
            ("watch", args.watch),
            ("emit", args.emit),
            ("incremental", args.incremental),
            ("bin", args.bin),
        )
        if value is not None
    }
    extra = list(args.flags)
    if extra:
        overrides["flags"] = (*options.flags, *extra)
    options = replace(options, **overrides)
    if options.bin is None:
        options = replace(options, bin=find_tsc_bin(workspace))
    return options


async def run_checks(
    orchestrator: Orchestrator,
    options: TaskOptions,
    projects: Sequence[str],
    out=None,
) -> int:
    """Submit one task per project, print reports, wait for all of them to end.

    Returns the process exit code: 1 if anything was reported, else 0.
    """
    out = out or sys.stdout
    failed = False
    done: dict[str, asyncio.Event] = {}

    def on_report(report: list[Diagnostic], task: Task) -> None:
        nonlocal failed
        if task.error is not None:
            return
        for entry in report:
            print(render_entry(entry), file=out)
        print(f"{task.project}: {summarize(report)}", file=out)
        if report:
            failed = True

    def on_error(error: TaskError, task: Task) -> None:
        nonlocal failed
        failed = True
        print(f"{task.project}: {render_error(error)}", file=out)

    def on_end(task: Task) -> None:
        done.setdefault(task.id, asyncio.Event()).set()

    tasks = []
    for project in projects:
        task = orchestrator.submit(
            replace(options, project=project),
            on_report=on_report,
            on_error=on_error,
            on_end=on_end,
        )
        if task not in tasks:
            tasks.append(task)

    for task in tasks:
        if not task.started and task.error is not None:
            # Never started, so it will never end either.
            continue
        event = done.setdefault(task.id, asyncio.Event())
        if task.ended:
            event.set()
        await event.wait()
    return 1 if failed else 0


def check_main(argv: list[str], launcher: Optional[ProcessLauncher] = None) -> int:
    argv, flags = split_extra_flags(argv)
    args = build_check_parser().parse_args(argv)
    args.flags = flags
    configure_logging(args.verbose)
    workspace = Path(args.workspace).expanduser().resolve()
    config_path = Path(args.config_path) if args.config_path else None
    try:
        config = load_config(workspace, config_path)
        if args.max_concurrency is not None:
            config.settings.update(max_concurrency=args.max_concurrency)
        options = resolve_check_options(args, config, workspace)
    except (TaskConfigurationError, FileNotFoundError) as error:
        print(error, file=sys.stderr)
        return 2

    if args.all:
        projects = find_monorepo_projects(workspace)
    else:
        projects = args.projects or [options.project]
    if not projects:
        print("No TypeScript projects found", file=sys.stderr)
        return 2
    logger.debug("Checking %d project(s): %s", len(projects), ", ".join(projects))

    orchestrator = Orchestrator(
        config.settings,
        launcher or AsyncioLauncher(cwd=str(workspace)),
        defaults=config.defaults,
    )

    async def _run() -> int:
        try:
            return await run_checks(orchestrator, options, projects)
        finally:
            for task in list(orchestrator.tasks.values()):
                orchestrator.stop(task)

    try:
        return asyncio.run(_run())
    except KeyboardInterrupt:
        return 130


def projects_main(argv: list[str]) -> int:
    args = build_projects_parser().parse_args(argv)
    workspace = Path(args.workspace).expanduser().resolve()
    finder = find_monorepo_projects if args.monorepo else find_projects
    for project in finder(workspace):
        print(project)
    return 0


def main(argv: list[str] | None = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)
    if argv and argv[0] == "check":
        return check_main(argv[1:])
    if argv and argv[0] == "projects":
        return projects_main(argv[1:])

    run_parser = build_run_parser()
    args = run_parser.parse_args(argv)
    configure_logging()
    workspace = Path(args.workspace).expanduser().resolve()
    config_path = (
        Path(args.config_path).expanduser().resolve()
        if args.config_path
        else None
    )
    try:
        config = load_config(workspace, config_path)
    except (TaskConfigurationError, FileNotFoundError) as error:
        print(error, file=sys.stderr)
        return 2

    app = TscTasksApp(workspace=workspace, config=config)
    app.run()
    return 0


if __name__ == "__main__":
    sys.exit(main())
