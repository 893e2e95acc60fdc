"""Main Textual application for tsctasks."""

from __future__ import annotations

from dataclasses import replace
from pathlib import Path
from typing import Optional

from rich.markup import escape
from textual import on
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.widgets import Footer, Header

from .config import TscTasksConfig
from .layout import ProjectList, ReportPane, TaskDetails
from .orchestrator import Orchestrator
from .parser import Diagnostic, TaskError
from .process import AsyncioLauncher
from .projects import find_projects, find_tsc_bin
from .tasks import Task, TaskOptions


class TscTasksApp(App):
    """Terminal front-end that runs tsc checks per project."""

    CSS_PATH = "resources/app.tcss"
    BINDINGS = [
        Binding("ctrl+r", "run_check", "Check"),
        Binding("f5", "run_check", show=False),
        Binding("ctrl+w", "run_watch", "Watch"),
        Binding("ctrl+x", "stop_task", "Stop"),
        Binding("ctrl+l", "rescan", "Rescan projects"),
        Binding("f1", "show_shortcuts", "Shortcuts"),
        Binding("ctrl+q", "quit", "Quit"),
    ]

    def __init__(
        self,
        workspace: Path,
        config: TscTasksConfig,
        orchestrator: Optional[Orchestrator] = None,
    ) -> None:
        super().__init__()
        self.workspace = workspace.expanduser().resolve()
        self.config = config
        self.orchestrator = orchestrator or Orchestrator(
            config.settings,
            AsyncioLauncher(cwd=str(self.workspace)),
            defaults=config.defaults,
        )
        self.report_view = ReportPane()
        self.project_list = ProjectList(find_projects(self.workspace))
        self.task_details = TaskDetails()
        self.project_tasks: dict[str, Task] = {}

    def compose(self) -> ComposeResult:
        yield Header(show_clock=True)
        with Horizontal(id="body"):
            with Vertical(id="project-pane"):
                yield self.project_list
                yield self.task_details
            yield self.report_view
        yield Footer()

    def on_mount(self) -> None:
        self.title = f"tsctasks – {self.workspace}"
        self.orchestrator.setup(
            on_start=self._on_task_start,
            on_report=self._on_task_report,
            on_error=self._on_task_error,
            on_end=self._on_task_end,
        )
        if not self.project_list.projects:
            self.report_view.write("[yellow]No tsconfig*.json files found[/yellow]")
        if self.config.default_preset:
            self.report_view.write(
                f"Default preset configured: [bold]{self.config.default_preset}[/bold]"
            )

    def _base_options(self, watch: bool) -> TaskOptions:
        if watch:
            options = self.config.get_preset("watch").options
        elif self.config.default_preset:
            options = self.config.get_preset(self.config.default_preset).options
        else:
            options = self.config.defaults
        if options.bin is None:
            options = replace(options, bin=find_tsc_bin(self.workspace))
        return options

    def _start_project(self, project: str, *, watch: bool = False) -> Task:
        current = self.project_tasks.get(project)
        if current is not None and current.running and current.watch != watch:
            self.orchestrator.stop(current)
        options = replace(self._base_options(watch), project=project)
        task = self.orchestrator.submit(options)
        self.project_tasks[project] = task
        if not task.started and task.error is None:
            self.report_view.write(f"[dim]Queued {escape(project)} (task {task.id})[/dim]")
        self._refresh_details(task)
        return task

    def _refresh_details(self, task: Optional[Task] = None) -> None:
        if task is not None and self.project_tasks.get(task.project) is task:
            self.project_list.show_task(task)
        project = self.project_list.get_selected_project()
        if project:
            self.task_details.show_project(project, self.project_tasks.get(project))

    def _on_task_start(self, task: Task) -> None:
        command = " ".join(task.cmd)
        self.report_view.write(escape(f"$ {command}  (task {task.id})"), expand=False)
        self._refresh_details(task)

    def _on_task_report(self, report: list[Diagnostic], task: Task) -> None:
        if task.error is None:
            self.report_view.write_report(task, report)
        self._refresh_details(task)

    def _on_task_error(self, error: TaskError, task: Task) -> None:
        self.report_view.write_error(task, error)
        self.notify(f"{task.project}: {error.message}", severity="error")
        self._refresh_details(task)

    def _on_task_end(self, task: Task) -> None:
        self.report_view.write(f"[dim]Task {task.id} ({escape(task.project)}) ended[/dim]")
        self._refresh_details(task)

    async def action_run_check(self) -> None:
        project = self.project_list.get_selected_project()
        if project is None:
            self.notify("No project selected", severity="warning")
            return
        self._start_project(project)

    async def action_run_watch(self) -> None:
        project = self.project_list.get_selected_project()
        if project is None:
            self.notify("No project selected", severity="warning")
            return
        self._start_project(project, watch=True)

    async def action_stop_task(self) -> None:
        project = self.project_list.get_selected_project()
        task = self.project_tasks.get(project) if project else None
        if task is None or task.ended or not task.started:
            self.notify("Nothing running for this project", severity="warning")
            return
        self.orchestrator.stop(task)
        self.report_view.write(f"[yellow]Stopped task {task.id}[/yellow]")
        self._refresh_details(task)

    async def action_rescan(self) -> None:
        projects = find_projects(self.workspace)
        self.project_list.set_projects(projects, self.project_tasks)
        self.report_view.write(f"[cyan]Found {len(projects)} project(s)[/cyan]")

    def action_show_shortcuts(self) -> None:
        shortcuts = "\n".join(
            f"{binding.key}: {binding.description}"
            for binding in self.BINDINGS
            if binding.description
        )
        self.report_view.write("[bold]Key bindings:[/bold]\n" + shortcuts)

    async def on_unmount(self) -> None:
        for task in list(self.orchestrator.tasks.values()):
            self.orchestrator.stop(task)

    @on(ProjectList.ProjectActivated)
    def handle_project_activated(self, event: ProjectList.ProjectActivated) -> None:
        event.stop()
        self._start_project(event.project)

    @on(ProjectList.ProjectHighlighted)
    def handle_project_highlighted(self, event: ProjectList.ProjectHighlighted) -> None:
        event.stop()
        self.task_details.show_project(event.project, self.project_tasks.get(event.project))
