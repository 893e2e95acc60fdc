"""UI widgets and layout helpers for tsctasks."""

from __future__ import annotations

from typing import Iterable, Optional

from rich.markup import escape
from textual.message import Message
from textual.widgets import ListItem, ListView, RichLog, Static

from .formatting import render_entry, render_error, summarize
from .parser import Diagnostic, TaskError
from .tasks import CycleState, Task, TaskState

_STATUS_STYLES = {
    "idle": "dim",
    "queued": "dim",
    "checking": "yellow",
    "clean": "green",
    "failed": "red",
    "stopped": "dim",
}


def task_status(task: Optional[Task]) -> tuple[str, str]:
    """Short status text for a project row, with the style it is drawn in."""
    if task is None:
        return "idle", _STATUS_STYLES["idle"]
    if task.error is not None:
        return "error", _STATUS_STYLES["failed"]
    if task.state is TaskState.PENDING:
        return "queued", _STATUS_STYLES["queued"]
    if task.cycle is CycleState.REPORTED:
        if task.report:
            count = len(task.report)
            return f"{count} error{'s' if count != 1 else ''}", _STATUS_STYLES["failed"]
        return "clean", _STATUS_STYLES["clean"]
    if task.state is TaskState.ENDED:
        return "stopped", _STATUS_STYLES["stopped"]
    return "checking", _STATUS_STYLES["checking"]


class ProjectListItem(ListItem):
    """One tsconfig file, with the state of its latest task."""

    def __init__(self, project: str, task: Optional[Task] = None) -> None:
        label = Static()
        super().__init__(label)
        self.project = project
        self.label = label
        self.tooltip = project
        self.status = ""
        self.show_task(task)

    def show_task(self, task: Optional[Task]) -> None:
        self.status, style = task_status(task)
        mode = " [dim](watch)[/dim]" if task is not None and task.watch and task.running else ""
        self.label.update(
            f"{escape(self.project)}  [{style}]{escape(self.status)}[/{style}]{mode}"
        )


class ProjectList(ListView):
    """Workspace tsconfig files, each row showing its task state."""

    class ProjectActivated(Message):
        def __init__(self, project: str) -> None:
            self.project = project
            super().__init__()

    class ProjectHighlighted(Message):
        def __init__(self, project: str) -> None:
            self.project = project
            super().__init__()

    def __init__(self, projects: Iterable[str]) -> None:
        super().__init__(id="project-list")
        self._items = list(projects)
        self._rows: dict[str, ProjectListItem] = {}

    @property
    def projects(self) -> list[str]:
        return list(self._items)

    def row(self, project: str) -> Optional[ProjectListItem]:
        return self._rows.get(project)

    def on_mount(self) -> None:
        self._fill({})

    def _fill(self, tasks: dict[str, Task]) -> None:
        self._rows = {
            project: ProjectListItem(project, tasks.get(project)) for project in self._items
        }
        for item in self._rows.values():
            self.append(item)
        self.index = 0 if self._items else None

    def set_projects(
        self, projects: Iterable[str], tasks: Optional[dict[str, Task]] = None
    ) -> None:
        """Replace the rows; projects that already ran keep their status."""
        self._items = list(projects)
        self.clear()
        self._fill(tasks or {})

    def show_task(self, task: Task) -> None:
        item = self._rows.get(task.project)
        if item is not None:
            item.show_task(task)

    def get_selected_project(self) -> Optional[str]:
        if self.index is None:
            return None
        if self.index < 0 or self.index >= len(self._items):
            return None
        return self._items[self.index]

    def on_list_view_selected(self, event: ListView.Selected) -> None:
        project = self.get_selected_project()
        if project:
            event.stop()
            self.post_message(self.ProjectActivated(project))

    def on_list_view_highlighted(self, event: ListView.Highlighted) -> None:
        project = self.get_selected_project()
        if project:
            event.stop()
            self.post_message(self.ProjectHighlighted(project))


class ReportPane(RichLog):
    """Log of reports and errors as tasks produce them."""

    def __init__(self) -> None:
        super().__init__(id="report", highlight=False, markup=True)
        self.write("tsctasks ready. Select a project to check", expand=False)

    def write_section(self, heading: str) -> None:
        self.write(f"[bold underline]{escape(heading)}[/bold underline]")

    def write_report(self, task: Task, report: list[Diagnostic]) -> None:
        self.write_section(f"{task.project} (task {task.id})")
        for entry in report:
            self.write(escape(render_entry(entry)))
        style = "green" if not report else "red"
        self.write(f"[{style}]{escape(summarize(report))}[/{style}]")

    def write_error(self, task: Task, error: TaskError) -> None:
        self.write(f"[red]{escape(task.project)}: {escape(render_error(error))}[/red]")


class TaskDetails(Static):
    """Display the state of the task attached to the highlighted project."""

    DEFAULT_CSS = """
    TaskDetails {
        border: round $surface;
        padding: 0 1;
        height: 7;
    }
    """

    def __init__(self) -> None:
        super().__init__(id="task-details")
        self.update("Select a project to view details.")

    def show_project(self, project: str, task: Optional[Task]) -> None:
        if task is None:
            self.update(f"[bold]{escape(project)}[/bold]\nNo task has run yet.")
            return
        mode = "watch" if task.watch else "check"
        lines = [
            f"[bold]{escape(project)}[/bold]  task {task.id} ({mode})",
            f"[dim]{escape(' '.join(task.cmd))}[/dim]",
            f"state: {task.state.value}  cycle: {task.cycle.value}",
        ]
        if task.has_report:
            lines.append(f"diagnostics: {len(task.report)}")
        if task.error is not None:
            lines.append(f"[red]{escape(render_error(task.error))}[/red]")
        self.update("\n".join(lines))
