"""Rich views for task list progress."""

from typing import Optional

from rich.console import Console, Group
from rich.markup import escape
from rich.panel import Panel
from rich.progress_bar import ProgressBar
from rich.table import Table

from ..tasks.events import TaskListListener
from ..tasks.models import Task, TaskList, TaskListStatus, TaskStatus
from .utils import format_timestamp, truncate

STATUS_ICONS = {
	TaskStatus.PENDING: "[dim][ ][/dim]",
	TaskStatus.IN_PROGRESS: "[yellow][▶][/yellow]",
	TaskStatus.COMPLETED: "[green][✓][/green]",
	TaskStatus.FAILED: "[red][✗][/red]",
}

LIST_STATUS_STYLES = {
	TaskListStatus.ACTIVE: "yellow",
	TaskListStatus.COMPLETED: "green",
	TaskListStatus.INTERRUPTED: "dim",
}


def _task_line(index: int, task: Task) -> str:
	icon = STATUS_ICONS.get(task.status, "[ ]")
	title = escape(task.title)
	if task.status == TaskStatus.COMPLETED:
		title = f"[strike]{title}[/strike]"
	elif task.status == TaskStatus.IN_PROGRESS:
		title = f"[bold]{title}[/bold]"
	line = f"{icon} {index}. {title}"
	if task.error:
		line += f" [red]({escape(truncate(task.error, 50))})[/red]"
	return line


def build_task_panel(task_list: TaskList) -> Panel:
	"""Build a panel with a progress bar and one line per task."""
	progress = task_list.get_progress()
	total = progress["total_tasks"]
	done = progress["completed_tasks"] + progress["failed_tasks"]

	header = (
		f"[bold]{escape(truncate(task_list.prompt, 70))}[/bold]\n"
		f"[dim]{progress['completed_tasks']}/{total} tasks complete "
		f"({progress['percent_complete']:.0f}%)[/dim]"
	)
	bar = ProgressBar(total=max(total, 1), completed=done, width=50)
	lines = [_task_line(i, task) for i, task in enumerate(task_list.tasks, start=1)]

	return Panel(
		Group(header, bar, "", *lines),
		title="Task List",
		border_style=LIST_STATUS_STYLES.get(task_list.status, "cyan"),
	)


def render_task_list(task_list: Optional[TaskList], console: Optional[Console] = None) -> None:
	"""Render the task list as a progress panel."""
	console = console or Console()
	if task_list is None:
		console.print("[dim]No active task list[/dim]")
		return
	console.print(build_task_panel(task_list))


def render_task_history(history: list[TaskList], console: Optional[Console] = None) -> None:
	"""Render archived task lists as a table."""
	console = console or Console()
	if not history:
		console.print("[dim]No task list history[/dim]")
		return

	table = Table(title="Task List History", show_lines=False)
	table.add_column("Created", style="dim")
	table.add_column("Request")
	table.add_column("Tasks", justify="right")
	table.add_column("Status")

	for task_list in history:
		progress = task_list.get_progress()
		style = LIST_STATUS_STYLES.get(task_list.status, "white")
		table.add_row(
			format_timestamp(task_list.created_at),
			escape(truncate(task_list.prompt)),
			f"{progress['completed_tasks']}/{progress['total_tasks']}",
			f"[{style}]{task_list.status.value}[/{style}]",
		)

	console.print(table)


class TaskListRenderer(TaskListListener):
	"""Prints task list lifecycle events to a console as they happen."""

	def __init__(self, console: Optional[Console] = None):
		self.console = console or Console()

	def on_created(self, task_list: TaskList) -> None:
		self.console.print(f"\n[bold]📋 Task list generated[/bold] ({len(task_list.tasks)} tasks)")
		self.console.print(build_task_panel(task_list))

	def on_started(self, task: Task, task_list: TaskList) -> None:
		number = task_list.index_of(task.id) + 1
		self.console.print(
			f"[yellow]🚀 Starting task {number}/{len(task_list.tasks)}:[/yellow] {escape(task.title)}"
		)

	def on_completed(self, task: Task, task_list: TaskList) -> None:
		number = task_list.index_of(task.id) + 1
		self.console.print(f"[green]✅ Task {number}/{len(task_list.tasks)} completed:[/green] {escape(task.title)}")
		if task_list.status == TaskListStatus.ACTIVE:
			self.console.print(build_task_panel(task_list))

	def on_failed(self, task: Task, task_list: TaskList) -> None:
		number = task_list.index_of(task.id) + 1
		reason = f" ({escape(task.error)})" if task.error else ""
		self.console.print(f"[red]✗ Task {number} failed:[/red] {escape(task.title)}{reason}")

	def on_list_completed(self, task_list: TaskList) -> None:
		self.console.print(build_task_panel(task_list))
		self.console.print(f"[bold green]🎉 All {len(task_list.tasks)} tasks completed[/bold green]")

	def on_list_updated(self, task_list: TaskList, inserted: list[Task]) -> None:
		self.console.print(f"[cyan]Task list updated: {len(inserted)} task(s) added[/cyan]")
		self.console.print(build_task_panel(task_list))

	def on_cleared(self, task_list: TaskList) -> None:
		self.console.print("[dim]Task list cleared[/dim]")
