"""Visualizer package - Rich terminal views for task lists and orchestrator runs."""

from .events import format_event, render_event
from .task_progress import TaskListRenderer, render_task_history, render_task_list

__all__ = [
	"format_event",
	"render_event",
	"render_task_list",
	"render_task_history",
	"TaskListRenderer",
]
