"""Tasks module - task list data model, lifecycle events and service."""

from .events import TaskListEvents, TaskListListener
from .models import Task, TaskList, TaskListStatus, TaskStatus
from .service import TaskListService, TaskSession

__all__ = [
	"Task",
	"TaskList",
	"TaskListStatus",
	"TaskStatus",
	"TaskListEvents",
	"TaskListListener",
	"TaskListService",
	"TaskSession",
]
