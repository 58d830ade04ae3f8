"""
Task Models - Pydantic schemas for a decomposed request.

A TaskList is the ordered set of tasks produced for one user request,
plus a cursor pointing at the task being worked on.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


def _new_id(prefix: str) -> str:
	return f"{prefix}-{uuid.uuid4().hex[:12]}"


def _now() -> str:
	return datetime.now().isoformat()


class TaskStatus(str, Enum):
	"""Status of a single task."""
	PENDING = "pending"
	IN_PROGRESS = "in_progress"
	COMPLETED = "completed"
	FAILED = "failed"


class TaskListStatus(str, Enum):
	"""Status of a task list."""
	ACTIVE = "active"
	COMPLETED = "completed"
	INTERRUPTED = "interrupted"


class Task(BaseModel):
	"""A single task within a task list."""
	id: str = Field(default_factory=lambda: _new_id("task"))
	title: str = Field(description="Short human-readable description")
	status: TaskStatus = Field(default=TaskStatus.PENDING)
	created_at: str = Field(default_factory=_now)
	started_at: Optional[str] = Field(default=None)
	completed_at: Optional[str] = Field(default=None)
	error: Optional[str] = Field(default=None, description="Set only when status is failed")

	@property
	def is_finished(self) -> bool:
		return self.status in (TaskStatus.COMPLETED, TaskStatus.FAILED)


class TaskList(BaseModel):
	"""
	Ordered tasks for one request.

	Insertion order is execution order. ``current_task_index`` only ever
	moves forward and equals ``len(tasks)`` once every task is finished.
	"""
	id: str = Field(default_factory=lambda: _new_id("tasklist"))
	prompt: str = Field(description="Original user request")
	tasks: list[Task] = Field(default_factory=list)
	created_at: str = Field(default_factory=_now)
	current_task_index: int = Field(default=0)
	status: TaskListStatus = Field(default=TaskListStatus.ACTIVE)

	@property
	def is_active(self) -> bool:
		return self.status == TaskListStatus.ACTIVE

	def task_at_cursor(self) -> Optional[Task]:
		if 0 <= self.current_task_index < len(self.tasks):
			return self.tasks[self.current_task_index]
		return None

	def index_of(self, task_id: str) -> int:
		"""Position of a task by ID, or -1."""
		for i, task in enumerate(self.tasks):
			if task.id == task_id:
				return i
		return -1

	def get_progress(self) -> dict:
		"""Calculate overall progress."""
		total = len(self.tasks)
		completed = len([t for t in self.tasks if t.status == TaskStatus.COMPLETED])
		failed = len([t for t in self.tasks if t.status == TaskStatus.FAILED])
		return {
			"total_tasks": total,
			"completed_tasks": completed,
			"failed_tasks": failed,
			"percent_complete": round(completed / total * 100, 1) if total > 0 else 0,
		}
