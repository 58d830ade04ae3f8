"""
TaskListService - the only mutator of a session's task list.

The service owns at most one active TaskList per TaskSession. Creating
a new list interrupts and archives the previous one, so any loop still
holding the old list sees ``get_current_task()`` return None and stops.

Mutators never raise on precondition violations. Several call sites can
race to advance the same list (a finished turn, an orchestrator run, a
tool call), and the loser must simply observe a no-op.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from .events import TaskListEvents, TaskListListener
from .models import Task, TaskList, TaskListStatus, TaskStatus

logger = logging.getLogger(__name__)

STATUS_GLYPHS = {
	TaskStatus.COMPLETED: "✓",
	TaskStatus.IN_PROGRESS: "▶",
	TaskStatus.FAILED: "✗",
	TaskStatus.PENDING: "○",
}


@dataclass
class TaskSession:
	"""Request-scoped holder of the active task list and its history."""
	session_id: str = field(default_factory=lambda: f"session-{uuid.uuid4().hex[:12]}")
	current: Optional[TaskList] = None
	history: list[TaskList] = field(default_factory=list)


def _clean_titles(titles: list[str]) -> list[str]:
	return [t.strip() for t in titles if isinstance(t, str) and t.strip()]


class TaskListService:
	"""
	Lifecycle operations for the session's task list.

	Every mutation emits its event only after the state change is
	complete (status set, cursor advanced, list status updated).
	"""

	def __init__(self, session: Optional[TaskSession] = None):
		self.session = session or TaskSession()
		self.events = TaskListEvents()

	def add_listener(self, listener: TaskListListener) -> None:
		self.events.add_listener(listener)

	def remove_listener(self, listener: TaskListListener) -> bool:
		return self.events.remove_listener(listener)

	def create_task_list(self, prompt: str, titles: list[str]) -> TaskList:
		"""
		Create a new task list, interrupting any active one.

		Args:
			prompt: Original user request
			titles: Task titles in execution order

		Returns:
			The new, active TaskList

		Raises:
			ValueError: If no non-empty title is given
		"""
		clean = _clean_titles(titles)
		if not clean:
			raise ValueError("A task list needs at least one non-empty title")

		self._archive_current()

		task_list = TaskList(
			prompt=prompt,
			tasks=[Task(title=title) for title in clean],
		)
		self.session.current = task_list
		logger.info(f"Created task list {task_list.id} with {len(clean)} tasks")
		self.events.created(task_list)
		return task_list

	def get_current_task_list(self) -> Optional[TaskList]:
		return self.session.current

	def get_current_task_index(self) -> int:
		task_list = self.session.current
		return task_list.current_task_index if task_list else -1

	def get_task_history(self) -> list[TaskList]:
		return list(self.session.history)

	def get_current_task(self) -> Optional[Task]:
		"""Get the task at the cursor, only while the list is active."""
		task_list = self.session.current
		if not task_list or not task_list.is_active:
			return None
		return task_list.task_at_cursor()

	def start_current_task(self) -> bool:
		"""Move the current task from pending to in_progress."""
		task = self.get_current_task()
		if not task or task.status != TaskStatus.PENDING:
			return False

		task.status = TaskStatus.IN_PROGRESS
		task.started_at = datetime.now().isoformat()
		logger.debug(f"Started task: {task.title}")
		self.events.started(task, self.session.current)
		return True

	def complete_current_task(self) -> Optional[Task]:
		"""Complete the in-progress task and advance the cursor."""
		return self._finish_current(TaskStatus.COMPLETED)

	def fail_current_task(self, error: str) -> Optional[Task]:
		"""Fail the in-progress task and advance the cursor."""
		return self._finish_current(TaskStatus.FAILED, error=error)

	def _finish_current(self, status: TaskStatus, error: Optional[str] = None) -> Optional[Task]:
		task = self.get_current_task()
		if not task or task.status != TaskStatus.IN_PROGRESS:
			return None

		task_list = self.session.current
		task.status = status
		task.completed_at = datetime.now().isoformat()
		if status == TaskStatus.FAILED:
			task.error = error or "Task failed"

		task_list.current_task_index += 1
		list_done = task_list.current_task_index >= len(task_list.tasks)
		if list_done:
			task_list.status = TaskListStatus.COMPLETED

		if status == TaskStatus.COMPLETED:
			logger.info(f"Completed task: {task.title}")
			self.events.completed(task, task_list)
		else:
			logger.warning(f"Failed task: {task.title} ({task.error})")
			self.events.failed(task, task_list)

		if list_done:
			logger.info(f"All tasks finished for task list {task_list.id}")
			self.events.list_completed(task_list)

		return task

	def insert_tasks_after_current(self, titles: list[str]) -> list[Task]:
		"""Insert pending tasks right after the cursor."""
		task_list = self.session.current
		clean = _clean_titles(titles)
		if not clean or not task_list or not task_list.is_active:
			return []

		new_tasks = [Task(title=title) for title in clean]
		position = task_list.current_task_index + 1
		task_list.tasks[position:position] = new_tasks
		logger.info(f"Inserted {len(new_tasks)} task(s) after task {task_list.current_task_index + 1}")
		self.events.list_updated(task_list, new_tasks)
		return new_tasks

	def append_tasks(self, titles: list[str]) -> list[Task]:
		"""Append pending tasks at the end of the list."""
		task_list = self.session.current
		clean = _clean_titles(titles)
		if not clean or not task_list or not task_list.is_active:
			return []

		new_tasks = [Task(title=title) for title in clean]
		task_list.tasks.extend(new_tasks)
		logger.info(f"Appended {len(new_tasks)} task(s)")
		self.events.list_updated(task_list, new_tasks)
		return new_tasks

	def clear_task_list(self) -> bool:
		"""Archive the current list as interrupted."""
		task_list = self._archive_current()
		if task_list is None:
			return False
		self.events.cleared(task_list)
		return True

	def _archive_current(self) -> Optional[TaskList]:
		task_list = self.session.current
		if task_list is None:
			return None
		if task_list.is_active:
			task_list.status = TaskListStatus.INTERRUPTED
		self.session.history.append(task_list)
		self.session.current = None
		logger.debug(f"Archived task list {task_list.id} ({task_list.status.value})")
		return task_list

	def get_task_context(self) -> str:
		"""Build the prompt fragment describing progress and the current task."""
		task = self.get_current_task()
		if task is None:
			return ""

		task_list = self.session.current
		tasks = task_list.tasks
		index = task_list.current_task_index
		total = len(tasks)
		completed = len([t for t in tasks if t.status == TaskStatus.COMPLETED])

		lines = [
			"",
			"## Task Execution Context",
			f"You are executing a multi-step task list. Current progress: {completed}/{total} tasks completed.",
			"",
		]

		if index > 0:
			lines.append("**Previous tasks completed:**")
			for i, t in enumerate(tasks[:index]):
				mark = "✓" if t.status == TaskStatus.COMPLETED else "✗"
				lines.append(f"  {i + 1}. [{mark}] {t.title}")
			lines.append("")

		lines.extend([
			f"**CURRENT TASK ({index + 1}/{total}):** {task.title}",
			"",
			"**CRITICAL EXECUTION RULES:**",
			f'1. Focus ONLY on completing: "{task.title}"',
			"2. Use non-interactive commands (add --yes, --no-input or similar flags) and sensible defaults;"
			" never ask the user questions",
			"3. If an error occurs, FIX it - do NOT skip or clean up",
			"4. Verify success before considering the task complete",
			"5. Do NOT execute future tasks yet",
			"6. STOP after the current task so a verification pass can run",
			"",
		])

		upcoming = tasks[index + 1:]
		if upcoming:
			lines.append("**Upcoming tasks (DO NOT EXECUTE):**")
			for i, t in enumerate(upcoming):
				lines.append(f"  {index + i + 2}. [ ] {t.title}")

		return "\n".join(lines)

	def get_task_list_summary(self) -> str:
		"""Flat progress listing for display."""
		task_list = self.session.current
		if task_list is None:
			return "No active task list"

		lines = ["## Task List"]
		for i, task in enumerate(task_list.tasks):
			lines.append(f"{STATUS_GLYPHS.get(task.status, '○')} {i + 1}. {task.title}")
		return "\n".join(lines)
