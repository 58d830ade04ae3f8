"""
Task list lifecycle listeners.

Listeners subclass TaskListListener and override the hooks they need.
Hooks are called synchronously, after the mutation they describe, so a
listener reading service state inside a hook sees the new state.
"""

import logging
from typing import Optional

from .models import Task, TaskList

logger = logging.getLogger(__name__)


class TaskListListener:
	"""Receives task list lifecycle events. All hooks default to no-ops."""

	def on_created(self, task_list: TaskList) -> None:
		pass

	def on_started(self, task: Task, task_list: TaskList) -> None:
		pass

	def on_completed(self, task: Task, task_list: TaskList) -> None:
		pass

	def on_failed(self, task: Task, task_list: TaskList) -> None:
		pass

	def on_list_completed(self, task_list: TaskList) -> None:
		pass

	def on_list_updated(self, task_list: TaskList, inserted: list[Task]) -> None:
		pass

	def on_cleared(self, task_list: TaskList) -> None:
		pass


class TaskListEvents:
	"""Fan-out of lifecycle events to registered listeners."""

	def __init__(self):
		self._listeners: list[TaskListListener] = []

	def add_listener(self, listener: TaskListListener) -> None:
		if listener not in self._listeners:
			self._listeners.append(listener)

	def remove_listener(self, listener: TaskListListener) -> bool:
		if listener in self._listeners:
			self._listeners.remove(listener)
			return True
		return False

	def _dispatch(self, hook: str, *args) -> None:
		for listener in list(self._listeners):
			try:
				getattr(listener, hook)(*args)
			except Exception as e:
				logger.error(f"Task list listener {hook} failed: {e}")

	def created(self, task_list: TaskList) -> None:
		self._dispatch("on_created", task_list)

	def started(self, task: Task, task_list: TaskList) -> None:
		self._dispatch("on_started", task, task_list)

	def completed(self, task: Task, task_list: TaskList) -> None:
		self._dispatch("on_completed", task, task_list)

	def failed(self, task: Task, task_list: TaskList) -> None:
		self._dispatch("on_failed", task, task_list)

	def list_completed(self, task_list: TaskList) -> None:
		self._dispatch("on_list_completed", task_list)

	def list_updated(self, task_list: TaskList, inserted: Optional[list[Task]] = None) -> None:
		self._dispatch("on_list_updated", task_list, inserted or [])

	def cleared(self, task_list: TaskList) -> None:
		self._dispatch("on_cleared", task_list)
