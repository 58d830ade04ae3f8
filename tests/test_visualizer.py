"""Tests for rich rendering of events and task lists."""

from rich.console import Console

from stepwise.orchestrator import ActionPlan, ActionStep, OrchestratorEvent, OrchestratorEventType
from stepwise.tasks import TaskListService
from stepwise.visualizer import (
	TaskListRenderer,
	format_event,
	render_event,
	render_task_history,
	render_task_list,
)


def _console() -> Console:
	return Console(record=True, width=100, force_terminal=False)


class TestEvents:
	"""Tests for event lines."""

	def test_prefixes(self):
		assert format_event(OrchestratorEvent(OrchestratorEventType.COMPLETE, "Task complete: A")) == "🎉 Task complete: A"
		assert format_event(OrchestratorEvent(
			OrchestratorEventType.VERIFY_RESULT, "1 failed", success=False,
		)).startswith("❌")

	def test_plan_steps_are_listed(self):
		console = _console()
		plan = ActionPlan(steps=[ActionStep(action="shell", args={"command": "npm init -y"}, description="Init")])
		render_event(OrchestratorEvent(OrchestratorEventType.PLAN, "Planned 1 step(s).", plan=plan), console)
		text = console.export_text()
		assert "Planned 1 step(s)." in text
		assert "1. shell: Init" in text


class TestTaskList:
	"""Tests for task list views."""

	def test_panel_shows_progress(self):
		service = TaskListService()
		service.create_task_list("Build [an] app", ["Scaffold", "Add auth"])
		service.start_current_task()
		service.complete_current_task()

		console = _console()
		render_task_list(service.get_current_task_list(), console)
		text = console.export_text()

		assert "Build [an] app" in text
		assert "1/2 tasks complete (50%)" in text
		assert "2. Add auth" in text

	def test_empty_states(self):
		console = _console()
		render_task_list(None, console)
		render_task_history([], console)
		text = console.export_text()
		assert "No active task list" in text
		assert "No task list history" in text

	def test_renderer_follows_lifecycle(self):
		console = _console()
		service = TaskListService()
		service.add_listener(TaskListRenderer(console))

		service.create_task_list("req", ["Only task"])
		service.start_current_task()
		service.complete_current_task()

		text = console.export_text()
		assert "Task list generated" in text
		assert "Starting task 1/1" in text
		assert "All 1 tasks completed" in text
