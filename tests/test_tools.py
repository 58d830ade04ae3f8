"""
Tests for the task list MCP tools.

Tests:
- task_list creation and status reads
- task_list_update validation and mutation
"""

import json

import pytest

from stepwise.errors import GenerationError
from stepwise.session import AgentSession
from stepwise.tasks import TaskStatus
from stepwise.tools.task_list import register_task_list_tools

from .helpers import FakeExecutor, FakeGenerator, capture_tools, make_config


@pytest.fixture
def session(tmp_path):
	return AgentSession(
		generator=FakeGenerator(["1. Scaffold app\n2. Add auth\n3. Write tests"]),
		executor=FakeExecutor(),
		config=make_config(tmp_path),
	)


@pytest.fixture
def tools(session):
	return capture_tools(session, register_task_list_tools)


class TestTaskListTool:
	"""Tests for the task_list tool."""

	@pytest.mark.asyncio
	async def test_creates_list_without_starting_it(self, session, tools):
		result = json.loads(await tools["task_list"]("Build an app with auth"))

		assert result["success"] is True
		assert result["task_count"] == 3
		task_list = session.task_service.get_current_task_list()
		assert result["task_list_id"] == task_list.id
		assert all(t.status == TaskStatus.PENDING for t in task_list.tasks)
		assert "○ 1. Scaffold app" in result["summary"]

	@pytest.mark.asyncio
	async def test_status_only(self, tools):
		result = json.loads(await tools["task_list"]("anything", create_tasks=False))
		assert result["summary"] == "No active task list"
		assert result["context"] == ""

	@pytest.mark.asyncio
	async def test_empty_request(self, tools):
		result = json.loads(await tools["task_list"]("   "))
		assert result == {"error": "user_request cannot be empty"}

	@pytest.mark.asyncio
	async def test_generation_failure(self, tmp_path):
		session = AgentSession(
			generator=FakeGenerator([GenerationError("backend down")]),
			executor=FakeExecutor(),
			config=make_config(tmp_path),
		)
		tools = capture_tools(session, register_task_list_tools)

		result = json.loads(await tools["task_list"]("Build an app"))

		assert result["error"].startswith("Failed to create task list")
		assert session.task_service.get_current_task_list() is None

	@pytest.mark.asyncio
	async def test_no_titles(self, tmp_path):
		session = AgentSession(
			generator=FakeGenerator(["Sure, I can help with that."]),
			executor=FakeExecutor(),
			config=make_config(tmp_path),
		)
		tools = capture_tools(session, register_task_list_tools)

		result = json.loads(await tools["task_list"]("Build an app"))

		assert result["success"] is False


class TestTaskListUpdateTool:
	"""Tests for the task_list_update tool."""

	@pytest.mark.asyncio
	async def test_insert_after_current(self, session, tools):
		service = session.task_service
		service.create_task_list("req", ["A", "B"])
		service.start_current_task()

		result = json.loads(await tools["task_list_update"]("insert_after_current", ["Fix config"], "build failed"))

		assert result["success"] is True
		assert result["message"] == "Inserted 1 task(s) after current task (1)"
		assert [t.title for t in service.get_current_task_list().tasks] == ["A", "Fix config", "B"]
		assert service.get_current_task().title == "A"

	@pytest.mark.asyncio
	async def test_append(self, session, tools):
		service = session.task_service
		service.create_task_list("req", ["A"])

		result = json.loads(await tools["task_list_update"]("append", ["  ", "Deploy"]))

		assert result["message"] == "Inserted 1 task(s) at the end"
		assert [t.title for t in service.get_current_task_list().tasks] == ["A", "Deploy"]

	@pytest.mark.asyncio
	async def test_invalid_operation(self, tools):
		result = json.loads(await tools["task_list_update"]("prepend", ["X"]))
		assert result["error"] == "Invalid operation: prepend"
		assert result["valid_operations"] == ["insert_after_current", "append"]

	@pytest.mark.asyncio
	async def test_blank_titles(self, session, tools):
		session.task_service.create_task_list("req", ["A"])
		result = json.loads(await tools["task_list_update"]("append", ["", "  "]))
		assert "error" in result

	@pytest.mark.asyncio
	async def test_no_active_list(self, tools):
		result = json.loads(await tools["task_list_update"]("append", ["X"]))
		assert result == {"error": "No active task list to update."}
