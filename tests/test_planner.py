"""
Tests for request decomposition.

Tests:
- Local heuristic (no generator calls for obvious cases)
- Generator fallback for ambiguous requests
- Task title parsing
- Request interception and completion chaining
"""

import pytest

from stepwise.errors import CancelledError, DecompositionError, GenerationError
from stepwise.generation import GenerationProfile
from stepwise.planner import (
	DecompositionPlanner,
	is_simple_question,
	is_single_command,
	parse_task_titles,
)
from stepwise.signals import CancelSignal
from stepwise.tasks import TaskListService, TaskListStatus, TaskStatus

from .helpers import FakeGenerator


def _planner(responses=None):
	generator = FakeGenerator(responses)
	service = TaskListService()
	return DecompositionPlanner(generator, service), generator, service


class TestHeuristic:
	"""Tests for the local should-decompose heuristic."""

	@pytest.mark.asyncio
	async def test_simple_question_is_not_decomposed(self):
		planner, generator, _ = _planner()
		assert await planner.should_decompose("What is React?") is False
		assert generator.calls == []

	@pytest.mark.asyncio
	async def test_multi_step_request_is_decomposed_locally(self):
		planner, generator, _ = _planner()
		assert await planner.should_decompose("Create a REST API with auth and tests") is True
		assert generator.calls == []

	@pytest.mark.asyncio
	async def test_single_command_is_not_decomposed(self):
		planner, generator, _ = _planner()
		assert await planner.should_decompose("run tests") is False
		assert await planner.should_decompose("Build") is False
		assert generator.calls == []

	@pytest.mark.asyncio
	async def test_long_request_is_decomposed(self):
		planner, generator, _ = _planner()
		request = "please look over the whole repository layout for me today"
		assert await planner.should_decompose(request) is True
		assert generator.calls == []

	def test_question_mark_with_and_is_not_simple(self):
		assert is_simple_question("how do i fix this and that?") is False
		assert is_simple_question("how do i fix this?") is True

	def test_single_command_patterns(self):
		assert is_single_command("install numpy")
		assert is_single_command("test")
		assert not is_single_command("install numpy and pandas")


class TestGeneratorDecision:
	"""Tests for ambiguous requests that reach the generator."""

	@pytest.mark.asyncio
	async def test_yes_answer_decomposes_with_fast_profile(self):
		planner, generator, _ = _planner([" yes \n"])
		assert await planner.should_decompose("fix login") is True
		assert len(generator.calls) == 1
		assert generator.calls[0][1] == GenerationProfile.FAST
		assert "fix login" in generator.calls[0][0]

	@pytest.mark.asyncio
	async def test_no_answer(self):
		planner, _, _ = _planner(["NO"])
		assert await planner.should_decompose("fix login") is False

	@pytest.mark.asyncio
	async def test_generation_failure_means_no_decomposition(self):
		planner, _, _ = _planner([GenerationError("backend down")])
		assert await planner.should_decompose("fix login") is False

	@pytest.mark.asyncio
	async def test_cancellation_means_no_decomposition(self):
		planner, _, _ = _planner([CancelledError()])
		assert await planner.should_decompose("fix login") is False


class TestTaskTitles:
	"""Tests for task list generation and parsing."""

	def test_parse_bullets_and_numbers_in_document_order(self):
		text = "Here you go:\n- Set up project\n1. Add models\n- Write tests\nThanks"
		assert parse_task_titles(text) == ["Set up project", "Add models", "Write tests"]

	def test_parse_ignores_prose(self):
		assert parse_task_titles("I cannot help with that.") == []

	@pytest.mark.asyncio
	async def test_generate_task_list_returns_three_titles(self):
		planner, generator, _ = _planner(["- First\n- Second\n3. Third"])
		titles = await planner.generate_task_list("do things")
		assert titles == ["First", "Second", "Third"]
		assert generator.calls[0][1] == GenerationProfile.FAST

	@pytest.mark.asyncio
	async def test_generate_task_list_wraps_generation_errors(self):
		planner, _, _ = _planner([GenerationError("timeout")])
		with pytest.raises(DecompositionError):
			await planner.generate_task_list("do things")


class TestIntercept:
	"""Tests for request interception."""

	@pytest.mark.asyncio
	async def test_intercept_creates_list_and_starts_first_task(self):
		planner, _, service = _planner(["1. Scaffold app\n2. Add auth"])

		result = await planner.intercept_request("Create an app with auth")

		assert result.proceed_with_task_list is True
		task_list = service.get_current_task_list()
		assert [t.title for t in task_list.tasks] == ["Scaffold app", "Add auth"]
		assert task_list.tasks[0].status == TaskStatus.IN_PROGRESS
		assert "Original request: Create an app with auth" in result.prompt
		assert "**EXECUTE ONLY TASK 1: Scaffold app**" in result.prompt
		assert "broken this down into 2 tasks" in result.prompt

	@pytest.mark.asyncio
	async def test_intercept_passes_through_simple_requests(self):
		planner, generator, service = _planner()
		result = await planner.intercept_request("What is React?")
		assert result.proceed_with_task_list is False
		assert result.attempted is False
		assert service.get_current_task_list() is None
		assert generator.calls == []

	@pytest.mark.asyncio
	async def test_intercept_reports_attempt_on_generation_failure(self):
		planner, _, service = _planner([GenerationError("down")])
		result = await planner.intercept_request("Create an app with auth")
		assert result.proceed_with_task_list is False
		assert result.attempted is True
		assert service.get_current_task_list() is None

	@pytest.mark.asyncio
	async def test_intercept_reports_attempt_on_empty_list(self):
		planner, _, _ = _planner(["Sorry, no tasks."])
		result = await planner.intercept_request("Create an app with auth")
		assert result.proceed_with_task_list is False
		assert result.attempted is True

	@pytest.mark.asyncio
	async def test_intercept_ignores_blank_request(self):
		planner, generator, _ = _planner()
		result = await planner.intercept_request("   ")
		assert result.proceed_with_task_list is False
		assert generator.calls == []

	@pytest.mark.asyncio
	async def test_intercept_never_raises_on_cancel(self):
		cancel = CancelSignal()

		def cancel_then_fail(prompt, signal):
			cancel.cancel()
			raise CancelledError()

		planner, _, _ = _planner([cancel_then_fail])
		result = await planner.intercept_request("Create an app with auth", cancel)
		assert result.proceed_with_task_list is False


class TestTaskCompletion:
	"""Tests for chaining to the next task."""

	def test_handle_task_completion_starts_next_task(self):
		planner, _, service = _planner()
		service.create_task_list("req", ["A", "B"])
		service.start_current_task()

		prompt = planner.handle_task_completion()

		assert service.get_current_task().title == "B"
		assert service.get_current_task().status == TaskStatus.IN_PROGRESS
		assert 'Task 1/2 "A" completed!' in prompt
		assert "**NOW EXECUTE ONLY TASK 2: B**" in prompt

	def test_handle_task_completion_stops_after_last_task(self):
		planner, _, service = _planner()
		service.create_task_list("req", ["A"])
		service.start_current_task()

		assert planner.handle_task_completion() is None
		assert service.get_current_task_list().status == TaskListStatus.COMPLETED

	def test_handle_task_completion_without_task(self):
		planner, _, _ = _planner()
		assert planner.handle_task_completion() is None
