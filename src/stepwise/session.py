"""
AgentSession - request-scoped wiring of the task system.

One AgentSession owns a TaskSession (and therefore one active task list),
the planner, the continuation controller and, in autonomous mode, the
execution orchestrator. Two sessions never share task state.

Request flow:
- A new request clears any finished or abandoned list
  and goes through interception, which may replace it with the first
  task's prompt.
- Conversational mode sends the prompt as a turn and hands the finish
  reason to the continuation controller. The controller queues the
  verification or next-task prompt, and the session loop sends it as the
  following turn.
- Autonomous mode runs each task through the orchestrator instead and
  chains with ``handle_task_completion``.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Protocol

from .config import Config, get_config
from .continuation import CANCELLED_NOTICE, ContinuationController, FinishReason, TaskState
from .errors import CancelledError, GenerationError
from .generation import ClaudeCLIGenerator, GenerationProfile, Generator
from .orchestrator.runner import EventCallback, ExecutionOrchestrator
from .planner import DecompositionPlanner
from .signals import CancelSignal, run_cancellable
from .steps import LocalStepExecutor, StepExecutor
from .tasks.service import TaskListService, TaskSession

logger = logging.getLogger(__name__)

DECOMPOSITION_FAILED_NOTICE = "Could not build a task list, proceeding directly."
MAX_TRANSCRIPT_TURNS = 6


@dataclass
class TurnResult:
	"""Text and finish reason of one conversation turn."""
	text: str
	finish_reason: FinishReason = FinishReason.STOP


class Conversation(Protocol):
	"""The main conversation the task prompts are injected into."""

	async def send(self, prompt: str, cancel: Optional[CancelSignal] = None) -> TurnResult:
		"""Run one turn and report how it ended."""


class GeneratorConversation:
	"""
	Conversation backed by a Generator.

	Each turn is sent with a short transcript of the preceding turns, so
	stateless backends still see what the previous task produced.
	"""

	def __init__(self, generator: Generator, max_turns: int = MAX_TRANSCRIPT_TURNS):
		self.generator = generator
		self.max_turns = max_turns
		self.transcript: list[tuple[str, str]] = []

	async def send(self, prompt: str, cancel: Optional[CancelSignal] = None) -> TurnResult:
		text = await self.generator.complete(self._with_transcript(prompt), GenerationProfile.MAIN, cancel)
		self.transcript.append((prompt, text))
		self.transcript = self.transcript[-self.max_turns:]
		return TurnResult(text=text)

	def _with_transcript(self, prompt: str) -> str:
		if not self.transcript:
			return prompt
		parts = ["Conversation so far:"]
		for user, assistant in self.transcript:
			parts.append(f"USER:\n{user}\n\nASSISTANT:\n{assistant}\n")
		parts.append(f"USER:\n{prompt}")
		return "\n".join(parts)


class AgentSession:
	"""
	Entry point for submitting user requests.

	Args:
		generator: Completion backend for decisions, task lists and plans
		conversation: Main conversation (defaults to one over ``generator``)
		executor: Step executor for autonomous mode
		config: Configuration (defaults to the global config)
		autonomous: Override ``config.autonomous``
		on_output: Receives assistant text of each turn
		on_notice: Receives user-visible notices
		on_event: Receives orchestrator events in autonomous mode
	"""

	def __init__(
		self,
		generator: Optional[Generator] = None,
		conversation: Optional[Conversation] = None,
		executor: Optional[StepExecutor] = None,
		config: Optional[Config] = None,
		autonomous: Optional[bool] = None,
		on_output: Optional[Callable[[str], None]] = None,
		on_notice: Optional[Callable[[str], None]] = None,
		on_event: Optional[EventCallback] = None,
	):
		self.config = config or get_config()
		self.generator = generator or ClaudeCLIGenerator.from_config(self.config)
		self.conversation = conversation or GeneratorConversation(self.generator)
		self.executor = executor or LocalStepExecutor(self.config.workspace, self.config.step_timeout)
		self.autonomous = self.config.autonomous if autonomous is None else autonomous

		self.on_output = on_output or (lambda text: None)
		self.on_notice = on_notice or (lambda message: None)
		self.on_event = on_event

		self.task_session = TaskSession()
		self.task_service = TaskListService(self.task_session)
		self.planner = DecompositionPlanner(self.generator, self.task_service)
		self.orchestrator = ExecutionOrchestrator(self.generator, self.executor, Path(self.config.workspace))
		self.continuation = ContinuationController(
			self.planner,
			submit=self._queue_continuation,
			notify=self.on_notice,
			render_delay=self.config.verification_render_delay,
			resubmit_delay=self.config.continuation_delay,
		)

		self._cancel: Optional[CancelSignal] = None
		self._pending_prompt: Optional[str] = None

	@property
	def session_id(self) -> str:
		return self.task_session.session_id

	def cancel(self, reason: str = CANCELLED_NOTICE) -> None:
		"""Cancel the request currently being processed."""
		if self._cancel is not None:
			self._cancel.cancel(reason)

	async def submit_request(self, text: str, cancel: Optional[CancelSignal] = None) -> bool:
		"""
		Submit a user request and drive its task chain to a stop.

		Args:
			text: The user's request
			cancel: Cancel signal (a fresh one is created if omitted)

		Returns:
			False if the request was cancelled or a turn failed
		"""
		cancel = cancel or CancelSignal()
		self._cancel = cancel
		prompt = await self._prepare_new_request(text, cancel)

		if self.autonomous and self._has_active_list():
			return await self._run_autonomous(cancel)

		return await self._run_conversation(prompt, cancel)

	async def _prepare_new_request(self, text: str, cancel: CancelSignal) -> str:
		"""Apply the new-request clearing rule, then try to decompose."""
		if self.continuation.state in (TaskState.IDLE, TaskState.DONE):
			self.continuation.reset()
			self.task_service.clear_task_list()

		if self._has_active_list():
			return text

		result = await self.planner.intercept_request(text, cancel)
		if result.proceed_with_task_list and result.prompt:
			return result.prompt
		if result.attempted:
			self.on_notice(DECOMPOSITION_FAILED_NOTICE)
		return text

	async def _run_conversation(self, prompt: str, cancel: CancelSignal) -> bool:
		"""Send turns until the continuation controller stops queueing prompts."""
		self._pending_prompt = None
		next_prompt: Optional[str] = prompt
		while next_prompt is not None:
			if not await self._run_turn(next_prompt, cancel):
				self._pending_prompt = None
				return False
			next_prompt, self._pending_prompt = self._pending_prompt, None
		return True

	async def _run_turn(self, prompt: str, cancel: CancelSignal) -> bool:
		try:
			turn = await run_cancellable(self.conversation.send(prompt, cancel), cancel)
		except CancelledError:
			self.continuation.on_cancelled()
			return False
		except GenerationError as e:
			logger.error(f"Conversation turn failed: {e}")
			self.on_notice(f"Turn failed: {e}")
			self.continuation.reset()
			return False

		if turn.text:
			self.on_output(turn.text)

		await self.continuation.on_turn_finished(turn.finish_reason, cancel)
		return not cancel.cancelled

	async def _queue_continuation(self, prompt: str) -> None:
		self._pending_prompt = prompt

	async def _run_autonomous(self, cancel: CancelSignal) -> bool:
		"""Run every remaining task through the orchestrator."""
		while True:
			task_list = self.task_service.get_current_task_list()
			current = self.task_service.get_current_task()
			if task_list is None or current is None:
				return True

			def still_current(task_id=current.id) -> bool:
				task = self.task_service.get_current_task()
				return task is not None and task.id == task_id

			ok = await self.orchestrator.run_task(
				task_list.prompt,
				current.title,
				on_event=self.on_event,
				cancel=cancel,
				max_repairs=self.config.max_repairs,
				task_owner=still_current,
			)

			if cancel.cancelled:
				self.on_notice(CANCELLED_NOTICE)
				return False

			if not ok:
				if still_current():
					self.task_service.fail_current_task("Verification failed after repair attempts")
				self.on_notice(f"Task '{current.title}' failed verification after repair attempts.")
				return False

			if self.planner.handle_task_completion() is None:
				return True

	def _has_active_list(self) -> bool:
		task_list = self.task_service.get_current_task_list()
		return task_list is not None and task_list.is_active
