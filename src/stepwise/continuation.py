"""
Continuation controller - interposes verification turns between tasks.

When a turn of the main conversation finishes naturally while a task list
is active, the controller first asks for a verification turn on the
current task. Only when that verification turn finishes does it complete
the task and submit the prompt for the next one.

State machine::

	IDLE --stop--> AWAITING_VERIFICATION --stop--> AWAITING_NEXT_TASK
	  ^                                                  |
	  +------------- next prompt submitted --------------+
	                                                     |
	                              list finished -------> DONE

Cancellation from any state drops back to IDLE without submitting.
"""

import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, Optional

from .errors import CancelledError
from .planner import DecompositionPlanner
from .signals import CancelSignal, run_cancellable
from .tasks.models import Task

logger = logging.getLogger(__name__)

CANCELLED_NOTICE = "Request cancelled"


class FinishReason(str, Enum):
	"""Why a turn of the main conversation ended."""
	UNSPECIFIED = "unspecified"
	STOP = "stop"
	MAX_TOKENS = "max_tokens"
	SAFETY = "safety"
	RECITATION = "recitation"
	LANGUAGE = "language"
	BLOCKLIST = "blocklist"
	PROHIBITED_CONTENT = "prohibited_content"
	SPII = "spii"
	OTHER = "other"
	MALFORMED_FUNCTION_CALL = "malformed_function_call"
	IMAGE_SAFETY = "image_safety"
	UNEXPECTED_TOOL_CALL = "unexpected_tool_call"


FINISH_REASON_MESSAGES: dict[FinishReason, Optional[str]] = {
	FinishReason.UNSPECIFIED: None,
	FinishReason.STOP: None,
	FinishReason.MAX_TOKENS: "Response truncated due to token limits.",
	FinishReason.SAFETY: "Response stopped due to safety reasons.",
	FinishReason.RECITATION: "Response stopped due to recitation policy.",
	FinishReason.LANGUAGE: "Response stopped due to unsupported language.",
	FinishReason.BLOCKLIST: "Response stopped due to forbidden terms.",
	FinishReason.PROHIBITED_CONTENT: "Response stopped due to prohibited content.",
	FinishReason.SPII: "Response stopped due to sensitive personally identifiable information.",
	FinishReason.OTHER: "Response stopped for other reasons.",
	FinishReason.MALFORMED_FUNCTION_CALL: "Response stopped due to malformed function call.",
	FinishReason.IMAGE_SAFETY: "Response stopped due to image safety violations.",
	FinishReason.UNEXPECTED_TOOL_CALL: "Response stopped due to unexpected tool call.",
}


class TaskState(str, Enum):
	"""Where the controller is in the verify-then-advance cycle."""
	IDLE = "idle"
	AWAITING_VERIFICATION = "awaiting_verification"
	AWAITING_NEXT_TASK = "awaiting_next_task"
	DONE = "done"


SubmitCallback = Callable[[str], Awaitable[None]]
NoticeCallback = Callable[[str], None]


def build_verification_prompt(task: Task, task_context: str) -> str:
	"""Compose the turn that asks the conversation to validate ``task``."""
	return "\n".join([
		"Verify the previous task was successful before proceeding.",
		"",
		task_context,
		"",
		f'You must validate that the CURRENT TASK is complete: "{task.title}"',
		"",
		"Validation rules:",
		"- Prefer non-interactive commands and flags.",
		"- Where applicable for this repository, run build/test/typecheck/lint to validate"
		" (e.g., `npm run preflight`, or `npm run build && npm run test && npm run typecheck && npm run lint:ci`).",
		"- If errors occur, FIX THEM using available actions (edit/write_file/shell) and re-run checks until clean.",
		"- Do NOT start the next task until validation passes.",
		"",
		"When validation passes, reply briefly with a summary of what was checked and the outcome.",
		"If new subtasks are required, call the `task_list_update` tool to insert them after the current task.",
	])


class ContinuationController:
	"""
	Drives the task list from turn-finished signals.

	The controller never talks to the conversation directly. It is handed
	a ``submit`` coroutine function that hands over the next continuation
	prompt and must return without running the turn itself, and an
	optional ``notify`` callback for user-visible notices.
	"""

	def __init__(
		self,
		planner: DecompositionPlanner,
		submit: SubmitCallback,
		notify: Optional[NoticeCallback] = None,
		render_delay: float = 0.3,
		resubmit_delay: float = 1.0,
	):
		"""
		Initialize the controller.

		Args:
			planner: Planner whose task service holds the active list
			submit: Hands the next continuation prompt to whoever runs turns
			notify: Receives user-visible notices
			render_delay: Pause before completing a verified task
			resubmit_delay: Pause before submitting the next task's prompt
		"""
		self.planner = planner
		self.submit = submit
		self.notify = notify or (lambda message: None)
		self.render_delay = render_delay
		self.resubmit_delay = resubmit_delay
		self._state = TaskState.IDLE

	@property
	def state(self) -> TaskState:
		return self._state

	def reset(self) -> None:
		"""Forget any pending verification, e.g. when a new request arrives."""
		self._state = TaskState.IDLE

	def on_cancelled(self) -> None:
		"""Handle a cancelled turn: nothing further is submitted."""
		if self._state != TaskState.IDLE:
			logger.info(f"Cancelled while {self._state.value}; suppressing continuation")
		self._state = TaskState.IDLE
		self.notify(CANCELLED_NOTICE)

	async def on_turn_finished(
		self,
		finish_reason: FinishReason,
		cancel: Optional[CancelSignal] = None,
	) -> TaskState:
		"""
		React to the end of a conversation turn.

		Args:
			finish_reason: Why the turn ended
			cancel: The request's cancel signal

		Returns:
			The controller state after handling the turn
		"""
		message = FINISH_REASON_MESSAGES.get(finish_reason)
		if message:
			self.notify(message)

		if finish_reason != FinishReason.STOP:
			return self._state

		service = self.planner.task_service
		task_list = service.get_current_task_list()
		if task_list is None or not task_list.is_active:
			return self._state

		if cancel is not None and cancel.cancelled:
			self.on_cancelled()
			return self._state

		try:
			if self._state != TaskState.AWAITING_VERIFICATION:
				await self._request_verification(cancel)
			else:
				await self._advance(cancel)
		except CancelledError:
			self.on_cancelled()
		return self._state

	async def _request_verification(self, cancel: Optional[CancelSignal]) -> None:
		service = self.planner.task_service
		current = service.get_current_task()
		self._state = TaskState.AWAITING_VERIFICATION
		if current is None:
			return

		logger.info(f"Requesting verification turn for: {current.title}")
		await self.submit(build_verification_prompt(current, service.get_task_context()))

	async def _advance(self, cancel: Optional[CancelSignal]) -> None:
		self._state = TaskState.AWAITING_NEXT_TASK

		await run_cancellable(asyncio.sleep(self.render_delay), cancel)
		next_prompt = self.planner.handle_task_completion()
		if next_prompt is None:
			logger.info("Task chain finished")
			self._state = TaskState.DONE
			return

		await run_cancellable(asyncio.sleep(self.resubmit_delay), cancel)
		self._state = TaskState.IDLE
		await self.submit(next_prompt)
