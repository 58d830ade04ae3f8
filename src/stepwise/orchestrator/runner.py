"""
ExecutionOrchestrator - autonomous plan/execute/verify/repair loop for one task.

Flow:
1. Ask the generator for a short JSON action plan (<= 5 safelisted steps)
2. Run the steps in order; a failing step is recorded, never fatal
3. Verify; on failure request a repair plan (<= 3 steps) seeded with the
   observations so far, run it and verify again, up to ``max_repairs`` times

Progress is reported through ``on_event`` only. The caller owns all
user-facing rendering.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

from ..errors import CancelledError, GenerationError, PlanningError, VerificationFailure
from ..generation import GenerationProfile, Generator
from ..signals import CancelSignal, run_cancellable
from ..steps import StepExecutor
from .plans import (
	MAX_PLAN_STEPS,
	MAX_REPAIR_STEPS,
	ActionPlan,
	Observation,
	format_observations,
	parse_action_plan,
)
from .verifier import CheckResult, CheckStatus, Verifier

logger = logging.getLogger(__name__)

DEFAULT_MAX_REPAIRS = 2
MAX_FAILURE_TAIL = 1000

PLAN_PROMPT = """You are an orchestrator planner. Given a user request and the CURRENT TASK, propose a short JSON plan of non-interactive steps using only the allowed actions.

Return ONLY a JSON object with this schema:
{{
  "steps": [
    {{ "action": "{actions}", "args": {{ ... }}, "description": "optional" }}
  ],
  "rationale": "optional brief string"
}}

Rules:
- Non-interactive only. Add flags like --yes/--no-input if needed.
- Work inside the current workspace path only.
- Do NOT run servers or open browsers.
- Keep steps <= {max_steps}.
- Prefer atomic edits and builds over global mutations.

User request: {request}
CURRENT TASK: {task}"""

REPAIR_PROMPT = """Task verification failed. Provide a minimal JSON repair plan (<={max_steps} steps) using allowed actions to fix issues, based on observations.

Schema is the same as before (steps[], rationale). Allowed actions: {actions}. Rules: non-interactive only; workspace only; keep safe.

User request: {request}
CURRENT TASK: {task}
VERIFICATION: {verification}
OBSERVATIONS:
{observations}"""

PLAN_ACTIONS = "shell|edit|write_file|read_file|ls|glob|grep|read_many_files|web_fetch"


class OrchestratorEventType(str, Enum):
	"""Phase transitions reported while running a task."""
	INFO = "info"
	PLAN = "plan"
	STEP_START = "step_start"
	STEP_RESULT = "step_result"
	VERIFY = "verify"
	VERIFY_RESULT = "verify_result"
	COMPLETE = "complete"
	ERROR = "error"


@dataclass
class OrchestratorEvent:
	"""One progress event. ``plan`` is set on PLAN, ``success`` on VERIFY_RESULT."""
	type: OrchestratorEventType
	message: str
	plan: Optional[ActionPlan] = None
	success: Optional[bool] = None


EventCallback = Callable[[OrchestratorEvent], None]


class ExecutionOrchestrator:
	"""
	Runs a single task without the conversational turn loop.

	Every generator and executor call receives the cancel signal. Once it
	fires the orchestrator stops, reports "Request cancelled" and returns
	False; it never moves on to repair after a cancellation.
	"""

	def __init__(
		self,
		generator: Generator,
		executor: StepExecutor,
		workspace: Optional[Path] = None,
		verifier: Optional[Verifier] = None,
	):
		"""
		Initialize the orchestrator.

		Args:
			generator: Plans, repair plans and fallback verification commands
			executor: Runs the plan steps and verification commands
			workspace: Workspace whose manifest drives verification
			verifier: Override the default Verifier
		"""
		self.generator = generator
		self.executor = executor
		self.verifier = verifier or Verifier(executor, generator, workspace)

	async def run_task(
		self,
		request_text: str,
		task_title: str,
		on_event: Optional[EventCallback] = None,
		cancel: Optional[CancelSignal] = None,
		max_repairs: int = DEFAULT_MAX_REPAIRS,
		task_owner: Optional[Callable[[], bool]] = None,
	) -> bool:
		"""
		Plan, execute and verify one task.

		Args:
			request_text: The user's original request
			task_title: Title of the task to carry out
			on_event: Receives progress events
			cancel: Cancellation signal for this request
			max_repairs: Repair rounds allowed after the first failed verification
			task_owner: Returns False once this run no longer owns its task

		Returns:
			True if verification passed
		"""
		emit = on_event or (lambda event: None)
		max_repairs = max(0, max_repairs)

		try:
			return await self._run(request_text, task_title, emit, cancel, max_repairs, task_owner)
		except CancelledError as e:
			logger.info(f"Task run cancelled: {task_title}")
			emit(OrchestratorEvent(OrchestratorEventType.ERROR, e.reason))
			return False
		except PlanningError as e:
			emit(OrchestratorEvent(OrchestratorEventType.ERROR, str(e)))
			return False

	async def _run(
		self,
		request_text: str,
		task_title: str,
		emit: EventCallback,
		cancel: Optional[CancelSignal],
		max_repairs: int,
		task_owner: Optional[Callable[[], bool]],
	) -> bool:
		emit(OrchestratorEvent(
			OrchestratorEventType.INFO,
			f"Orchestrator enabled. Executing: {task_title}",
		))

		plan = await self._request_plan(
			PLAN_PROMPT.format(
				actions=PLAN_ACTIONS,
				max_steps=MAX_PLAN_STEPS,
				request=request_text,
				task=task_title,
			),
			MAX_PLAN_STEPS,
			cancel,
		)
		if plan is None or not plan.steps:
			raise PlanningError("Planner returned no steps.")

		emit(OrchestratorEvent(
			OrchestratorEventType.PLAN,
			f"Planned {len(plan.steps)} step(s).",
			plan=plan,
		))

		observations: list[Observation] = []
		if not await self._execute_plan(plan, "step", observations, emit, cancel, task_owner):
			return False

		for attempt in range(max_repairs + 1):
			try:
				await self._verify(request_text, task_title, attempt, emit, cancel)
			except VerificationFailure as failure:
				last_failure = failure
			else:
				emit(OrchestratorEvent(OrchestratorEventType.COMPLETE, f"Task complete: {task_title}"))
				return True

			if attempt == max_repairs:
				emit(OrchestratorEvent(
					OrchestratorEventType.ERROR,
					f"Task '{task_title}' failed verification after {attempt + 1} attempt(s).",
				))
				return False

			repair = await self._request_plan(
				REPAIR_PROMPT.format(
					max_steps=MAX_REPAIR_STEPS,
					actions=PLAN_ACTIONS,
					request=request_text,
					task=task_title,
					verification=self._describe_failure(last_failure),
					observations=format_observations(observations) or "(none)",
				),
				MAX_REPAIR_STEPS,
				cancel,
			)
			if repair is None or not repair.steps:
				emit(OrchestratorEvent(OrchestratorEventType.ERROR, "No repair plan proposed; stopping."))
				return False

			emit(OrchestratorEvent(
				OrchestratorEventType.PLAN,
				f"Applying repair plan ({len(repair.steps)} steps).",
				plan=repair,
			))
			if not await self._execute_plan(repair, "repair", observations, emit, cancel, task_owner):
				return False

		return False

	async def _request_plan(
		self,
		prompt: str,
		max_steps: int,
		cancel: Optional[CancelSignal],
	) -> Optional[ActionPlan]:
		"""Ask the generator for a plan. A generation failure yields no plan."""
		try:
			response = await run_cancellable(
				self.generator.complete(prompt, GenerationProfile.MAIN, cancel),
				cancel,
			)
		except GenerationError as e:
			logger.warning(f"Plan request failed: {e}")
			return None
		return parse_action_plan(response, max_steps=max_steps)

	async def _execute_plan(
		self,
		plan: ActionPlan,
		phase: str,
		observations: list[Observation],
		emit: EventCallback,
		cancel: Optional[CancelSignal],
		task_owner: Optional[Callable[[], bool]],
	) -> bool:
		"""
		Run plan steps in order, recording an observation for each.

		Returns:
			False if the run lost ownership of its task and must stop
		"""
		label = "Step" if phase == "step" else "Repair step"
		prefix = "" if phase == "step" else "repair "
		total = len(plan.steps)
		first = len(observations)

		for i, step in enumerate(plan.steps, start=1):
			if cancel is not None:
				cancel.raise_if_cancelled()
			if task_owner is not None and not task_owner():
				logger.info("Task list changed underneath the orchestrator; stopping")
				emit(OrchestratorEvent(OrchestratorEventType.ERROR, "Task is no longer current; stopping."))
				return False

			emit(OrchestratorEvent(
				OrchestratorEventType.STEP_START,
				f"{label} {i}/{total}: {step.action}",
			))
			try:
				result = await run_cancellable(
					self.executor.execute(step.action, step.args, cancel),
					cancel,
					abandon=True,
				)
			except CancelledError:
				raise
			except Exception as e:
				logger.warning(f"{label} {i} ({step.action}) raised: {e}")
				observations.append(Observation(i, step.action, error=str(e), phase=phase))
				emit(OrchestratorEvent(
					OrchestratorEventType.STEP_RESULT,
					f"✗ {prefix}{step.action} failed: {e}",
				))
				continue

			if result.ok:
				observations.append(Observation(i, step.action, result=result.output, phase=phase))
				emit(OrchestratorEvent(OrchestratorEventType.STEP_RESULT, f"✓ {prefix}{step.action} complete"))
			else:
				observations.append(Observation(i, step.action, error=result.error or "failed", phase=phase))
				emit(OrchestratorEvent(
					OrchestratorEventType.STEP_RESULT,
					f"✗ {prefix}{step.action} failed: {result.error}",
				))

		failed = [o for o in observations[first:] if not o.ok]
		if failed:
			logger.info(f"{len(failed)} of {total} {label.lower()}s failed")
		return True

	async def _verify(
		self,
		request_text: str,
		task_title: str,
		attempt: int,
		emit: EventCallback,
		cancel: Optional[CancelSignal],
	) -> None:
		"""
		Run one verification pass and report it.

		Raises:
			VerificationFailure: If the checks did not pass
		"""
		emit(OrchestratorEvent(
			OrchestratorEventType.VERIFY,
			f"Verifying task completion (attempt {attempt + 1})...",
		))
		result = await self.verifier.verify(request_text, task_title, cancel)
		emit(OrchestratorEvent(
			OrchestratorEventType.VERIFY_RESULT,
			"Verification passed." if result.passed else f"Verification failed: {result.summary}",
			success=result.passed,
		))
		if not result.passed:
			raise VerificationFailure(result.summary, result.checks)

	@staticmethod
	def _describe_failure(failure: VerificationFailure) -> str:
		failed: list[CheckResult] = [
			c for c in failure.checks if c.status in (CheckStatus.FAILED, CheckStatus.ERROR)
		]
		if not failed:
			return str(failure)
		check = failed[0]
		return f"{check.name} failed\n{check.output[-MAX_FAILURE_TAIL:]}"

