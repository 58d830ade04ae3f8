"""
Verifier - independent verification gate for one task.

Key Principle: a task is not self-verified. After its steps run, the
verifier decides success on its own:

- If the workspace manifest names known scripts, run them in priority
  order (preflight, or build, typecheck, lint, test).
- Otherwise ask the generator for 1-2 non-destructive shell commands
  and run those. No commands means success cannot be confirmed, which
  counts as failure.

All commands go through the same StepExecutor as the task's own steps.
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Optional

from ..errors import CancelledError, GenerationError
from ..generation import GenerationProfile, Generator
from ..manifest import load_manifest
from ..signals import CancelSignal, run_cancellable
from ..steps import StepExecutor
from .plans import MAX_VERIFY_STEPS, parse_action_plan

logger = logging.getLogger(__name__)

VERIFY_PROMPT = """Propose 1-2 simple non-destructive VERIFY commands to check if CURRENT TASK is successful. Output JSON: {{ "steps": [{{"action": "shell", "args": {{"command": "..."}}}}] }}.
Avoid servers/browsers. Work in workspace only.
User request: {request}
CURRENT TASK: {task}"""


class CheckStatus(str, Enum):
	"""Status of a verification check."""
	PASSED = "passed"
	FAILED = "failed"
	SKIPPED = "skipped"
	ERROR = "error"


class VerificationSource(str, Enum):
	"""Where the verification commands came from."""
	MANIFEST = "manifest"
	GENERATOR = "generator"


@dataclass
class CheckResult:
	"""Result of a single verification check."""
	name: str
	status: CheckStatus
	output: str = ""
	duration_seconds: float = 0.0
	details: dict = field(default_factory=dict)


@dataclass
class VerificationResult:
	"""Result of one verification pass."""
	passed: bool
	checks: list[CheckResult]
	source: VerificationSource = VerificationSource.GENERATOR
	summary: str = ""
	verified_at: str = ""

	def __post_init__(self):
		if not self.verified_at:
			self.verified_at = datetime.now().isoformat()

		if not self.summary:
			passed = sum(1 for c in self.checks if c.status == CheckStatus.PASSED)
			failed = sum(1 for c in self.checks if c.status in (CheckStatus.FAILED, CheckStatus.ERROR))
			self.summary = f"{passed} passed, {failed} failed out of {len(self.checks)} checks"


class Verifier:
	"""
	Runs the verification pass for a task.

	Args:
		executor: Runs the check commands (as "shell" actions)
		generator: Proposes commands when the manifest offers none
		workspace: Directory whose manifest is inspected
	"""

	def __init__(
		self,
		executor: StepExecutor,
		generator: Generator,
		workspace: Optional[Path] = None,
	):
		self.executor = executor
		self.generator = generator
		self.workspace = Path(workspace) if workspace else Path.cwd()

	async def verify(
		self,
		request: str,
		task_title: str,
		cancel: Optional[CancelSignal] = None,
	) -> VerificationResult:
		"""
		Verify that ``task_title`` was completed.

		Raises:
			CancelledError: If the cancel signal fired
		"""
		manifest = load_manifest(self.workspace)
		commands = manifest.verification_commands() if manifest else []
		if commands:
			logger.info(f"Verifying with manifest scripts: {', '.join(commands)}")
			return await self._run_commands(commands, VerificationSource.MANIFEST, cancel)

		return await self._verify_with_generator(request, task_title, cancel)

	async def _verify_with_generator(
		self,
		request: str,
		task_title: str,
		cancel: Optional[CancelSignal],
	) -> VerificationResult:
		prompt = VERIFY_PROMPT.format(request=request, task=task_title)
		try:
			response = await run_cancellable(
				self.generator.complete(prompt, GenerationProfile.MAIN, cancel),
				cancel,
			)
		except GenerationError as e:
			logger.warning(f"Could not get verification commands: {e}")
			return VerificationResult(
				passed=False,
				checks=[CheckResult(name="propose-verification", status=CheckStatus.ERROR, output=str(e))],
			)

		plan = parse_action_plan(response, max_steps=MAX_VERIFY_STEPS, allowed=frozenset({"shell"}))
		commands = []
		if plan:
			for step in plan.steps:
				command = str(step.args.get("command", "")).strip()
				if command:
					commands.append(command)

		if not commands:
			return VerificationResult(
				passed=False,
				checks=[],
				summary="No verification commands proposed; cannot confirm success",
			)

		return await self._run_commands(commands, VerificationSource.GENERATOR, cancel)

	async def _run_commands(
		self,
		commands: list[str],
		source: VerificationSource,
		cancel: Optional[CancelSignal],
	) -> VerificationResult:
		"""Run commands in order, stopping at the first failure."""
		results = []
		for command in commands:
			start = time.monotonic()
			try:
				result = await run_cancellable(
					self.executor.execute("shell", {"command": command}, cancel),
					cancel,
					abandon=True,
				)
			except CancelledError:
				raise
			except Exception as e:
				logger.warning(f"Verification check raised: {command}: {e}")
				results.append(CheckResult(
					name=command,
					status=CheckStatus.ERROR,
					output=str(e),
					duration_seconds=time.monotonic() - start,
				))
				break

			check = CheckResult(
				name=command,
				status=CheckStatus.PASSED if result.ok else CheckStatus.FAILED,
				output=(result.output or result.error or "")[-2000:],
				duration_seconds=time.monotonic() - start,
			)
			if result.error:
				check.details["error"] = result.error
			results.append(check)
			if not result.ok:
				logger.info(f"Verification check failed: {command}")
				break

		passed = bool(results) and all(c.status == CheckStatus.PASSED for c in results)
		return VerificationResult(passed=passed, checks=results, source=source)
