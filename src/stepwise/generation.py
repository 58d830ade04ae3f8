"""
Generator - the completion backend used for decisions, task lists and plans.

The Generator is an external collaborator: anything with an async
``complete(prompt, profile, cancel)`` method works. The profile is a
call parameter so cheap decisions (task splitting, YES/NO checks) can
use a faster model without touching any shared configuration.
"""

import asyncio
import logging
from enum import Enum
from pathlib import Path
from typing import Optional, Protocol

from .errors import CancelledError, GenerationError
from .signals import CancelSignal, run_cancellable

logger = logging.getLogger(__name__)


class GenerationProfile(str, Enum):
	"""Which model tier a completion should use."""
	MAIN = "main"
	FAST = "fast"


class Generator(Protocol):
	"""Protocol implemented by completion backends."""

	async def complete(
		self,
		prompt: str,
		profile: GenerationProfile = GenerationProfile.MAIN,
		cancel: Optional[CancelSignal] = None,
	) -> str:
		"""Return completion text, raising GenerationError on failure."""


class ClaudeCLIGenerator:
	"""
	Generator backed by ``claude --print``.

	Each call spawns a fresh CLI process, writes the prompt to stdin and
	returns stdout. The process is killed on timeout or cancellation.
	"""

	def __init__(
		self,
		command: str = "claude",
		main_model: str = "opus",
		fast_model: str = "haiku",
		timeout: float = 120.0,
		cwd: Optional[Path] = None,
	):
		self.command = command
		self.models = {
			GenerationProfile.MAIN: main_model,
			GenerationProfile.FAST: fast_model,
		}
		self.timeout = timeout
		self.cwd = Path(cwd) if cwd else None

	@classmethod
	def from_config(cls, config) -> "ClaudeCLIGenerator":
		return cls(
			command=config.generator_command,
			main_model=config.main_model,
			fast_model=config.fast_model,
			timeout=config.generator_timeout,
			cwd=config.workspace,
		)

	def build_command(self, profile: GenerationProfile) -> list[str]:
		return [
			self.command,
			"--print",
			"--output-format", "text",
			"--model", self.models[profile],
		]

	async def complete(
		self,
		prompt: str,
		profile: GenerationProfile = GenerationProfile.MAIN,
		cancel: Optional[CancelSignal] = None,
	) -> str:
		if cancel is not None:
			cancel.raise_if_cancelled()

		cmd = self.build_command(profile)
		logger.debug(f"Generating with {cmd[0]} (profile={profile.value}, {len(prompt)} chars)")

		try:
			process = await asyncio.create_subprocess_exec(
				*cmd,
				stdin=asyncio.subprocess.PIPE,
				stdout=asyncio.subprocess.PIPE,
				stderr=asyncio.subprocess.PIPE,
				cwd=str(self.cwd) if self.cwd else None,
			)
		except FileNotFoundError:
			raise GenerationError(f"Generator command not found: {self.command}")

		try:
			stdout, stderr = await run_cancellable(
				asyncio.wait_for(process.communicate(input=prompt.encode()), timeout=self.timeout),
				cancel,
			)
		except asyncio.TimeoutError:
			await self._kill(process)
			raise GenerationError(f"Generation timed out after {self.timeout}s")
		except CancelledError:
			await self._kill(process)
			raise

		if process.returncode != 0:
			error_msg = stderr.decode("utf-8", errors="replace").strip() or f"Exit code {process.returncode}"
			logger.error(f"Generator error: {error_msg}")
			raise GenerationError(f"Generator failed: {error_msg}")

		text = stdout.decode("utf-8", errors="replace")
		logger.debug(f"Generation finished ({len(text)} chars)")
		return text

	async def _kill(self, process: asyncio.subprocess.Process) -> None:
		if process.returncode is None:
			try:
				process.kill()
			except ProcessLookupError:
				return
			await process.wait()
