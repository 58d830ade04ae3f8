"""Shared test fakes and helpers for stepwise tests."""

import asyncio
import json
from pathlib import Path
from typing import Any, Callable, Optional

from stepwise.config import Config
from stepwise.errors import GenerationError
from stepwise.generation import GenerationProfile
from stepwise.signals import CancelSignal
from stepwise.steps import StepResult


class FakeGenerator:
	"""Generator returning scripted responses in order.

	Each response may be a string, an exception (raised), or a callable
	taking (prompt, cancel) and returning a string.
	"""

	def __init__(self, responses: Optional[list] = None, default: Optional[str] = None):
		self.responses = list(responses or [])
		self.default = default
		self.calls: list[tuple[str, GenerationProfile]] = []

	async def complete(
		self,
		prompt: str,
		profile: GenerationProfile = GenerationProfile.MAIN,
		cancel: Optional[CancelSignal] = None,
	) -> str:
		self.calls.append((prompt, profile))
		await asyncio.sleep(0)
		if self.responses:
			response = self.responses.pop(0)
		elif self.default is not None:
			response = self.default
		else:
			raise GenerationError("No scripted response left")

		if isinstance(response, Exception):
			raise response
		if callable(response):
			return response(prompt, cancel)
		return response

	def prompts_containing(self, text: str) -> list[str]:
		return [prompt for prompt, _ in self.calls if text in prompt]


class FakeExecutor:
	"""Step executor recording calls and returning scripted results.

	``results`` maps an action name (or "shell:<command>") to a StepResult
	or a list of StepResults consumed in order. Unscripted calls succeed.
	"""

	def __init__(self, results: Optional[dict[str, Any]] = None, hook: Optional[Callable] = None):
		self.results = dict(results or {})
		self.hook = hook
		self.calls: list[tuple[str, dict]] = []

	async def execute(
		self,
		action: str,
		args: dict[str, Any],
		cancel: Optional[CancelSignal] = None,
	) -> StepResult:
		self.calls.append((action, dict(args)))
		if self.hook:
			self.hook(action, args)
		await asyncio.sleep(0)

		key = f"shell:{args.get('command')}" if action == "shell" else action
		scripted = self.results.get(key, self.results.get(action))
		if isinstance(scripted, list):
			return scripted.pop(0) if scripted else StepResult.success("ok")
		if scripted is not None:
			return scripted
		return StepResult.success("ok")

	def commands(self) -> list[str]:
		return [args.get("command", "") for action, args in self.calls if action == "shell"]


def make_config(tmp_path: Path, **overrides) -> Config:
	"""Config rooted in a temporary directory with no pacing delays."""
	values = dict(
		config_dir=tmp_path / "config",
		data_dir=tmp_path / "data",
		workspace=tmp_path / "workspace",
		verification_render_delay=0,
		continuation_delay=0,
	)
	values.update(overrides)
	config = Config(**values)
	config.workspace.mkdir(parents=True, exist_ok=True)
	return config


def plan_json(*steps: tuple[str, dict], rationale: str = "") -> str:
	"""Render a generator-style fenced JSON plan."""
	body = {"steps": [{"action": action, "args": args} for action, args in steps]}
	if rationale:
		body["rationale"] = rationale
	return f"```json\n{json.dumps(body)}\n```"


def capture_tools(session: Any, register_fn: Callable) -> dict:
	"""Register tools on a mock MCP and return the captured tool functions.

	Args:
		session: AgentSession to pass to the registration function
		register_fn: The registration function (e.g., register_task_list_tools)

	Returns:
		Dict mapping tool name to the tool function
	"""
	captured = {}

	class MockMCP:
		def tool(self):
			def decorator(fn):
				captured[fn.__name__] = fn
				return fn
			return decorator

	register_fn(MockMCP(), session)
	return captured
