"""
Step execution - the fixed action safelist and the StepExecutor interface.

Plans name actions from ALLOWED_ACTIONS only. Filtering happens before a
step reaches an executor, so executors never see an unknown action from
a plan. LocalStepExecutor implements the safelist against a workspace
directory and keeps every path inside it.
"""

import asyncio
import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Protocol

import aiohttp
from markdownify import markdownify as md

from .errors import StepExecutionError
from .signals import CancelSignal

logger = logging.getLogger(__name__)

ALLOWED_ACTIONS = frozenset({
	"shell",
	"edit",
	"write_file",
	"read_file",
	"ls",
	"glob",
	"grep",
	"read_many_files",
	"web_fetch",
})

MAX_OUTPUT_CHARS = 4000
MAX_GREP_MATCHES = 200
WEB_FETCH_TIMEOUT = 30
USER_AGENT = "stepwise/0.1 (+web_fetch action)"


def is_allowed_action(action: Any) -> bool:
	"""Check if an action name is on the safelist."""
	return isinstance(action, str) and action in ALLOWED_ACTIONS


@dataclass
class StepResult:
	"""Outcome of executing one action."""
	ok: bool
	output: str = ""
	error: Optional[str] = None

	@classmethod
	def success(cls, output: str = "") -> "StepResult":
		return cls(ok=True, output=output)

	@classmethod
	def failure(cls, error: str, output: str = "") -> "StepResult":
		return cls(ok=False, output=output, error=error)


class StepExecutor(Protocol):
	"""Protocol implemented by action runners."""

	async def execute(
		self,
		action: str,
		args: dict[str, Any],
		cancel: Optional[CancelSignal] = None,
	) -> StepResult:
		"""Run one named action and report its outcome."""


def _tail(text: str, limit: int = MAX_OUTPUT_CHARS) -> str:
	return text if len(text) <= limit else text[-limit:]


class LocalStepExecutor:
	"""
	Executes safelisted actions on the local filesystem.

	Shell commands run with the workspace as working directory. File
	actions resolve paths relative to the workspace and reject anything
	that escapes it.
	"""

	def __init__(self, workspace: Optional[Path] = None, timeout: float = 300.0):
		self.workspace = (Path(workspace) if workspace else Path.cwd()).resolve()
		self.timeout = timeout

	async def execute(
		self,
		action: str,
		args: dict[str, Any],
		cancel: Optional[CancelSignal] = None,
	) -> StepResult:
		if not is_allowed_action(action):
			return StepResult.failure(f"Action not allowed: {action}")

		handler = getattr(self, f"_do_{action}")
		try:
			return await handler(args or {})
		except StepExecutionError as e:
			return StepResult.failure(e.message)
		except OSError as e:
			return StepResult.failure(f"{action} failed: {e}")

	def _resolve(self, raw: Any) -> Path:
		"""Resolve a path argument inside the workspace."""
		if not raw or not isinstance(raw, str):
			raise StepExecutionError("path", "missing path argument")
		candidate = Path(os.path.expanduser(raw))
		if not candidate.is_absolute():
			candidate = self.workspace / candidate
		resolved = candidate.resolve()
		try:
			resolved.relative_to(self.workspace)
		except ValueError:
			raise StepExecutionError("path", f"{raw} is outside the workspace")
		return resolved

	@staticmethod
	def _path_arg(args: dict[str, Any], default: Optional[str] = None) -> Optional[str]:
		for key in ("path", "file_path", "absolute_path", "dir_path"):
			if args.get(key):
				return args[key]
		return default

	async def _do_shell(self, args: dict[str, Any]) -> StepResult:
		command = str(args.get("command", "")).strip()
		if not command:
			return StepResult.failure("shell: empty command")

		proc = await asyncio.create_subprocess_shell(
			command,
			stdout=asyncio.subprocess.PIPE,
			stderr=asyncio.subprocess.STDOUT,
			stdin=asyncio.subprocess.DEVNULL,
			cwd=str(self.workspace),
		)
		try:
			stdout, _ = await asyncio.wait_for(proc.communicate(), timeout=self.timeout)
		except asyncio.TimeoutError:
			proc.kill()
			await proc.wait()
			return StepResult.failure(f"shell: timed out after {self.timeout}s")

		output = _tail(stdout.decode("utf-8", errors="replace"))
		if proc.returncode != 0:
			return StepResult.failure(f"shell: exit code {proc.returncode}", output=output)
		return StepResult.success(output)

	async def _do_read_file(self, args: dict[str, Any]) -> StepResult:
		path = self._resolve(self._path_arg(args))
		if not path.is_file():
			return StepResult.failure(f"read_file: not a file: {path}")
		return StepResult.success(_tail(path.read_text(encoding="utf-8", errors="replace")))

	async def _do_write_file(self, args: dict[str, Any]) -> StepResult:
		path = self._resolve(self._path_arg(args))
		content = args.get("content", "")
		path.parent.mkdir(parents=True, exist_ok=True)
		path.write_text(str(content), encoding="utf-8")
		return StepResult.success(f"Wrote {len(str(content))} chars to {path.relative_to(self.workspace)}")

	async def _do_edit(self, args: dict[str, Any]) -> StepResult:
		path = self._resolve(self._path_arg(args))
		old = args.get("old_string")
		new = args.get("new_string", "")
		if old is None:
			return StepResult.failure("edit: missing old_string")

		if old == "" and not path.exists():
			path.parent.mkdir(parents=True, exist_ok=True)
			path.write_text(str(new), encoding="utf-8")
			return StepResult.success(f"Created {path.relative_to(self.workspace)}")

		if not path.is_file():
			return StepResult.failure(f"edit: not a file: {path}")
		content = path.read_text(encoding="utf-8")
		if old not in content:
			return StepResult.failure("edit: old_string not found")
		path.write_text(content.replace(old, str(new), 1), encoding="utf-8")
		return StepResult.success(f"Edited {path.relative_to(self.workspace)}")

	async def _do_ls(self, args: dict[str, Any]) -> StepResult:
		path = self._resolve(self._path_arg(args, "."))
		if not path.is_dir():
			return StepResult.failure(f"ls: not a directory: {path}")
		entries = [
			f"{p.name}/" if p.is_dir() else p.name
			for p in sorted(path.iterdir())
		]
		return StepResult.success("\n".join(entries))

	async def _do_glob(self, args: dict[str, Any]) -> StepResult:
		pattern = args.get("pattern")
		if not pattern:
			return StepResult.failure("glob: missing pattern")
		base = self._resolve(self._path_arg(args, "."))
		matches = sorted(str(p.relative_to(self.workspace)) for p in base.glob(pattern))
		return StepResult.success("\n".join(matches))

	async def _do_grep(self, args: dict[str, Any]) -> StepResult:
		pattern = args.get("pattern")
		if not pattern:
			return StepResult.failure("grep: missing pattern")
		try:
			regex = re.compile(pattern)
		except re.error as e:
			return StepResult.failure(f"grep: invalid pattern: {e}")

		base = self._resolve(self._path_arg(args, "."))
		include = args.get("include") or "*"
		files = [base] if base.is_file() else sorted(base.rglob(include))

		matches: list[str] = []
		for file in files:
			if not file.is_file() or any(part.startswith(".") for part in file.relative_to(self.workspace).parts):
				continue
			try:
				lines = file.read_text(encoding="utf-8").splitlines()
			except (UnicodeDecodeError, OSError):
				continue
			for lineno, line in enumerate(lines, start=1):
				if regex.search(line):
					matches.append(f"{file.relative_to(self.workspace)}:{lineno}: {line.strip()}")
					if len(matches) >= MAX_GREP_MATCHES:
						return StepResult.success("\n".join(matches))
		return StepResult.success("\n".join(matches))

	async def _do_read_many_files(self, args: dict[str, Any]) -> StepResult:
		paths = args.get("paths") or []
		if isinstance(paths, str):
			paths = [paths]
		if not paths:
			return StepResult.failure("read_many_files: missing paths")

		chunks = []
		for raw in paths:
			path = self._resolve(raw)
			if path.is_file():
				text = path.read_text(encoding="utf-8", errors="replace")
				chunks.append(f"--- {path.relative_to(self.workspace)} ---\n{text}")
		return StepResult.success(_tail("\n".join(chunks)))

	async def _do_web_fetch(self, args: dict[str, Any]) -> StepResult:
		url = str(args.get("url", "")).strip()
		if not url.startswith(("http://", "https://")):
			return StepResult.failure(f"web_fetch: invalid url: {url or '<empty>'}")

		try:
			async with aiohttp.ClientSession(
				headers={"User-Agent": USER_AGENT},
				timeout=aiohttp.ClientTimeout(total=WEB_FETCH_TIMEOUT),
			) as session:
				async with session.get(url) as response:
					if response.status != 200:
						return StepResult.failure(f"web_fetch: HTTP {response.status} for {url}")
					body = await response.text()
					content_type = response.headers.get("Content-Type", "")
		except (aiohttp.ClientError, asyncio.TimeoutError) as e:
			return StepResult.failure(f"web_fetch: {e or type(e).__name__}")

		if "html" in content_type:
			body = md(body, heading_style="ATX")
		return StepResult.success(_tail(body))
