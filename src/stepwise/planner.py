"""
Decomposition Planner - decides when to split a request and into what.

A cheap local heuristic runs first so obvious questions and one-word
commands never cost a model call. Only ambiguous requests reach the
generator, and any generator failure degrades to "do not decompose".
The heuristic is deliberately approximate: any request containing
" and " counts as multi-step.
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional

from .errors import CancelledError, DecompositionError, GenerationError
from .generation import GenerationProfile, Generator
from .signals import CancelSignal
from .tasks.models import Task
from .tasks.service import TaskListService

logger = logging.getLogger(__name__)

QUESTION_PREFIXES = ("what", "why", "explain", "describe")

SINGLE_COMMAND_PATTERNS = [
	re.compile(r"^run\s+\w+$"),
	re.compile(r"^execute\s+\w+$"),
	re.compile(r"^test$"),
	re.compile(r"^build$"),
	re.compile(r"^install\s+\w+$"),
	re.compile(r"^read\s+\w+$"),
	re.compile(r"^open\s+\w+$"),
	re.compile(r"^show\s+\w+$"),
	re.compile(r"^list\s+\w+$"),
]

MULTI_STEP_INDICATORS = [
	" and ",
	"then",
	"after",
	"next",
	"finally",
	"first",
	"second",
	"step",
	"create",
	"build",
	"implement",
	"add",
	"write",
	"test",
	"with",
	"include",
	"refactor",
	"migrate",
	"set up",
	"setup",
	"configure",
	"integrate",
	"develop",
	"make",
]

COMPLEX_WORD_COUNT = 8

NUMBERED_LINE = re.compile(r"^\d+\.\s+(.+)$")

DECISION_PROMPT = """Analyze this user request and determine if it should be broken down into multiple tasks.

User Request: {request}

Answer with just "YES" if this request:
- Involves multiple distinct steps or actions
- Requires implementing a feature with multiple components
- Involves creating or modifying multiple files
- Is a complex task that benefits from step-by-step execution

Answer with just "NO" if this request:
- Is a simple, single action
- Is asking a question
- Is requesting information or explanation
- Can be completed in one straightforward step

Your answer (YES or NO):"""

TASK_LIST_PROMPT = """You are a task planner. Break down the following user request into a clear, sequential list of tasks.

User Request: {request}

Generate a numbered list of specific, actionable tasks that need to be completed to fulfill this request.
Each task should be:
- Clear and specific
- A single action or closely related set of actions
- In logical order of execution

Format your response as a simple numbered list with just the task descriptions.
Keep each task title concise (under 10 words).
Do not include any preamble or explanation, just the numbered tasks.

Example format:
1. Read the configuration file
2. Parse the JSON data
3. Update the database schema"""


@dataclass
class InterceptResult:
	"""Outcome of running a new request through decomposition."""
	proceed_with_task_list: bool
	prompt: Optional[str] = None
	attempted: bool = False


def parse_task_titles(text: str) -> list[str]:
	"""
	Extract task titles from a generator response.

	Numbered lines ("1. Do X") and "- " bullet lines are accepted in
	document order; everything else is ignored.
	"""
	titles = []
	for line in text.splitlines():
		match = NUMBERED_LINE.match(line.strip())
		if match:
			titles.append(match.group(1).strip())
		elif line.strip().startswith("- "):
			titles.append(line.strip()[2:].strip())
	return [t for t in titles if t]


def is_simple_question(prompt: str) -> bool:
	return prompt.startswith(QUESTION_PREFIXES) or ("?" in prompt and " and " not in prompt)


def is_single_command(prompt: str) -> bool:
	return any(pattern.match(prompt) for pattern in SINGLE_COMMAND_PATTERNS)


def has_multi_step_indicator(prompt: str) -> bool:
	return any(indicator in prompt for indicator in MULTI_STEP_INDICATORS)


class DecompositionPlanner:
	"""
	Splits requests into task lists and writes the prompts that drive them.

	Args:
		generator: Completion backend (the FAST profile is used for all calls)
		task_service: Service owning the session's task list
	"""

	def __init__(self, generator: Generator, task_service: TaskListService):
		self.generator = generator
		self.task_service = task_service

	async def should_decompose(self, request: str, cancel: Optional[CancelSignal] = None) -> bool:
		"""Decide whether a request needs a task list."""
		prompt = request.strip().lower()

		if is_simple_question(prompt):
			logger.debug("Not decomposing: simple question")
			return False

		if is_single_command(prompt):
			logger.debug("Not decomposing: single command")
			return False

		if has_multi_step_indicator(prompt) or len(prompt.split(" ")) > COMPLEX_WORD_COUNT:
			logger.debug("Decomposing: multi-step indicator or complex request")
			return True

		logger.debug("Ambiguous request, asking generator to decide")
		return await self._ask_generator_to_decide(request, cancel)

	async def _ask_generator_to_decide(self, request: str, cancel: Optional[CancelSignal]) -> bool:
		try:
			response = await self.generator.complete(
				DECISION_PROMPT.format(request=request),
				GenerationProfile.FAST,
				cancel,
			)
		except (GenerationError, CancelledError) as e:
			logger.warning(f"Decomposition decision failed, not decomposing: {e}")
			return False
		return response.strip().upper() == "YES"

	async def generate_task_list(self, request: str, cancel: Optional[CancelSignal] = None) -> list[str]:
		"""
		Ask the generator for ordered task titles.

		Returns:
			Titles in order; an empty list means nothing to decompose into

		Raises:
			DecompositionError: If generation failed
			CancelledError: If the cancel signal fired
		"""
		try:
			response = await self.generator.complete(
				TASK_LIST_PROMPT.format(request=request),
				GenerationProfile.FAST,
				cancel,
			)
		except GenerationError as e:
			raise DecompositionError(f"Could not generate task list: {e}") from e

		titles = parse_task_titles(response)
		logger.info(f"Generated {len(titles)} task title(s)")
		return titles

	async def intercept_request(self, request: str, cancel: Optional[CancelSignal] = None) -> InterceptResult:
		"""
		Run a new request through decomposition.

		When a task list is created its first task is started and the
		returned prompt replaces the user's text for the next turn. Never
		raises: failures degrade to an undecomposed request.
		"""
		text = request.strip()
		if not text:
			return InterceptResult(proceed_with_task_list=False)

		if not await self.should_decompose(text, cancel):
			return InterceptResult(proceed_with_task_list=False)

		try:
			titles = await self.generate_task_list(text, cancel)
		except (DecompositionError, CancelledError) as e:
			logger.warning(f"Task list generation failed: {e}")
			return InterceptResult(proceed_with_task_list=False, attempted=True)

		if not titles:
			logger.info("No tasks generated, proceeding without a task list")
			return InterceptResult(proceed_with_task_list=False, attempted=True)

		self.task_service.create_task_list(text, titles)
		self.task_service.start_current_task()

		current = self.task_service.get_current_task()
		if current is None:
			return InterceptResult(proceed_with_task_list=False)

		return InterceptResult(
			proceed_with_task_list=True,
			prompt=self.build_continuation_prompt(current, text),
		)

	def build_continuation_prompt(self, current_task: Task, original_request: str) -> str:
		"""Compose the turn that kicks off the first task of a new list."""
		task_list = self.task_service.get_current_task_list()
		total = len(task_list.tasks) if task_list else 1
		number = (task_list.index_of(current_task.id) + 1) if task_list else 1

		return "\n".join([
			f"Original request: {original_request}",
			"",
			f"I've broken this down into {total} tasks that I'll execute ONE AT A TIME.",
			"After each task, I will run a short verification pass to ensure success before advancing.",
			"Do not ask the user for any input; if something like a folder/app name is required and not"
			' specified, choose a reasonable default (e.g., "app").',
			"",
			self.task_service.get_task_context(),
			"",
			f"**EXECUTE ONLY TASK {number}: {current_task.title}**",
			"",
			"After completing this ONE task, STOP. A verification step will run next.",
			"DO NOT continue to other tasks on your own.",
		])

	def handle_task_completion(self) -> Optional[str]:
		"""
		Complete the current task and start the next one.

		Returns:
			The prompt for the next task, or None when the chain should stop
		"""
		finished = self.task_service.complete_current_task()
		if finished is None:
			return None

		current = self.task_service.get_current_task()
		if current is None:
			return None

		self.task_service.start_current_task()

		task_list = self.task_service.get_current_task_list()
		total = len(task_list.tasks)
		finished_number = task_list.index_of(finished.id) + 1
		next_number = task_list.current_task_index + 1

		return "\n".join([
			f'Task {finished_number}/{total} "{finished.title}" completed!',
			"",
			self.task_service.get_task_context(),
			"",
			f"**NOW EXECUTE ONLY TASK {next_number}: {current.title}**",
			"",
			"STOP after completing this ONE task. Do NOT continue to other tasks.",
		])
