"""
Action plans - the short JSON step lists the orchestrator executes.

Generator output is parsed leniently: the JSON object may be fenced in a
```json block or bare, steps may name their action as "action" or
"tool", and anything not on the action safelist is dropped silently
before the list is truncated to the caller's cap.
"""

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Optional

from pydantic import BaseModel, Field

from ..steps import ALLOWED_ACTIONS, is_allowed_action

logger = logging.getLogger(__name__)

MAX_PLAN_STEPS = 5
MAX_REPAIR_STEPS = 3
MAX_VERIFY_STEPS = 2

MAX_OBSERVATION_CHARS = 1500

_FENCED_JSON = re.compile(r"```(?:json)?\s*(.*?)\s*```", re.DOTALL | re.IGNORECASE)
_RAW_OBJECT = re.compile(r"\{[\s\S]*\}")


class ActionStep(BaseModel):
	"""One action to run."""
	action: str = Field(description="Name from the action safelist")
	args: dict[str, Any] = Field(default_factory=dict)
	description: Optional[str] = Field(default=None)


class ActionPlan(BaseModel):
	"""An ordered, capped list of steps."""
	steps: list[ActionStep] = Field(default_factory=list)
	rationale: Optional[str] = Field(default=None)

	def describe(self) -> str:
		lines = []
		for i, step in enumerate(self.steps, start=1):
			label = step.description or json.dumps(step.args)[:80]
			lines.append(f"{i}. {step.action}: {label}")
		return "\n".join(lines)


@dataclass
class Observation:
	"""What happened when one step ran; fed back into repair prompts."""
	step_index: int
	action: str
	result: Optional[str] = None
	error: Optional[str] = None
	phase: str = "step"

	@property
	def ok(self) -> bool:
		return self.error is None

	def to_line(self) -> str:
		if self.error is not None:
			outcome = f"error:{self.error}"
		else:
			outcome = f"result:{(self.result or '')[:MAX_OBSERVATION_CHARS]}"
		return f"{self.phase}:{self.step_index}, action:{self.action}, {outcome}"


def format_observations(observations: list[Observation]) -> str:
	return "\n".join(o.to_line() for o in observations)


def extract_json_object(text: str) -> Optional[dict]:
	"""Find and decode the first JSON object in a response."""
	candidates = []
	fenced = _FENCED_JSON.search(text)
	if fenced:
		candidates.append(fenced.group(1))
	raw = _RAW_OBJECT.search(text)
	if raw:
		candidates.append(raw.group(0))
	candidates.append(text.strip())

	for candidate in candidates:
		try:
			data = json.loads(candidate)
		except json.JSONDecodeError:
			continue
		if isinstance(data, dict):
			return data
	return None


def parse_action_plan(
	text: str,
	max_steps: int = MAX_PLAN_STEPS,
	allowed: frozenset[str] = ALLOWED_ACTIONS,
) -> Optional[ActionPlan]:
	"""
	Parse a generator response into an ActionPlan.

	Args:
		text: Raw response text
		max_steps: Cap applied after filtering
		allowed: Action names that survive filtering

	Returns:
		The filtered plan, or None if no JSON object could be decoded
	"""
	data = extract_json_object(text)
	if data is None:
		logger.warning("Could not find a JSON plan in generator response")
		return None

	raw_steps = data.get("steps")
	if not isinstance(raw_steps, list):
		raw_steps = []

	steps = []
	for raw in raw_steps:
		if not isinstance(raw, dict):
			continue
		action = raw.get("action", raw.get("tool"))
		if not is_allowed_action(action) or action not in allowed:
			logger.debug(f"Dropping step with disallowed action: {action!r}")
			continue
		args = raw.get("args")
		description = raw.get("description")
		steps.append(ActionStep(
			action=action,
			args=args if isinstance(args, dict) else {},
			description=description if isinstance(description, str) else None,
		))

	rationale = data.get("rationale")
	return ActionPlan(
		steps=steps[:max_steps],
		rationale=rationale if isinstance(rationale, str) else None,
	)
