"""One-line rendering of orchestrator events."""

from typing import Optional

from rich.console import Console
from rich.markup import escape

from ..orchestrator.runner import OrchestratorEvent, OrchestratorEventType

EVENT_PREFIXES = {
	OrchestratorEventType.INFO: "ℹ",
	OrchestratorEventType.PLAN: "📝",
	OrchestratorEventType.STEP_START: "▶",
	OrchestratorEventType.STEP_RESULT: "•",
	OrchestratorEventType.VERIFY: "🔍",
	OrchestratorEventType.VERIFY_RESULT: "✅",
	OrchestratorEventType.COMPLETE: "🎉",
	OrchestratorEventType.ERROR: "❌",
}

EVENT_STYLES = {
	OrchestratorEventType.PLAN: "cyan",
	OrchestratorEventType.STEP_START: "bold",
	OrchestratorEventType.VERIFY: "yellow",
	OrchestratorEventType.COMPLETE: "green",
	OrchestratorEventType.ERROR: "red",
}


def format_event(event: OrchestratorEvent) -> str:
	"""Plain-text line for an event, e.g. "🔍 Verifying task completion (attempt 1)..."."""
	prefix = EVENT_PREFIXES.get(event.type, "•")
	if event.type == OrchestratorEventType.VERIFY_RESULT and event.success is False:
		prefix = EVENT_PREFIXES[OrchestratorEventType.ERROR]
	return f"{prefix} {event.message}"


def render_event(event: OrchestratorEvent, console: Optional[Console] = None) -> None:
	"""Print an event, with the plan's steps under PLAN events."""
	console = console or Console()

	style = EVENT_STYLES.get(event.type)
	if event.type == OrchestratorEventType.VERIFY_RESULT:
		style = "green" if event.success else "red"

	line = escape(format_event(event))
	console.print(f"[{style}]{line}[/{style}]" if style else line)

	if event.type == OrchestratorEventType.PLAN and event.plan:
		for step_line in event.plan.describe().splitlines():
			console.print(f"   [dim]{escape(step_line)}[/dim]")
