"""Task list tools: create a list for a request, and update it mid-flight."""

import json
import logging

from mcp.server.fastmcp import FastMCP

from ..errors import DecompositionError
from ..session import AgentSession

logger = logging.getLogger(__name__)

UPDATE_OPERATIONS = ("insert_after_current", "append")


def register_task_list_tools(mcp: FastMCP, session: AgentSession) -> None:
	"""Register task list tools."""
	service = session.task_service
	planner = session.planner

	@mcp.tool()
	async def task_list(user_request: str, create_tasks: bool = True) -> str:
		"""
		Create and manage a task list for a complex multi-step request.

		Args:
			user_request: The user request to break down into tasks
			create_tasks: Create a new task list (true) or just get current status (false)
		"""
		if not user_request.strip():
			return json.dumps({"error": "user_request cannot be empty"})

		if not create_tasks:
			return json.dumps({
				"summary": service.get_task_list_summary(),
				"context": service.get_task_context(),
			}, indent=2)

		try:
			titles = await planner.generate_task_list(user_request.strip())
		except DecompositionError as e:
			logger.warning(f"task_list failed: {e}")
			return json.dumps({"error": f"Failed to create task list: {e}"})

		if not titles:
			return json.dumps({
				"success": False,
				"message": "No tasks were generated for this request.",
			})

		created = service.create_task_list(user_request.strip(), titles)
		return json.dumps({
			"success": True,
			"task_list_id": created.id,
			"task_count": len(created.tasks),
			"summary": service.get_task_list_summary(),
		}, indent=2)

	@mcp.tool()
	async def task_list_update(operation: str, tasks: list[str], reason: str = "") -> str:
		"""
		Update the active task list by inserting or appending new tasks.

		Args:
			operation: "insert_after_current" or "append"
			tasks: New task titles in execution order
			reason: Optional short reason for the update
		"""
		if operation not in UPDATE_OPERATIONS:
			return json.dumps({
				"error": f"Invalid operation: {operation}",
				"valid_operations": list(UPDATE_OPERATIONS),
			})

		clean = [t.strip() for t in tasks or [] if isinstance(t, str) and t.strip()]
		if not clean:
			return json.dumps({"error": "tasks must include at least one non-empty string"})

		current = service.get_current_task_list()
		if current is None or not current.is_active:
			return json.dumps({"error": "No active task list to update."})

		if operation == "insert_after_current":
			added = service.insert_tasks_after_current(clean)
			where = f"after current task ({service.get_current_task_index() + 1})"
		else:
			added = service.append_tasks(clean)
			where = "at the end"

		if reason:
			logger.info(f"Task list updated ({operation}): {reason}")

		return json.dumps({
			"success": True,
			"message": f"Inserted {len(added)} task(s) {where}",
			"reason": reason or None,
			"summary": service.get_task_list_summary(),
		}, indent=2)
