"""MCP tool registration."""

import logging

from mcp.server.fastmcp import FastMCP

from ..session import AgentSession
from .task_list import register_task_list_tools

logger = logging.getLogger(__name__)


def register_all_tools(mcp: FastMCP, session: AgentSession) -> None:
	"""Register all MCP tools against one agent session."""
	register_task_list_tools(mcp, session)
	logger.debug(f"Registered task list tools for {session.session_id}")
