"""CLI for stepwise: decompose, run, and serve commands."""

import argparse
import asyncio
import signal
import sys
from dataclasses import replace
from pathlib import Path

from rich.console import Console
from rich.markup import escape

from .config import Config, load_config
from .errors import DecompositionError
from .logging_config import setup_logging
from .session import AgentSession
from .visualizer import TaskListRenderer, render_event, render_task_history, render_task_list

console = Console()


def _configure(args: argparse.Namespace) -> Config:
	config = load_config()
	if getattr(args, "workspace", None):
		config = replace(config, workspace=Path(args.workspace).resolve())
	setup_logging(level="DEBUG" if getattr(args, "verbose", False) else None, log_dir=config.log_dir)
	return config


def _notice(message: str) -> None:
	style = "red" if "failed" in message.lower() or "cancelled" in message.lower() else "yellow"
	console.print(f"[{style}]⚠ {escape(message)}[/{style}]")


async def _decompose(session: AgentSession, request: str, force: bool) -> int:
	if not force and not await session.planner.should_decompose(request):
		console.print("[dim]Request does not need a task list.[/dim]")
		return 0

	try:
		titles = await session.planner.generate_task_list(request)
	except DecompositionError as e:
		console.print(f"[red]{escape(str(e))}[/red]")
		return 1

	if not titles:
		console.print("[yellow]No tasks were generated for this request.[/yellow]")
		return 1

	render_task_list(session.task_service.create_task_list(request, titles), console)
	return 0


def cmd_decompose(args: argparse.Namespace) -> None:
	"""Split a request into tasks and print the list."""
	config = _configure(args)
	session = AgentSession(config=config)
	sys.exit(asyncio.run(_decompose(session, args.request, args.force)))


async def _run(session: AgentSession, request: str) -> bool:
	loop = asyncio.get_running_loop()
	try:
		loop.add_signal_handler(signal.SIGINT, session.cancel)
	except NotImplementedError:
		pass

	try:
		return await session.submit_request(request)
	finally:
		try:
			loop.remove_signal_handler(signal.SIGINT)
		except NotImplementedError:
			pass


def cmd_run(args: argparse.Namespace) -> None:
	"""Run a request through the task system."""
	config = _configure(args)
	if args.max_repairs is not None:
		config = replace(config, max_repairs=args.max_repairs)

	session = AgentSession(
		config=config,
		autonomous=args.autonomous or config.autonomous,
		on_output=lambda text: console.print(text, markup=False),
		on_notice=_notice,
		on_event=lambda event: render_event(event, console),
	)
	session.task_service.add_listener(TaskListRenderer(console))

	ok = asyncio.run(_run(session, args.request))

	if args.history:
		render_task_history(session.task_service.get_task_history(), console)
	sys.exit(0 if ok else 1)


def cmd_serve(args: argparse.Namespace) -> None:
	"""Run the MCP server (stdio transport)."""
	from .server import mcp
	mcp.run()


def main() -> None:
	"""CLI entry point."""
	parser = argparse.ArgumentParser(
		prog="stepwise",
		description="Break requests into tasks and carry them out one verified step at a time",
	)
	parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
	subparsers = parser.add_subparsers(dest="command")

	# decompose
	decompose_parser = subparsers.add_parser("decompose", help="Print the task list for a request")
	decompose_parser.add_argument("request", help="The request to break down")
	decompose_parser.add_argument("--force", action="store_true", help="Skip the should-decompose check")
	decompose_parser.add_argument("--workspace", type=str, default=None, help="Workspace directory")
	decompose_parser.set_defaults(func=cmd_decompose)

	# run
	run_parser = subparsers.add_parser("run", help="Run a request task by task")
	run_parser.add_argument("request", help="The request to carry out")
	run_parser.add_argument("--autonomous", action="store_true", help="Plan/execute/verify each task without conversation turns")
	run_parser.add_argument("--max-repairs", type=int, default=None, help="Repair rounds per task (autonomous mode)")
	run_parser.add_argument("--workspace", type=str, default=None, help="Workspace directory")
	run_parser.add_argument("--history", action="store_true", help="Print task list history when done")
	run_parser.set_defaults(func=cmd_run)

	# serve
	serve_parser = subparsers.add_parser("serve", help="Run MCP server (stdio)")
	serve_parser.set_defaults(func=cmd_serve)

	args = parser.parse_args()

	if not args.command:
		parser.print_help()
		sys.exit(1)

	args.func(args)
