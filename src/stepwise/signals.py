"""
Cancellation signal shared by every generator and step executor call.

A CancelSignal is created per user request and threaded through all
suspension points. Awaiting work through ``run_cancellable`` makes the
caller return promptly once the signal fires.
"""

import asyncio
import logging
from typing import Awaitable, Optional, TypeVar

from .errors import CancelledError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CancelSignal:
	"""One-shot cancellation flag that can also be awaited."""

	def __init__(self):
		self._event = asyncio.Event()
		self.reason = ""

	@property
	def cancelled(self) -> bool:
		return self._event.is_set()

	def cancel(self, reason: str = "Request cancelled") -> None:
		"""Fire the signal. Subsequent calls are ignored."""
		if self._event.is_set():
			return
		self.reason = reason
		self._event.set()
		logger.debug(f"Cancel signal fired: {reason}")

	async def wait(self) -> None:
		await self._event.wait()

	def raise_if_cancelled(self) -> None:
		if self._event.is_set():
			raise CancelledError(self.reason or "Request cancelled")


def _consume_result(task: asyncio.Task) -> None:
	"""Retrieve the outcome of an abandoned task so it is never reported as unhandled."""
	if task.cancelled():
		return
	exc = task.exception()
	if exc is not None:
		logger.debug(f"Abandoned call finished with error: {exc}")


async def run_cancellable(
	awaitable: Awaitable[T],
	cancel: Optional[CancelSignal],
	abandon: bool = False,
) -> T:
	"""
	Await ``awaitable`` unless ``cancel`` fires first.

	Args:
		awaitable: The work to wait for
		cancel: Signal to race against (None waits unconditionally)
		abandon: When True the in-flight work is left running and its
			result is discarded; otherwise it is cancelled

	Returns:
		The awaitable's result

	Raises:
		CancelledError: If the signal fired before the work finished
	"""
	if cancel is None:
		return await awaitable

	if cancel.cancelled:
		if asyncio.iscoroutine(awaitable):
			awaitable.close()
		cancel.raise_if_cancelled()

	work = asyncio.ensure_future(awaitable)
	waiter = asyncio.ensure_future(cancel.wait())
	try:
		await asyncio.wait({work, waiter}, return_when=asyncio.FIRST_COMPLETED)
	except asyncio.CancelledError:
		work.cancel()
		raise
	finally:
		if not waiter.done():
			waiter.cancel()

	if work.done():
		return work.result()

	if abandon:
		work.add_done_callback(_consume_result)
	else:
		work.cancel()
		try:
			await work
		except asyncio.CancelledError:
			pass
		except Exception as e:
			logger.debug(f"Cancelled call raised while unwinding: {e}")

	raise CancelledError(cancel.reason or "Request cancelled")
