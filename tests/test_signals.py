"""Tests for cancel signals and cancellable awaits."""

import asyncio

import pytest

from stepwise.errors import CancelledError
from stepwise.signals import CancelSignal, run_cancellable


class TestCancelSignal:
	"""Tests for the one-shot signal."""

	def test_first_reason_wins(self):
		signal = CancelSignal()
		signal.cancel("user pressed stop")
		signal.cancel("second")
		assert signal.cancelled
		assert signal.reason == "user pressed stop"

	def test_raise_if_cancelled(self):
		signal = CancelSignal()
		signal.raise_if_cancelled()
		signal.cancel()
		with pytest.raises(CancelledError) as exc_info:
			signal.raise_if_cancelled()
		assert exc_info.value.reason == "Request cancelled"


class TestRunCancellable:
	"""Tests for racing work against the signal."""

	@pytest.mark.asyncio
	async def test_returns_result(self):
		async def work():
			return 7

		assert await run_cancellable(work(), CancelSignal()) == 7
		assert await run_cancellable(work(), None) == 7

	@pytest.mark.asyncio
	async def test_already_cancelled_never_starts_work(self):
		started = []

		async def work():
			started.append(True)

		signal = CancelSignal()
		signal.cancel()
		with pytest.raises(CancelledError):
			await run_cancellable(work(), signal)
		assert started == []

	@pytest.mark.asyncio
	async def test_cancel_interrupts_slow_work(self):
		signal = CancelSignal()
		finished = []

		async def slow():
			await asyncio.sleep(5)
			finished.append(True)

		asyncio.get_running_loop().call_later(0.01, signal.cancel, "stop")
		with pytest.raises(CancelledError) as exc_info:
			await asyncio.wait_for(run_cancellable(slow(), signal), timeout=1.0)

		assert exc_info.value.reason == "stop"
		assert finished == []

	@pytest.mark.asyncio
	async def test_abandoned_work_keeps_running(self):
		signal = CancelSignal()
		release = asyncio.Event()
		finished = []

		async def step():
			await release.wait()
			finished.append(True)

		asyncio.get_running_loop().call_later(0.01, signal.cancel)
		with pytest.raises(CancelledError):
			await run_cancellable(step(), signal, abandon=True)

		release.set()
		await asyncio.sleep(0.01)
		assert finished == [True]

	@pytest.mark.asyncio
	async def test_work_errors_propagate(self):
		async def broken():
			raise ValueError("bad")

		with pytest.raises(ValueError):
			await run_cancellable(broken(), CancelSignal())
