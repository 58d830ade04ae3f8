"""
Tests for the verification pass.

Tests:
- Manifest script selection and ordering
- Generator fallback when no manifest checks exist
- Result aggregation
"""

import json

import pytest

from stepwise.errors import CancelledError, GenerationError
from stepwise.manifest import load_manifest
from stepwise.orchestrator.verifier import (
	CheckResult,
	CheckStatus,
	VerificationResult,
	VerificationSource,
	Verifier,
)
from stepwise.signals import CancelSignal
from stepwise.steps import StepResult

from .helpers import FakeExecutor, FakeGenerator, plan_json


def _write_manifest(path, scripts):
	(path / "package.json").write_text(json.dumps({"name": "app", "scripts": scripts}))


class TestManifest:
	"""Tests for manifest script selection."""

	def test_missing_manifest(self, tmp_path):
		assert load_manifest(tmp_path) is None

	def test_unreadable_manifest(self, tmp_path):
		(tmp_path / "package.json").write_text("{not json")
		assert load_manifest(tmp_path) is None

	def test_preflight_wins(self, tmp_path):
		_write_manifest(tmp_path, {"preflight": "x", "build": "y", "test": "z"})
		assert load_manifest(tmp_path).verification_commands() == ["npm run preflight"]

	def test_priority_order_with_ci_variants(self, tmp_path):
		_write_manifest(tmp_path, {
			"test": "t", "test:ci": "tc", "lint": "l", "typecheck": "tc", "build": "b",
		})
		assert load_manifest(tmp_path).verification_commands() == [
			"npm run build",
			"npm run typecheck",
			"npm run lint",
			"npm run test:ci",
		]

	def test_no_known_scripts(self, tmp_path):
		_write_manifest(tmp_path, {"start": "node ."})
		assert load_manifest(tmp_path).verification_commands() == []


class TestVerificationResult:
	"""Tests for VerificationResult aggregation."""

	def test_summary(self):
		result = VerificationResult(
			passed=False,
			checks=[
				CheckResult(name="npm run build", status=CheckStatus.PASSED),
				CheckResult(name="npm run test", status=CheckStatus.FAILED),
			],
		)
		assert result.summary == "1 passed, 1 failed out of 2 checks"
		assert result.verified_at


class TestManifestVerification:
	"""Tests for manifest-driven verification."""

	@pytest.mark.asyncio
	async def test_runs_scripts_in_order(self, tmp_path):
		_write_manifest(tmp_path, {"build": "b", "test": "t"})
		executor = FakeExecutor()
		generator = FakeGenerator()

		result = await Verifier(executor, generator, tmp_path).verify("req", "task")

		assert result.passed is True
		assert result.source == VerificationSource.MANIFEST
		assert executor.commands() == ["npm run build", "npm run test"]
		assert generator.calls == []

	@pytest.mark.asyncio
	async def test_first_failure_stops_and_fails(self, tmp_path):
		_write_manifest(tmp_path, {"build": "b", "test": "t"})
		executor = FakeExecutor({"shell:npm run build": StepResult.failure("exit code 2", "TS2304")})

		result = await Verifier(executor, FakeGenerator(), tmp_path).verify("req", "task")

		assert result.passed is False
		assert executor.commands() == ["npm run build"]
		assert result.checks[0].status == CheckStatus.FAILED
		assert "TS2304" in result.checks[0].output


	@pytest.mark.asyncio
	async def test_raising_executor_is_an_error_check(self, tmp_path):
		_write_manifest(tmp_path, {"build": "b", "test": "t"})

		def explode(action, args):
			if args.get("command") == "npm run build":
				raise ValueError("embedded null byte")

		executor = FakeExecutor(hook=explode)
		result = await Verifier(executor, FakeGenerator(), tmp_path).verify("req", "task")

		assert result.passed is False
		assert executor.commands() == ["npm run build"]
		assert result.checks[0].status == CheckStatus.ERROR
		assert result.checks[0].output == "embedded null byte"


class TestGeneratorVerification:
	"""Tests for generator-proposed verification."""

	@pytest.mark.asyncio
	async def test_runs_proposed_shell_commands_only(self, tmp_path):
		response = json.dumps({"steps": [
			{"action": "write_file", "args": {"path": "x"}},
			{"action": "shell", "args": {"command": "test -f app/index.js"}},
			{"action": "shell", "args": {"command": "node app/index.js --check"}},
			{"action": "shell", "args": {"command": "echo third"}},
		]})
		executor = FakeExecutor()

		result = await Verifier(executor, FakeGenerator([response]), tmp_path).verify("req", "task")

		assert result.passed is True
		assert result.source == VerificationSource.GENERATOR
		assert executor.commands() == ["test -f app/index.js", "node app/index.js --check"]

	@pytest.mark.asyncio
	async def test_no_steps_means_failure(self, tmp_path):
		executor = FakeExecutor()
		result = await Verifier(executor, FakeGenerator(['{"steps": []}']), tmp_path).verify("req", "task")
		assert result.passed is False
		assert executor.calls == []

	@pytest.mark.asyncio
	async def test_blank_commands_mean_failure(self, tmp_path):
		response = plan_json(("shell", {"command": "  "}))
		result = await Verifier(FakeExecutor(), FakeGenerator([response]), tmp_path).verify("req", "task")
		assert result.passed is False

	@pytest.mark.asyncio
	async def test_manifest_without_known_scripts_falls_back(self, tmp_path):
		_write_manifest(tmp_path, {"start": "node ."})
		generator = FakeGenerator([plan_json(("shell", {"command": "node -e 1"}))])
		executor = FakeExecutor()

		result = await Verifier(executor, generator, tmp_path).verify("req", "task")

		assert result.passed is True
		assert executor.commands() == ["node -e 1"]

	@pytest.mark.asyncio
	async def test_generation_error_means_failure(self, tmp_path):
		generator = FakeGenerator([GenerationError("down")])
		result = await Verifier(FakeExecutor(), generator, tmp_path).verify("req", "task")
		assert result.passed is False
		assert result.checks[0].status == CheckStatus.ERROR

	@pytest.mark.asyncio
	async def test_cancellation_propagates(self, tmp_path):
		cancel = CancelSignal()
		cancel.cancel()
		with pytest.raises(CancelledError):
			await Verifier(FakeExecutor(), FakeGenerator(default="{}"), tmp_path).verify("req", "task", cancel)
