"""Orchestrator module - Autonomous planning, step execution, verification, and repair."""

from .plans import ActionPlan, ActionStep, Observation, parse_action_plan
from .runner import ExecutionOrchestrator, OrchestratorEvent, OrchestratorEventType
from .verifier import CheckResult, CheckStatus, VerificationResult, Verifier

__all__ = [
	"ActionPlan",
	"ActionStep",
	"Observation",
	"parse_action_plan",
	"ExecutionOrchestrator",
	"OrchestratorEvent",
	"OrchestratorEventType",
	"Verifier",
	"VerificationResult",
	"CheckResult",
	"CheckStatus",
]
