"""stepwise - decompose requests into tasks and drive them through plan, execute, verify and repair."""

from .errors import (
	CancelledError,
	DecompositionError,
	GenerationError,
	PlanningError,
	StepExecutionError,
	StepwiseError,
	VerificationFailure,
)
from .signals import CancelSignal

__all__ = [
	"CancelSignal",
	"CancelledError",
	"DecompositionError",
	"GenerationError",
	"PlanningError",
	"StepExecutionError",
	"StepwiseError",
	"VerificationFailure",
]
