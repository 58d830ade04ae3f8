"""Exception hierarchy for task decomposition and execution."""


class StepwiseError(Exception):
	"""Base exception for stepwise errors."""
	pass


class GenerationError(StepwiseError):
	"""Raised when the completion backend fails to produce text."""
	pass


class DecompositionError(StepwiseError):
	"""Raised when task titles could not be generated for a request.

	Always recoverable: callers fall back to treating the request as a
	single, undecomposed turn.
	"""
	pass


class PlanningError(StepwiseError):
	"""Raised when a plan request yields zero usable steps."""
	pass


class StepExecutionError(StepwiseError):
	"""Raised by a step executor when a single action fails."""

	def __init__(self, action: str, message: str):
		super().__init__(f"{action}: {message}")
		self.action = action
		self.message = message


class VerificationFailure(StepwiseError):
	"""Raised when verification checks do not pass."""

	def __init__(self, message: str, checks: list | None = None):
		super().__init__(message)
		self.checks = checks or []


class CancelledError(StepwiseError):
	"""Raised when the caller's cancel signal fires during an external call."""

	def __init__(self, reason: str = "Request cancelled"):
		super().__init__(reason)
		self.reason = reason
