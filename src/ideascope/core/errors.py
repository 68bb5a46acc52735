"""Pipeline error taxonomy.

Transport and policy errors are absorbed close to their source (per URL, per
secondary provider). Validation failures are retried by the node that hit
them and surface as ``NodeFailure`` once the budget is spent. Anything fatal
to a run reaches the caller as ``PipelineError``.
"""

from __future__ import annotations


class IdeaScopeError(Exception):
    """Base exception for IdeaScope errors."""


class TransportError(IdeaScopeError):
    """Raised when a search or fetch request fails at the network level."""


class PolicyError(IdeaScopeError):
    """Raised when a fetch is disallowed by the target host's robots policy."""


class OutputValidationError(IdeaScopeError):
    """Raised when completion output does not parse as JSON or violates its schema."""


class NodeFailure(IdeaScopeError):
    """Raised when an analysis node cannot produce a valid result.

    Attributes:
        node_name: Name of the failing node.
        last_error: Message of the last failed attempt.
        attempts: Number of attempts made.
    """

    def __init__(self, node_name: str, last_error: str, attempts: int) -> None:
        self.node_name = node_name
        self.last_error = last_error
        self.attempts = attempts
        super().__init__(f"Node '{node_name}' failed after {attempts} attempt(s): {last_error}")


class PipelineError(IdeaScopeError):
    """Raised when a research or analysis phase fails irrecoverably.

    Attributes:
        phase: Phase in which the failure occurred.
        node_name: Failing node, when the failure is node-specific.
        cause: The underlying exception.
    """

    def __init__(self, phase: str, cause: BaseException, node_name: str | None = None) -> None:
        self.phase = phase
        self.node_name = node_name
        self.cause = cause
        where = f"{phase}/{node_name}" if node_name else phase
        super().__init__(f"Pipeline failed in {where}: {cause}")
