"""Error types for CEL evaluation and the evaluate tool."""

from __future__ import annotations


class CelMcpError(Exception):
    """Base class for all cel-mcp errors."""


class EvaluationError(CelMcpError):
    """An expression could not be evaluated.

    These are routine outcomes of user-supplied input and the message is
    returned to the remote caller as-is.
    """

    prefix = "Evaluation error"

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(f"{self.prefix}: {detail}")

    @property
    def message(self) -> str:
        return str(self)


class ContextError(EvaluationError):
    """A context entry could not be bound as a CEL variable."""

    prefix = "Context error"

    def __init__(self, key: str, reason: str) -> None:
        self.key = key
        self.reason = reason
        super().__init__(f"variable {key!r}: {reason}")


class CompileError(EvaluationError):
    """The expression is not a valid CEL program."""

    prefix = "CEL compile error"


class ExecutionError(EvaluationError):
    """The compiled program failed at runtime."""

    prefix = "CEL execution error"


class ToolError(CelMcpError):
    """Failure surfaced by the evaluate tool."""

    internal = False

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ToolEvaluationError(ToolError):
    """The evaluator rejected the expression or its context."""


class ServiceUnavailable(ToolError):
    """The evaluation actor is not accepting requests."""

    internal = True

    def __init__(self, message: str = "Evaluator service is down") -> None:
        super().__init__(message)


class NoResponse(ToolError):
    """The evaluation actor dropped a request without answering it."""

    internal = True

    def __init__(self, message: str = "Failed to receive response from evaluator") -> None:
        super().__init__(message)


__all__ = [
    "CelMcpError",
    "CompileError",
    "ContextError",
    "EvaluationError",
    "ExecutionError",
    "NoResponse",
    "ServiceUnavailable",
    "ToolError",
    "ToolEvaluationError",
]
