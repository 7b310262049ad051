"""CEL engine bridge: value translation and evaluation."""

from cel_mcp.engine.evaluator import Evaluator, evaluate
from cel_mcp.engine.values import StructuredValue, ValueKind, classify, inject_context, to_expression, to_structured

__all__ = [
    "Evaluator",
    "StructuredValue",
    "ValueKind",
    "classify",
    "evaluate",
    "inject_context",
    "to_expression",
    "to_structured",
]
