"""CEL evaluation against a JSON context."""

from __future__ import annotations

from collections import OrderedDict
from collections.abc import Mapping
from typing import Any

import celpy
from loguru import logger

from cel_mcp.engine.values import Activation, StructuredValue, inject_context, to_structured
from cel_mcp.errors import CompileError, ExecutionError

DEFAULT_CACHE_SIZE = 128


class Evaluator:
    """Compile and run CEL expressions.

    An evaluator is not safe to share between threads: the compiled-program
    cache is unsynchronized and ``celpy`` makes no thread-safety promises.
    Each evaluation actor owns exactly one.
    """

    def __init__(self, *, cache_size: int = DEFAULT_CACHE_SIZE) -> None:
        if cache_size < 0:
            raise ValueError("cache_size must be >= 0")
        self._env = celpy.Environment()
        self._cache_size = cache_size
        self._programs: OrderedDict[str, celpy.Runner] = OrderedDict()

    @property
    def cached_programs(self) -> int:
        return len(self._programs)

    def evaluate(self, expression: str, context: Mapping[str, Any]) -> StructuredValue:
        """Evaluate ``expression`` with ``context`` bound as variables.

        Raises:
            ContextError: a context entry cannot be bound.
            CompileError: the expression does not parse.
            ExecutionError: the program fails at runtime.
        """
        activation: Activation = {}
        inject_context(activation, context)
        program = self._program(expression)

        try:
            result = program.evaluate(activation)
        except celpy.CELEvalError as exc:
            raise ExecutionError(_describe(exc)) from exc
        except Exception as exc:
            logger.opt(exception=exc).debug("evaluator.engine_exception expression={!r}", expression)
            raise ExecutionError(_describe(exc)) from exc
        # Older celpy releases return the error instead of raising it.
        if isinstance(result, celpy.CELEvalError):
            raise ExecutionError(_describe(result))
        return to_structured(result)

    def _program(self, expression: str) -> celpy.Runner:
        program = self._programs.get(expression)
        if program is not None:
            self._programs.move_to_end(expression)
            return program

        try:
            ast = self._env.compile(expression)
            program = self._env.program(ast)
        except celpy.CELParseError as exc:
            raise CompileError(_describe(exc)) from exc
        except Exception as exc:
            logger.opt(exception=exc).debug("evaluator.compile_exception expression={!r}", expression)
            raise CompileError(_describe(exc)) from exc

        if self._cache_size:
            self._programs[expression] = program
            if len(self._programs) > self._cache_size:
                self._programs.popitem(last=False)
        return program

    def clear_cache(self) -> None:
        self._programs.clear()


MAX_DETAIL_LENGTH = 160
_ACTIVATION_MARKER = " (in activation"


def _describe(exc: BaseException) -> str:
    """Build a caller-facing message from an engine exception.

    celpy errors carry ``(reason, exc_type, args)``. The reason may embed the
    whole activation repr, so it is cut at the activation marker; ``args``
    holds the underlying detail, e.g. ``list index out of range``.
    """
    args = exc.args
    reason = args[0] if args else None
    if not isinstance(reason, str):
        text = str(exc).strip()
        return text or type(exc).__name__

    reason = _strip_activation(reason)
    detail = _detail(args[2]) if len(args) > 2 else ""
    if detail and detail not in reason:
        reason = f"{reason}: {detail}" if reason else detail
    return reason or type(exc).__name__


def _strip_activation(text: str) -> str:
    return text.split(_ACTIVATION_MARKER, 1)[0].strip()


def _detail(raw: Any) -> str:
    if raw is None:
        return ""
    if isinstance(raw, (tuple, list)):
        parts = [_detail(item) for item in raw]
        text = "; ".join(part for part in parts if part)
    else:
        text = _strip_activation(str(raw))
    if "Activation(" in text:
        return ""
    if len(text) > MAX_DETAIL_LENGTH:
        text = text[: MAX_DETAIL_LENGTH - 3] + "..."
    return text


def evaluate(expression: str, context: Mapping[str, Any] | None = None) -> StructuredValue:
    """Evaluate once with a throwaway evaluator."""
    return Evaluator(cache_size=0).evaluate(expression, context or {})


__all__ = ["DEFAULT_CACHE_SIZE", "Evaluator", "evaluate"]
