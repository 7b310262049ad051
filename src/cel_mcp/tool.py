"""Transport-agnostic front end for the ``evaluate`` tool."""

from __future__ import annotations

import json
from typing import Any

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from cel_mcp.engine.values import StructuredValue
from cel_mcp.errors import EvaluationError, NoResponse, ServiceUnavailable, ToolEvaluationError
from cel_mcp.service.actor import EvaluationSubmitter

TOOL_NAME = "evaluate"
TOOL_DESCRIPTION = "Evaluates a Common Expression Language (CEL) expression."


class EvaluateParams(BaseModel):
    """Arguments of the ``evaluate`` tool."""

    expression: str = Field(description="CEL expression to evaluate.")
    context: dict[str, Any] = Field(description="Variables visible to the expression.")

    model_config = ConfigDict(extra="forbid")


class EvaluateResult(BaseModel):
    """Result of the ``evaluate`` tool: the value as compact JSON text."""

    result: str


def render_result(value: StructuredValue) -> str:
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"), allow_nan=False)


class CelTool:
    """Turn tool invocations into evaluation requests.

    Every transport adapter calls ``evaluate``; none of them evaluates
    anything itself.
    """

    def __init__(self, submitter: EvaluationSubmitter) -> None:
        self._submitter = submitter

    async def evaluate(self, params: EvaluateParams) -> EvaluateResult:
        logger.info("tool.evaluate expression={!r}", params.expression)
        try:
            reply = await self._submitter.submit(params.expression, params.context)
        except ServiceUnavailable:
            logger.error("tool.evaluate.service_down expression={!r}", params.expression)
            raise

        try:
            value = await reply
        except EvaluationError as exc:
            logger.warning("tool.evaluate.failed error={}", exc.message)
            raise ToolEvaluationError(exc.message) from exc
        except ServiceUnavailable:
            logger.error("tool.evaluate.service_down expression={!r}", params.expression)
            raise
        except NoResponse:
            logger.error("tool.evaluate.no_response expression={!r}", params.expression)
            raise

        logger.info("tool.evaluate.ok")
        return EvaluateResult(result=render_result(value))


__all__ = [
    "TOOL_DESCRIPTION",
    "TOOL_NAME",
    "CelTool",
    "EvaluateParams",
    "EvaluateResult",
    "render_result",
]
