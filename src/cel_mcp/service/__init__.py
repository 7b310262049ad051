"""Evaluation service: actors that own the CEL engine."""

from cel_mcp.service.actor import (
    ActorState,
    EvaluationActor,
    EvaluationRequest,
    EvaluationSubmitter,
    ReplyFuture,
)
from cel_mcp.service.pool import ActorPool

__all__ = [
    "ActorPool",
    "ActorState",
    "EvaluationActor",
    "EvaluationRequest",
    "EvaluationSubmitter",
    "ReplyFuture",
]
