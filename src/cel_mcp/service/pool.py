"""Round-robin pool of evaluation actors."""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import AsyncGenerator, Mapping
from typing import Any

from loguru import logger

from cel_mcp.engine.evaluator import DEFAULT_CACHE_SIZE, Evaluator
from cel_mcp.errors import ServiceUnavailable
from cel_mcp.service.actor import DEFAULT_QUEUE_SIZE, ActorState, EvaluationActor, ReplyFuture


class ActorPool:
    """Spread evaluations over ``size`` independent actors.

    Each actor owns its own evaluator, so shards never share engine state.
    Ordering is FIFO per actor only.
    """

    def __init__(
        self,
        size: int = 1,
        *,
        queue_size: int = DEFAULT_QUEUE_SIZE,
        cache_size: int = DEFAULT_CACHE_SIZE,
    ) -> None:
        if size < 1:
            raise ValueError("pool size must be >= 1")
        self._actors = [
            EvaluationActor(Evaluator(cache_size=cache_size), queue_size=queue_size, name=f"evaluator-{index}")
            for index in range(size)
        ]
        self._next = 0

    @property
    def actors(self) -> list[EvaluationActor]:
        return list(self._actors)

    @property
    def accepting(self) -> bool:
        return all(actor.state is ActorState.RUNNING for actor in self._actors)

    def start(self) -> None:
        for actor in self._actors:
            actor.start()
        logger.info("pool.start size={}", len(self._actors))

    async def submit(self, expression: str, context: Mapping[str, Any]) -> ReplyFuture:
        if not self.accepting:
            raise ServiceUnavailable()
        actor = self._actors[self._next % len(self._actors)]
        self._next += 1
        return await actor.submit(expression, context)

    def close(self) -> None:
        for actor in self._actors:
            actor.close()

    async def wait_stopped(self) -> None:
        await asyncio.gather(*(actor.wait_stopped() for actor in self._actors))

    async def stop(self) -> None:
        self.close()
        await self.wait_stopped()
        logger.info(
            "pool.stop processed={} failed={}",
            sum(actor.processed for actor in self._actors),
            sum(actor.failed for actor in self._actors),
        )

    @contextlib.asynccontextmanager
    async def running(self) -> AsyncGenerator[ActorPool, None]:
        self.start()
        try:
            yield self
        finally:
            await self.stop()


__all__ = ["ActorPool"]
