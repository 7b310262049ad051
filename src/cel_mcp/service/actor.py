"""Single-owner evaluation actor.

The actor is the only code that touches its ``Evaluator``. Callers hand it
requests through a bounded queue and get the answer back on a per-request
future, so any number of protocol tasks can evaluate concurrently while the
CEL engine itself is used strictly one request at a time, from one thread.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import AsyncGenerator, Mapping
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol

from loguru import logger

from cel_mcp.engine.evaluator import Evaluator
from cel_mcp.engine.values import StructuredValue
from cel_mcp.errors import EvaluationError, NoResponse, ServiceUnavailable

DEFAULT_QUEUE_SIZE = 32

ReplyFuture = asyncio.Future[StructuredValue]


class ActorState(Enum):
    IDLE = "idle"
    RUNNING = "running"
    DRAINING = "draining"
    STOPPED = "stopped"


@dataclass(frozen=True)
class EvaluationRequest:
    """One expression to evaluate and the future that receives its answer."""

    expression: str
    context: Mapping[str, Any]
    reply: ReplyFuture


class EvaluationSubmitter(Protocol):
    """Anything that accepts evaluation requests."""

    async def submit(self, expression: str, context: Mapping[str, Any]) -> ReplyFuture:
        """Queue an evaluation and return the future holding its answer."""
        ...


_WAKEUP = object()


class EvaluationActor:
    """Serialize evaluations through a bounded FIFO queue.

    Lifecycle: ``IDLE`` -> ``RUNNING`` (after ``start``) -> ``DRAINING``
    (after ``close``; queued work is still answered) -> ``STOPPED``.
    """

    def __init__(
        self,
        evaluator: Evaluator | None = None,
        *,
        queue_size: int = DEFAULT_QUEUE_SIZE,
        name: str = "evaluator",
    ) -> None:
        if queue_size < 1:
            raise ValueError("queue_size must be >= 1")
        self.name = name
        self._evaluator = evaluator or Evaluator()
        self._queue_size = queue_size
        self._queue: asyncio.Queue[EvaluationRequest | object] = asyncio.Queue(maxsize=queue_size)
        self._state = ActorState.IDLE
        self._task: asyncio.Task[None] | None = None
        self._executor: ThreadPoolExecutor | None = None
        self._current: EvaluationRequest | None = None
        self.processed = 0
        self.failed = 0
        self.abandoned = 0

    @property
    def state(self) -> ActorState:
        return self._state

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def start(self) -> None:
        if self._state is not ActorState.IDLE:
            raise RuntimeError(f"actor {self.name} already started")
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"cel-{self.name}")
        self._state = ActorState.RUNNING
        self._task = asyncio.create_task(self._run(), name=f"cel-actor-{self.name}")
        logger.info("actor.start name={} queue_size={}", self.name, self._queue_size)

    async def submit(self, expression: str, context: Mapping[str, Any]) -> ReplyFuture:
        """Queue a request, waiting for room when the queue is full.

        Raises:
            ServiceUnavailable: the actor is not accepting requests.
        """
        if self._state is not ActorState.RUNNING:
            raise ServiceUnavailable()
        reply: ReplyFuture = asyncio.get_running_loop().create_future()
        await self._queue.put(EvaluationRequest(expression, dict(context), reply))
        # The loop may have stopped while we were blocked on a full queue.
        if self._state is ActorState.STOPPED and not reply.done():
            reply.set_exception(ServiceUnavailable())
        return reply

    def close(self) -> None:
        """Stop accepting requests; queued ones are still evaluated."""
        if self._state is ActorState.IDLE:
            self._state = ActorState.STOPPED
            return
        if self._state is not ActorState.RUNNING:
            return
        self._state = ActorState.DRAINING
        logger.info("actor.draining name={} pending={}", self.name, self._queue.qsize())
        # A full queue keeps the loop busy; it notices the drain once empty.
        with contextlib.suppress(asyncio.QueueFull):
            self._queue.put_nowait(_WAKEUP)

    async def wait_stopped(self) -> None:
        if self._task is not None:
            await asyncio.wait({self._task})

    async def stop(self) -> None:
        self.close()
        await self.wait_stopped()

    @contextlib.asynccontextmanager
    async def running(self) -> AsyncGenerator[EvaluationActor, None]:
        self.start()
        try:
            yield self
        finally:
            await self.stop()

    async def _run(self) -> None:
        try:
            while not (self._state is ActorState.DRAINING and self._queue.empty()):
                item = await self._queue.get()
                if isinstance(item, EvaluationRequest):
                    self._current = item
                    await self._process(item)
                    self._current = None
        finally:
            self._state = ActorState.STOPPED
            dropped = self._fail_outstanding()
            if self._executor is not None:
                self._executor.shutdown(wait=False, cancel_futures=True)
            logger.info(
                "actor.stop name={} processed={} failed={} abandoned={} dropped={}",
                self.name,
                self.processed,
                self.failed,
                self.abandoned,
                dropped,
            )

    async def _process(self, request: EvaluationRequest) -> None:
        if request.reply.done():
            self.abandoned += 1
            logger.debug("actor.skip_abandoned name={} expression={!r}", self.name, request.expression)
            return

        loop = asyncio.get_running_loop()
        outcome: StructuredValue | BaseException
        try:
            outcome = await loop.run_in_executor(
                self._executor, self._evaluator.evaluate, request.expression, request.context
            )
        except EvaluationError as exc:
            self.failed += 1
            outcome = exc
        except Exception:
            self.failed += 1
            logger.exception("actor.evaluate_crash name={} expression={!r}", self.name, request.expression)
            outcome = NoResponse()
        else:
            self.processed += 1

        if request.reply.done():
            self.abandoned += 1
            logger.debug("actor.reply_discarded name={} expression={!r}", self.name, request.expression)
            return
        if isinstance(outcome, BaseException):
            request.reply.set_exception(outcome)
        else:
            request.reply.set_result(outcome)

    def _fail_outstanding(self) -> int:
        """Answer everything the loop will never get to."""
        dropped = 0
        if self._current is not None and not self._current.reply.done():
            self._current.reply.set_exception(NoResponse())
            dropped += 1
        self._current = None
        while True:
            try:
                item = self._queue.get_nowait()
            except asyncio.QueueEmpty:
                break
            if isinstance(item, EvaluationRequest) and not item.reply.done():
                item.reply.set_exception(NoResponse())
                dropped += 1
        return dropped


__all__ = [
    "DEFAULT_QUEUE_SIZE",
    "ActorState",
    "EvaluationActor",
    "EvaluationRequest",
    "EvaluationSubmitter",
    "ReplyFuture",
]
