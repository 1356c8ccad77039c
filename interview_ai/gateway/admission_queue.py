"""Admission Queue: global ceiling on concurrently running AI calls.

Operations beyond the ceiling wait in a FIFO list and are dispatched, in
submission order, as running operations finish. There are no priorities:
under sustained overload the tail of a long queue waits until the head
drains. Callers that want to shed load instead should consult
``MetricsTracker.should_throttle()`` before submitting.

All bookkeeping happens between await points on a single event loop, so no
lock is taken.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from interview_ai.core.metrics import AI_ACTIVE_REQUESTS, AI_QUEUE_LENGTH
from interview_ai.gateway.types import QueueStats

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class _QueueEntry:
    """A deferred operation and the future its submitter is awaiting."""

    operation: Callable[[], Awaitable[Any]]
    future: asyncio.Future


class AdmissionQueue:
    """FIFO admission control with a fixed concurrency ceiling.

    Usage:
        queue = AdmissionQueue(concurrency_limit=300)
        result = await queue.submit(lambda: call_provider(...))
    """

    def __init__(self, concurrency_limit: int = 300):
        if concurrency_limit < 1:
            raise ValueError("concurrency_limit must be at least 1")
        self._limit = concurrency_limit
        self._pending: deque[_QueueEntry] = deque()
        self._active = 0
        self._tasks: set[asyncio.Task] = set()

    @property
    def concurrency_limit(self) -> int:
        return self._limit

    @property
    def active_requests(self) -> int:
        return self._active

    @property
    def queue_length(self) -> int:
        return len(self._pending)

    async def submit(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Run ``operation`` once a slot is free and return its result.

        The operation's exception, if any, is raised here unchanged.
        """
        future = asyncio.get_running_loop().create_future()
        self._pending.append(_QueueEntry(operation=operation, future=future))

        if self._active >= self._limit:
            logger.debug(
                "Concurrency limit %d reached, queued request (queue length %d)",
                self._limit,
                len(self._pending),
            )

        self._drain()
        return await future

    def _drain(self) -> None:
        """Dispatch head-of-queue entries while slots are available."""
        while self._pending and self._active < self._limit:
            entry = self._pending.popleft()
            if entry.future.done():
                # Submitter was cancelled while waiting
                continue

            self._active += 1
            task = asyncio.ensure_future(self._run(entry))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

        AI_QUEUE_LENGTH.set(len(self._pending))
        AI_ACTIVE_REQUESTS.set(self._active)

    async def _run(self, entry: _QueueEntry) -> None:
        try:
            result = await entry.operation()
        except asyncio.CancelledError:
            if not entry.future.done():
                entry.future.cancel()
            raise
        except Exception as e:
            if not entry.future.done():
                entry.future.set_exception(e)
        else:
            if not entry.future.done():
                entry.future.set_result(result)
        finally:
            self._active -= 1
            self._drain()

    def get_stats(self) -> QueueStats:
        return QueueStats(
            queue_length=len(self._pending),
            active_requests=self._active,
            concurrency_limit=self._limit,
        )

    async def shutdown(self) -> None:
        """Cancel in-flight operations and fail everything still queued."""
        while self._pending:
            entry = self._pending.popleft()
            if not entry.future.done():
                entry.future.cancel()

        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("Admission queue shut down (%d in-flight cancelled)", len(tasks))
