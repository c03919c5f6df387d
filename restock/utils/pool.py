"""Bounded fan-out over fixed-size batches."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import Any, Generic, TypeVar

from restock.errors import ThrottledError

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


class BoundedPool(Generic[T, R]):
    """Runs ``worker`` over batches of ``items`` with at most ``max_concurrency`` in flight.

    Batches that fail with :class:`ThrottledError` go back on the queue, up to
    ``max_requeues`` times each. Any other failure cancels the remaining work and
    propagates. Results come back in batch order.
    """

    def __init__(
        self,
        batch_size: int,
        max_concurrency: int,
        *,
        max_requeues: int = 3,
        requeue_delay: float = 1.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        if batch_size < 1 or max_concurrency < 1:
            raise ValueError("batch_size and max_concurrency must be positive")
        self.batch_size = batch_size
        self.max_concurrency = max_concurrency
        self.max_requeues = max_requeues
        self.requeue_delay = requeue_delay
        self._sleep = sleep

    def batches(self, items: Sequence[T]) -> list[list[T]]:
        return [list(items[i : i + self.batch_size]) for i in range(0, len(items), self.batch_size)]

    async def run(self, items: Sequence[T], worker: Callable[[list[T]], Awaitable[R]]) -> list[R]:
        queue: asyncio.Queue[tuple[int, list[T], int]] = asyncio.Queue()
        for index, batch in enumerate(self.batches(items)):
            queue.put_nowait((index, batch, 0))
        if queue.empty():
            return []
        results: dict[int, R] = {}

        async def drain() -> None:
            while True:
                try:
                    index, batch, requeues = queue.get_nowait()
                except asyncio.QueueEmpty:
                    return
                try:
                    results[index] = await worker(batch)
                except ThrottledError:
                    if requeues >= self.max_requeues:
                        raise
                    logger.warning("Batch %s throttled, re-queueing (%s/%s)", index, requeues + 1, self.max_requeues)
                    await self._sleep(self.requeue_delay)
                    queue.put_nowait((index, batch, requeues + 1))

        tasks = [asyncio.create_task(drain()) for _ in range(min(self.max_concurrency, queue.qsize()))]
        try:
            await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
        return [results[index] for index in sorted(results)]

