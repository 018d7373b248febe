"""
Rate Limiter — Serialize outgoing API calls with a minimum spacing.

One limiter instance is created per process and handed to every component
that talks to the remote API. Calls are queued FIFO and executed one at a
time by a single worker task; consecutive executions start at least
``min_delay`` seconds apart.

## Usage

    limiter = RateLimiter(min_delay=1.0)

    user = await limiter.enqueue(gateway.get_authenticated_user)

A failing operation only fails its own caller. The worker keeps draining.
Operations enqueued from inside a running operation join the same queue, so
a running operation must not await a nested enqueue or the queue stalls.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from typing import Any, Awaitable, Callable, Deque, Optional, Tuple

logger = logging.getLogger(__name__)

DEFAULT_MIN_DELAY = 1.0

Operation = Callable[[], Awaitable[Any]]


class RateLimiter:
    """Process-wide FIFO throttle for remote calls."""

    def __init__(
        self,
        min_delay: float = DEFAULT_MIN_DELAY,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.min_delay = max(0.0, min_delay)
        self._clock = clock
        self._sleep = sleep

        self._queue: Deque[Tuple[Operation, asyncio.Future]] = deque()
        self._processing = False
        self._last_request_at: Optional[float] = None
        self._worker: Optional[asyncio.Task] = None

    @property
    def processing(self) -> bool:
        return self._processing

    def __len__(self) -> int:
        return len(self._queue)

    async def enqueue(self, operation: Operation) -> Any:
        """
        Queue ``operation`` and wait until it has executed.

        Returns whatever the operation returns and raises whatever it raises.
        """
        loop = asyncio.get_running_loop()
        future: asyncio.Future = loop.create_future()
        self._queue.append((operation, future))

        if not self._processing:
            self._processing = True
            self._worker = loop.create_task(self._drain())

        return await future

    async def _drain(self) -> None:
        try:
            while self._queue:
                operation, future = self._queue.popleft()
                if future.cancelled():
                    continue

                await self._wait_turn()
                self._last_request_at = self._clock()

                try:
                    result = await operation()
                except Exception as e:
                    logger.debug(f"[ratelimit] Queued operation failed: {e}")
                    if not future.done():
                        future.set_exception(e)
                else:
                    if not future.done():
                        future.set_result(result)
        finally:
            self._processing = False

    async def _wait_turn(self) -> None:
        if self._last_request_at is None:
            return
        elapsed = self._clock() - self._last_request_at
        if elapsed < self.min_delay:
            wait_for = self.min_delay - elapsed
            logger.debug(f"[ratelimit] Waiting {wait_for:.2f}s ({len(self._queue)} queued)")
            await self._sleep(wait_for)
