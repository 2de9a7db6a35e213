# geosaude/core/request_queue.py
"""
Single-lane outbound request queue.

Every provider call goes through one of these. Jobs run strictly one at a
time in FIFO order, and the start of a job is never closer than
`min_interval` seconds to the start of the previous one (Nominatim
etiquette: about 1 request/sec).
"""
from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from typing import Any, Awaitable, Callable, Deque, Optional, Tuple

logger = logging.getLogger(__name__)

Job = Callable[[], Awaitable[Any]]


class RateLimitedQueue:
    def __init__(
        self,
        min_interval: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.min_interval = min_interval
        self._clock = clock
        self._sleep = sleep
        self._pending: Deque[Tuple[Job, asyncio.Future]] = deque()
        self._worker: Optional[asyncio.Task] = None
        self._last_dispatch: Optional[float] = None

    def __len__(self) -> int:
        return len(self._pending)

    def submit(self, job: Job) -> asyncio.Future:
        """Append a job and return a future resolved with its outcome."""
        loop = asyncio.get_running_loop()
        future = loop.create_future()
        self._pending.append((job, future))
        self._ensure_worker(loop)
        return future

    async def run(self, job: Job) -> Any:
        return await self.submit(job)

    def _ensure_worker(self, loop: asyncio.AbstractEventLoop) -> None:
        # one consumer per queue; a worker left behind by a closed loop is replaced
        worker = self._worker
        if worker is not None and not worker.done() and worker.get_loop() is loop:
            return
        self._worker = loop.create_task(self._drain())

    async def _drain(self) -> None:
        while self._pending:
            job, future = self._pending.popleft()
            if future.cancelled():
                continue

            if self._last_dispatch is not None:
                wait = self._last_dispatch + self.min_interval - self._clock()
                if wait > 0:
                    logger.debug(f"Rate limit: waiting {wait:.2f}s ({len(self._pending)} queued)")
                    await self._sleep(wait)
            self._last_dispatch = self._clock()

            try:
                result = await job()
            except Exception as e:
                if not future.done():
                    future.set_exception(e)
            else:
                if not future.done():
                    future.set_result(result)
