"""Single-consumer, strictly ordered task queues.

``SerialTaskQueue`` runs asynchronous tasks one at a time in the order
they were enqueued.  A task that raises is logged and discarded; the
queue moves on to the next task and never aborts.  ``flush()`` is the
shutdown barrier: it resolves once no task is pending or in flight.

Two instances exist per board: one serializes state transitions, the
other (``AnimationQueue``) serializes every device write so concurrent
transitions never interleave their visual effects.
"""

from __future__ import annotations

import asyncio
import collections
import logging
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

Task = Callable[[], Awaitable[None]]


class SerialTaskQueue:
    """FIFO runner for zero-argument coroutine factories.

    Parameters
    ----------
    name:
        Label used in log records.

    The queue must be used from inside a running event loop; draining
    starts as a loop task on the first ``enqueue()`` after idling.
    """

    def __init__(self, name: str = "tasks") -> None:
        self._name = name
        self._pending: collections.deque[Task] = collections.deque()
        self._running = False
        self._drainer: asyncio.Task[None] | None = None
        self._idle_waiters: list[asyncio.Future[None]] = []
        self._completed = 0
        self._failed = 0

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def name(self) -> str:
        return self._name

    @property
    def idle(self) -> bool:
        """``True`` when nothing is pending or running."""
        return not self._running and not self._pending

    @property
    def pending(self) -> int:
        """Number of tasks waiting to start (excludes the one in flight)."""
        return len(self._pending)

    @property
    def completed(self) -> int:
        return self._completed

    @property
    def failed(self) -> int:
        return self._failed

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def enqueue(self, task: Task) -> None:
        """Append *task*; start draining if the queue is idle."""
        self._pending.append(task)
        if not self._running:
            self._running = True
            self._drainer = asyncio.get_running_loop().create_task(self._drain())

    async def flush(self) -> None:
        """Wait until the queue is idle.

        Returns immediately when already idle.  Tasks enqueued after this
        call but before idle is reached are awaited too.
        """
        if self.idle:
            return
        waiter: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._idle_waiters.append(waiter)
        await waiter

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _drain(self) -> None:
        try:
            while self._pending:
                task = self._pending.popleft()
                try:
                    await task()
                    self._completed += 1
                except Exception:
                    self._failed += 1
                    logger.exception("%s queue: task failed; continuing.", self._name)
        finally:
            self._running = False
            self._drainer = None
            waiters, self._idle_waiters = self._idle_waiters, []
            for waiter in waiters:
                if not waiter.done():
                    waiter.set_result(None)

    def __repr__(self) -> str:
        state = "idle" if self.idle else "draining"
        return (
            f"{type(self).__name__}(name={self._name!r}, state={state}, "
            f"pending={len(self._pending)})"
        )


class AnimationQueue(SerialTaskQueue):
    """The queue that owns every display write."""

    def __init__(self, name: str = "animation") -> None:
        super().__init__(name)
