"""Injectable time source for backoff timers and animation frames."""

from __future__ import annotations

import asyncio
from typing import Protocol


class Clock(Protocol):
    """Anything that can suspend the caller for a number of seconds."""

    async def sleep(self, seconds: float) -> None: ...


class AsyncioClock:
    """Wall-clock implementation backed by ``asyncio.sleep``."""

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)

    def __repr__(self) -> str:
        return "AsyncioClock()"
