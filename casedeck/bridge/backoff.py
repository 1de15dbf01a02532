"""Restart backoff — doubling delay with a cap, reset on producer health."""

from __future__ import annotations


class RestartBackoff:
    """Delay schedule for producer restarts.

    ``next_delay()`` returns the current delay and doubles it (capped)
    for the following call.  ``reset()`` returns the schedule to the base
    delay; the bridge calls it whenever a producer line parses.

    Parameters
    ----------
    base:
        First delay in seconds.
    cap:
        Upper bound in seconds.
    """

    def __init__(self, base: float = 1.0, cap: float = 30.0) -> None:
        if base <= 0 or cap < base:
            raise ValueError(f"Invalid backoff bounds: base={base}, cap={cap}")
        self._base = base
        self._cap = cap
        self._current = base

    @property
    def base(self) -> float:
        return self._base

    @property
    def cap(self) -> float:
        return self._cap

    @property
    def current(self) -> float:
        """The delay the next restart will wait."""
        return self._current

    def next_delay(self) -> float:
        delay = self._current
        self._current = min(self._current * 2, self._cap)
        return delay

    def reset(self) -> None:
        self._current = self._base

    def __repr__(self) -> str:
        return f"RestartBackoff(base={self._base}, cap={self._cap}, current={self._current})"
