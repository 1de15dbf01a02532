"""Shared test fixtures for casedeck.

Nothing here sleeps for real or spawns a process: time comes from
``FakeClock`` and producers are ``FakeProcess`` objects handed out by a
``ScriptedLauncher``.  Async tests drive their coroutines with
``asyncio.run`` from plain test functions.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Awaitable, Callable, Iterable, Sequence
from typing import Any

import pytest

from casedeck.models.cases import CaseSnapshot
from casedeck.models.geometry import PanelGeometry


# ---------------------------------------------------------------------------
# Time
# ---------------------------------------------------------------------------


class FakeClock:
    """Records every requested sleep and returns after a single yield.

    Durations listed in *block* never return (until cancelled), which
    lets a test hold a restart timer or a stop grace period open.
    """

    def __init__(self, block: Iterable[float] = ()) -> None:
        self.sleeps: list[float] = []
        self._block = set(block)

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        if seconds in self._block:
            await asyncio.get_running_loop().create_future()
        await asyncio.sleep(0)


# ---------------------------------------------------------------------------
# Displays
# ---------------------------------------------------------------------------


class RecordingDisplay:
    """Display that logs every operation in order and tracks key contents."""

    def __init__(self, geometry: PanelGeometry) -> None:
        self._geometry = geometry
        self.ops: list[tuple[Any, ...]] = []
        self.cells: dict[int, bytes] = {}

    @property
    def geometry(self) -> PanelGeometry:
        return self._geometry

    async def write(self, key: int, buffer: bytes) -> None:
        self.ops.append(("write", key, buffer))
        self.cells[key] = buffer

    async def clear(self, key: int) -> None:
        self.ops.append(("clear", key))
        self.cells.pop(key, None)

    async def write_all(self, panel_buffer: bytes) -> None:
        self.ops.append(("write_all", len(panel_buffer)))

    async def clear_all(self) -> None:
        self.ops.append(("clear_all",))
        self.cells.clear()

    def trace(self) -> list[tuple[Any, ...]]:
        """Operations without buffers: ``("write", key)``, ``("clear", key)``..."""
        return [op[:2] for op in self.ops]


# ---------------------------------------------------------------------------
# Producer processes
# ---------------------------------------------------------------------------


class FakeProcess:
    """Stands in for ``asyncio.subprocess.Process``.

    Must be created inside a running event loop (it owns a StreamReader).
    """

    def __init__(
        self,
        lines: Sequence[bytes] = (),
        *,
        exit_code: int | None = None,
        ignore_terminate: bool = False,
        limit: int = 2**16,
    ) -> None:
        self.stdout = asyncio.StreamReader(limit=limit)
        for line in lines:
            self.stdout.feed_data(line)
        self.returncode: int | None = None
        self.terminated = False
        self.killed = False
        self._ignore_terminate = ignore_terminate
        self._exited = asyncio.Event()
        if exit_code is not None:
            self.finish(exit_code)

    def finish(self, code: int) -> None:
        if self.returncode is None:
            self.returncode = code
            self.stdout.feed_eof()
            self._exited.set()

    async def wait(self) -> int:
        await self._exited.wait()
        assert self.returncode is not None
        return self.returncode

    def terminate(self) -> None:
        self.terminated = True
        if not self._ignore_terminate:
            self.finish(-15)

    def kill(self) -> None:
        self.killed = True
        self.finish(-9)


class ScriptedLauncher:
    """Launcher that builds one ``FakeProcess`` per call from a script.

    Each script entry is either a dict of ``FakeProcess`` keyword
    arguments or an exception instance to raise.  Once the script runs
    out, every launch returns a process that stays alive.
    """

    def __init__(self, *script: dict[str, Any] | Exception) -> None:
        self._script = list(script)
        self.commands: list[list[str]] = []
        self.processes: list[FakeProcess] = []

    async def __call__(self, command: Sequence[str]) -> FakeProcess:
        self.commands.append(list(command))
        entry = self._script.pop(0) if self._script else {}
        if isinstance(entry, Exception):
            raise entry
        process = FakeProcess(**entry)
        self.processes.append(process)
        return process


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def fake_clock() -> FakeClock:
    """Provide a FakeClock that never blocks."""
    return FakeClock()


@pytest.fixture
def make_clock() -> Callable[..., FakeClock]:
    """Factory fixture: FakeClock with blocked durations."""
    return FakeClock


@pytest.fixture
def make_launcher() -> Callable[..., ScriptedLauncher]:
    """Factory fixture: ScriptedLauncher over a process script."""
    return ScriptedLauncher


@pytest.fixture
def small_geometry() -> PanelGeometry:
    """A 4x2 panel of tiny keys with the top row (4 slots) reserved."""
    return PanelGeometry(columns=4, rows=2, key_size=4, slot_start=0, slot_count=4)


@pytest.fixture
def tall_geometry() -> PanelGeometry:
    """A 2x2 panel of tiny keys with every key reserved."""
    return PanelGeometry(columns=2, rows=2, key_size=2, slot_start=0, slot_count=4)


@pytest.fixture
def recording_display(small_geometry: PanelGeometry) -> RecordingDisplay:
    """Provide a RecordingDisplay on the small geometry."""
    return RecordingDisplay(small_geometry)


@pytest.fixture
def make_display() -> Callable[[PanelGeometry], RecordingDisplay]:
    """Factory fixture: RecordingDisplay for any geometry."""
    return RecordingDisplay


@pytest.fixture
def make_case() -> Callable[..., CaseSnapshot]:
    """Factory fixture: build an active CaseSnapshot with sensible defaults."""

    def _factory(case_id: str = "A", **overrides: Any) -> CaseSnapshot:
        fields: dict[str, Any] = {
            "case_id": case_id,
            "message_name": "Update",
            "title": f"Case {case_id}",
            "ticket_number": f"CAS-{case_id}",
            "priority_code": 2,
            "status_code": 1,
            "state_code": 0,
        }
        fields.update(overrides)
        return CaseSnapshot(**fields)

    return _factory


@pytest.fixture
def case_line() -> Callable[..., bytes]:
    """Factory fixture: one producer wire line (with newline) for a case."""

    def _factory(case_id: str = "A", **fields: Any) -> bytes:
        payload = {"incidentId": case_id, "messageName": "Update", **fields}
        return json.dumps(payload).encode("utf-8") + b"\n"

    return _factory


@pytest.fixture
def fill_renderer() -> Callable[[PanelGeometry], Callable[[CaseSnapshot], bytes]]:
    """Factory fixture: renderer filling a key with a byte derived from the case.

    The fill byte depends on identity, title and priority, so an update
    that changes any of them produces a different buffer.
    """

    def _factory(geometry: PanelGeometry) -> Callable[[CaseSnapshot], bytes]:
        def _render(snapshot: CaseSnapshot) -> bytes:
            if snapshot.title == "boom":
                raise RuntimeError("renderer exploded")
            seed = f"{snapshot.case_id}|{snapshot.title}|{snapshot.priority_code}"
            fill = sum(seed.encode("utf-8")) % 251 + 1
            return bytes([fill]) * geometry.key_buffer_size

        return _render

    return _factory


@pytest.fixture
def eventually() -> Callable[..., Awaitable[None]]:
    """Await until *predicate* holds, yielding to the loop between checks."""

    async def _until(predicate: Callable[[], bool], *, attempts: int = 2000) -> None:
        for _ in range(attempts):
            if predicate():
                return
            await asyncio.sleep(0.001)
        raise AssertionError("condition was not reached")

    return _until
