"""ProducerBridge — keeps one external producer process alive.

Bridge boundary
---------------
The case-management connector runs as a separate process that writes
one JSON case record per line to stdout (see ``casedeck.bridge.wire``).
``ProducerBridge`` owns that process: it parses each line into a
``CaseSnapshot``, hands it to every subscriber in arrival order, and
treats a crashed producer as routine.

Recovery policy
---------------
- A line that fails to parse is logged and dropped.  It never reaches a
  subscriber and never affects restart backoff.
- Any successfully parsed line resets the backoff to its base delay.
- An exit that was not requested schedules a restart after the current
  backoff delay, which then doubles up to the cap.  At most one restart
  timer is pending at a time.
- ``stop()`` cancels a pending restart, asks the process to terminate,
  and kills it if it has not exited within the grace period.

Time is read from an injectable ``Clock`` and processes come from an
injectable launcher, so tests never sleep or spawn real processes.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable, Sequence
from enum import Enum
from pathlib import Path
from typing import Any, Protocol

from casedeck.bridge.backoff import RestartBackoff
from casedeck.bridge.wire import WireFormatError, parse_case_line
from casedeck.core.clock import AsyncioClock, Clock
from casedeck.models.cases import CaseSnapshot

logger = logging.getLogger(__name__)

# Largest accepted producer line, in bytes.
STREAM_LIMIT = 1 << 20

CaseHandler = Callable[[CaseSnapshot], None]


class BridgeState(str, Enum):
    """Lifecycle of the managed producer."""

    IDLE = "idle"
    RUNNING = "running"
    STOPPING = "stopping_requested"
    EXITED = "exited"


class ProducerProcess(Protocol):
    """The subset of ``asyncio.subprocess.Process`` the bridge relies on."""

    stdout: asyncio.StreamReader | None
    returncode: int | None

    async def wait(self) -> int: ...

    def terminate(self) -> None: ...

    def kill(self) -> None: ...


ProcessLauncher = Callable[[Sequence[str]], Awaitable[ProducerProcess]]


async def spawn_subprocess(command: Sequence[str]) -> ProducerProcess:
    """Default launcher: stdout piped for records, stderr inherited for logs."""
    return await asyncio.create_subprocess_exec(
        *command,
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=None,
        limit=STREAM_LIMIT,
    )


class ProducerBridge:
    """Supervises the producer process and publishes case events.

    Parameters
    ----------
    command:
        argv of the producer, e.g. ``["dotnet", "run", "--project", ...]``.
    backoff:
        Restart delay schedule.  Defaults to 1 s base, 30 s cap.
    clock:
        Time source for restart timers and the stop grace period.
    launcher:
        Coroutine function that starts a process for *command*.
    tee_path:
        When set, every successfully parsed line is appended to this file
        exactly as received, newline-terminated.
    stop_grace:
        Seconds ``stop()`` waits after terminate before killing.
    """

    def __init__(
        self,
        command: Sequence[str],
        *,
        backoff: RestartBackoff | None = None,
        clock: Clock | None = None,
        launcher: ProcessLauncher | None = None,
        tee_path: Path | None = None,
        stop_grace: float = 5.0,
    ) -> None:
        if not command:
            raise ValueError("Producer command must not be empty")
        self._command = list(command)
        self._backoff = backoff or RestartBackoff()
        self._clock = clock or AsyncioClock()
        self._launcher = launcher or spawn_subprocess
        self._tee_path = tee_path
        self._stop_grace = stop_grace

        self._handlers: list[CaseHandler] = []
        self._state = BridgeState.IDLE
        self._stopping = False
        self._lock = asyncio.Lock()
        self._process: ProducerProcess | None = None
        self._supervisor: asyncio.Task[None] | None = None
        self._restart_task: asyncio.Task[None] | None = None

        self._launch_count = 0
        self._events_emitted = 0
        self._parse_failures = 0

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def state(self) -> BridgeState:
        return self._state

    @property
    def command(self) -> list[str]:
        return list(self._command)

    @property
    def restart_delay(self) -> float:
        """Delay the next restart would wait."""
        return self._backoff.current

    @property
    def restart_pending(self) -> bool:
        return self._restart_task is not None

    @property
    def launch_count(self) -> int:
        return self._launch_count

    @property
    def events_emitted(self) -> int:
        return self._events_emitted

    @property
    def parse_failures(self) -> int:
        return self._parse_failures

    # ------------------------------------------------------------------
    # Subscription
    # ------------------------------------------------------------------

    def subscribe(self, handler: CaseHandler) -> Callable[[], None]:
        """Register *handler* for case events; returns an unsubscribe callable.

        Handlers run synchronously in registration order for every event.
        A handler that raises is logged and skipped for that event.
        """
        self._handlers.append(handler)

        def _unsubscribe() -> None:
            with contextlib.suppress(ValueError):
                self._handlers.remove(handler)

        return _unsubscribe

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Launch the producer and begin supervising it."""
        if self._state in (BridgeState.RUNNING, BridgeState.STOPPING) or self.restart_pending:
            raise RuntimeError("Producer bridge is already started")
        self._stopping = False
        async with self._lock:
            await self._spawn()

    async def stop(self) -> None:
        """Stop supervising and shut the producer down.

        Returns once the process has exited, either on its own after
        terminate or after being killed when the grace period ran out.
        """
        self._stopping = True
        self._state = BridgeState.STOPPING
        if self._restart_task is not None:
            self._restart_task.cancel()
            self._restart_task = None

        async with self._lock:
            process, supervisor = self._process, self._supervisor
            if process is not None and supervisor is not None:
                await self._terminate(process, supervisor)
            self._process = None
            self._supervisor = None

        self._state = BridgeState.EXITED
        logger.info("Producer bridge stopped.")

    async def __aenter__(self) -> ProducerBridge:
        await self.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.stop()

    # ------------------------------------------------------------------
    # Internal: process management
    # ------------------------------------------------------------------

    async def _spawn(self) -> None:
        """Launch one process instance.  Caller holds ``self._lock``."""
        self._launch_count += 1
        logger.info("Starting producer (launch %d): %s", self._launch_count, " ".join(self._command))
        try:
            process = await self._launcher(self._command)
        except OSError as exc:
            logger.error("Producer failed to start: %s", exc)
            self._state = BridgeState.EXITED
            if not self._stopping:
                self._schedule_restart()
            return

        self._process = process
        self._state = BridgeState.RUNNING
        self._supervisor = asyncio.get_running_loop().create_task(self._supervise(process))

    async def _supervise(self, process: ProducerProcess) -> None:
        try:
            await self._pump(process)
        except Exception:
            logger.exception("Producer output reader failed; killing producer.")
            if process.returncode is None:
                with contextlib.suppress(ProcessLookupError):
                    process.kill()

        code = await process.wait()
        if self._process is process:
            self._process = None
            self._supervisor = None

        if self._stopping:
            logger.info("Producer exited on request (code=%s).", code)
            return

        logger.warning("Producer exited unexpectedly (code=%s).", code)
        self._state = BridgeState.EXITED
        self._schedule_restart()

    async def _pump(self, process: ProducerProcess) -> None:
        stdout = process.stdout
        if stdout is None:
            return
        discarding = False
        while True:
            try:
                raw = await stdout.readuntil(b"\n")
            except asyncio.IncompleteReadError as exc:
                # EOF; a final unterminated line is still a record.
                if exc.partial and not discarding:
                    self._handle_line(exc.partial)
                return
            except asyncio.LimitOverrunError as exc:
                # Line exceeds STREAM_LIMIT: drop what is buffered and skip
                # the rest of it up to the next newline.
                if not discarding:
                    discarding = True
                    self._parse_failures += 1
                    logger.warning("Dropped oversized producer line: %s", exc)
                await stdout.readexactly(exc.consumed)
                continue
            if discarding:
                discarding = False
                continue
            self._handle_line(raw)

    def _schedule_restart(self) -> None:
        if self._restart_task is not None:
            return
        delay = self._backoff.next_delay()
        logger.warning("Restarting producer in %.1fs.", delay)
        self._restart_task = asyncio.get_running_loop().create_task(self._restart_after(delay))

    async def _restart_after(self, delay: float) -> None:
        await self._clock.sleep(delay)
        self._restart_task = None
        async with self._lock:
            if self._stopping:
                return
            await self._spawn()

    async def _terminate(
        self, process: ProducerProcess, supervisor: asyncio.Task[None]
    ) -> None:
        if process.returncode is None:
            with contextlib.suppress(ProcessLookupError):
                process.terminate()

        grace = asyncio.get_running_loop().create_task(self._clock.sleep(self._stop_grace))
        try:
            done, _ = await asyncio.wait(
                {supervisor, grace}, return_when=asyncio.FIRST_COMPLETED
            )
            if supervisor not in done:
                logger.warning(
                    "Producer did not exit within %.1fs; killing it.", self._stop_grace
                )
                with contextlib.suppress(ProcessLookupError):
                    process.kill()
                await supervisor
        finally:
            grace.cancel()

    # ------------------------------------------------------------------
    # Internal: line handling
    # ------------------------------------------------------------------

    def _handle_line(self, raw: bytes) -> None:
        line = raw.strip()
        if not line:
            return
        try:
            snapshot = parse_case_line(line)
        except WireFormatError as exc:
            self._parse_failures += 1
            logger.warning("Dropped malformed producer line (%s): %.200r", exc, line)
            return

        self._backoff.reset()
        self._events_emitted += 1
        self._tee(raw)
        self._dispatch(snapshot)

    def _tee(self, raw: bytes) -> None:
        if self._tee_path is None:
            return
        if not raw.endswith(b"\n"):
            raw += b"\n"
        try:
            with self._tee_path.open("ab") as fh:
                fh.write(raw)
        except OSError as exc:
            logger.warning("Tee write to %s failed: %s", self._tee_path, exc)

    def _dispatch(self, snapshot: CaseSnapshot) -> None:
        for handler in list(self._handlers):
            try:
                handler(snapshot)
            except Exception:
                logger.exception(
                    "Case handler %r failed for case %s.", handler, snapshot.case_id
                )

    def __repr__(self) -> str:
        return (
            f"ProducerBridge(command={self._command!r}, state={self._state.value}, "
            f"restart_delay={self._backoff.current})"
        )
