"""DeckRuntime — wires the producer bridge, the board and a display.

Lifecycle
---------
``start()``
    optional startup sequence → optional initial bulk load → subscribe
    the board to the bridge → launch the producer.
``shutdown()``
    stop the producer (bounded by the stop grace period) → wait for
    every submitted transition → flush animations → close the display.

The runtime owns no state of its own beyond the collaborators handed to
it, so several independent runtimes can coexist (one per test).
"""

from __future__ import annotations

import asyncio
import functools
import logging
import webbrowser
from collections.abc import Callable, Iterable
from typing import Any

from casedeck.bridge.backoff import RestartBackoff
from casedeck.bridge.producer import ProcessLauncher, ProducerBridge
from casedeck.config import DeckSettings
from casedeck.core.board import CaseBoard, CaseRenderer
from casedeck.core.clock import AsyncioClock, Clock
from casedeck.display.base import Display
from casedeck.models.cases import CaseSnapshot
from casedeck.startup import play_startup_sequence

logger = logging.getLogger(__name__)


class DeckRuntime:
    """Runs one board on one display fed by one producer.

    Parameters
    ----------
    display:
        Opened display.  If it has an async ``close()`` it is called at
        shutdown.
    bridge:
        Producer bridge feeding case events.
    board:
        Board drawing onto *display*.
    settings:
        Presentation settings (startup, record URLs).
    clock:
        Time source for the startup sequence.
    open_url:
        Called with a record URL when a case key is pressed.
    """

    def __init__(
        self,
        display: Display,
        bridge: ProducerBridge,
        board: CaseBoard,
        *,
        settings: DeckSettings | None = None,
        clock: Clock | None = None,
        open_url: Callable[[str], Any] = webbrowser.open,
    ) -> None:
        self.display = display
        self.bridge = bridge
        self.board = board
        self._settings = settings or DeckSettings()
        self._clock = clock or AsyncioClock()
        self._open_url = open_url
        self._unsubscribe: Callable[[], None] | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(
        self, *, play_startup: bool | None = None, initial: Iterable[CaseSnapshot] = ()
    ) -> None:
        if play_startup is None:
            play_startup = self._settings.play_startup
        if play_startup:
            self.board.animations.enqueue(
                functools.partial(
                    play_startup_sequence,
                    self.display,
                    self._clock,
                    splash_path=self._settings.splash_path,
                    title=self._settings.startup_title,
                )
            )

        initial = list(initial)
        if initial:
            await self.board.load(initial)

        self._unsubscribe = self.bridge.subscribe(self.on_case)
        try:
            await self.bridge.start()
        except BaseException:
            self._unsubscribe()
            self._unsubscribe = None
            raise
        logger.info("Keys initialized. Waiting for cases...")

    async def shutdown(self) -> None:
        logger.info("Shutting down...")
        await self.bridge.stop()
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        await self.board.flush()

        close = getattr(self.display, "close", None)
        if close is not None:
            await close()

    async def run_until(self, stop: asyncio.Event, **start_kwargs: Any) -> None:
        """Start, wait for *stop* to be set, then shut down."""
        await self.start(**start_kwargs)
        try:
            await stop.wait()
        finally:
            await self.shutdown()

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------

    def on_case(self, snapshot: CaseSnapshot) -> None:
        logger.info(
            "[case] %s: %s - %s",
            snapshot.message_name,
            snapshot.ticket_display,
            snapshot.title_display,
        )
        self.board.submit(snapshot)

    def on_key(self, key: int, pressed: bool) -> None:
        if not pressed:
            self.board.key_up(key)
            return

        case = self.board.key_down(key)
        if case is None:
            return
        logger.info(
            "[keydown] %s: %s (priority=%s, status=%s)",
            case.ticket_display,
            case.title_display,
            case.priority_display,
            case.status_display,
        )
        url = self._settings.record_url(case.case_id)
        if url:
            future = asyncio.get_running_loop().run_in_executor(None, self._open_url, url)
            future.add_done_callback(functools.partial(_log_open_failure, url))


def _log_open_failure(url: str, future: asyncio.Future[Any]) -> None:
    if future.cancelled():
        return
    exc = future.exception()
    if exc is not None:
        logger.error("[open] Failed to open %s: %s", url, exc)


def build_runtime(
    display: Display,
    settings: DeckSettings,
    *,
    clock: Clock | None = None,
    launcher: ProcessLauncher | None = None,
    renderer: CaseRenderer | None = None,
    open_url: Callable[[str], Any] = webbrowser.open,
) -> DeckRuntime:
    """Assemble bridge, board and runtime from *settings*."""
    clock = clock or AsyncioClock()
    bridge = ProducerBridge(
        settings.producer_command,
        backoff=RestartBackoff(settings.restart_base_seconds, settings.restart_max_seconds),
        clock=clock,
        launcher=launcher,
        tee_path=settings.tee_path,
        stop_grace=settings.stop_grace_seconds,
    )
    board = CaseBoard(
        display,
        renderer,
        clock=clock,
        frame_delay=settings.frame_delay_seconds,
    )
    return DeckRuntime(
        display, bridge, board, settings=settings, clock=clock, open_url=open_url
    )
