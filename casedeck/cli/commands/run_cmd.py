"""``casedeck run`` — drive the panel from the live producer.

Opens the Stream Deck (or a Rich console panel with ``--console``),
plays the startup sequence, launches the producer and keeps the board
live until SIGINT/SIGTERM, then shuts down in order: producer, pending
transitions, animations, device.
"""

from __future__ import annotations

import asyncio
import contextlib
import shlex
import signal
from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.live import Live

from casedeck.config import DeckSettings, config
from casedeck.display.base import Display, DisplayError
from casedeck.display.console import ConsoleDisplay
from casedeck.runtime import DeckRuntime, build_runtime

console = Console()

CONSOLE_REFRESH_SECONDS = 0.25


def run_cmd(
    console_mode: bool = typer.Option(
        False,
        "--console",
        "-c",
        help="Render the panel in the terminal instead of on a Stream Deck.",
    ),
    producer: str = typer.Option(
        None,
        "--producer",
        "-p",
        help="Producer command line (overrides CASEDECK_PRODUCER_COMMAND).",
    ),
    tee: Path = typer.Option(
        None,
        "--tee",
        help="Append every parsed producer line to this NDJSON file.",
    ),
    no_startup: bool = typer.Option(
        False,
        "--no-startup",
        help="Skip the splash and title sequence.",
    ),
) -> None:
    """Run the live case board until interrupted."""
    updates: dict[str, Any] = {}
    if producer:
        updates["producer_command"] = shlex.split(producer)
    if tee is not None:
        updates["tee_path"] = tee
    if no_startup:
        updates["play_startup"] = False
    settings = config.model_copy(update=updates)

    try:
        asyncio.run(_run(settings, console_mode=console_mode))
    except DisplayError as exc:
        console.print(f"[bold red]Display error:[/bold red] {exc}")
        raise typer.Exit(code=1)


async def _run(settings: DeckSettings, *, console_mode: bool) -> None:
    geometry = settings.geometry()
    display: Display
    if console_mode:
        display = ConsoleDisplay(geometry, console=console)
    else:
        from casedeck.display.streamdeck import open_stream_deck

        display = await asyncio.to_thread(
            open_stream_deck, geometry, brightness=settings.brightness
        )

    runtime = build_runtime(display, settings)
    loop = asyncio.get_running_loop()

    on_key = getattr(display, "on_key", None)
    if on_key is not None:
        on_key(runtime.on_key, loop)

    stop = asyncio.Event()
    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, stop.set)

    if isinstance(display, ConsoleDisplay):
        await _run_with_live_panel(runtime, display, stop)
    else:
        await runtime.run_until(stop)


async def _run_with_live_panel(
    runtime: DeckRuntime, display: ConsoleDisplay, stop: asyncio.Event
) -> None:
    with Live(display.render(), console=console, refresh_per_second=4) as live:

        async def _refresh() -> None:
            while True:
                live.update(display.render(runtime.board.snapshot()))
                await asyncio.sleep(CONSOLE_REFRESH_SECONDS)

        refresher = asyncio.get_running_loop().create_task(_refresh())
        try:
            await runtime.run_until(stop)
        finally:
            refresher.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await refresher
            live.update(display.render(runtime.board.snapshot()))
