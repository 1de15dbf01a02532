"""``casedeck replay FILE`` — feed a recorded NDJSON tee through a board.

Reads the file written by ``--tee`` (or any producer capture), applies
each record to a board drawn on a Rich console panel, and prints the
final grid plus a transition summary.  Malformed lines are counted and
skipped exactly as the live bridge would drop them.
"""

from __future__ import annotations

import asyncio
import collections
import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from casedeck.bridge.wire import WireFormatError, parse_case_line
from casedeck.config import config
from casedeck.core.board import CaseBoard
from casedeck.display.console import ConsoleDisplay
from casedeck.models.board import TransitionKind
from casedeck.models.geometry import PanelGeometry

logger = logging.getLogger(__name__)

console = Console()


def replay_cmd(
    path: Path = typer.Argument(
        ...,
        exists=True,
        dir_okay=False,
        help="NDJSON file with one case record per line.",
    ),
    animate: bool = typer.Option(
        False,
        "--animate",
        "-a",
        help="Play animation frame delays in real time.",
    ),
    every: bool = typer.Option(
        False,
        "--every",
        "-e",
        help="Print the panel after every record, not just at the end.",
    ),
) -> None:
    """Replay recorded case records onto a terminal panel."""
    counts = asyncio.run(
        _replay(path, config.geometry(), animate=animate, every=every)
    )

    table = Table(title="Replay Summary")
    table.add_column("Outcome", style="cyan")
    table.add_column("Count", justify="right")
    for outcome, count in counts.items():
        table.add_row(outcome, str(count))
    console.print(table)


async def _replay(
    path: Path, geometry: PanelGeometry, *, animate: bool, every: bool
) -> dict[str, int]:
    display = ConsoleDisplay(geometry, console=console)
    board = CaseBoard(
        display, frame_delay=config.frame_delay_seconds if animate else 0.0
    )
    counts: collections.Counter[str] = collections.Counter()

    with path.open("rb") as fh:
        for lineno, raw in enumerate(fh, start=1):
            line = raw.strip()
            if not line:
                continue
            try:
                snapshot = parse_case_line(line)
            except WireFormatError as exc:
                counts["malformed"] += 1
                logger.warning("Line %d dropped: %s", lineno, exc)
                continue

            result = await board.apply(snapshot)
            counts[result.kind.value] += 1
            if every:
                await board.animations.flush()
                console.print(f"[dim]{lineno}:[/dim] {result.kind.value} {result.case_id}")
                display.print(board.snapshot())

    await board.flush()
    display.print(board.snapshot())

    ordered = [kind.value for kind in TransitionKind] + ["malformed"]
    return {name: counts[name] for name in ordered if counts[name]}
