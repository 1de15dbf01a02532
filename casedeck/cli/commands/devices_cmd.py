"""``casedeck devices`` — list attached Stream Deck devices."""

from __future__ import annotations

import typer
from rich.console import Console
from rich.table import Table

from casedeck.display.base import DisplayError

console = Console()


def devices_cmd() -> None:
    """List every visual Stream Deck attached to this machine."""
    from casedeck.display.streamdeck import describe_decks

    try:
        decks = describe_decks()
    except DisplayError as exc:
        console.print(f"[bold red]Device discovery failed:[/bold red] {exc}")
        raise typer.Exit(code=1)

    if not decks:
        console.print("[dim]No Stream Deck devices found.[/dim]")
        return

    table = Table(title="Stream Deck Devices")
    table.add_column("Type", style="cyan")
    table.add_column("Id")
    table.add_column("Keys", justify="right")
    table.add_column("Layout", justify="center")
    for deck in decks:
        table.add_row(deck["type"], str(deck["id"]), str(deck["keys"]), deck["layout"])
    console.print(table)
