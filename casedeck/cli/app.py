"""Main Typer application — imports and registers all CLI commands.

Entry point: ``casedeck`` (configured via pyproject.toml scripts).

Commands: run, replay, devices.
"""

from __future__ import annotations

import logging

import typer
from rich.console import Console
from rich.logging import RichHandler

from casedeck.cli.commands.devices_cmd import devices_cmd
from casedeck.cli.commands.replay_cmd import replay_cmd
from casedeck.cli.commands.run_cmd import run_cmd
from casedeck.config import config

app = typer.Typer(
    name="casedeck",
    help="Casedeck: live case board for the Stream Deck XL.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)

# Register subcommands
app.command(name="run", help="Run the live board fed by the producer.")(run_cmd)
app.command(name="replay", help="Replay a recorded NDJSON file onto a terminal panel.")(replay_cmd)
app.command(name="devices", help="List attached Stream Deck devices.")(devices_cmd)


def configure_logging(level: str) -> None:
    """Route log records to stderr through Rich."""
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True)],
        force=True,
    )


@app.callback()
def main_callback(
    log_level: str = typer.Option(
        None,
        "--log-level",
        "-l",
        help="Log level (overrides CASEDECK_LOG_LEVEL).",
    ),
) -> None:
    """Casedeck: live case board for the Stream Deck XL."""
    configure_logging(log_level or config.log_level)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
