"""Casedeck CLI — Typer-based command-line interface.

Provides the ``casedeck`` command with subcommands for running the live
board, replaying recorded producer output, and listing attached decks.

All output uses Rich for formatted terminal display.
"""
