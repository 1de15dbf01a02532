"""Display backends for the casedeck panel.

Modules
-------
base
    ``Display`` protocol and buffer helpers shared by every backend.
console
    ``ConsoleDisplay`` — in-memory panel rendered with Rich.
streamdeck
    ``StreamDeckDisplay`` — python-elgato-streamdeck device adapter.
    Imported lazily by the bootstrap so that the HID backend is only
    touched when a physical deck is requested.
"""

from casedeck.display.base import Display, DisplayError
from casedeck.display.console import ConsoleDisplay

__all__ = ["Display", "DisplayError", "ConsoleDisplay"]
