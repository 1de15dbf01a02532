"""Stream Deck display — python-elgato-streamdeck behind the Display protocol.

The library's calls are blocking HID writes, so each one runs in a
worker thread under the deck's own update lock.  Key events arrive on
the library's reader thread and are handed to the asyncio loop with
``call_soon_threadsafe``.

Device discovery and opening belong to the bootstrap: a missing device
is a ``DisplayError`` that the CLI turns into a non-zero exit.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any

from PIL import Image

from casedeck.display.base import DisplayError, check_key, check_key_buffer, split_panel_buffer
from casedeck.models.geometry import PanelGeometry

logger = logging.getLogger(__name__)

XL_DECK_TYPE = "Stream Deck XL"

KeyHandler = Callable[[int, bool], None]


def enumerate_decks() -> list[Any]:
    """Return every visual Stream Deck attached to this machine."""
    from StreamDeck.DeviceManager import DeviceManager

    try:
        decks = DeviceManager().enumerate()
    except Exception as exc:
        raise DisplayError(f"Stream Deck enumeration failed: {exc}") from exc
    return [deck for deck in decks if deck.is_visual()]


def describe_decks() -> list[dict[str, Any]]:
    """Summaries of attached decks for listing (type, id, layout)."""
    summaries: list[dict[str, Any]] = []
    for deck in enumerate_decks():
        rows, columns = deck.key_layout()
        summaries.append(
            {
                "type": deck.deck_type(),
                "id": deck.id(),
                "keys": deck.key_count(),
                "layout": f"{columns}x{rows}",
            }
        )
    return summaries


class StreamDeckDisplay:
    """A physical Stream Deck addressed through the Display protocol.

    Parameters
    ----------
    deck:
        An opened ``StreamDeck.Devices.StreamDeck`` instance.
    geometry:
        Panel layout.  Defaults to the deck's own key layout with the
        whole panel reserved for the board.
    """

    def __init__(self, deck: Any, geometry: PanelGeometry | None = None) -> None:
        self._deck = deck
        if geometry is None:
            rows, columns = deck.key_layout()
            geometry = PanelGeometry(columns=columns, rows=rows, slot_count=rows * columns)
        if geometry.key_count != deck.key_count():
            raise DisplayError(
                f"Geometry has {geometry.key_count} keys but the deck has {deck.key_count()}"
            )
        self._geometry = geometry

    @property
    def geometry(self) -> PanelGeometry:
        return self._geometry

    @property
    def deck_type(self) -> str:
        return self._deck.deck_type()

    # ------------------------------------------------------------------
    # Display protocol
    # ------------------------------------------------------------------

    async def write(self, key: int, buffer: bytes) -> None:
        check_key_buffer(self._geometry, key, buffer)
        await asyncio.to_thread(self._set_key, key, self._to_native(buffer))

    async def clear(self, key: int) -> None:
        check_key(self._geometry, key)
        await asyncio.to_thread(self._set_key, key, None)

    async def write_all(self, panel_buffer: bytes) -> None:
        tiles = split_panel_buffer(self._geometry, panel_buffer)
        native = [self._to_native(tile) for tile in tiles]
        await asyncio.to_thread(self._set_keys, list(enumerate(native)))

    async def clear_all(self) -> None:
        await asyncio.to_thread(
            self._set_keys, [(key, None) for key in range(self._geometry.key_count)]
        )

    # ------------------------------------------------------------------
    # Device control
    # ------------------------------------------------------------------

    def on_key(self, handler: KeyHandler, loop: asyncio.AbstractEventLoop) -> None:
        """Deliver ``(key, pressed)`` events to *handler* on *loop*."""

        def _callback(_deck: Any, key: int, pressed: bool) -> None:
            loop.call_soon_threadsafe(handler, key, pressed)

        self._deck.set_key_callback(_callback)

    async def close(self) -> None:
        """Reset the deck to its logo and release it."""

        def _close() -> None:
            with self._deck:
                self._deck.reset()
                self._deck.close()

        await asyncio.to_thread(_close)
        logger.info("Closed %s.", self._deck.deck_type())

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _to_native(self, buffer: bytes) -> bytes:
        from StreamDeck.ImageHelpers import PILHelper

        size = self._geometry.key_size
        image = Image.frombytes("RGB", (size, size), buffer)
        return PILHelper.to_native_key_format(self._deck, image)

    def _set_key(self, key: int, native: bytes | None) -> None:
        with self._deck:
            self._deck.set_key_image(key, native)

    def _set_keys(self, images: list[tuple[int, bytes | None]]) -> None:
        with self._deck:
            for key, native in images:
                self._deck.set_key_image(key, native)

    def __repr__(self) -> str:
        return f"StreamDeckDisplay(type={self._deck.deck_type()!r}, keys={self._geometry.key_count})"


def open_stream_deck(
    geometry: PanelGeometry | None = None,
    *,
    deck_type: str = XL_DECK_TYPE,
    brightness: int | None = None,
) -> StreamDeckDisplay:
    """Find, open and reset the first deck of *deck_type*.

    Raises
    ------
    DisplayError
        If no deck (or no deck of the requested type) is attached.
    """
    decks = enumerate_decks()
    if not decks:
        raise DisplayError("No Stream Deck devices found. Is one plugged in?")
    for deck in decks:
        logger.info("Found %s (id=%s).", deck.deck_type(), deck.id())

    chosen = next((d for d in decks if d.deck_type() == deck_type), None)
    if chosen is None:
        raise DisplayError(f"No {deck_type} found.")

    chosen.open()
    chosen.reset()
    if brightness is not None:
        chosen.set_brightness(brightness)
    logger.info(
        "Opened %s (serial %s, firmware %s).",
        chosen.deck_type(),
        chosen.get_serial_number(),
        chosen.get_firmware_version(),
    )
    return StreamDeckDisplay(chosen, geometry)
