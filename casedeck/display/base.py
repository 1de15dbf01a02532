"""Display protocol — cell-addressable write/clear primitives.

All display implementations expose the same four coroutines.  Writes to
one device are not re-entrant, so callers must serialize them; in
casedeck every write happens inside an ``AnimationQueue`` task.

Buffers are raw 8-bit RGB, row-major.  A key buffer is
``key_size * key_size * 3`` bytes; a panel buffer covers the whole grid
(``columns * key_size`` by ``rows * key_size`` pixels).
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from casedeck.models.geometry import PanelGeometry


class DisplayError(RuntimeError):
    """Raised when a display device cannot be found, opened or written."""


@runtime_checkable
class Display(Protocol):
    """Protocol that every casedeck display must implement.

    Attributes
    ----------
    geometry : PanelGeometry
        Fixed layout supplied at construction.
    """

    @property
    def geometry(self) -> PanelGeometry:
        """Return the panel layout."""
        ...

    async def write(self, key: int, buffer: bytes) -> None:
        """Show an RGB key buffer on *key*."""
        ...

    async def clear(self, key: int) -> None:
        """Blank *key*."""
        ...

    async def write_all(self, panel_buffer: bytes) -> None:
        """Show a full-panel RGB buffer across every key."""
        ...

    async def clear_all(self) -> None:
        """Blank every key."""
        ...


def check_key(geometry: PanelGeometry, key: int) -> None:
    if not 0 <= key < geometry.key_count:
        raise DisplayError(f"Key {key} outside 0..{geometry.key_count - 1}")


def check_key_buffer(geometry: PanelGeometry, key: int, buffer: bytes) -> None:
    """Validate a key index and buffer length against *geometry*."""
    check_key(geometry, key)
    if len(buffer) != geometry.key_buffer_size:
        raise DisplayError(
            f"Key buffer is {len(buffer)} bytes, expected {geometry.key_buffer_size}"
        )


def split_panel_buffer(geometry: PanelGeometry, panel_buffer: bytes) -> list[bytes]:
    """Cut a full-panel RGB buffer into one key buffer per key, row-major."""
    width, height = geometry.panel_size
    if len(panel_buffer) != width * height * 3:
        raise DisplayError(
            f"Panel buffer is {len(panel_buffer)} bytes, expected {width * height * 3}"
        )

    size = geometry.key_size
    stride = width * 3
    tiles: list[bytes] = []
    for row in range(geometry.rows):
        for column in range(geometry.columns):
            x0 = column * size * 3
            lines = (
                panel_buffer[y * stride + x0 : y * stride + x0 + size * 3]
                for y in range(row * size, (row + 1) * size)
            )
            tiles.append(b"".join(lines))
    return tiles
