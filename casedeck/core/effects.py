"""Visual effects — multi-frame device write sequences.

Each effect is a coroutine that writes to a ``Display`` and waits on a
``Clock`` between frames.  Effects are never called directly by board
logic; they are wrapped into ``AnimationQueue`` tasks so their writes are
serialized.

Frame sequences
---------------
slide_in
    The key buffer rises from the bottom-most reserved row of the target
    column to the target key.  Each row step shows the image on the
    current key, then on both the current key and the one above (overlap
    frame), then clears the current key.
pulse
    Dim frames ramping back up to full brightness on one key.
fade_out
    Dim frames ramping down, then the key is cleared.
shift_ripple
    Shifted entries are redrawn at their new keys instantly, vacated keys
    cleared, then a quick pulse runs across the shifted keys left to right.
"""

from __future__ import annotations

from collections.abc import Sequence

from PIL import ImageColor

from casedeck.core.clock import Clock
from casedeck.display.base import Display

PULSE_STEPS: tuple[float, ...] = (0.35, 0.7)
FADE_STEPS: tuple[float, ...] = (0.7, 0.4, 0.15)
RIPPLE_STEPS: tuple[float, ...] = (0.5,)


def dim_buffer(buffer: bytes, factor: float) -> bytes:
    """Scale every channel of an RGB buffer by *factor* (clamped to 0..1)."""
    factor = min(max(factor, 0.0), 1.0)
    table = bytes(int(v * factor) for v in range(256))
    return buffer.translate(table)


def solid_buffer(size: int, color: str) -> bytes:
    """A ``size`` x ``size`` RGB buffer filled with one color (any PIL color string)."""
    r, g, b = ImageColor.getrgb(color)[:3]
    return bytes((r, g, b)) * (size * size)


async def slide_in(
    display: Display, clock: Clock, key: int, buffer: bytes, frame_delay: float
) -> None:
    path = display.geometry.column_path(key)
    if len(path) <= 1:
        await display.write(key, buffer)
        return

    for current, above in zip(path, path[1:]):
        await display.write(current, buffer)
        await clock.sleep(frame_delay)
        await display.write(above, buffer)
        await clock.sleep(frame_delay)
        await display.clear(current)


async def pulse(
    display: Display,
    clock: Clock,
    key: int,
    buffer: bytes,
    frame_delay: float,
    steps: Sequence[float] = PULSE_STEPS,
) -> None:
    for factor in steps:
        await display.write(key, dim_buffer(buffer, factor))
        await clock.sleep(frame_delay)
    await display.write(key, buffer)


async def fade_out(
    display: Display,
    clock: Clock,
    key: int,
    buffer: bytes | None,
    frame_delay: float,
    steps: Sequence[float] = FADE_STEPS,
) -> None:
    if buffer is not None:
        for factor in steps:
            await display.write(key, dim_buffer(buffer, factor))
            await clock.sleep(frame_delay)
    await display.clear(key)


async def redraw(
    display: Display, placements: Sequence[tuple[int, bytes]], vacated: Sequence[int] = ()
) -> None:
    """Write each ``(key, buffer)`` placement and clear the vacated keys, no delays."""
    for key, buffer in placements:
        await display.write(key, buffer)
    for key in vacated:
        await display.clear(key)


async def shift_ripple(
    display: Display,
    clock: Clock,
    placements: Sequence[tuple[int, bytes]],
    vacated: Sequence[int],
    frame_delay: float,
) -> None:
    await redraw(display, placements, vacated)
    step_delay = frame_delay / 2
    for key, buffer in placements:
        await pulse(display, clock, key, buffer, step_delay, steps=RIPPLE_STEPS)


async def flash(display: Display, key: int, color: str = "#ffffff") -> None:
    """Fill *key* with a solid color (key-press feedback)."""
    await display.write(key, solid_buffer(display.geometry.key_size, color))
