"""Startup sequence played on the panel before live cases arrive.

1. The splash image fades in over ~600 ms, then holds for ~1.2 s.
2. The panel is cleared.
3. The title is typed out one letter per key, centered in the reserved
   slot range, each letter flicking from dim to full.
4. The title holds for ~2 s and the panel is cleared, ready for cases.

A missing or unreadable splash image is logged and skipped.  The whole
sequence is one coroutine so it can run as a single ``AnimationQueue``
task.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from casedeck.core.clock import Clock
from casedeck.core.effects import dim_buffer
from casedeck.display.base import Display
from casedeck.render.keys import render_letter_key, render_splash

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "DATAVERSE COMMAND CENTER"

SPLASH_FADE_STEPS: tuple[float, ...] = (0.05, 0.1, 0.2, 0.35, 0.5, 0.7, 0.85, 1.0)
SPLASH_FADE_SECONDS = 0.6
SPLASH_HOLD_SECONDS = 1.2
CLEAR_PAUSE_SECONDS = 0.2
LETTER_DELAY_SECONDS = 0.07
LETTER_FADE_IN_SECONDS = 0.03
LETTER_DIM_FACTOR = 0.25
TITLE_HOLD_SECONDS = 2.0


def title_layout(title: str, slot_start: int, slot_count: int) -> list[tuple[int, str]]:
    """Map each title character to a key, centered in the slot range.

    Titles longer than the range are truncated.  Spaces keep their key
    but are never drawn.
    """
    text = title[:slot_count]
    offset = slot_start + (slot_count - len(text)) // 2
    return [(offset + i, ch) for i, ch in enumerate(text)]


async def play_startup_sequence(
    display: Display,
    clock: Clock,
    *,
    splash_path: Path | None = None,
    title: str = DEFAULT_TITLE,
) -> None:
    geometry = display.geometry

    if splash_path is not None:
        await _fade_in_splash(display, clock, splash_path)

    await display.clear_all()
    await clock.sleep(CLEAR_PAUSE_SECONDS)

    layout = title_layout(title, geometry.slot_start, geometry.slot_count)
    letters = {
        ch: await asyncio.to_thread(render_letter_key, ch, geometry.key_size)
        for ch in {ch for _, ch in layout if not ch.isspace()}
    }

    for key, ch in layout:
        buffer = letters.get(ch)
        if buffer is None:
            await clock.sleep(LETTER_DELAY_SECONDS)
            continue
        await display.write(key, dim_buffer(buffer, LETTER_DIM_FACTOR))
        await clock.sleep(LETTER_FADE_IN_SECONDS)
        await display.write(key, buffer)
        await clock.sleep(LETTER_DELAY_SECONDS)

    await clock.sleep(TITLE_HOLD_SECONDS)
    await display.clear_all()
    logger.info("Startup sequence complete.")


async def _fade_in_splash(display: Display, clock: Clock, splash_path: Path) -> None:
    width, height = display.geometry.panel_size
    try:
        splash = await asyncio.to_thread(render_splash, splash_path, width, height)
    except (OSError, ValueError) as exc:
        logger.warning("No usable splash image at %s (%s); skipping.", splash_path, exc)
        return

    frame_delay = SPLASH_FADE_SECONDS / len(SPLASH_FADE_STEPS)
    for factor in SPLASH_FADE_STEPS:
        if factor < 1.0:
            await display.write_all(dim_buffer(splash, factor))
            await clock.sleep(frame_delay)
        else:
            await display.write_all(splash)
    logger.info("Splash screen displayed (%dx%d).", width, height)
    await clock.sleep(SPLASH_HOLD_SECONDS)
