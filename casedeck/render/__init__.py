"""Key renderers — turn cases and text into fixed-size RGB buffers (Pillow)."""

from casedeck.render.keys import (
    render_case_key,
    render_letter_key,
    render_splash,
)

__all__ = [
    "render_case_key",
    "render_letter_key",
    "render_splash",
]
