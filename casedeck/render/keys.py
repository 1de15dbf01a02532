"""Pillow key renderers — pure functions from visual inputs to RGB bytes.

Every function returns raw 8-bit RGB (no alpha), row-major, ready for
``Display.write`` or ``Display.write_all``.  Nothing is cached between
calls.
"""

from __future__ import annotations

from pathlib import Path

from PIL import Image, ImageDraw, ImageFilter, ImageFont, ImageOps

from casedeck.models.cases import CaseSnapshot

LETTER_BACKGROUND = "#06061a"
LETTER_GLOW = "#00e5ff"
SECONDARY_TEXT = (255, 255, 255, 178)


def _font(size: int) -> ImageFont.FreeTypeFont | ImageFont.ImageFont:
    return ImageFont.load_default(size=max(size, 1))


def _draw_centered(
    draw: ImageDraw.ImageDraw,
    center: tuple[float, float],
    text: str,
    font: ImageFont.FreeTypeFont | ImageFont.ImageFont,
    fill: str | tuple[int, ...],
) -> None:
    draw.text(center, text, font=font, fill=fill, anchor="mm")


def _to_rgb_bytes(image: Image.Image) -> bytes:
    return image.convert("RGB").tobytes()


def _fit_text(text: str, limit: int) -> str:
    return text if len(text) <= limit else text[: limit - 1] + "."


def render_case_key(snapshot: CaseSnapshot, size: int = 96) -> bytes:
    """Render one case: priority-colored background, origin glyph, priority label."""
    image = Image.new("RGBA", (size, size), snapshot.priority_color)
    draw = ImageDraw.Draw(image)

    _draw_centered(
        draw,
        (size / 2, size * 0.42),
        snapshot.origin_glyph,
        _font(int(size * 0.3)),
        "white",
    )
    _draw_centered(
        draw,
        (size / 2, size * 0.82),
        _fit_text(snapshot.priority_display, 10),
        _font(int(size * 0.17)),
        SECONDARY_TEXT,
    )
    return _to_rgb_bytes(image)


def render_letter_key(letter: str, size: int = 96) -> bytes:
    """Render a single letter with a cyan glow on a dark background."""
    font = _font(int(size * 0.62))
    center = (size / 2, size * 0.52)

    glow = Image.new("RGB", (size, size), LETTER_BACKGROUND)
    _draw_centered(ImageDraw.Draw(glow), center, letter, font, LETTER_GLOW)
    glow = glow.filter(ImageFilter.GaussianBlur(radius=max(size // 24, 1)))

    _draw_centered(ImageDraw.Draw(glow), center, letter, font, LETTER_GLOW)
    return _to_rgb_bytes(glow)


def render_splash(image_path: Path | str, width: int = 768, height: int = 384) -> bytes:
    """Load an image and cover-fit it to a full-panel RGB buffer.

    Raises ``FileNotFoundError`` (or a Pillow error) when the image cannot
    be read; the caller decides whether that is fatal.
    """
    with Image.open(image_path) as source:
        fitted = ImageOps.fit(source.convert("RGB"), (width, height))
    return _to_rgb_bytes(fitted)
