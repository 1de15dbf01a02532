"""Tests for the startup sequence — splash fade, title typing, final clear."""

from __future__ import annotations

import asyncio

import pytest
from PIL import Image

from casedeck.startup import (
    SPLASH_FADE_STEPS,
    SPLASH_HOLD_SECONDS,
    TITLE_HOLD_SECONDS,
    play_startup_sequence,
    title_layout,
)


class TestTitleLayout:
    def test_centered_in_slot_range(self):
        assert title_layout("AB", 0, 8) == [(3, "A"), (4, "B")]

    def test_offset_slot_range(self):
        assert title_layout("HI", 8, 24) == [(19, "H"), (20, "I")]

    def test_truncated_to_slot_count(self):
        layout = title_layout("ABCDEFGH", 0, 4)
        assert [ch for _, ch in layout] == list("ABCD")
        assert [key for key, _ in layout] == [0, 1, 2, 3]

    def test_default_title_fits_stream_deck_xl(self):
        layout = title_layout("DATAVERSE COMMAND CENTER", 0, 32)
        assert layout[0] == (4, "D")
        assert layout[-1] == (27, "R")


class TestStartupSequence:
    @pytest.fixture
    def display(self, make_display, small_geometry):
        return make_display(small_geometry.model_copy(update={"key_size": 8}))

    def test_missing_splash_is_skipped(self, display, fake_clock, tmp_path):
        asyncio.run(
            play_startup_sequence(
                display, fake_clock, splash_path=tmp_path / "missing.png", title="HI"
            )
        )
        # "HI" is centered on slots 0..3: keys 1 and 2, each dim then full
        assert display.trace() == [
            ("clear_all",),
            ("write", 1),
            ("write", 1),
            ("write", 2),
            ("write", 2),
            ("clear_all",),
        ]
        assert fake_clock.sleeps[-1] == TITLE_HOLD_SECONDS
        assert display.cells == {}

    def test_letters_go_from_dim_to_full(self, display, fake_clock):
        asyncio.run(play_startup_sequence(display, fake_clock, title="A"))
        dim, full = (op[2] for op in display.ops if op[0] == "write")
        assert sum(dim) < sum(full)

    def test_spaces_are_not_drawn(self, display, fake_clock):
        asyncio.run(play_startup_sequence(display, fake_clock, title="A B"))
        written = sorted({op[1] for op in display.ops if op[0] == "write"})
        assert written == [0, 2]

    def test_splash_fades_in_before_title(self, display, fake_clock, tmp_path):
        path = tmp_path / "splash.png"
        Image.new("RGB", (64, 32), "#123456").save(path)

        asyncio.run(play_startup_sequence(display, fake_clock, splash_path=path, title="X"))

        width, height = display.geometry.panel_size
        splash_ops = display.ops[: len(SPLASH_FADE_STEPS)]
        assert splash_ops == [("write_all", width * height * 3)] * len(SPLASH_FADE_STEPS)
        assert display.ops[len(SPLASH_FADE_STEPS)] == ("clear_all",)
        assert SPLASH_HOLD_SECONDS in fake_clock.sleeps
