"""Panel geometry — fixed row/column layout and the reserved slot range.

Keys are addressed row-major: key ``k`` sits at row ``k // columns`` and
column ``k % columns``.  Board slots ``0..slot_count-1`` map onto the
contiguous key range starting at ``slot_start``.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, model_validator


class GeometryError(ValueError):
    """Raised for an invalid geometry or an out-of-range key or slot."""


class PanelGeometry(BaseModel):
    """Immutable layout of a button panel.

    Defaults describe a Stream Deck XL: 8 columns by 4 rows of 96 px keys,
    with all 32 keys reserved for the board.
    """

    model_config = ConfigDict(frozen=True)

    columns: int = 8
    rows: int = 4
    key_size: int = 96
    slot_start: int = 0
    slot_count: int = 32

    @model_validator(mode="after")
    def _check_range(self) -> PanelGeometry:
        if self.columns < 1 or self.rows < 1 or self.key_size < 1:
            raise GeometryError("columns, rows and key_size must be positive")
        if self.slot_count < 1:
            raise GeometryError("slot_count must be positive")
        if self.slot_start < 0 or self.slot_start + self.slot_count > self.key_count:
            raise GeometryError(
                f"Slot range {self.slot_start}..{self.slot_start + self.slot_count - 1} "
                f"does not fit a {self.key_count}-key panel"
            )
        return self

    # ------------------------------------------------------------------
    # Sizes
    # ------------------------------------------------------------------

    @property
    def key_count(self) -> int:
        return self.columns * self.rows

    @property
    def key_buffer_size(self) -> int:
        """Byte length of one RGB key buffer."""
        return self.key_size * self.key_size * 3

    @property
    def panel_size(self) -> tuple[int, int]:
        """Full-panel image size in pixels as ``(width, height)``."""
        return self.columns * self.key_size, self.rows * self.key_size

    # ------------------------------------------------------------------
    # Addressing
    # ------------------------------------------------------------------

    def key_for_slot(self, slot: int) -> int:
        if not 0 <= slot < self.slot_count:
            raise GeometryError(f"Slot {slot} outside 0..{self.slot_count - 1}")
        return self.slot_start + slot

    def slot_for_key(self, key: int) -> int | None:
        """Return the board slot shown on *key*, or ``None`` outside the range."""
        if self.slot_start <= key < self.slot_start + self.slot_count:
            return key - self.slot_start
        return None

    def row_of(self, key: int) -> int:
        self._check_key(key)
        return key // self.columns

    def column_of(self, key: int) -> int:
        self._check_key(key)
        return key % self.columns

    def key_at(self, row: int, column: int) -> int:
        if not (0 <= row < self.rows and 0 <= column < self.columns):
            raise GeometryError(f"Cell ({row}, {column}) outside the panel")
        return row * self.columns + column

    def is_reserved(self, key: int) -> bool:
        return self.slot_for_key(key) is not None

    def column_path(self, key: int) -> list[int]:
        """Keys from the lowest reserved key in *key*'s column up to *key*.

        Used by the slide-in effect: the first element is the starting
        key on the bottom-most reserved row, the last is *key* itself.
        """
        row = self.row_of(key)
        column = self.column_of(key)
        path: list[int] = []
        for r in range(self.rows - 1, row - 1, -1):
            candidate = r * self.columns + column
            if self.is_reserved(candidate):
                path.append(candidate)
        return path

    def _check_key(self, key: int) -> None:
        if not 0 <= key < self.key_count:
            raise GeometryError(f"Key {key} outside 0..{self.key_count - 1}")
