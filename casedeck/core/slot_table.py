"""SlotTable — fixed-capacity ordered slots plus an identity index.

Pure state, no I/O.  Every mutating method is one complete transition
that leaves the table consistent:

- the identity index mirrors the occupied slots exactly;
- occupied slots form a prefix ``0..len-1`` in insertion order;
- an entry only moves when something to its left is removed or evicted.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from casedeck.models.board import SlotEntry


class SlotTableError(RuntimeError):
    """Raised on an illegal slot operation or a broken invariant."""


@dataclass(frozen=True)
class Removal:
    """Result of removing one entry and closing the gap behind it."""

    slot: int
    entry: SlotEntry
    shifted: list[int] = field(default_factory=list)  # new slots of moved entries
    vacated: int = -1  # trailing slot left empty by the shift


class SlotTable:
    """Ordered slot storage with FIFO eviction and gap-closing removal.

    Parameters
    ----------
    capacity:
        Number of slots.  Fixed for the life of the table.
    """

    def __init__(self, capacity: int) -> None:
        if capacity < 1:
            raise SlotTableError("capacity must be positive")
        self._capacity = capacity
        self._slots: list[SlotEntry | None] = [None] * capacity
        self._index: dict[str, int] = {}

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    @property
    def capacity(self) -> int:
        return self._capacity

    def __len__(self) -> int:
        return len(self._index)

    def __contains__(self, case_id: object) -> bool:
        return case_id in self._index

    @property
    def is_full(self) -> bool:
        return len(self._index) >= self._capacity

    def slot_of(self, case_id: str) -> int | None:
        return self._index.get(case_id)

    def get(self, slot: int) -> SlotEntry | None:
        self._check_slot(slot)
        return self._slots[slot]

    def entries(self) -> list[tuple[int, SlotEntry]]:
        """Occupied slots as ``(slot, entry)`` pairs in slot order."""
        return [(i, e) for i, e in enumerate(self._slots) if e is not None]

    def first_empty(self) -> int | None:
        for i, entry in enumerate(self._slots):
            if entry is None:
                return i
        return None

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def evict_front(self) -> Removal | None:
        """Drop the entry at slot 0 and shift every later entry one slot left.

        Eviction is purely positional: recency of update and priority are
        never consulted.  Returns ``None`` when slot 0 was empty.
        """
        head = self._slots[0]
        if head is None:
            return None
        return self.remove(head.case_id)

    def place(self, slot: int, entry: SlotEntry) -> None:
        """Put a new identity into an empty slot."""
        self._check_slot(slot)
        if self._slots[slot] is not None:
            raise SlotTableError(f"Slot {slot} is occupied")
        if entry.case_id in self._index:
            raise SlotTableError(
                f"Case {entry.case_id} already occupies slot {self._index[entry.case_id]}"
            )
        self._slots[slot] = entry
        self._index[entry.case_id] = slot

    def replace(self, entry: SlotEntry) -> int:
        """Swap in new content for an identity already present; returns its slot."""
        slot = self._index.get(entry.case_id)
        if slot is None:
            raise SlotTableError(f"Case {entry.case_id} is not on the board")
        self._slots[slot] = entry
        return slot

    def remove(self, case_id: str) -> Removal:
        """Remove *case_id* and shift the entries to its right one slot left."""
        slot = self._index.pop(case_id, None)
        if slot is None:
            raise SlotTableError(f"Case {case_id} is not on the board")
        entry = self._slots[slot]
        if entry is None:
            raise SlotTableError(f"Index points {case_id} at empty slot {slot}")

        last = slot
        shifted: list[int] = []
        for i in range(slot + 1, self._capacity):
            moving = self._slots[i]
            if moving is None:
                break
            self._slots[i - 1] = moving
            self._index[moving.case_id] = i - 1
            shifted.append(i - 1)
            last = i
        self._slots[last] = None
        return Removal(slot=slot, entry=entry, shifted=shifted, vacated=last)

    # ------------------------------------------------------------------
    # Invariants
    # ------------------------------------------------------------------

    def check_invariants(self) -> None:
        """Raise ``SlotTableError`` if the index and slots disagree."""
        occupied = {e.case_id: i for i, e in enumerate(self._slots) if e is not None}
        if occupied != self._index:
            raise SlotTableError(f"Index {self._index} does not mirror slots {occupied}")
        if len(occupied) > self._capacity:
            raise SlotTableError("More entries than capacity")
        count = len(occupied)
        if any(e is None for e in self._slots[:count]):
            raise SlotTableError("Occupied slots are not contiguous from slot 0")

    def _check_slot(self, slot: int) -> None:
        if not 0 <= slot < self._capacity:
            raise SlotTableError(f"Slot {slot} outside 0..{self._capacity - 1}")

    def __repr__(self) -> str:
        return f"SlotTable(capacity={self._capacity}, occupied={len(self._index)})"
