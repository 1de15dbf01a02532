"""Board models — slot entries, transition results and read-only snapshots."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from casedeck.models.cases import CaseSnapshot


class SlotEntry(BaseModel):
    """An occupied slot: the case snapshot plus its last-rendered key buffer.

    The buffer is kept so a later removal can fade out exactly what is
    currently on the key.
    """

    model_config = ConfigDict(frozen=True)

    case: CaseSnapshot
    buffer: bytes

    @property
    def case_id(self) -> str:
        return self.case.case_id


class TransitionKind(str, Enum):
    """Outcome of applying one case snapshot to the board."""

    INSERTED = "inserted"
    UPDATED = "updated"
    REMOVED = "removed"
    IGNORED = "ignored"    # inactive case that is not on the board
    REJECTED = "rejected"  # render failed; board left unchanged


class TransitionResult(BaseModel):
    """Records what a single board transition did."""

    model_config = ConfigDict(frozen=True)

    kind: TransitionKind
    case_id: str
    slot: int | None = None
    evicted_id: str | None = None
    shifted: list[int] = []  # new slot indices of entries that moved

    @property
    def changed(self) -> bool:
        return self.kind not in (TransitionKind.IGNORED, TransitionKind.REJECTED)


class SlotView(BaseModel):
    """Point-in-time description of one occupied slot."""

    model_config = ConfigDict(frozen=True)

    slot: int
    key: int
    case_id: str
    ticket: str
    title: str
    priority: str
    status: str
    color: str


class BoardSnapshot(BaseModel):
    """A frozen, point-in-time view of the board.

    Computed fresh on every ``CaseBoard.snapshot()`` call and never stored.
    """

    model_config = ConfigDict(frozen=True)

    capacity: int
    slots: list[SlotView] = []
    taken_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def occupied(self) -> int:
        return len(self.slots)

    @property
    def case_ids(self) -> list[str]:
        """Case identities in slot order."""
        return [view.case_id for view in self.slots]

    @property
    def is_full(self) -> bool:
        return self.occupied >= self.capacity
