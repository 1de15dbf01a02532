"""Casedeck data models — all Pydantic v2, all frozen (immutable)."""

from casedeck.models.board import (
    BoardSnapshot,
    SlotEntry,
    SlotView,
    TransitionKind,
    TransitionResult,
)
from casedeck.models.cases import (
    DEFAULT_PRIORITY_COLOR,
    ORIGIN_LABELS,
    PRIORITY_COLORS,
    PRIORITY_LABELS,
    STATUS_LABELS,
    UNKNOWN_LABEL,
    CaseSnapshot,
)
from casedeck.models.geometry import GeometryError, PanelGeometry

__all__ = [
    # cases
    "CaseSnapshot",
    "PRIORITY_LABELS",
    "STATUS_LABELS",
    "ORIGIN_LABELS",
    "PRIORITY_COLORS",
    "DEFAULT_PRIORITY_COLOR",
    "UNKNOWN_LABEL",
    # geometry
    "PanelGeometry",
    "GeometryError",
    # board
    "SlotEntry",
    "SlotView",
    "TransitionKind",
    "TransitionResult",
    "BoardSnapshot",
]
