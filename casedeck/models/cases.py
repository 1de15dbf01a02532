"""Case snapshot model — one immutable, point-in-time view of a case record.

The producer writes one JSON object per line using camelCase field names.
``CaseSnapshot`` accepts those names through aliases and exposes
snake_case attributes.  Every field except ``case_id`` and
``message_name`` is optional: ``None`` means the producer did not supply
it, and display helpers render it as an explicit placeholder rather than
a zero value.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

UNKNOWN_LABEL = "Unknown"

# Label tables carried over from the case-management connector.
PRIORITY_LABELS: dict[int, str] = {
    1: "High",
    2: "Normal",
    3: "Low",
}

STATUS_LABELS: dict[int, str] = {
    1: "In Progress",
    2: "On Hold",
    3: "Waiting for Details",
    4: "Researching",
    5: "Problem Solved",
    6: "Cancelled",
    1000: "Information Provided",
    2000: "Merged",
}

ORIGIN_LABELS: dict[int, str] = {
    1: "Phone",
    2: "Email",
    3: "Web",
}

# Priority code -> key background color.
PRIORITY_COLORS: dict[int, str] = {
    1: "#d32f2f",  # High: red
    2: "#1976d2",  # Normal: blue
    3: "#388e3c",  # Low: green
}

DEFAULT_PRIORITY_COLOR = "#616161"

# Case origin code -> short glyph drawn on the key.
ORIGIN_GLYPHS: dict[int, str] = {
    1: "TEL",
    2: "@",
    3: "WWW",
}

DEFAULT_ORIGIN_GLYPH = "?"

# .NET writes up to seven fractional-second digits; Python keeps six.
_EXCESS_FRACTION = re.compile(r"(\.\d{6})\d+")


def _normalize_timestamp(value: Any) -> Any:
    if isinstance(value, str):
        return _EXCESS_FRACTION.sub(r"\1", value)
    return value


class CaseSnapshot(BaseModel):
    """A frozen view of one case as delivered by the upstream producer.

    Constructed either from wire payloads (camelCase aliases) or directly
    with snake_case field names.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    case_id: str = Field(alias="incidentId", min_length=1)
    message_name: str = Field(alias="messageName")

    title: str | None = None
    ticket_number: str | None = Field(default=None, alias="ticketNumber")
    description: str | None = None

    priority_code: int | None = Field(default=None, alias="priorityCode")
    priority_label: str | None = Field(default=None, alias="priorityLabel")
    status_code: int | None = Field(default=None, alias="statusCode")
    status_label: str | None = Field(default=None, alias="statusLabel")
    state_code: int | None = Field(default=None, alias="stateCode")
    state_label: str | None = Field(default=None, alias="stateLabel")
    origin_code: int | None = Field(default=None, alias="caseOriginCode")
    origin_label: str | None = Field(default=None, alias="caseOriginLabel")
    case_type_code: int | None = Field(default=None, alias="caseTypeCode")

    created_on: datetime | None = Field(default=None, alias="createdOn")
    modified_on: datetime | None = Field(default=None, alias="modifiedOn")
    received_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc), alias="timestamp"
    )

    @field_validator("created_on", "modified_on", "received_at", mode="before")
    @classmethod
    def _trim_fraction(cls, value: Any) -> Any:
        return _normalize_timestamp(value)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def is_active(self) -> bool:
        """``True`` unless the lifecycle state code is present and non-zero."""
        return self.state_code is None or self.state_code == 0

    # ------------------------------------------------------------------
    # Presentation helpers
    # ------------------------------------------------------------------

    @property
    def priority_display(self) -> str:
        return _label(self.priority_label, self.priority_code, PRIORITY_LABELS)

    @property
    def status_display(self) -> str:
        return _label(self.status_label, self.status_code, STATUS_LABELS)

    @property
    def origin_display(self) -> str:
        return _label(self.origin_label, self.origin_code, ORIGIN_LABELS)

    @property
    def title_display(self) -> str:
        return self.title if self.title is not None else UNKNOWN_LABEL

    @property
    def ticket_display(self) -> str:
        return self.ticket_number if self.ticket_number is not None else "---"

    @property
    def priority_color(self) -> str:
        """Background color for the priority code.

        Code 0 is kept distinct from an absent code; it has no palette
        entry, so both currently land on the default color.
        """
        if self.priority_code is None:
            return DEFAULT_PRIORITY_COLOR
        return PRIORITY_COLORS.get(self.priority_code, DEFAULT_PRIORITY_COLOR)

    @property
    def origin_glyph(self) -> str:
        if self.origin_code is None:
            return DEFAULT_ORIGIN_GLYPH
        return ORIGIN_GLYPHS.get(self.origin_code, DEFAULT_ORIGIN_GLYPH)

    def to_wire(self) -> dict[str, Any]:
        """Return the camelCase JSON-ready payload for this snapshot."""
        return self.model_dump(mode="json", by_alias=True)


def _label(label: str | None, code: int | None, table: dict[int, str]) -> str:
    if label:
        return label
    if code is not None and code in table:
        return table[code]
    return UNKNOWN_LABEL
