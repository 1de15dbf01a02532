"""Producer wire format — one JSON case object per line (NDJSON).

A line is accepted only if it is a JSON object carrying a non-empty
``incidentId`` and a ``messageName``; anything else is a
``WireFormatError``.  Optional fields may be missing or ``null``.
"""

from __future__ import annotations

import json

from pydantic import ValidationError

from casedeck.models.cases import CaseSnapshot

REQUIRED_FIELDS: tuple[str, ...] = ("incidentId", "messageName")


class WireFormatError(ValueError):
    """Raised when a producer line cannot become a ``CaseSnapshot``."""


def parse_case_line(line: bytes | str) -> CaseSnapshot:
    """Parse one NDJSON line into a validated ``CaseSnapshot``.

    Raises
    ------
    WireFormatError
        On invalid UTF-8, invalid JSON, a non-object payload, a missing
        required field, or a field of the wrong type.
    """
    if isinstance(line, bytes):
        try:
            line = line.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise WireFormatError(f"Invalid UTF-8: {exc}") from exc

    try:
        data = json.loads(line)
    except json.JSONDecodeError as exc:
        raise WireFormatError(f"Invalid JSON: {exc}") from exc

    if not isinstance(data, dict):
        raise WireFormatError(f"Case record must be a JSON object, got {type(data).__name__}")

    missing = [name for name in REQUIRED_FIELDS if data.get(name) is None]
    if missing:
        raise WireFormatError(f"Missing required field(s): {', '.join(missing)}")

    try:
        return CaseSnapshot.model_validate(data)
    except ValidationError as exc:
        raise WireFormatError(f"Case record validation failed: {exc}") from exc


def format_case_line(snapshot: CaseSnapshot) -> str:
    """Serialize a snapshot back to one wire line (no trailing newline)."""
    return json.dumps(snapshot.to_wire(), separators=(",", ":"))
