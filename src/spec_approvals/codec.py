from __future__ import annotations

import json
from pathlib import Path

from pydantic import ValidationError

from .errors import CorruptRecordError
from .models import ApprovalRecord


def encode_record(record: ApprovalRecord) -> str:
    """Serialize a record to its persisted JSON form.

    Keys are camelCase and unset optionals are omitted so the file matches
    what other dashboard processes write for the same record.
    """
    return record.model_dump_json(by_alias=True, exclude_none=True, indent=2)


def decode_record(text: str, *, source: Path | str | None = None) -> ApprovalRecord:
    """Parse a persisted record, filling defaults for absent optional fields.

    Args:
        text: Raw file contents.
        source: Optional path used in error messages.

    Returns:
        The validated ApprovalRecord.

    Raises:
        CorruptRecordError: If the text is empty, not a JSON object, or fails
            validation.
    """
    label = f"approval record at {source}" if source is not None else "approval record"
    if not text.strip():
        raise CorruptRecordError(f"{label} is empty")
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise CorruptRecordError(f"{label} is not valid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise CorruptRecordError(f"{label} must be a JSON object")
    # Older writers stored a null comments list.
    if payload.get("comments") is None:
        payload["comments"] = []
    try:
        return ApprovalRecord.model_validate(payload)
    except ValidationError as exc:
        raise CorruptRecordError(f"{label} failed validation: {exc}") from exc
