"""
Value codec for cached records.

Cached values are JSON text. Ratings are written as JSON numbers, which
round-trip a float exactly; on the way back ratings are coerced to float so a
value written as text by an older writer never reaches rating arithmetic as a
string.
"""

import json
from typing import Any, List, Sequence

from ..records.models import Record


def encode_record(record: Record) -> str:
    """Serialize a single record."""
    return json.dumps(record.to_dict())


def encode_records(records: Sequence[Record]) -> str:
    """Serialize an ordered listing."""
    return json.dumps([record.to_dict() for record in records])


def _load(value: Any) -> Any:
    if isinstance(value, bytes):
        value = value.decode("utf-8")
    if isinstance(value, str):
        return json.loads(value)
    return value


def decode_record(value: Any) -> Record:
    """Deserialize a single record. Raises ValueError on malformed payloads."""
    data = _load(value)
    if not isinstance(data, dict):
        raise ValueError("cached record is not an object")
    try:
        return Record.from_dict(data)
    except KeyError as exc:
        raise ValueError(f"cached record missing field {exc}") from exc


def decode_records(value: Any) -> List[Record]:
    """Deserialize an ordered listing. Raises ValueError on malformed payloads."""
    data = _load(value)
    if not isinstance(data, list):
        raise ValueError("cached listing is not an array")
    try:
        return [Record.from_dict(item) for item in data]
    except (KeyError, TypeError) as exc:
        raise ValueError(f"cached listing malformed: {exc}") from exc
