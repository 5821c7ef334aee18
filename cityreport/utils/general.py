"""General Utility Functions: ids, the UTC clock, JSON-safe conversion."""

from __future__ import annotations

import math
import secrets
import time
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, Union

from pydantic import BaseModel

__all__ = ["Clock", "JsonValue", "convert_to_json_safe", "generate_id", "utc_now"]

Clock = Callable[[], datetime]
"""Zero-argument callable returning the current timezone-aware time."""

JsonValue = Union[None, str, int, float, bool, list["JsonValue"], dict[str, "JsonValue"]]
"""A value ``json.dumps`` accepts without a ``default`` hook."""

_BASE36_ALPHABET: str = "0123456789abcdefghijklmnopqrstuvwxyz"
_ID_SUFFIX_LENGTH: int = 11


def utc_now() -> datetime:
    """Return the current time as a timezone-aware UTC ``datetime``."""
    return datetime.now(tz=timezone.utc)


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits: list[str] = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36_ALPHABET[remainder])
    return "".join(reversed(digits))


def generate_id() -> str:
    """Return a unique entity id: base-36 millisecond time + random suffix.

    Ids are unique in practice but not guaranteed sortable.
    """
    prefix = _to_base36(time.time_ns() // 1_000_000)
    suffix = "".join(secrets.choice(_BASE36_ALPHABET) for _ in range(_ID_SUFFIX_LENGTH))
    return prefix + suffix


def convert_to_json_safe(data: Any) -> JsonValue:
    """Recursively convert *data* into plain JSON values.

    Models are dumped in JSON mode, enums become their values, datetimes
    ISO-8601 strings, non-finite floats ``None``, sets and tuples lists.
    Anything unrecognised is stringified so a write never fails on
    serialisation alone.
    """
    if data is None or isinstance(data, (bool, int, str)) and not isinstance(data, Enum):
        return data
    if isinstance(data, Enum):
        return convert_to_json_safe(data.value)
    if isinstance(data, float):
        return data if math.isfinite(data) else None
    if isinstance(data, Decimal):
        return convert_to_json_safe(float(data))
    if isinstance(data, (datetime, date)):
        return data.isoformat()
    if isinstance(data, BaseModel):
        return data.model_dump(mode="json")
    if isinstance(data, dict):
        return {str(key): convert_to_json_safe(value) for key, value in data.items()}
    if isinstance(data, (list, tuple, set, frozenset)):
        return [convert_to_json_safe(item) for item in data]
    return str(data)
