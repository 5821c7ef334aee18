"""
String Helpers: citizen input sanitation and email shape checks.

Citizen-facing fields are untrusted free text.  Everything that lands in
a report goes through these helpers before model validation so that the
stored value is trimmed, bounded, and free of markup characters.
"""

from __future__ import annotations

import re
from typing import Optional, Union

# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

__all__ = [
    "clamp_number",
    "is_valid_email",
    "sanitize_email",
    "sanitize_text",
]

# ---------------------------------------------------------------------------
# Pre-compiled regex patterns
# ---------------------------------------------------------------------------

# Loose shape check: something@something.tld, no whitespace.
_EMAIL_RE: re.Pattern[str] = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

# Characters dropped from citizen text.
_MARKUP_RE: re.Pattern[str] = re.compile(r"[<>\"']")

DEFAULT_TEXT_LIMIT: int = 255

Number = Union[int, float]


def is_valid_email(value: str) -> bool:
    """Return ``True`` if *value* (after trimming) looks like an email."""
    return bool(_EMAIL_RE.match(value.strip()))


def sanitize_text(value: object, max_length: int = DEFAULT_TEXT_LIMIT) -> str:
    """Trim, truncate to *max_length*, then strip ``<>"'``.

    Non-string input yields an empty string.

    >>> sanitize_text("  <b>Lampadaire</b> ")
    'bLampadaire/b'
    """
    if not isinstance(value, str):
        return ""
    return _MARKUP_RE.sub("", value.strip()[:max_length])


def sanitize_email(value: object) -> Optional[str]:
    """Return the trimmed, lowercased email, or ``None`` if malformed."""
    if not isinstance(value, str):
        return None
    cleaned = value.strip().lower()
    return cleaned if _EMAIL_RE.match(cleaned) else None


def clamp_number(value: object, low: Number, high: Number) -> Optional[float]:
    """Parse *value* as a float and clamp it into ``[low, high]``.

    Booleans, ``None`` and unparseable strings yield ``None``.
    """
    if value is None or isinstance(value, bool):
        return None
    if not isinstance(value, (int, float, str)):
        return None
    try:
        number = float(value)
    except ValueError:
        return None
    if number != number:  # NaN
        return None
    return max(float(low), min(float(high), number))
