"""Shared utility functions for the CityReport core.

This package provides convenience re-exports so that consumers can import
directly from ``cityreport.utils`` (e.g. ``from cityreport.utils import
generate_id``) while full absolute imports (e.g. ``from
cityreport.utils.general import generate_id``) remain supported.
"""

from cityreport.utils.audit import log_security_event
from cityreport.utils.general import Clock, convert_to_json_safe, generate_id, utc_now
from cityreport.utils.string_helpers import (
    clamp_number,
    is_valid_email,
    sanitize_email,
    sanitize_text,
)

__all__ = [
    "Clock",
    "clamp_number",
    "convert_to_json_safe",
    "generate_id",
    "is_valid_email",
    "log_security_event",
    "sanitize_email",
    "sanitize_text",
    "utc_now",
]
