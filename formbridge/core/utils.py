"""
Shared utility functions for the FormBridge backend.
"""

import re
from datetime import datetime, timezone

from dateutil import parser as dateutil_parser


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse a timestamp string into an aware UTC datetime.

    Airtable sends ISO 8601 timestamps; naive values are assumed to be UTC.
    Returns None if the value cannot be parsed.

    Args:
        value: The timestamp string to parse.

    Returns:
        An aware datetime, or None if parsing fails.
    """
    if not value or not isinstance(value, str):
        return None

    try:
        parsed = dateutil_parser.isoparse(value)
    except (ValueError, TypeError, OverflowError):
        try:
            parsed = dateutil_parser.parse(value)
        except (ValueError, TypeError, OverflowError):
            return None

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def slugify_key(name: str) -> str:
    """Turn a display name into a question key (``"Full Name"`` -> ``"full_name"``)."""
    slug = re.sub(r"[^a-z0-9]+", "_", name.strip().lower()).strip("_")
    return slug or "field"


def is_truthy(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}
