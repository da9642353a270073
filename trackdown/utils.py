"""
Utility functions for the trackdown index.
"""

import bisect
from datetime import date, datetime, timezone
from typing import Any, Iterable, List, Optional

TIMESTAMP_FORMATS = [
    "%Y-%m-%dT%H:%M:%S.%f%z",
    "%Y-%m-%dT%H:%M:%S%z",
    "%Y-%m-%dT%H:%M:%S.%f",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d",
]


def utc_now() -> datetime:
    """Return the current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse a frontmatter timestamp into a timezone-aware UTC datetime.

    YAML already turns unquoted ISO timestamps into datetime/date objects;
    quoted ones arrive as strings. Naive values are assumed to be UTC.

    Args:
        value: A datetime, date, or string.

    Returns:
        An aware datetime, or None if the value can't be parsed.

    Examples:
        >>> parse_timestamp("2025-01-14T10:00:00Z")
        >>> parse_timestamp("2025-01-14")
    """
    if value is None or value == "":
        return None

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = None
        for fmt in TIMESTAMP_FORMATS:
            try:
                parsed = datetime.strptime(text, fmt)
                break
            except ValueError:
                continue
        if parsed is None:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """Format a datetime as an ISO 8601 string with a trailing Z."""
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"


def unique(values: Iterable[str]) -> List[str]:
    """De-duplicate strings, keeping first-seen order and dropping blanks."""
    seen = set()
    result = []
    for value in values:
        if not value or value in seen:
            continue
        seen.add(value)
        result.append(value)
    return result


def insert_sorted(ids: List[str], item_id: str) -> None:
    """Insert an id into a sorted id list in place, ignoring duplicates."""
    position = bisect.bisect_left(ids, item_id)
    if position < len(ids) and ids[position] == item_id:
        return
    ids.insert(position, item_id)


def discard(ids: List[str], item_id: str) -> bool:
    """Remove every occurrence of an id from a list in place.

    Returns:
        True if anything was removed.
    """
    before = len(ids)
    ids[:] = [i for i in ids if i != item_id]
    return len(ids) != before
