"""
Timestamp helpers for verification records.

Records are written by the web client with JavaScript's Date.toISOString(),
so timestamps are stored as UTC ISO-8601 strings with millisecond precision
("2024-01-15T10:30:00.000Z"). Keeping that exact shape makes string order
equal to time order, which the expiry query relies on.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from dateutil import parser as date_parser

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def truncate_to_millis(value: datetime) -> datetime:
    return value.replace(microsecond=value.microsecond // 1000 * 1000)


def format_timestamp(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse a stored timestamp into an aware UTC datetime.

    Accepts ISO strings (with or without offset, any fractional precision) and
    datetimes. Missing, null or unparseable values return None.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        try:
            parsed = date_parser.isoparse(value)
        except (ValueError, OverflowError):
            logger.warning(f"Ignoring unparseable timestamp: {value!r}")
            return None
    else:
        logger.warning(f"Ignoring timestamp of type {type(value).__name__}")
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)
