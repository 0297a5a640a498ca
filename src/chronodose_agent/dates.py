"""Timestamp helpers for the booking backend and the bulk feed."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from email.utils import format_datetime
from typing import Optional

import structlog
from dateutil.parser import isoparse

LOGGER = structlog.get_logger(__name__)

DEFAULT_NAIVE_OFFSET_HOURS = 2


def parse_timestamp(text: object, *, naive_offset_hours: int = DEFAULT_NAIVE_OFFSET_HOURS) -> Optional[datetime]:
    """
    Parse an ISO-8601 timestamp as emitted by the backend.

    Offsets may be written ``+02:00`` or ``+0200``. Naive timestamps are pinned
    to a fixed ``naive_offset_hours`` offset. Returns ``None`` when the value is
    not a parseable string.
    """
    if not isinstance(text, str) or not text.strip():
        return None
    try:
        parsed = isoparse(text.strip())
    except (ValueError, OverflowError) as exc:
        LOGGER.debug("timestamp.unparseable", value=text, error=str(exc))
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone(timedelta(hours=naive_offset_hours)))
    return parsed


def to_rfc3339(value: datetime) -> str:
    return value.isoformat()


def to_rfc2822(value: Optional[datetime]) -> str:
    """Human readable form used in the report, empty when unknown."""
    if value is None:
        return ""
    return format_datetime(value)


def probe_start_date(now: datetime, lookahead_days: int) -> date:
    """Calendar date the availability probe starts from."""
    return (now + timedelta(days=lookahead_days)).date()


def within_window(slot: datetime, now: datetime, *, hours: int) -> bool:
    """True when ``slot`` starts no later than ``hours`` after ``now``."""
    return slot - now <= timedelta(hours=hours)
