from __future__ import annotations

import math
from datetime import date, datetime, time, timezone
from typing import Any

from dateutil import parser


def to_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_datetime_utc(value: Any) -> datetime | None:
    if value is None:
        return None

    if isinstance(value, datetime):
        return to_utc(value)

    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
        try:
            return to_utc(parser.parse(value))
        except (ValueError, TypeError, OverflowError):
            return None

    return None


def parse_iso_date(value: str | None) -> date | None:
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError):
        return None


def end_of_day_utc(value: date) -> datetime:
    return datetime.combine(value, time(23, 59, 59), tzinfo=timezone.utc)


def is_deadline_past(deadline: str | None, now: datetime) -> bool:
    parsed = parse_iso_date(deadline)
    if parsed is None:
        return False
    return end_of_day_utc(parsed) < to_utc(now)


def days_until(deadline: str | None, now: datetime) -> int | None:
    """Whole days (rounded up) from ``now`` to the end of the deadline day."""
    parsed = parse_iso_date(deadline)
    if parsed is None:
        return None
    remaining = end_of_day_utc(parsed) - to_utc(now)
    return math.ceil(remaining.total_seconds() / 86400)


def isoformat_utc(value: datetime) -> str:
    return to_utc(value).isoformat().replace("+00:00", "Z")
