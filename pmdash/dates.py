from __future__ import annotations

import re
from datetime import date, datetime, timedelta, tzinfo
from typing import Optional, Tuple

from pmdash.errors import ValidationError

ISO_DATE_RE = re.compile(r"[0-9]{4}-[0-9]{2}-[0-9]{2}")


def parse_iso_date(value: object) -> date:
    """Parse a strict ``YYYY-MM-DD`` calendar date.

    Raises ValidationError for anything else, including syntactically valid
    strings that do not name a real day (``2024-02-30``).
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not ISO_DATE_RE.fullmatch(value):
        raise ValidationError(f"Not a YYYY-MM-DD date: {value!r}")
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise ValidationError(f"Not a calendar date: {value!r}") from exc


def format_date(value: date) -> str:
    return value.strftime("%Y-%m-%d")


def today(tz: Optional[tzinfo] = None, now: Optional[datetime] = None) -> date:
    if now is None:
        return datetime.now(tz).date()
    if now.tzinfo is not None and tz is not None:
        now = now.astimezone(tz)
    return now.date()


def work_week(day: date) -> Tuple[date, date]:
    """Monday and Friday of the calendar week containing ``day`` (Sunday belongs to the week before)."""
    monday = day - timedelta(days=day.weekday())
    return monday, monday + timedelta(days=4)
