from __future__ import annotations

import os
from datetime import date, datetime, timedelta
from typing import Optional, Tuple

import pandas as pd


DEFAULT_DISPLAY_TZ = "Europe/Berlin"


def display_timezone() -> str:
    return (os.environ.get("TRENDS_DISPLAY_TZ") or "").strip() or DEFAULT_DISPLAY_TZ


def parse_date_or_none(value: object) -> Optional[pd.Timestamp]:
    """Parse an ISO-8601 value into a naive local timestamp, or None.

    Timezone-aware inputs are shifted into the display timezone first, so that
    day/month/week keys follow the local calendar.
    """
    if value is None:
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    elif not isinstance(value, (date, datetime, pd.Timestamp)):
        return None
    try:
        ts = pd.to_datetime(value, errors="coerce")
    except (ValueError, TypeError, OverflowError):
        return None
    if ts is None or pd.isna(ts):
        return None
    if ts.tzinfo is not None:
        ts = ts.tz_convert(display_timezone()).tz_localize(None)
    return ts


def _as_date(value: object) -> Optional[date]:
    ts = parse_date_or_none(value)
    return ts.date() if ts is not None else None


def iso_week(value: object) -> int:
    """ISO-8601 week number of a date (the week holding its Thursday)."""
    d = _as_date(value)
    if d is None:
        raise ValueError(f"not a date: {value!r}")
    return d.isocalendar()[1]


def day_key(value: object) -> str:
    d = _as_date(value)
    if d is None:
        raise ValueError(f"not a date: {value!r}")
    return f"{d.year:04d}-{d.month:02d}-{d.day:02d}"


def month_key(value: object) -> str:
    d = _as_date(value)
    if d is None:
        raise ValueError(f"not a date: {value!r}")
    return f"{d.year:04d}-{d.month:02d}"


def current_and_previous_week(now: Optional[datetime] = None) -> Tuple[int, int]:
    now = now or datetime.now()
    return iso_week(now), iso_week(now - timedelta(days=7))
