# Overview: UTC clock, timestamp formatting and business-day boundaries.
#
# All datetimes stored in the database are UTC without tzinfo. Calendar
# questions ("today", "yesterday") are answered in BUSINESS_TIMEZONE.

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from flask import current_app


def utcnow() -> datetime:
    """Current UTC time, tzinfo stripped."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _as_utc(dt: datetime) -> datetime:
    # Stored datetimes are naive UTC
    return dt.replace(tzinfo=timezone.utc) if dt.tzinfo is None else dt.astimezone(timezone.utc)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    ISO-8601 string -> UTC-naive datetime. Blank -> None.

    A trailing "Z" or an explicit offset is converted to UTC; a value with
    no offset is taken to be UTC already.
    """
    text = (value or "").strip()
    if not text:
        return None
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return _as_utc(datetime.fromisoformat(text)).replace(tzinfo=None)


def parse_iso_date(value: Optional[str]) -> Optional[date]:
    """Parse "YYYY-MM-DD" (or a full ISO datetime) into a calendar date."""
    text = (value or "").strip()
    if not text:
        return None
    if len(text) == 10:
        return date.fromisoformat(text)
    return parse_iso_datetime(text).date()


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """Second-precision ISO-8601 with a trailing "Z", e.g. 2026-03-10T12:00:00Z."""
    if dt is None:
        return None
    return _as_utc(dt).replace(microsecond=0, tzinfo=None).isoformat() + "Z"


def to_epoch_ms(dt: datetime) -> int:
    return int(_as_utc(dt).timestamp() * 1000)


def relative_time_label(timestamp_ms: int, now_ms: int | None = None) -> str:
    """
    Short "time ago" label for a notification.

    < 1 minute -> "Just now", < 1 hour -> "5min ago",
    < 1 day -> "2hr ago", otherwise "3d ago".
    """
    if now_ms is None:
        now_ms = to_epoch_ms(utcnow())
    diff = max(now_ms - timestamp_ms, 0)
    minutes = diff // 60_000
    hours = diff // 3_600_000
    days = diff // 86_400_000

    if minutes < 1:
        return "Just now"
    if minutes < 60:
        return f"{minutes}min ago"
    if hours < 24:
        return f"{hours}hr ago"
    return f"{days}d ago"


def business_tz():
    name = current_app.config.get("BUSINESS_TIMEZONE") or "UTC"
    if name.upper() == "UTC":
        return timezone.utc
    return ZoneInfo(name)


def business_date(dt: Optional[datetime] = None) -> date:
    """Calendar date of a UTC-naive instant in the business timezone."""
    if dt is None:
        dt = utcnow()
    return dt.replace(tzinfo=timezone.utc).astimezone(business_tz()).date()


def business_day_bounds(day: date) -> tuple[datetime, datetime]:
    """
    [start, end) of a business-local calendar day as UTC-naive datetimes.

    All "today" checks go through here so the sold-quantity counters and the
    date-range queries agree on where midnight falls.
    """
    tz = business_tz()
    start_local = datetime.combine(day, time.min, tzinfo=tz)
    end_local = datetime.combine(day + timedelta(days=1), time.min, tzinfo=tz)
    return (
        start_local.astimezone(timezone.utc).replace(tzinfo=None),
        end_local.astimezone(timezone.utc).replace(tzinfo=None),
    )
