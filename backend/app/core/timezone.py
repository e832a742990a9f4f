"""
Centralized timezone utilities for consistent timestamp handling.

Two kinds of time flow through the profit sharing module:
1. Audit timestamps (issued_at, accepted_at): stored as naive UTC datetimes.
2. Business dates (valuation dates, award intervals, "today" for KPIs):
   plain dates in the company's business timezone.

Frontend JavaScript parses timestamps with 'Z' suffix as UTC and
automatically converts to user's local timezone for display.
"""

from datetime import date, datetime
import pytz

from app.core.config import settings

UTC = pytz.UTC


def format_datetime_for_api(dt: datetime) -> str | None:
    """
    Convert a datetime to UTC ISO string for API responses.

    Naive datetimes are assumed to already be UTC.
    Returns format: "2026-01-06T20:43:50.245704Z"
    """
    if dt is None:
        return None

    if dt.tzinfo is not None:
        utc_dt = dt.astimezone(UTC)
        return utc_dt.isoformat().replace('+00:00', 'Z')

    return dt.isoformat() + 'Z'


def now_utc() -> datetime:
    """Get current time in UTC (timezone-aware)."""
    return datetime.now(UTC)


def utc_timestamp() -> datetime:
    """Current UTC time as a naive datetime, the format audit columns are stored in."""
    return now_utc().replace(tzinfo=None)


def business_today(tz_name: str | None = None) -> date:
    """Today's date in the business timezone."""
    tz = pytz.timezone(tz_name or settings.BUSINESS_TIMEZONE)
    return datetime.now(tz).date()
