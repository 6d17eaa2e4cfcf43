"""
Local-calendar date helpers.

Date keys are zero-padded ``YYYY-MM-DD`` strings in the app's local calendar.
Day arithmetic goes through ``date`` objects, never epoch seconds, so DST
transitions cannot shift a result by a day.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, tzinfo
from zoneinfo import ZoneInfo

_tz: tzinfo | None = None


def set_timezone(name: str | None) -> None:
    """Use an IANA zone for "today". Empty/None means the system local zone."""
    global _tz
    _tz = ZoneInfo(name) if name else None


def local_now() -> datetime:
    """Current wall-clock time in the configured zone."""
    if _tz is None:
        return datetime.now()
    return datetime.now(_tz)


def to_key(d: date) -> str:
    return d.isoformat()


def from_key(key: str) -> date:
    return date.fromisoformat(key)


def today() -> str:
    return to_key(local_now().date())


def yesterday() -> str:
    return to_key(local_now().date() - timedelta(days=1))


def days_between(a: str, b: str) -> int:
    """Signed number of calendar days from ``a`` to ``b`` (b - a)."""
    return (from_key(b) - from_key(a)).days


def next_day(a: str) -> str:
    return to_key(from_key(a) + timedelta(days=1))


def add_days(a: str, n: int) -> str:
    return to_key(from_key(a) + timedelta(days=n))
