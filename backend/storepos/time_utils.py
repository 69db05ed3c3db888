"""
Clock and timestamp helpers.

Timestamps are stored UTC-naive. Anything coming in from a client is
normalized to that form and anything going out is rendered with a 'Z'.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _as_utc_naive(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment
    return moment.astimezone(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Read a shift-history filter bound.

    Blank input means "no bound". Offsets (including a trailing Z) are
    folded into UTC; a value without one is already UTC.

    Raises:
        ValueError: not an ISO-8601 date or datetime
    """
    text = (value or "").strip()
    if not text:
        return None
    if text[-1] in "zZ":
        text = f"{text[:-1]}+00:00"
    return _as_utc_naive(datetime.fromisoformat(text))


def to_utc_z(moment: Optional[datetime]) -> Optional[str]:
    """Render for JSON, whole seconds, e.g. 2026-10-19T08:30:00Z."""
    if moment is None:
        return None
    return _as_utc_naive(moment).replace(microsecond=0).isoformat() + "Z"


def business_day(moment: Optional[datetime] = None) -> str:
    """YYYYMMDD period key used by document number sequences."""
    return (moment or utcnow()).strftime("%Y%m%d")


def hours_from_now(hours: int, *, start: Optional[datetime] = None) -> datetime:
    return (start or utcnow()) + timedelta(hours=hours)
