"""
Market calendar: weekday + fixed-offset hour window.

The regional hour is ``utc_hour + utc_offset_hours`` with no daylight-saving
adjustment and no wrap across midnight (an hour below 0 is simply outside
the window). The weekday is taken from the UTC date.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from config.policy import MarketHoursConfig

WEEKEND = (5, 6)  # Saturday, Sunday


def _as_utc(now: datetime) -> datetime:
    if now.tzinfo is None:
        return now.replace(tzinfo=timezone.utc)
    return now.astimezone(timezone.utc)


def regional_hour(now: datetime, utc_offset_hours: int) -> int:
    """Hour of day at the fixed regional offset. May fall outside 0..23."""
    return _as_utc(now).hour + utc_offset_hours


def is_market_open(now: datetime, hours: MarketHoursConfig) -> bool:
    """True if *now* falls on a weekday inside [open_hour, close_hour)."""
    utc_now = _as_utc(now)
    if utc_now.weekday() in WEEKEND:
        return False
    hour = regional_hour(utc_now, hours.utc_offset_hours)
    return hours.open_hour <= hour < hours.close_hour
