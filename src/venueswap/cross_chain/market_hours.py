"""US equity market hours in UTC.

Open weekdays from 14:30 to 21:00 UTC, both ends inclusive at minute
resolution. Holidays are not modelled; the account status check catches
those.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

MARKET_OPEN_UTC = (14, 30)
MARKET_CLOSE_UTC = (21, 0)


@dataclass
class MarketStatus:
    is_open: bool
    message: str


def _utc(now: Optional[datetime]) -> datetime:
    if now is None:
        return datetime.now(timezone.utc)
    if now.tzinfo is None:
        return now.replace(tzinfo=timezone.utc)
    return now.astimezone(timezone.utc)


def _minutes(hour: int, minute: int) -> int:
    return hour * 60 + minute


def is_market_open(now: Optional[datetime] = None) -> bool:
    now = _utc(now)
    if now.weekday() >= 5:
        return False
    current = _minutes(now.hour, now.minute)
    return _minutes(*MARKET_OPEN_UTC) <= current <= _minutes(*MARKET_CLOSE_UTC)


def time_until_open(now: Optional[datetime] = None) -> timedelta:
    """Time until the next open (zero while open)."""
    now = _utc(now)
    if is_market_open(now):
        return timedelta(0)

    weekday = now.weekday()
    if weekday == 5:
        days = 2
    elif weekday == 6:
        days = 1
    elif _minutes(now.hour, now.minute) >= _minutes(*MARKET_OPEN_UTC):
        days = 3 if weekday == 4 else 1
    else:
        days = 0

    hour, minute = MARKET_OPEN_UTC
    target = (now + timedelta(days=days)).replace(hour=hour, minute=minute, second=0, microsecond=0)
    return target - now


def time_until_close(now: Optional[datetime] = None) -> timedelta:
    """Time until today's close (zero while closed)."""
    now = _utc(now)
    if not is_market_open(now):
        return timedelta(0)
    hour, minute = MARKET_CLOSE_UTC
    target = now.replace(hour=hour, minute=minute, second=0, microsecond=0)
    return max(target - now, timedelta(0))


def format_duration(delta: timedelta) -> str:
    total_minutes = int(delta.total_seconds() // 60)
    return f"{total_minutes // 60}h {total_minutes % 60}m"


def get_market_status(now: Optional[datetime] = None) -> MarketStatus:
    now = _utc(now)
    if is_market_open(now):
        return MarketStatus(
            True, f"Market is open. Closes in {format_duration(time_until_close(now))}"
        )
    return MarketStatus(
        False, f"Market is closed. Opens in {format_duration(time_until_open(now))}"
    )
