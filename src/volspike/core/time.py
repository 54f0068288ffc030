import os
from datetime import datetime, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


def resolve_tz(name: Optional[str] = None):
    """
    Resolve a timezone for display.

    Order:
    1) explicit `name`
    2) env `VOLSPIKE_TZ`
    3) default: UTC
    """
    tz_name = (name or os.getenv("VOLSPIKE_TZ") or "UTC").strip()
    if not tz_name or tz_name.upper() == "UTC":
        return timezone.utc
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        return timezone.utc


def format_dt(dt: datetime, fmt: str = "%Y-%m-%d %H:%M:%S %Z", tz_name: Optional[str] = None) -> str:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(resolve_tz(tz_name)).strftime(fmt)


def seconds_until_next_run(now: datetime, minute: int = 55, every_hours: int = 1, offset_hours: int = 0) -> float:
    """Seconds from `now` until the next HH:`minute` slot with `(hour - offset_hours) % every_hours == 0` (UTC)."""
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    now = now.astimezone(timezone.utc)

    candidate = now.replace(minute=minute, second=0, microsecond=0)
    if candidate <= now:
        candidate += timedelta(hours=1)
    while (candidate.hour - offset_hours) % every_hours != 0:
        candidate += timedelta(hours=1)

    return (candidate - now).total_seconds()
