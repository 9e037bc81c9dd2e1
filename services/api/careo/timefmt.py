from __future__ import annotations

from datetime import date, datetime, time, timezone
from zoneinfo import ZoneInfo

from careo.config import settings

MINUTE_MS = 60 * 1000
HOUR_MS = 60 * MINUTE_MS
DAY_MS = 24 * HOUR_MS

def _plural(n: int, unit: str) -> str:
    return f"{n} {unit}{'' if n == 1 else 's'}"

def format_duration(minutes: int) -> str:
    """Render a configured interval, e.g. ``90`` -> ``"1 hour 30 minutes"``."""
    minutes = int(minutes)
    if minutes < 60:
        return _plural(minutes, "minute")
    hours, rest = divmod(minutes, 60)
    if rest == 0:
        return _plural(hours, "hour")
    return f"{_plural(hours, 'hour')} {_plural(rest, 'minute')}"

def format_overdue(milliseconds: int) -> str:
    """Render an elapsed span in whole hours and minutes."""
    hours, rest = divmod(max(0, int(milliseconds)), HOUR_MS)
    minutes = rest // MINUTE_MS
    if hours == 0:
        return _plural(minutes, "minute")
    if minutes == 0:
        return _plural(hours, "hour")
    return f"{_plural(hours, 'hour')} {_plural(minutes, 'minute')}"

def utcnow() -> datetime:
    return datetime.now(timezone.utc)

def now_ms() -> int:
    return to_ms(utcnow())

def to_ms(dt: datetime) -> int:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp() * 1000)

def from_ms(ms: int) -> datetime:
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc)

def care_home_tz() -> ZoneInfo:
    return ZoneInfo(settings.careo_timezone)

def local(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(care_home_tz())

def care_day(dt: datetime) -> str:
    return local(dt).date().isoformat()

def local_ms(day: date, hhmm: str) -> int:
    """Epoch ms of ``HH:MM`` on ``day`` in the care-home timezone."""
    hours, minutes = (int(p) for p in hhmm.split(":", 1))
    return to_ms(datetime.combine(day, time(hours, minutes), tzinfo=care_home_tz()))

def iso_date(d: date | str | None) -> str | None:
    if d is None:
        return None
    return d.isoformat() if isinstance(d, date) else str(d)
