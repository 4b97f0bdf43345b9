from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def days_after(start: datetime, days: int) -> datetime:
    """Delivery estimates are whole calendar days from the order time."""
    return start + timedelta(days=days)


def has_passed(moment: Optional[datetime], now: Optional[datetime] = None) -> bool:
    """True when a deadline (coupon expiry, session expiry) is in the past. None never passes."""
    if moment is None:
        return False
    return moment < (now or utcnow())


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an admin-supplied ISO-8601 datetime into UTC-naive form.

    - None / "" -> None
    - naive input is taken as UTC
    - "...Z" or "...+05:30" is converted to UTC and tzinfo is stripped
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None

    if s.endswith("Z"):
        s = s[:-1] + "+00:00"

    dt = datetime.fromisoformat(s)
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """ISO-8601 with a trailing 'Z', second precision; naive input is UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc).replace(microsecond=0)
    return dt_utc.isoformat().replace("+00:00", "Z")
