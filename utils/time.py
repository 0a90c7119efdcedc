# utils/time.py
from datetime import datetime, timezone, timedelta

def utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)

def utc_ms() -> int:
    return int(utc_now().timestamp() * 1000)

def parse_iso(ts: str | None) -> datetime | None:
    """Parse vendor ISO8601 timestamps ("...Z" or with offset). Naive values are taken as UTC."""
    if not ts:
        return None
    s = str(ts).strip()
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    try:
        t = datetime.fromisoformat(s)
    except ValueError:
        return None
    if t.tzinfo is None:
        t = t.replace(tzinfo=timezone.utc)
    return t

def within_trailing(ts: datetime | None, window: timedelta, now: datetime) -> bool:
    if ts is None:
        return False
    return now - window <= ts <= now
