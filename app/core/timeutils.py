import math
from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    # SQLite often returns naive datetimes; treat as UTC
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def ceil_minutes(start: datetime, end: datetime) -> int:
    """Whole minutes from start to end, rounded up (negative spans stay negative)."""
    seconds = (as_utc(end) - as_utc(start)).total_seconds()
    return math.ceil(seconds / 60)
