import math
from datetime import datetime, timedelta, timezone


def utcnow() -> datetime:
    """Naive UTC now, matching how timestamps are stored."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def ceil_days(delta: timedelta) -> int:
    return math.ceil(delta.total_seconds() / 86400)


def ceil_minutes(delta: timedelta) -> int:
    return math.ceil(delta.total_seconds() / 60)
