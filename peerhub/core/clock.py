"""
Timestamps. All times are stored and compared in UTC; SQLite hands back
naive datetimes even for timezone-aware columns, so values read from the
store go through `as_utc` before comparison.
"""

from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)

    return value.astimezone(timezone.utc)
