"""Time utilities."""

from datetime import datetime, timedelta, timezone


def utc_now() -> datetime:
    """Return a timezone-aware UTC timestamp."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes and convert aware ones to UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def next_after(previous: datetime | None, now: datetime) -> datetime:
    """
    Return ``now`` unless it does not move past ``previous``.

    Clocks can stand still or step backwards between two writes to the same
    row; mutation timestamps must still strictly increase, so the result is
    nudged one microsecond past ``previous`` in that case.
    """
    now = ensure_utc(now)
    previous = ensure_utc(previous)
    if previous is not None and now <= previous:
        return previous + timedelta(microseconds=1)
    return now
