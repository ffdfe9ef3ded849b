"""Time utilities."""
from datetime import UTC, datetime, timedelta, timezone

# Quantized history boundaries are counted from this instant.
HISTORY_EPOCH = datetime(2000, 1, 1, tzinfo=UTC)
# End marker of the interval that is still open.
SENTINEL_END_OF_TIME = datetime(9999, 1, 1, tzinfo=UTC)


def utcnow() -> datetime:
    """Return current UTC time with timezone awareness."""

    return datetime.now(tz=UTC)


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive values (SQLite drops tzinfo) and convert aware ones."""

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def history_granularity() -> timedelta:
    """Return the configured history bucket size."""

    from workplace.config import get_settings

    return timedelta(minutes=get_settings().HISTORY_INTERVAL_MINUTES)


def quantize(instant: datetime, granularity: timedelta | None = None) -> datetime:
    """Round ``instant`` down to the nearest bucket boundary.

    Buckets are anchored at :data:`HISTORY_EPOCH`, so the result does not
    depend on the timezone the caller used to express ``instant``.
    """

    step = granularity or history_granularity()
    if step <= timedelta(0):
        raise ValueError("granularity must be positive")
    offset = ensure_utc(instant) - HISTORY_EPOCH
    return HISTORY_EPOCH + (offset // step) * step


def sentinel_end_of_time() -> datetime:
    return SENTINEL_END_OF_TIME


__all__ = [
    "HISTORY_EPOCH",
    "SENTINEL_END_OF_TIME",
    "ensure_utc",
    "history_granularity",
    "quantize",
    "sentinel_end_of_time",
    "utcnow",
]
