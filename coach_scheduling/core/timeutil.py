from datetime import UTC, date, datetime, time

SLOT_KEY_FORMAT = "%H:%M"


def utc_naive_now() -> datetime:
    """Naive UTC for comparison with TIMESTAMP WITHOUT TIME ZONE."""
    return datetime.now(UTC).replace(tzinfo=None)


def to_naive_utc(dt: datetime) -> datetime:
    """Convert to naive UTC for TIMESTAMP WITHOUT TIME ZONE columns."""
    if dt.tzinfo is not None:
        return dt.astimezone(UTC).replace(tzinfo=None)
    return dt


def slot_key(dt: datetime) -> tuple[date, str]:
    """Split an instant into its schedule day and "HH:MM" slot key."""
    dt = to_naive_utc(dt)
    return dt.date(), dt.strftime(SLOT_KEY_FORMAT)


def slot_instant(day: date, key: str) -> datetime:
    return datetime.combine(day, time.fromisoformat(key))
