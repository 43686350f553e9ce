from datetime import datetime, timezone


def utcnow() -> datetime:
    # Stored timestamps are naive UTC.
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def current_period(now: datetime | None = None) -> str:
    now = now or utcnow()
    return f"{now.year}-{now.month:02d}"
