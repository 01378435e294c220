from datetime import datetime, timedelta, timezone

IST = timezone(timedelta(hours=5, minutes=30), name="IST")


def get_ist_now() -> datetime:
    """Current IST wall-clock time as a naive datetime, matching the DB columns."""
    return datetime.now(IST).replace(tzinfo=None)


def to_ist_naive(value: datetime) -> datetime:
    """Convert an aware datetime to naive IST. Naive values are assumed to be IST already."""
    if value.tzinfo is None:
        return value
    return value.astimezone(IST).replace(tzinfo=None)
