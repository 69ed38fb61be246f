from datetime import date, datetime, time, timezone

from campus_library.errors import ValidationError


def to_naive_utc(value):
    """Stored timestamps are naive UTC; aware inputs are converted, dates become midnight."""
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            return value.astimezone(timezone.utc).replace(tzinfo=None)
        return value
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    raise ValidationError("Expected a date or datetime")


def parse_datetime(raw, field: str = "date"):
    if not raw or not isinstance(raw, str):
        raise ValidationError(f"{field} is required")
    try:
        parsed = datetime.fromisoformat(raw.strip().replace("Z", "+00:00"))
    except ValueError:
        raise ValidationError(f"{field} must be an ISO-8601 date")
    return to_naive_utc(parsed)


def start_of_day(day: date) -> datetime:
    return datetime.combine(day, time.min)
