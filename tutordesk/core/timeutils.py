from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

from ..config import get_settings


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def local_tz() -> ZoneInfo:
    return ZoneInfo(get_settings().timezone)


def as_utc(value: datetime) -> datetime:
    """Values read back from SQLite lose their tzinfo; they were stored as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def from_client(value: datetime) -> datetime:
    """Naive datetimes coming from clients are wall-clock times in the studio timezone."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=local_tz())
    return value.astimezone(timezone.utc)


def local_date(value: datetime) -> date:
    return as_utc(value).astimezone(local_tz()).date()


def js_weekday(day: date) -> int:
    """Weekday number with Sunday as 0, as stored on templates."""
    return (day.weekday() + 1) % 7
