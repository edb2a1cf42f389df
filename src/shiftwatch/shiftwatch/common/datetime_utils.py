from __future__ import annotations

from datetime import date, datetime, time, timedelta

MINUTES_PER_DAY = 24 * 60


def parse_iso_date(value: str) -> date:
    """Parse YYYY-MM-DD string into date."""
    return datetime.strptime(value, "%Y-%m-%d").date()


def parse_iso_datetime(value: str) -> datetime:
    """Parse an ISO timestamp as naive local time; offsets are converted."""
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


def parse_hhmm(value: str) -> int:
    """Parse HH:MM into minute-of-day."""
    t = datetime.strptime(value.strip(), "%H:%M").time()
    return t.hour * 60 + t.minute


def format_hhmm(minute_of_day: int) -> str:
    return f"{minute_of_day // 60:02d}:{minute_of_day % 60:02d}"


def minute_of_day(value: datetime | time) -> int:
    return value.hour * 60 + value.minute


def at_minute(day: date, minute: int) -> datetime:
    """Absolute datetime for a minute-of-day on a given date."""
    return datetime.combine(day, time(0, 0)) + timedelta(minutes=minute)


def now_local() -> datetime:
    """Current local time.

    Note: Wrapped so tests can patch/mocked easier.
    """
    return datetime.now()
