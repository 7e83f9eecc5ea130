"""
Calendar helpers on ISO date strings.

The whole package passes dates around as ``YYYY-MM-DD`` strings; these
helpers keep the parsing in one place.
"""

from datetime import datetime, timedelta

DATE_FORMAT = "%Y-%m-%d"

DAY_KEYS = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")

# Accepted spellings -> canonical three-letter key
DAY_ALIASES: dict[str, str] = {
    "mo": "mon", "mon": "mon", "monday": "mon",
    "tu": "tue", "tue": "tue", "tues": "tue", "tuesday": "tue",
    "we": "wed", "wed": "wed", "wednesday": "wed",
    "th": "thu", "thu": "thu", "thur": "thu", "thurs": "thu", "thursday": "thu",
    "fr": "fri", "fri": "fri", "friday": "fri",
    "sa": "sat", "sat": "sat", "saturday": "sat",
    "su": "sun", "sun": "sun", "sunday": "sun",
}


def parse_date(date_str: str) -> datetime:
    """Parse a ``YYYY-MM-DD`` string."""
    return datetime.strptime(date_str, DATE_FORMAT)


def add_days(date_str: str, days: int) -> str:
    """Return the ISO date ``days`` after ``date_str`` (negative goes back)."""
    return (parse_date(date_str) + timedelta(days=days)).strftime(DATE_FORMAT)


def diff_days(later: str, earlier: str) -> int:
    """Whole calendar days from ``earlier`` to ``later``."""
    return (parse_date(later) - parse_date(earlier)).days


def day_key(date_str: str) -> str:
    """Three-letter weekday key ("mon".."sun") for a date."""
    return DAY_KEYS[parse_date(date_str).weekday()]


def normalize_day_key(value: str) -> str | None:
    """Map any accepted weekday spelling to its canonical key, or None."""
    return DAY_ALIASES.get(value.strip().lower())


def is_weekend(date_str: str) -> bool:
    return parse_date(date_str).weekday() >= 5


def is_saturday(date_str: str) -> bool:
    return parse_date(date_str).weekday() == 5


def date_range(start: str, days: int) -> list[str]:
    """``days`` consecutive dates starting at ``start``."""
    return [add_days(start, i) for i in range(days)]


def epoch_week(date_str: str) -> int:
    """Week number since 1970-01-01, used as a stable parity seed."""
    return (parse_date(date_str) - datetime(1970, 1, 1)).days // 7
