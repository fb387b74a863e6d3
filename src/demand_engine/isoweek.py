"""
ISO week key helpers.

Every normalized series in the engine is keyed by ISO week ("YYYY-Www").
The year part is the ISO week-year, which differs from the calendar year
for a few days around January 1st.
"""

import re
from datetime import date, timedelta

WEEK_KEY_PATTERN = re.compile(r"^(\d{4})-W(\d{2})$")


def week_key(day: date) -> str:
    """Render the ISO week containing `day` as "YYYY-Www"."""
    iso_year, iso_week, _ = day.isocalendar()
    return f"{iso_year}-W{iso_week:02d}"


def is_week_key(value: str) -> bool:
    """True when `value` looks like "YYYY-Www" and names a real ISO week."""
    match = WEEK_KEY_PATTERN.match(value)
    if not match:
        return False
    try:
        date.fromisocalendar(int(match.group(1)), int(match.group(2)), 1)
    except ValueError:
        return False
    return True


def parse_week_key(value: str) -> tuple[int, int]:
    """Split "YYYY-Www" into (year, week). Raises ValueError if malformed."""
    match = WEEK_KEY_PATTERN.match(value)
    if not match:
        raise ValueError(f"not an ISO week key: {value!r}")
    return int(match.group(1)), int(match.group(2))


def week_start(value: str) -> date:
    """Monday of the ISO week named by `value`."""
    year, week = parse_week_key(value)
    return date.fromisocalendar(year, week, 1)


def week_of_year_key(year: int, week_number: int) -> str:
    """
    Key for the Nth week counted from ISO week 1 of `year`.

    Spreadsheet week columns (WK_01..WK_53) are counted this way, so a
    WK_53 column in a 52-week year lands on week 1 of the next year.
    """
    first_monday = date.fromisocalendar(year, 1, 1)
    return week_key(first_monday + timedelta(weeks=week_number - 1))


def add_weeks(value: str, weeks: int) -> str:
    """Shift a week key by a number of weeks, crossing years correctly."""
    return week_key(week_start(value) + timedelta(weeks=weeks))


def weeks_between(start: str, end: str) -> int:
    """Number of weeks from `start` to `end` (negative if end is earlier)."""
    return (week_start(end) - week_start(start)).days // 7


def weeks_in_month(year: int, month: int) -> list[str]:
    """
    ISO weeks that overlap a calendar month, in chronological order.

    Runs from the week containing the 1st through the week containing the
    last day of the month.
    """
    first = date(year, month, 1)
    if month == 12:
        last = date(year, 12, 31)
    else:
        last = date(year, month + 1, 1) - timedelta(days=1)

    keys = []
    monday = first - timedelta(days=first.weekday())
    while monday <= last:
        keys.append(week_key(monday))
        monday += timedelta(weeks=1)
    return keys
