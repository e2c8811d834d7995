"""Birthday parsing and upcoming-birthday window checks."""

import re
from dataclasses import dataclass
from datetime import date, timedelta

_ISO_DATE = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})$")
_SLASH_DATE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")
_MONTH_DAY = re.compile(r"^(\d{1,2})/(\d{1,2})$")

# February is always allowed 29 days; the year of birth is not consulted.
DAYS_IN_MONTH = (31, 29, 31, 30, 31, 30, 31, 31, 30, 31, 30, 31)


@dataclass(frozen=True)
class BirthdayInfo:
    month: int
    day: int


def is_valid_month_day(month: int, day: int) -> bool:
    """Check a month/day pair against the fixed days-per-month table."""
    if month < 1 or month > 12:
        return False
    if day < 1:
        return False
    return day <= DAYS_IN_MONTH[month - 1]


def parse_birthday(dob: str | None) -> BirthdayInfo | None:
    """Extract month and day from a DOB string.

    Supports yyyy-mm-dd, dd/mm/yyyy (tried first), mm/dd/yyyy and mm/dd.
    Returns None if invalid.
    """
    if not dob or not isinstance(dob, str):
        return None

    trimmed = dob.strip()
    if not trimmed:
        return None

    iso_match = _ISO_DATE.match(trimmed)
    if iso_match:
        month, day = int(iso_match.group(2)), int(iso_match.group(3))
        if is_valid_month_day(month, day):
            return BirthdayInfo(month=month, day=day)

    slash_match = _SLASH_DATE.match(trimmed)
    if slash_match:
        part1, part2 = int(slash_match.group(1)), int(slash_match.group(2))
        if is_valid_month_day(part2, part1):
            return BirthdayInfo(month=part2, day=part1)
        if is_valid_month_day(part1, part2):
            return BirthdayInfo(month=part1, day=part2)

    short_match = _MONTH_DAY.match(trimmed)
    if short_match:
        month, day = int(short_match.group(1)), int(short_match.group(2))
        if is_valid_month_day(month, day):
            return BirthdayInfo(month=month, day=day)

    return None


def birthday_in_year(birthday: BirthdayInfo, year: int) -> date:
    """The calendar date of a birthday in the given year.

    Feb 29 rolls over to Mar 1 in non-leap years.
    """
    return date(year, birthday.month, 1) + timedelta(days=birthday.day - 1)


def is_birthday_within_days(dob: str | None, within_days: int, today: date | None = None) -> bool:
    """Check if the next birthday falls within the next N days.

    Handles windows that wrap past the end of the year.

    Args:
        dob: Date of birth string
        within_days: Number of days to look ahead (inclusive)
        today: Reference date, defaults to the current date

    Returns:
        True if the upcoming birthday is on or before today + within_days
    """
    birthday = parse_birthday(dob)
    if birthday is None:
        return False

    if today is None:
        today = date.today()

    target_date = today + timedelta(days=within_days)
    this_year = birthday_in_year(birthday, today.year)

    if this_year < today:
        return birthday_in_year(birthday, today.year + 1) <= target_date

    return this_year <= target_date
