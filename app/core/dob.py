"""Date of birth normalization."""

import re
from datetime import date

from app.core.timestamps import parse_timestamp

_ISO_DATE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")
_SLASH_DATE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")

MIN_DOB_YEAR = 1900
MAX_DOB_YEAR = 2100


def _valid_calendar_date(year: int, month: int, day: int) -> bool:
    try:
        date(year, month, day)
    except ValueError:
        return False
    return True


def _format(year: int, month: int, day: int) -> str:
    return f"{year:04d}-{month:02d}-{day:02d}"


def normalize_dob(dob: str | None) -> str | None:
    """Normalize a date of birth to YYYY-MM-DD.

    Accepts an already canonical YYYY-MM-DD date, anything dateutil can
    parse with a year between 1900 and 2100, or D/M/YYYY tried day-first
    then month-first.

    Returns:
        Canonical date string, or None when nothing parses. Callers omit the
        field on None rather than storing a placeholder date.
    """
    if not dob or not isinstance(dob, str):
        return None

    trimmed = dob.strip()
    if not trimmed:
        return None

    iso_match = _ISO_DATE.match(trimmed)
    if iso_match:
        year, month, day = (int(part) for part in iso_match.groups())
        if _valid_calendar_date(year, month, day):
            return trimmed

    parsed = parse_timestamp(trimmed)
    if parsed is not None and MIN_DOB_YEAR <= parsed.year <= MAX_DOB_YEAR:
        return _format(parsed.year, parsed.month, parsed.day)

    slash_match = _SLASH_DATE.match(trimmed)
    if slash_match:
        part1, part2, year = (int(part) for part in slash_match.groups())
        if MIN_DOB_YEAR <= year <= MAX_DOB_YEAR:
            # day-first, then US month-first
            for month, day in ((part2, part1), (part1, part2)):
                if _valid_calendar_date(year, month, day):
                    return _format(year, month, day)

    return None


def format_dob_for_display(dob: str | None) -> str:
    """Render a stored DOB for display, falling back to the raw value."""
    if not dob:
        return "N/A"
    if "T" in dob:
        return dob.split("T", 1)[0]
    return normalize_dob(dob) or dob
