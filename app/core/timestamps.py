"""Lenient timestamp parsing for free-form date strings stored on contacts.

Contact timestamps such as ``last_purchase_at`` come from CSV imports and are
kept verbatim, so a stored value may be a real timestamp, garbage, or missing.
``classify_timestamp`` turns a raw value into one of three variants so each
rule can state how it treats a value it cannot read:

    Parsed(value)    - a naive UTC datetime
    Unparsed(raw)    - non-empty text that is not a date
    Absent()         - None or blank
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Union

from dateutil import parser as date_parser

# Missing fields default to Jan 1 so "1990" means 1990-01-01, not today's date
_PARSE_DEFAULT = datetime(2000, 1, 1)


@dataclass(frozen=True)
class Parsed:
    value: datetime


@dataclass(frozen=True)
class Unparsed:
    raw: str


@dataclass(frozen=True)
class Absent:
    pass


TimestampValue = Union[Parsed, Unparsed, Absent]


def to_naive_utc(value: datetime) -> datetime:
    """Convert an aware datetime to naive UTC; naive values are assumed UTC."""
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def parse_timestamp(raw: object) -> datetime | None:
    """Parse a timestamp-like value into a naive UTC datetime, or None."""
    if raw is None:
        return None
    if isinstance(raw, datetime):
        return to_naive_utc(raw)
    if not isinstance(raw, str):
        return None

    text = raw.strip()
    if not text:
        return None

    try:
        parsed = date_parser.parse(text, default=_PARSE_DEFAULT)
    except (ValueError, OverflowError, TypeError):
        return None
    return to_naive_utc(parsed)


def classify_timestamp(raw: object) -> TimestampValue:
    """Classify a raw stored value as Parsed, Unparsed or Absent."""
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return Absent()

    parsed = parse_timestamp(raw)
    if parsed is None:
        return Unparsed(str(raw))
    return Parsed(parsed)


def days_since(value: datetime, now: datetime) -> float:
    """Fractional days elapsed between value and now (negative if in the future)."""
    return (now - value).total_seconds() / 86400


def utcnow() -> datetime:
    """Current time as naive UTC, matching the DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
