from __future__ import annotations

import re
from datetime import date, datetime
from zoneinfo import ZoneInfo

ALLOWED_LEAP_DAY_RULES = {"feb28", "mar1"}

_DOB_PATTERN = re.compile(r"(\d{4})-(\d{2})-(\d{2})", re.ASCII)


class MalformedDateError(ValueError):
    pass


class AnniversaryOutOfRangeError(ValueError):
    pass


def is_leap_year(year: int) -> bool:
    return year % 4 == 0 and (year % 100 != 0 or year % 400 == 0)


def as_local_date(value: date | datetime) -> date:
    """Drop any time-of-day component so comparisons are by calendar day only."""
    if isinstance(value, datetime):
        return value.date()
    return value


def today_in_timezone(timezone_name: str) -> date:
    return datetime.now(ZoneInfo(timezone_name)).date()


def parse_date_of_birth(value: object) -> date:
    if not isinstance(value, str):
        raise MalformedDateError(f"Date of birth must be a string, got {type(value).__name__}")

    match = _DOB_PATTERN.fullmatch(value.strip())
    if match is None:
        raise MalformedDateError(f"Date of birth must use YYYY-MM-DD: {value!r}")

    year, month, day = (int(group) for group in match.groups())
    try:
        return date(year, month, day)
    except ValueError as exc:
        raise MalformedDateError(f"Not a real calendar date: {value!r}") from exc


def anniversary_for_year(date_of_birth: date, year: int, leap_day_rule: str) -> date:
    if year > date.max.year:
        raise AnniversaryOutOfRangeError(f"No anniversary representable in year {year}")
    if date_of_birth.month == 2 and date_of_birth.day == 29 and not is_leap_year(year):
        if leap_day_rule == "mar1":
            return date(year, 3, 1)
        if leap_day_rule == "feb28":
            return date(year, 2, 28)
        raise ValueError(f"Unsupported leap day rule: {leap_day_rule}")
    return date(year, date_of_birth.month, date_of_birth.day)


def compute_next_anniversary(date_of_birth: date, today: date, leap_day_rule: str) -> date:
    today = as_local_date(today)
    candidate = anniversary_for_year(date_of_birth, today.year, leap_day_rule)
    if candidate < today:
        return anniversary_for_year(date_of_birth, today.year + 1, leap_day_rule)
    return candidate


def compute_days_until(next_anniversary: date, today: date) -> int:
    next_anniversary = as_local_date(next_anniversary)
    today = as_local_date(today)
    if next_anniversary == today:
        return 0
    return (next_anniversary - today).days


def compute_age(date_of_birth: date, as_of: date, leap_day_rule: str) -> int:
    """Completed years between ``date_of_birth`` and ``as_of``.

    A year counts once ``as_of`` reaches the anniversary observed in its own year, so
    Feb 29 births age on the same day :func:`compute_next_anniversary` celebrates them.
    Future births give a negative result; callers clamp.
    """
    as_of = as_local_date(as_of)
    years = as_of.year - date_of_birth.year
    if as_of < anniversary_for_year(date_of_birth, as_of.year, leap_day_rule):
        years -= 1
    return years


def compute_upcoming_age(date_of_birth: date, today: date, leap_day_rule: str) -> int:
    next_anniversary = compute_next_anniversary(date_of_birth, today, leap_day_rule)
    return compute_age(date_of_birth, next_anniversary, leap_day_rule)
