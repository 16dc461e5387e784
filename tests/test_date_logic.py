from datetime import date, datetime, timedelta

import pytest

from birthday_tracker.date_logic import (
    AnniversaryOutOfRangeError,
    MalformedDateError,
    anniversary_for_year,
    compute_age,
    compute_days_until,
    compute_next_anniversary,
    compute_upcoming_age,
    parse_date_of_birth,
)


def test_parse_date_of_birth_accepts_iso_date() -> None:
    assert parse_date_of_birth("1990-06-15") == date(1990, 6, 15)
    assert parse_date_of_birth(" 1990-06-15 ") == date(1990, 6, 15)


@pytest.mark.parametrize("value", ["1990-6-15", "2023-02-29", "1990-13-01", "abc", "", "15.06.1990", None, 19900615])
def test_parse_date_of_birth_rejects_malformed(value) -> None:
    with pytest.raises(MalformedDateError):
        parse_date_of_birth(value)


def test_next_anniversary_later_this_year() -> None:
    dob = date(1990, 3, 14)
    today = date(2026, 3, 1)

    nxt = compute_next_anniversary(dob, today, "mar1")
    assert nxt == date(2026, 3, 14)
    assert compute_days_until(nxt, today) == 13


def test_next_anniversary_rolls_over_year_end() -> None:
    dob = date(1985, 1, 5)
    today = date(2024, 12, 30)

    nxt = compute_next_anniversary(dob, today, "mar1")
    assert nxt == date(2025, 1, 5)
    assert compute_days_until(nxt, today) == 6
    assert compute_age(dob, today, "mar1") == 39
    assert compute_upcoming_age(dob, today, "mar1") == 40


def test_birthday_today_is_zero_days_away() -> None:
    dob = date(1990, 6, 15)
    today = date(2024, 6, 15)

    nxt = compute_next_anniversary(dob, today, "mar1")
    assert nxt == today
    assert compute_days_until(nxt, today) == 0
    assert compute_age(dob, today, "mar1") == 34
    assert compute_upcoming_age(dob, today, "mar1") == 34


def test_age_increments_on_the_birthday() -> None:
    dob = date(2000, 3, 15)

    assert compute_age(dob, date(2024, 3, 14), "mar1") == 23
    assert compute_age(dob, date(2024, 3, 15), "mar1") == 24


def test_days_until_ignores_time_of_day() -> None:
    nxt = datetime(2025, 1, 5, 0, 0)
    today = datetime(2024, 12, 30, 23, 59)

    assert compute_days_until(nxt, today) == 6
    assert compute_days_until(datetime(2025, 1, 5, 8, 0), datetime(2025, 1, 5, 23, 0)) == 0


def test_leap_day_observed_on_mar1_in_common_year() -> None:
    dob = date(2000, 2, 29)
    today = date(2025, 3, 1)

    nxt = compute_next_anniversary(dob, today, "mar1")
    assert nxt == date(2025, 3, 1)
    assert compute_days_until(nxt, today) == 0
    assert compute_age(dob, today, "mar1") == 25
    assert compute_upcoming_age(dob, today, "mar1") == 25


def test_leap_day_not_yet_observed_on_feb28_under_mar1_rule() -> None:
    dob = date(2000, 2, 29)
    today = date(2025, 2, 28)

    assert compute_next_anniversary(dob, today, "mar1") == date(2025, 3, 1)
    assert compute_age(dob, today, "mar1") == 24
    assert compute_upcoming_age(dob, today, "mar1") == 25


def test_leap_day_observed_on_feb28_rule() -> None:
    dob = date(2000, 2, 29)

    assert compute_age(dob, date(2025, 2, 28), "feb28") == 25

    today = date(2025, 3, 1)
    nxt = compute_next_anniversary(dob, today, "feb28")
    assert nxt == date(2026, 2, 28)
    assert compute_days_until(nxt, today) == 364
    assert compute_upcoming_age(dob, today, "feb28") == 26


def test_leap_day_keeps_feb29_in_leap_year() -> None:
    dob = date(2000, 2, 29)

    assert compute_next_anniversary(dob, date(2028, 2, 27), "mar1") == date(2028, 2, 29)
    assert compute_next_anniversary(dob, date(2028, 2, 27), "feb28") == date(2028, 2, 29)


def test_unknown_leap_day_rule_rejected() -> None:
    with pytest.raises(ValueError):
        anniversary_for_year(date(2000, 2, 29), 2025, "never")


def test_future_birth_gives_negative_raw_age() -> None:
    assert compute_age(date(2030, 5, 1), date(2026, 10, 19), "mar1") == -4


def test_days_until_zero_only_on_matching_month_day() -> None:
    dob = date(1990, 7, 4)
    start = date(2024, 1, 1)

    for offset in range(366):
        today = start + timedelta(days=offset)
        days = compute_days_until(compute_next_anniversary(dob, today, "mar1"), today)
        assert days >= 0
        assert (days == 0) == ((today.month, today.day) == (7, 4))


def test_anniversary_beyond_year_9999_raises_out_of_range() -> None:
    with pytest.raises(AnniversaryOutOfRangeError):
        compute_next_anniversary(date(1990, 1, 1), date(9999, 12, 31), "mar1")
