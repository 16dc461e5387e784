from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Iterable

from birthday_tracker.date_logic import (
    AnniversaryOutOfRangeError,
    MalformedDateError,
    as_local_date,
    compute_age,
    compute_days_until,
    compute_next_anniversary,
    parse_date_of_birth,
)
from birthday_tracker.models import (
    DEFAULT_LEAP_DAY_RULE,
    BirthRecord,
    EnrichedRecord,
    EnrichmentFailure,
    EnrichmentReport,
    EnrichmentResult,
)

LOGGER = logging.getLogger(__name__)


def enrich_record(record: BirthRecord, today: date, leap_day_rule: str) -> EnrichmentResult:
    today = as_local_date(today)
    try:
        date_of_birth = parse_date_of_birth(record.dob)
    except MalformedDateError as exc:
        return EnrichmentFailure(record=record, reason=str(exc))

    try:
        next_anniversary = compute_next_anniversary(date_of_birth, today, leap_day_rule)
    except AnniversaryOutOfRangeError as exc:
        return EnrichmentFailure(record=record, reason=str(exc))

    days_until = compute_days_until(next_anniversary, today)
    is_future_dated = date_of_birth > today
    if is_future_dated:
        LOGGER.debug("Record %s has a future date of birth %s", record.id, record.dob)

    return EnrichedRecord(
        record=record,
        date_of_birth=date_of_birth,
        current_age=max(compute_age(date_of_birth, today, leap_day_rule), 0),
        upcoming_age=max(compute_age(date_of_birth, next_anniversary, leap_day_rule), 0),
        next_anniversary=next_anniversary,
        days_until_next=days_until,
        is_today=days_until == 0,
        is_future_dated=is_future_dated,
    )


def sort_by_upcoming(records: Iterable[EnrichedRecord]) -> list[EnrichedRecord]:
    # sorted() is stable: ties keep their input order.
    return sorted(records, key=lambda item: (not item.is_today, item.days_until_next))


def enrich_batch(
    records: Iterable[BirthRecord],
    today: date | datetime,
    leap_day_rule: str = DEFAULT_LEAP_DAY_RULE,
) -> EnrichmentReport:
    today = as_local_date(today)

    enriched: list[EnrichedRecord] = []
    failures: list[EnrichmentFailure] = []
    for record in records:
        result = enrich_record(record, today, leap_day_rule)
        if isinstance(result, EnrichmentFailure):
            LOGGER.warning("Skipping record %s: %s", record.id, result.reason)
            failures.append(result)
        else:
            enriched.append(result)

    return EnrichmentReport(records=sort_by_upcoming(enriched), failures=failures)


def enrich_and_sort(
    records: Iterable[BirthRecord],
    today: date | datetime,
    leap_day_rule: str = DEFAULT_LEAP_DAY_RULE,
) -> list[EnrichedRecord]:
    return enrich_batch(records, today, leap_day_rule).records
