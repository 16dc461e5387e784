from __future__ import annotations

from dataclasses import dataclass
from datetime import date


DEFAULT_LEAP_DAY_RULE = "mar1"


@dataclass(frozen=True)
class BirthRecord:
    id: str
    name: str
    dob: str
    surname: str | None = None
    notes: str | None = None

    @property
    def display_name(self) -> str:
        if self.surname:
            return f"{self.name} {self.surname}"
        return self.name


@dataclass(frozen=True)
class EnrichedRecord:
    record: BirthRecord
    date_of_birth: date
    current_age: int
    upcoming_age: int
    next_anniversary: date
    days_until_next: int
    is_today: bool
    is_future_dated: bool = False


@dataclass(frozen=True)
class EnrichmentFailure:
    record: BirthRecord
    reason: str


EnrichmentResult = EnrichedRecord | EnrichmentFailure


@dataclass(frozen=True)
class EnrichmentReport:
    records: list[EnrichedRecord]
    failures: list[EnrichmentFailure]


@dataclass(frozen=True)
class TrackerConfig:
    timezone: str
    announce_time: str
    leap_day_rule: str
    birthdays: list[BirthRecord]
