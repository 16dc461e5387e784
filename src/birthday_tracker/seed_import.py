from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path

from birthday_tracker.models import BirthRecord, TrackerConfig
from birthday_tracker.record_store import (
    load_config,
    new_record_id,
    save_config_atomic,
)

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class SeedMergeResult:
    records: list[BirthRecord]
    added: int
    skipped: int


def normalize_name(name: str | None) -> str:
    pieces = (name or "").strip().lower().split()
    return " ".join(pieces)


def dedupe_key(record: BirthRecord) -> str:
    return f"{normalize_name(record.name)}|{normalize_name(record.surname)}|{record.dob.strip()}"


def _optional(row: dict, key: str) -> str | None:
    value = row.get(key)
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def load_seed(path: Path) -> list[BirthRecord]:
    if not path.exists():
        return []

    with path.open("r", encoding="utf-8") as file_obj:
        data = json.load(file_obj)

    if not isinstance(data, list):
        raise ValueError(f"Seed file must contain a JSON list: {path}")

    seed: list[BirthRecord] = []
    for row in data:
        if not isinstance(row, dict):
            continue
        name = _optional(row, "name")
        dob = _optional(row, "dob")
        if name is None or dob is None:
            continue
        seed.append(
            BirthRecord(
                id=_optional(row, "id") or "",
                name=name,
                surname=_optional(row, "surname"),
                dob=dob,
                notes=_optional(row, "notes"),
            )
        )
    return seed


def merge_seed(existing: list[BirthRecord], seed: list[BirthRecord]) -> SeedMergeResult:
    known_keys = {dedupe_key(record) for record in existing}
    used_ids = {record.id for record in existing}

    merged = list(existing)
    added = 0
    skipped = 0
    for entry in seed:
        key = dedupe_key(entry)
        if key in known_keys:
            skipped += 1
            continue

        record_id = f"seed_{entry.id}" if entry.id else ""
        if not record_id or record_id in used_ids:
            record_id = new_record_id()

        merged.append(
            BirthRecord(
                id=record_id,
                name=entry.name,
                surname=entry.surname,
                dob=entry.dob,
                notes=entry.notes,
            )
        )
        known_keys.add(key)
        used_ids.add(record_id)
        added += 1

    return SeedMergeResult(records=merged, added=added, skipped=skipped)


def import_seed_file(config_path: Path, seed_path: Path) -> SeedMergeResult:
    config = load_config(config_path)
    result = merge_seed(config.birthdays, load_seed(seed_path))

    if result.added:
        save_config_atomic(
            config_path,
            TrackerConfig(
                timezone=config.timezone,
                announce_time=config.announce_time,
                leap_day_rule=config.leap_day_rule,
                birthdays=result.records,
            ),
        )

    LOGGER.info(
        "Imported %s birthdays from %s (%s duplicates skipped)",
        result.added,
        seed_path,
        result.skipped,
    )
    return result
