from __future__ import annotations

import logging
import tomllib
import uuid
from datetime import date
from pathlib import Path

from birthday_tracker.atomic_io import write_text_atomic
from birthday_tracker.date_logic import ALLOWED_LEAP_DAY_RULES, MalformedDateError, parse_date_of_birth
from birthday_tracker.models import DEFAULT_LEAP_DAY_RULE, BirthRecord, TrackerConfig

LOGGER = logging.getLogger(__name__)


def new_record_id() -> str:
    return uuid.uuid4().hex


_TOML_ESCAPES = {"\\": "\\\\", "\"": "\\\"", "\n": "\\n", "\r": "\\r", "\t": "\\t"}


def _toml_escape(value: str) -> str:
    escaped: list[str] = []
    for char in value:
        if char in _TOML_ESCAPES:
            escaped.append(_TOML_ESCAPES[char])
        elif ord(char) < 0x20 or ord(char) == 0x7F:
            # Basic strings reject raw control characters.
            escaped.append(f"\\u{ord(char):04x}")
        else:
            escaped.append(char)
    return "".join(escaped)


def _optional_text(value: object) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _parse_announce_time(value: str) -> str:
    pieces = value.split(":")
    if len(pieces) != 2:
        raise ValueError("announce_time must be in HH:MM format")

    hour, minute = pieces
    if not hour.isdigit() or not minute.isdigit():
        raise ValueError("announce_time must contain numeric hour/minute")

    hour_i = int(hour)
    minute_i = int(minute)
    if hour_i < 0 or hour_i > 23 or minute_i < 0 or minute_i > 59:
        raise ValueError("announce_time must be a valid 24-hour time")

    return f"{hour_i:02d}:{minute_i:02d}"


def validate_config(config: TrackerConfig) -> TrackerConfig:
    timezone = config.timezone.strip()
    if not timezone:
        raise ValueError("timezone must not be empty")

    announce_time = _parse_announce_time(config.announce_time)

    leap_day_rule = config.leap_day_rule.strip().lower()
    if leap_day_rule not in ALLOWED_LEAP_DAY_RULES:
        raise ValueError(f"leap_day_rule must be one of {sorted(ALLOWED_LEAP_DAY_RULES)}")

    seen_ids: set[str] = set()
    validated_birthdays: list[BirthRecord] = []
    for birthday in config.birthdays:
        record_id = birthday.id.strip()
        if not record_id:
            raise ValueError("birthday id must not be empty")
        if record_id in seen_ids:
            raise ValueError(f"duplicate birthday id: {record_id}")
        seen_ids.add(record_id)

        name = birthday.name.strip()
        if not name:
            raise ValueError("birthday name must not be empty")

        # Malformed dob strings are kept; enrichment reports them per record.
        validated_birthdays.append(
            BirthRecord(
                id=record_id,
                name=name,
                surname=_optional_text(birthday.surname),
                dob=birthday.dob.strip(),
                notes=_optional_text(birthday.notes),
            )
        )

    return TrackerConfig(
        timezone=timezone,
        announce_time=announce_time,
        leap_day_rule=leap_day_rule,
        birthdays=validated_birthdays,
    )


def validate_dob(dob: str, today: date) -> date:
    try:
        date_of_birth = parse_date_of_birth(dob)
    except MalformedDateError as exc:
        raise ValueError("Date of birth must be a real date in YYYY-MM-DD format") from exc

    if date_of_birth > today:
        raise ValueError("Date of birth cannot be in the future")
    return date_of_birth


def validate_new_record(
    name: str,
    surname: str | None,
    dob: str,
    notes: str | None,
    today: date,
    *,
    record_id: str | None = None,
) -> BirthRecord:
    """Check user input before it reaches the store.

    Rejects blank names, unparseable dates and dates after ``today``; the message of the
    raised ``ValueError`` is meant to be shown to the user as-is.
    """
    cleaned_name = name.strip()
    if not cleaned_name:
        raise ValueError("Name cannot be empty")

    date_of_birth = validate_dob(dob, today)
    return BirthRecord(
        id=record_id or new_record_id(),
        name=cleaned_name,
        surname=_optional_text(surname),
        dob=date_of_birth.isoformat(),
        notes=_optional_text(notes),
    )


def load_config(path: Path) -> TrackerConfig:
    if not path.exists():
        raise FileNotFoundError(f"Birthday store not found: {path}")

    with path.open("rb") as file_obj:
        data = tomllib.load(file_obj)

    birthdays: list[BirthRecord] = []
    for row in data.get("birthdays", []):
        birthdays.append(
            BirthRecord(
                id=str(row.get("id", "")),
                name=str(row.get("name", "")),
                surname=_optional_text(row.get("surname")),
                dob=str(row.get("dob", "")),
                notes=_optional_text(row.get("notes")),
            )
        )

    config = TrackerConfig(
        timezone=str(data.get("timezone", "")),
        announce_time=str(data.get("announce_time", "")),
        leap_day_rule=str(data.get("leap_day_rule", DEFAULT_LEAP_DAY_RULE)),
        birthdays=birthdays,
    )
    return validate_config(config)


def render_config(config: TrackerConfig) -> str:
    validated = validate_config(config)

    lines: list[str] = [
        f'timezone = "{_toml_escape(validated.timezone)}"',
        f'announce_time = "{validated.announce_time}"',
        f'leap_day_rule = "{validated.leap_day_rule}"',
        "",
    ]

    for person in validated.birthdays:
        lines.append("[[birthdays]]")
        lines.append(f'id = "{_toml_escape(person.id)}"')
        lines.append(f'name = "{_toml_escape(person.name)}"')
        if person.surname is not None:
            lines.append(f'surname = "{_toml_escape(person.surname)}"')
        lines.append(f'dob = "{_toml_escape(person.dob)}"')
        if person.notes is not None:
            lines.append(f'notes = "{_toml_escape(person.notes)}"')
        lines.append("")

    return "\n".join(lines).rstrip() + "\n"


def save_config_atomic(path: Path, config: TrackerConfig) -> None:
    write_text_atomic(path, render_config(config))


def ensure_default_config(path: Path) -> None:
    if path.exists():
        return

    default_config = TrackerConfig(
        timezone="Europe/Moscow",
        announce_time="09:00",
        leap_day_rule=DEFAULT_LEAP_DAY_RULE,
        birthdays=[],
    )
    save_config_atomic(path, default_config)


def _with_birthdays(config: TrackerConfig, birthdays: list[BirthRecord]) -> TrackerConfig:
    return TrackerConfig(
        timezone=config.timezone,
        announce_time=config.announce_time,
        leap_day_rule=config.leap_day_rule,
        birthdays=birthdays,
    )


def _index_of(config: TrackerConfig, record_id: str) -> int:
    for index, record in enumerate(config.birthdays):
        if record.id == record_id:
            return index
    raise KeyError(record_id)


def add_birthday(path: Path, record: BirthRecord) -> TrackerConfig:
    config = load_config(path)
    updated = _with_birthdays(config, [*config.birthdays, record])
    save_config_atomic(path, updated)
    LOGGER.info("Added birthday %s", record.id)
    return updated


def update_birthday(path: Path, record_id: str, record: BirthRecord) -> TrackerConfig:
    config = load_config(path)
    index = _index_of(config, record_id)

    birthdays = list(config.birthdays)
    birthdays[index] = BirthRecord(
        id=record_id,
        name=record.name,
        surname=record.surname,
        dob=record.dob,
        notes=record.notes,
    )
    updated = _with_birthdays(config, birthdays)
    save_config_atomic(path, updated)
    LOGGER.info("Updated birthday %s", record_id)
    return updated


def delete_birthday(path: Path, record_id: str) -> BirthRecord:
    config = load_config(path)
    index = _index_of(config, record_id)

    birthdays = list(config.birthdays)
    removed = birthdays.pop(index)
    save_config_atomic(path, _with_birthdays(config, birthdays))
    LOGGER.info("Deleted birthday %s", record_id)
    return removed
