import json
from pathlib import Path

from birthday_tracker.models import BirthRecord, TrackerConfig
from birthday_tracker.record_store import load_config, save_config_atomic
from birthday_tracker.seed_import import dedupe_key, import_seed_file, load_seed, merge_seed


def _write_seed(path: Path, rows: list) -> None:
    path.write_text(json.dumps(rows), encoding="utf-8")


def test_dedupe_key_normalizes_names() -> None:
    first = BirthRecord(id="1", name="  Anna  Maria ", surname="PETROVA", dob="1990-03-14")
    second = BirthRecord(id="2", name="anna maria", surname="petrova", dob="1990-03-14 ")

    assert dedupe_key(first) == dedupe_key(second) == "anna maria|petrova|1990-03-14"


def test_load_seed_drops_incomplete_rows(tmp_path: Path) -> None:
    path = tmp_path / "birthdays.json"
    _write_seed(
        path,
        [
            {"id": "1", "name": "Anna", "dob": "1990-03-14", "notes": "tulips"},
            {"id": "2", "name": "", "dob": "1990-03-14"},
            {"id": "3", "name": "NoDob"},
            "not an object",
        ],
    )

    seed = load_seed(path)

    assert seed == [BirthRecord(id="1", name="Anna", dob="1990-03-14", notes="tulips")]


def test_load_seed_missing_file(tmp_path: Path) -> None:
    assert load_seed(tmp_path / "absent.json") == []


def test_merge_seed_skips_duplicates_and_assigns_ids() -> None:
    existing = [BirthRecord(id="seed_1", name="Anna", dob="1990-03-14")]
    seed = [
        BirthRecord(id="1", name="ANNA", dob="1990-03-14"),
        BirthRecord(id="1", name="Bob", dob="1985-08-22"),
        BirthRecord(id="2", name="Cleo", dob="2001-01-01"),
        BirthRecord(id="", name="Cleo", dob="2001-01-01"),
        BirthRecord(id="", name="Dan", dob="1999-09-09"),
    ]

    result = merge_seed(existing, seed)

    assert result.added == 3
    assert result.skipped == 2
    ids = [record.id for record in result.records]
    assert ids[0] == "seed_1"
    assert ids[1] not in {"seed_1", ""}
    assert ids[2] == "seed_2"
    assert len(set(ids)) == len(ids)
    assert [record.name for record in result.records] == ["Anna", "Bob", "Cleo", "Dan"]


def test_import_seed_file_is_repeatable(tmp_path: Path) -> None:
    store = tmp_path / "birthdays.toml"
    seed_path = tmp_path / "birthdays.json"
    save_config_atomic(
        store,
        TrackerConfig(timezone="UTC", announce_time="09:00", leap_day_rule="mar1", birthdays=[]),
    )
    _write_seed(seed_path, [{"id": "7", "name": "Anna", "surname": "Petrova", "dob": "1990-03-14"}])

    first = import_seed_file(store, seed_path)
    second = import_seed_file(store, seed_path)

    assert first.added == 1
    assert second.added == 0
    assert second.skipped == 1
    loaded = load_config(store)
    assert [(record.id, record.display_name) for record in loaded.birthdays] == [("seed_7", "Anna Petrova")]
