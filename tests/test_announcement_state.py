from datetime import date
from pathlib import Path

from birthday_tracker.announcement_state import (
    AnnouncementState,
    announcement_key,
    load_state,
    prune_old_keys,
    save_state,
)


def test_load_missing_state_is_empty(tmp_path: Path) -> None:
    state = load_state(tmp_path / "state.json")

    assert state.sent_keys == set()
    assert state.last_pruned is None


def test_save_and_load_state(tmp_path: Path) -> None:
    path = tmp_path / "data" / "state.json"
    save_state(path, AnnouncementState(sent_keys={announcement_key(date(2026, 3, 14), "a1")}, last_pruned="2026-03-14"))

    loaded = load_state(path)

    assert loaded.sent_keys == {"2026-03-14|a1"}
    assert loaded.last_pruned == "2026-03-14"


def test_prune_drops_old_and_unreadable_keys() -> None:
    state = AnnouncementState(
        sent_keys={
            "2026-03-14|recent",
            "2024-01-01|old",
            "garbage",
            "not-a-date|x",
        }
    )

    prune_old_keys(state, date(2026, 3, 15))

    assert state.sent_keys == {"2026-03-14|recent"}
    assert state.last_pruned == "2026-03-15"
