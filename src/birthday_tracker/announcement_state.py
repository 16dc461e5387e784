from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import date, timedelta
from pathlib import Path

from birthday_tracker.atomic_io import write_text_atomic


@dataclass
class AnnouncementState:
    sent_keys: set[str]
    last_pruned: str | None = None


def load_state(path: Path) -> AnnouncementState:
    if not path.exists():
        return AnnouncementState(sent_keys=set())

    with path.open("r", encoding="utf-8") as file_obj:
        data = json.load(file_obj)

    last_pruned = data.get("last_pruned")
    return AnnouncementState(
        sent_keys={str(value) for value in data.get("sent_keys", [])},
        last_pruned=str(last_pruned) if last_pruned else None,
    )


def save_state(path: Path, state: AnnouncementState) -> None:
    payload = {"sent_keys": sorted(state.sent_keys), "last_pruned": state.last_pruned}
    write_text_atomic(path, json.dumps(payload, indent=2) + "\n")


def announcement_key(announce_date: date, record_id: str) -> str:
    return f"{announce_date.isoformat()}|{record_id}"


def prune_old_keys(state: AnnouncementState, today: date, *, retention_days: int = 400) -> None:
    cutoff = today - timedelta(days=retention_days)
    retained: set[str] = set()

    for key in state.sent_keys:
        announce_date_str, separator, _record_id = key.partition("|")
        if not separator:
            continue
        try:
            announce_date = date.fromisoformat(announce_date_str)
        except ValueError:
            continue

        if announce_date >= cutoff:
            retained.add(key)

    state.sent_keys = retained
    state.last_pruned = today.isoformat()
