from __future__ import annotations

import hashlib
import logging
from datetime import date
from pathlib import Path

from telegram import Bot

from birthday_tracker.announcement_state import announcement_key, load_state, prune_old_keys, save_state
from birthday_tracker.enrichment import enrich_and_sort
from birthday_tracker.models import EnrichedRecord
from birthday_tracker.record_store import load_config

LOGGER = logging.getLogger(__name__)

AGE_TEMPLATES = (
    "🎉 {person_name} turns {age} today!\nDate: {date}",
    "🎂 Happy birthday, {person_name}! {age} years and counting.\nDate: {date}",
    "🥳 Today we celebrate {person_name}, who is {age} now.\nDate: {date}",
    "🎈 {person_name} reaches {age} today. Cake is appropriate.\nDate: {date}",
    "🌟 {age} years of {person_name} as of today.\nDate: {date}",
)

NEWBORN_TEMPLATES = (
    "🍼 {person_name} was born on this day.\nDate: {date}",
    "🎉 Today is {person_name}'s birth date.\nDate: {date}",
)


class AnnouncementService:
    def __init__(
        self,
        *,
        bot: Bot,
        chat_id: int,
        config_path: Path,
        state_path: Path,
    ) -> None:
        self._bot = bot
        self._chat_id = chat_id
        self._config_path = config_path
        self._state_path = state_path

    async def dispatch_for_date(self, today: date) -> int:
        config = load_config(self._config_path)
        records = enrich_and_sort(config.birthdays, today, config.leap_day_rule)

        state = load_state(self._state_path)
        prune_old_keys(state, today)

        sent_count = 0
        for item in records:
            if not item.is_today:
                # Sorted: today's birthdays come first.
                break
            if item.is_future_dated:
                LOGGER.debug("Not announcing future-dated record %s", item.record.id)
                continue
            key = announcement_key(today, item.record.id)
            if key in state.sent_keys:
                continue

            await self._bot.send_message(chat_id=self._chat_id, text=self.format_announcement(item))
            state.sent_keys.add(key)
            sent_count += 1

        save_state(self._state_path, state)
        if sent_count:
            LOGGER.info("Sent %s birthday announcements for %s", sent_count, today.isoformat())
        return sent_count

    @staticmethod
    def format_announcement(item: EnrichedRecord) -> str:
        if item.current_age > 0:
            templates, variant_group = AGE_TEMPLATES, "age"
        else:
            templates, variant_group = NEWBORN_TEMPLATES, "newborn"

        template = AnnouncementService._select_rotating_template(item, templates, variant_group)
        return template.format(
            person_name=item.record.display_name,
            age=item.current_age,
            date=item.next_anniversary.isoformat(),
        )

    @staticmethod
    def _select_rotating_template(item: EnrichedRecord, templates: tuple[str, ...], variant_group: str) -> str:
        seed = "|".join((item.record.id, item.next_anniversary.isoformat(), variant_group))
        digest = hashlib.sha256(seed.encode("utf-8")).digest()
        index = int.from_bytes(digest[:4], "big") % len(templates)
        return templates[index]


def parse_time_string(value: str) -> tuple[int, int]:
    hour, minute = value.split(":")
    return int(hour), int(minute)
