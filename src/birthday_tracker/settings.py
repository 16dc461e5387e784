from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

# Env var -> default location relative to the working directory.
PATH_DEFAULTS = {
    "BIRTHDAY_STORE_PATH": Path("config") / "birthdays.toml",
    "BIRTHDAY_SEED_PATH": Path("config") / "birthdays.json",
    "ANNOUNCEMENT_STATE_PATH": Path("data") / "announcement_state.json",
}


@dataclass(frozen=True)
class Settings:
    telegram_bot_token: str
    telegram_allowed_user_id: int
    telegram_allowed_chat_id: int
    birthday_store_path: Path
    birthday_seed_path: Path
    announcement_state_path: Path
    log_level: str = "INFO"


class _EnvReader:
    def __init__(self, environ: Mapping[str, str], root: Path) -> None:
        self._environ = environ
        self._root = root

    def text(self, name: str) -> str:
        value = (self._environ.get(name) or "").strip()
        if not value:
            raise ValueError(f"Missing required environment variable: {name}")
        return value

    def integer(self, name: str) -> int:
        try:
            return int(self.text(name))
        except ValueError as exc:
            raise ValueError(f"Environment variable {name} must be an integer") from exc

    def path(self, name: str) -> Path:
        override = (self._environ.get(name) or "").strip()
        if override:
            return Path(override)
        return self._root / PATH_DEFAULTS[name]

    def log_level(self, name: str) -> str:
        level = (self._environ.get(name) or "INFO").strip().upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Environment variable {name} is not a logging level: {level}")
        return level


def load_settings(environ: Mapping[str, str] | None = None, root: Path | None = None) -> Settings:
    env = _EnvReader(os.environ if environ is None else environ, root or Path.cwd())

    return Settings(
        telegram_bot_token=env.text("TELEGRAM_BOT_TOKEN"),
        telegram_allowed_user_id=env.integer("TELEGRAM_ALLOWED_USER_ID"),
        telegram_allowed_chat_id=env.integer("TELEGRAM_ALLOWED_CHAT_ID"),
        birthday_store_path=env.path("BIRTHDAY_STORE_PATH"),
        birthday_seed_path=env.path("BIRTHDAY_SEED_PATH"),
        announcement_state_path=env.path("ANNOUNCEMENT_STATE_PATH"),
        log_level=env.log_level("LOG_LEVEL"),
    )
