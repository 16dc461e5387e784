from __future__ import annotations

import logging
from datetime import datetime, time
from zoneinfo import ZoneInfo

from telegram.ext import Application, CallbackContext

from birthday_tracker.announcement_service import AnnouncementService, parse_time_string
from birthday_tracker.bot_handlers import HandlerDependencies, build_handlers
from birthday_tracker.date_logic import today_in_timezone
from birthday_tracker.record_store import ensure_default_config, load_config
from birthday_tracker.seed_import import import_seed_file
from birthday_tracker.settings import load_settings

LOGGER = logging.getLogger(__name__)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


async def scheduled_announcement_callback(context: CallbackContext) -> None:
    service: AnnouncementService = context.application.bot_data["announcement_service"]
    config = load_config(context.application.bot_data["handler_deps"].settings.birthday_store_path)
    await service.dispatch_for_date(today_in_timezone(config.timezone))


async def startup_catchup(application: Application) -> None:
    settings = application.bot_data["handler_deps"].settings
    config = load_config(settings.birthday_store_path)
    now = datetime.now(ZoneInfo(config.timezone))

    hour, minute = parse_time_string(config.announce_time)
    scheduled = now.replace(hour=hour, minute=minute, second=0, microsecond=0)
    if now >= scheduled:
        service: AnnouncementService = application.bot_data["announcement_service"]
        await service.dispatch_for_date(now.date())


def main() -> None:
    settings = load_settings()
    configure_logging(settings.log_level)

    ensure_default_config(settings.birthday_store_path)
    config = load_config(settings.birthday_store_path)
    if not config.birthdays and settings.birthday_seed_path.exists():
        import_seed_file(settings.birthday_store_path, settings.birthday_seed_path)
        config = load_config(settings.birthday_store_path)

    tz = ZoneInfo(config.timezone)
    hour, minute = parse_time_string(config.announce_time)

    application = Application.builder().token(settings.telegram_bot_token).build()
    application.bot_data["handler_deps"] = HandlerDependencies(settings=settings)
    application.bot_data["announcement_service"] = AnnouncementService(
        bot=application.bot,
        chat_id=settings.telegram_allowed_chat_id,
        config_path=settings.birthday_store_path,
        state_path=settings.announcement_state_path,
    )

    for handler in build_handlers():
        application.add_handler(handler)

    application.job_queue.run_daily(
        scheduled_announcement_callback,
        time=time(hour=hour, minute=minute, tzinfo=tz),
        name="daily-birthday-announcements",
    )

    application.post_init = startup_catchup
    LOGGER.info("Tracking %s birthdays in %s", len(config.birthdays), config.timezone)
    application.run_polling()


if __name__ == "__main__":
    main()
