from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any

from telegram import Update
from telegram.ext import (
    CallbackContext,
    CommandHandler,
    ConversationHandler,
    MessageHandler,
    filters,
)

from birthday_tracker.date_logic import today_in_timezone
from birthday_tracker.enrichment import enrich_batch
from birthday_tracker.models import BirthRecord, EnrichedRecord, EnrichmentReport, TrackerConfig
from birthday_tracker.record_store import (
    add_birthday,
    delete_birthday,
    load_config,
    update_birthday,
    validate_dob,
    validate_new_record,
)
from birthday_tracker.settings import Settings

LOGGER = logging.getLogger(__name__)

(
    STATE_ADD_NAME,
    STATE_ADD_SURNAME,
    STATE_ADD_DOB,
    STATE_ADD_NOTES,
    STATE_ADD_CONFIRM,
    STATE_EDIT_SELECT,
    STATE_EDIT_NAME,
    STATE_EDIT_SURNAME,
    STATE_EDIT_DOB,
    STATE_EDIT_NOTES,
    STATE_EDIT_CONFIRM,
    STATE_DELETE_SELECT,
    STATE_DELETE_CONFIRM,
) = range(13)

PENDING_ADD_KEY = "pending_add_birthday"
PENDING_EDIT_KEY = "pending_edit_birthday"
PENDING_DELETE_KEY = "pending_delete_birthday"

MONTH_NAMES = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)

TEXT_ONLY = filters.TEXT & ~filters.COMMAND


@dataclass(frozen=True)
class HandlerDependencies:
    settings: Settings


def is_authorized(update: Update, settings: Settings) -> bool:
    effective_user = update.effective_user
    effective_chat = update.effective_chat
    if effective_user is None or effective_chat is None:
        return False
    return (
        effective_user.id == settings.telegram_allowed_user_id
        and effective_chat.id == settings.telegram_allowed_chat_id
    )


def plural(count: int, singular: str, plural_form: str) -> str:
    return f"{count} {singular if count == 1 else plural_form}"


def format_birthday(date_of_birth: date) -> str:
    return f"{date_of_birth.day} {MONTH_NAMES[date_of_birth.month - 1]}"


def format_days_until(days: int) -> str:
    if days == 0:
        return "Today! 🎉"
    if days == 1:
        return "Tomorrow"
    return f"In {plural(days, 'day', 'days')}"


def _format_age(item: EnrichedRecord) -> str:
    if item.is_today:
        return f"Turns {item.upcoming_age}"
    return f"Age {item.current_age}, turning {item.upcoming_age}"


def render_list_message(report: EnrichmentReport) -> str:
    total = len(report.records) + len(report.failures)
    lines = [f"Birthdays ({total})", "Sorted by soonest:"]

    for index, item in enumerate(report.records, start=1):
        marker = " 🎂" if item.is_today else ""
        lines.append(f"{index}. {item.record.display_name}{marker}")
        details = [
            format_birthday(item.date_of_birth),
            _format_age(item),
            format_days_until(item.days_until_next),
        ]
        lines.append(f"   {' | '.join(details)}")
        if item.record.notes:
            lines.append(f"   Notes: {item.record.notes}")
        lines.append("")

    if report.failures:
        lines.append(f"Unreadable dates ({len(report.failures)}):")
        for failure in report.failures:
            lines.append(f"- {failure.record.display_name}: {failure.record.dob!r}")

    return "\n".join(lines).rstrip()


def render_today_message(records: list[EnrichedRecord]) -> str:
    todays = [item for item in records if item.is_today]
    if not todays:
        return "No birthdays today."

    lines = ["🎉 Birthdays today:"]
    for item in todays:
        lines.append(f"- {item.record.display_name} turns {item.upcoming_age}")
    return "\n".join(lines)


def _render_help() -> str:
    return (
        "Commands:\n"
        "/list - Show all birthdays, soonest first\n"
        "/today - Show today's birthdays\n"
        "/add - Add a birthday\n"
        "/edit - Edit a birthday\n"
        "/delete - Delete a birthday\n"
        "/help - Show this help message\n"
        "/cancel - Cancel the active wizard\n\n"
        "Dates use YYYY-MM-DD, e.g. 1990-03-14."
    )


def _render_selection(title: str, records: list[BirthRecord]) -> str:
    lines = [title, "Reply with the number of the entry:"]
    for index, record in enumerate(records, start=1):
        lines.append(f"{index}. {record.display_name} | {record.dob}")
    return "\n".join(lines)


def _render_pending(pending: dict[str, Any]) -> str:
    return (
        f"Name: {pending['name']}\n"
        f"Surname: {pending.get('surname') or '(none)'}\n"
        f"Date of birth: {pending['dob']}\n"
        f"Notes: {pending.get('notes') or '(none)'}"
    )


def _is_skip(value: str) -> bool:
    return value.strip().lower() in {"skip", "keep", "same"}


def _optional_answer(raw_text: str, current: str | None) -> str | None:
    """Map a wizard reply for an optional field: skip keeps, ``-`` clears."""
    value = raw_text.strip()
    if _is_skip(value):
        return current
    if value == "-" or not value:
        return None
    return value


def _settings(context: CallbackContext) -> Settings:
    deps: HandlerDependencies = context.application.bot_data["handler_deps"]
    return deps.settings


async def _guard(update: Update, context: CallbackContext) -> bool:
    if is_authorized(update, _settings(context)):
        return True
    if update.effective_message:
        await update.effective_message.reply_text("This bot is restricted to its configured owner.")
    return False


def _today(config: TrackerConfig) -> date:
    return today_in_timezone(config.timezone)


async def help_command(update: Update, context: CallbackContext) -> None:
    if not await _guard(update, context):
        return
    await update.effective_message.reply_text(_render_help())


async def list_command(update: Update, context: CallbackContext) -> None:
    if not await _guard(update, context):
        return

    config = load_config(_settings(context).birthday_store_path)
    if not config.birthdays:
        await update.effective_message.reply_text("No birthdays are tracked yet. Send /add to add one.")
        return

    report = enrich_batch(config.birthdays, _today(config), config.leap_day_rule)
    await update.effective_message.reply_text(render_list_message(report))


async def today_command(update: Update, context: CallbackContext) -> None:
    if not await _guard(update, context):
        return

    config = load_config(_settings(context).birthday_store_path)
    report = enrich_batch(config.birthdays, _today(config), config.leap_day_rule)
    await update.effective_message.reply_text(render_today_message(report.records))


async def add_start(update: Update, context: CallbackContext) -> int:
    if not await _guard(update, context):
        return ConversationHandler.END

    context.user_data[PENDING_ADD_KEY] = {}
    await update.effective_message.reply_text("Add birthday.\nStep 1/5: Send the person's name.")
    return STATE_ADD_NAME


async def add_name(update: Update, context: CallbackContext) -> int:
    if not await _guard(update, context):
        return ConversationHandler.END

    name = (update.effective_message.text or "").strip()
    if not name:
        await update.effective_message.reply_text("Name cannot be empty. Please send a name.")
        return STATE_ADD_NAME

    context.user_data[PENDING_ADD_KEY] = {"name": name}
    await update.effective_message.reply_text("Step 2/5: Send the surname, or skip.")
    return STATE_ADD_SURNAME


async def add_surname(update: Update, context: CallbackContext) -> int:
    if not await _guard(update, context):
        return ConversationHandler.END

    pending = context.user_data.get(PENDING_ADD_KEY, {})
    pending["surname"] = _optional_answer(update.effective_message.text or "", None)
    context.user_data[PENDING_ADD_KEY] = pending

    await update.effective_message.reply_text("Step 3/5: Send the date of birth as YYYY-MM-DD.")
    return STATE_ADD_DOB


async def add_dob(update: Update, context: CallbackContext) -> int:
    if not await _guard(update, context):
        return ConversationHandler.END

    config = load_config(_settings(context).birthday_store_path)
    try:
        date_of_birth = validate_dob(update.effective_message.text or "", _today(config))
    except ValueError as exc:
        await update.effective_message.reply_text(f"{exc}. Please try again.")
        return STATE_ADD_DOB

    pending = context.user_data.get(PENDING_ADD_KEY, {})
    pending["dob"] = date_of_birth.isoformat()
    context.user_data[PENDING_ADD_KEY] = pending

    await update.effective_message.reply_text("Step 4/5: Send notes, or skip.")
    return STATE_ADD_NOTES


async def add_notes(update: Update, context: CallbackContext) -> int:
    if not await _guard(update, context):
        return ConversationHandler.END

    pending = context.user_data.get(PENDING_ADD_KEY, {})
    pending["notes"] = _optional_answer(update.effective_message.text or "", None)
    context.user_data[PENDING_ADD_KEY] = pending

    await update.effective_message.reply_text(
        "Step 5/5: Confirm this entry:\n"
        f"{_render_pending(pending)}\n\n"
        "Reply with yes to save, or no to cancel."
    )
    return STATE_ADD_CONFIRM


async def add_confirm(update: Update, context: CallbackContext) -> int:
    if not await _guard(update, context):
        return ConversationHandler.END

    decision = (update.effective_message.text or "").strip().lower()
    if decision not in {"yes", "y", "no", "n"}:
        await update.effective_message.reply_text("Please reply with yes or no.")
        return STATE_ADD_CONFIRM

    pending = context.user_data.pop(PENDING_ADD_KEY, {})
    if decision in {"no", "n"}:
        await update.effective_message.reply_text("Canceled. No changes were made.")
        return ConversationHandler.END
    if "name" not in pending or "dob" not in pending:
        await update.effective_message.reply_text("Add session expired. Send /add to start again.")
        return ConversationHandler.END

    store_path = _settings(context).birthday_store_path
    config = load_config(store_path)
    try:
        record = validate_new_record(
            pending["name"],
            pending.get("surname"),
            pending["dob"],
            pending.get("notes"),
            _today(config),
        )
    except ValueError as exc:
        await update.effective_message.reply_text(f"{exc}. No changes were made.")
        return ConversationHandler.END
    add_birthday(store_path, record)

    await update.effective_message.reply_text("Birthday saved.")
    LOGGER.info("Added birthday for %s", record.display_name)
    return ConversationHandler.END


def _edit_pending(context: CallbackContext) -> dict[str, Any] | None:
    pending = context.user_data.get(PENDING_EDIT_KEY)
    if not isinstance(pending, dict) or "record_id" not in pending:
        return None
    return pending


async def _edit_expired(update: Update) -> int:
    await update.effective_message.reply_text("Edit session expired. Send /edit to start again.")
    return ConversationHandler.END


async def _select_record(update: Update, context: CallbackContext) -> BirthRecord | None:
    raw_text = (update.effective_message.text or "").strip()
    if not raw_text.isdigit():
        await update.effective_message.reply_text("Please send the entry number shown in the list.")
        return None

    selected = int(raw_text)
    config = load_config(_settings(context).birthday_store_path)
    if selected < 1 or selected > len(config.birthdays):
        await update.effective_message.reply_text(f"Entry must be between 1 and {len(config.birthdays)}.")
        return None
    return config.birthdays[selected - 1]


async def edit_start(update: Update, context: CallbackContext) -> int:
    if not await _guard(update, context):
        return ConversationHandler.END

    config = load_config(_settings(context).birthday_store_path)
    if not config.birthdays:
        await update.effective_message.reply_text("No birthdays are tracked yet.")
        return ConversationHandler.END

    context.user_data[PENDING_EDIT_KEY] = {}
    await update.effective_message.reply_text(_render_selection("Edit birthday.", config.birthdays))
    return STATE_EDIT_SELECT


async def edit_select(update: Update, context: CallbackContext) -> int:
    if not await _guard(update, context):
        return ConversationHandler.END

    record = await _select_record(update, context)
    if record is None:
        return STATE_EDIT_SELECT

    context.user_data[PENDING_EDIT_KEY] = {
        "record_id": record.id,
        "name": record.name,
        "surname": record.surname,
        "dob": record.dob,
        "notes": record.notes,
    }
    await update.effective_message.reply_text(f'Send a new name, or skip to keep "{record.name}".')
    return STATE_EDIT_NAME


async def edit_name(update: Update, context: CallbackContext) -> int:
    if not await _guard(update, context):
        return ConversationHandler.END
    pending = _edit_pending(context)
    if pending is None:
        return await _edit_expired(update)

    raw_text = (update.effective_message.text or "").strip()
    if not _is_skip(raw_text):
        if not raw_text:
            await update.effective_message.reply_text("Name cannot be empty. Send a name or skip.")
            return STATE_EDIT_NAME
        pending["name"] = raw_text

    await update.effective_message.reply_text(
        f"Send a new surname, skip to keep {pending.get('surname') or '(none)'}, or - to clear it."
    )
    return STATE_EDIT_SURNAME


async def edit_surname(update: Update, context: CallbackContext) -> int:
    if not await _guard(update, context):
        return ConversationHandler.END
    pending = _edit_pending(context)
    if pending is None:
        return await _edit_expired(update)

    pending["surname"] = _optional_answer(update.effective_message.text or "", pending.get("surname"))
    await update.effective_message.reply_text(
        f"Send a new date of birth as YYYY-MM-DD, or skip to keep {pending['dob']}."
    )
    return STATE_EDIT_DOB


async def edit_dob(update: Update, context: CallbackContext) -> int:
    if not await _guard(update, context):
        return ConversationHandler.END
    pending = _edit_pending(context)
    if pending is None:
        return await _edit_expired(update)

    raw_text = (update.effective_message.text or "").strip()
    if not _is_skip(raw_text):
        config = load_config(_settings(context).birthday_store_path)
        try:
            pending["dob"] = validate_dob(raw_text, _today(config)).isoformat()
        except ValueError as exc:
            await update.effective_message.reply_text(f"{exc}. Please try again, or skip.")
            return STATE_EDIT_DOB

    await update.effective_message.reply_text(
        f"Send new notes, skip to keep {pending.get('notes') or '(none)'}, or - to clear them."
    )
    return STATE_EDIT_NOTES


async def edit_notes(update: Update, context: CallbackContext) -> int:
    if not await _guard(update, context):
        return ConversationHandler.END
    pending = _edit_pending(context)
    if pending is None:
        return await _edit_expired(update)

    pending["notes"] = _optional_answer(update.effective_message.text or "", pending.get("notes"))
    await update.effective_message.reply_text(
        "Confirm these values:\n"
        f"{_render_pending(pending)}\n\n"
        "Reply with yes to save, or no to cancel."
    )
    return STATE_EDIT_CONFIRM


async def edit_confirm(update: Update, context: CallbackContext) -> int:
    if not await _guard(update, context):
        return ConversationHandler.END
    pending = _edit_pending(context)
    if pending is None:
        return await _edit_expired(update)

    decision = (update.effective_message.text or "").strip().lower()
    if decision not in {"yes", "y", "no", "n"}:
        await update.effective_message.reply_text("Please reply with yes or no.")
        return STATE_EDIT_CONFIRM

    context.user_data.pop(PENDING_EDIT_KEY, None)
    if decision in {"no", "n"}:
        await update.effective_message.reply_text("Canceled. No changes were made.")
        return ConversationHandler.END

    store_path = _settings(context).birthday_store_path
    config = load_config(store_path)
    try:
        record = validate_new_record(
            pending["name"],
            pending.get("surname"),
            pending["dob"],
            pending.get("notes"),
            _today(config),
            record_id=pending["record_id"],
        )
    except ValueError as exc:
        await update.effective_message.reply_text(f"{exc}. No changes were made.")
        return ConversationHandler.END
    try:
        update_birthday(store_path, record.id, record)
    except KeyError:
        await update.effective_message.reply_text(
            "Could not save because the entry no longer exists. Send /edit and try again."
        )
        return ConversationHandler.END

    await update.effective_message.reply_text("Birthday updated.")
    LOGGER.info("Updated birthday for %s", record.display_name)
    return ConversationHandler.END


async def delete_start(update: Update, context: CallbackContext) -> int:
    if not await _guard(update, context):
        return ConversationHandler.END

    config = load_config(_settings(context).birthday_store_path)
    if not config.birthdays:
        await update.effective_message.reply_text("No birthdays are tracked yet.")
        return ConversationHandler.END

    context.user_data[PENDING_DELETE_KEY] = {}
    await update.effective_message.reply_text(_render_selection("Delete birthday.", config.birthdays))
    return STATE_DELETE_SELECT


async def delete_select(update: Update, context: CallbackContext) -> int:
    if not await _guard(update, context):
        return ConversationHandler.END

    record = await _select_record(update, context)
    if record is None:
        return STATE_DELETE_SELECT

    context.user_data[PENDING_DELETE_KEY] = {"record_id": record.id, "name": record.display_name}
    await update.effective_message.reply_text(
        f"Delete {record.display_name}? Reply with yes to delete, or no to cancel."
    )
    return STATE_DELETE_CONFIRM


async def delete_confirm(update: Update, context: CallbackContext) -> int:
    if not await _guard(update, context):
        return ConversationHandler.END

    decision = (update.effective_message.text or "").strip().lower()
    if decision not in {"yes", "y", "no", "n"}:
        await update.effective_message.reply_text("Please reply with yes or no.")
        return STATE_DELETE_CONFIRM

    pending = context.user_data.pop(PENDING_DELETE_KEY, {})
    if decision in {"no", "n"} or "record_id" not in pending:
        await update.effective_message.reply_text("Canceled. No changes were made.")
        return ConversationHandler.END

    try:
        removed = delete_birthday(_settings(context).birthday_store_path, pending["record_id"])
    except KeyError:
        await update.effective_message.reply_text("That entry no longer exists.")
        return ConversationHandler.END

    await update.effective_message.reply_text(f"Deleted {removed.display_name}.")
    LOGGER.info("Deleted birthday for %s", removed.display_name)
    return ConversationHandler.END


async def cancel_command(update: Update, context: CallbackContext) -> int:
    if not await _guard(update, context):
        return ConversationHandler.END

    for key in (PENDING_ADD_KEY, PENDING_EDIT_KEY, PENDING_DELETE_KEY):
        context.user_data.pop(key, None)
    await update.effective_message.reply_text("Wizard canceled.")
    return ConversationHandler.END


def _conversation(name: str, command: str, entry, states: dict[int, Any]) -> ConversationHandler:
    return ConversationHandler(
        entry_points=[CommandHandler(command, entry)],
        states={state: [MessageHandler(TEXT_ONLY, handler)] for state, handler in states.items()},
        fallbacks=[CommandHandler("cancel", cancel_command)],
        name=name,
        persistent=False,
    )


def build_handlers() -> list:
    add_conversation = _conversation(
        "add_birthday_conversation",
        "add",
        add_start,
        {
            STATE_ADD_NAME: add_name,
            STATE_ADD_SURNAME: add_surname,
            STATE_ADD_DOB: add_dob,
            STATE_ADD_NOTES: add_notes,
            STATE_ADD_CONFIRM: add_confirm,
        },
    )
    edit_conversation = _conversation(
        "edit_birthday_conversation",
        "edit",
        edit_start,
        {
            STATE_EDIT_SELECT: edit_select,
            STATE_EDIT_NAME: edit_name,
            STATE_EDIT_SURNAME: edit_surname,
            STATE_EDIT_DOB: edit_dob,
            STATE_EDIT_NOTES: edit_notes,
            STATE_EDIT_CONFIRM: edit_confirm,
        },
    )
    delete_conversation = _conversation(
        "delete_birthday_conversation",
        "delete",
        delete_start,
        {
            STATE_DELETE_SELECT: delete_select,
            STATE_DELETE_CONFIRM: delete_confirm,
        },
    )

    return [
        CommandHandler("help", help_command),
        CommandHandler("list", list_command),
        CommandHandler("today", today_command),
        CommandHandler("cancel", cancel_command),
        add_conversation,
        edit_conversation,
        delete_conversation,
    ]
