"""
Telegram bot for Clipnote.

Mobile capture and reminders via Telegram. Any text or image sent to the
bot is triaged and saved; due reminders are pushed back as messages.
"""

import asyncio
import logging
import os
from datetime import datetime, timezone
from typing import Any

from telegram import Update
from telegram.error import TelegramError
from telegram.ext import (
    Application,
    CommandHandler,
    ContextTypes,
    MessageHandler,
    filters,
)

from clipnote.classifier import AIClassifier
from clipnote.config import LOG_FORMAT, ensure_dirs, load_config
from clipnote.db import Database
from clipnote.errors import ClipnoteError
from clipnote.models import ImageInput, Note, TextInput
from clipnote.reminders import parse_due, reminder_text
from clipnote.surfacing import format_when, generate_analytics, search_notes
from clipnote.triage import capture

# Configure logging
logging.basicConfig(format=LOG_FORMAT, level=logging.INFO)
logger = logging.getLogger(__name__)


def get_bot_config(config: dict[str, Any] | None = None) -> dict[str, Any]:
    """Get bot configuration."""
    config = config or load_config()
    bot_config = config.get("telegram", {})

    # Token from config or environment
    token = bot_config.get("token") or os.environ.get("CLIPNOTE_TELEGRAM_TOKEN")
    if not token:
        raise ValueError(
            "Telegram bot token not found. "
            "Set CLIPNOTE_TELEGRAM_TOKEN env var or add to config.toml"
        )

    # Authorized user IDs (comma-separated in env, list in config)
    authorized = bot_config.get("authorized_users", [])
    if not authorized:
        env_users = os.environ.get("CLIPNOTE_TELEGRAM_USERS", "")
        if env_users:
            authorized = [int(uid.strip()) for uid in env_users.split(",") if uid.strip()]

    return {
        "token": token,
        "authorized_users": {int(uid) for uid in authorized},
        # Set this to share notes with the CLI owner; otherwise each user is separate
        "owner_id": bot_config.get("owner_id"),
        "interval_seconds": float(config.get("reminders", {}).get("interval_seconds", 60)),
    }


def is_authorized(user_id: int, authorized_users: set[int]) -> bool:
    """Check if user is authorized."""
    # If no users configured, deny all (secure default)
    if not authorized_users:
        return False
    return user_id in authorized_users


def owner_for(user_id: int, shared_owner: str | None = None) -> str:
    """Note owner id for a Telegram user."""
    return shared_owner or f"tg:{user_id}"


def format_notes_telegram(notes: list[Note], title: str, limit: int = 10) -> str:
    """Format notes for Telegram (plain text, compact)."""
    if not notes:
        return f"{title}\n\nNo notes found."

    lines = [f"{title}", ""]

    for note in notes[:limit]:
        label = note.category or note.content_type
        lines.append(f"{note.id} [{label}] {note.display_title[:40]}")

    if len(notes) > limit:
        lines.append(f"\n... and {len(notes) - limit} more")

    return "\n".join(lines)


async def _check_user(update: Update, context: ContextTypes.DEFAULT_TYPE) -> str | None:
    """Return the caller's owner id, or reply and return None if unauthorized."""
    if not update.effective_user or not update.message:
        return None

    user_id = update.effective_user.id
    if not is_authorized(user_id, context.bot_data.get("authorized_users", set())):
        logger.warning(f"Unauthorized message attempt from user {user_id}")
        await update.message.reply_text(f"Unauthorized. Your ID: {user_id}")
        return None

    return owner_for(user_id, context.bot_data.get("owner_id"))


async def start_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /start command."""
    if await _check_user(update, context):
        await help_command(update, context)


async def id_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /id command - show user's Telegram ID."""
    if not update.effective_user or not update.message:
        return

    await update.message.reply_text(f"Your Telegram user ID: {update.effective_user.id}")


async def help_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /help command."""
    if not update.message:
        return

    await update.message.reply_text(
        "Clipnote Commands:\n\n"
        "/list [category] - List notes\n"
        "/find <query> - Search notes\n"
        "/show <id> - Show a note\n"
        "/delete <id> - Delete a note\n"
        "/remind <id> <when|off> - Set a reminder (+30m, +2h, +1d, ISO time)\n"
        "/reminders - Upcoming reminders\n"
        "/stats - Analytics\n"
        "/id - Show your user ID\n"
        "/help - Show this message\n\n"
        "Send any text, link, code or image to save it."
    )


async def _save(update: Update, context: ContextTypes.DEFAULT_TYPE, owner_id: str, raw) -> None:
    try:
        note = await asyncio.to_thread(
            capture, raw, owner_id, context.bot_data["classifier"], context.bot_data["db"]
        )
    except ClipnoteError as e:
        logger.error(f"Failed to capture: {e}")
        await update.message.reply_text(f"Not saved: {e}")
        return

    label = note.category or note.content_type
    await update.message.reply_text(f"Saved {note.id} [{label}] {note.display_title}")
    logger.info(f"Captured from Telegram for {owner_id}: {note.id}")


async def handle_message(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle incoming text - triage and save."""
    owner_id = await _check_user(update, context)
    if not owner_id:
        return

    await _save(update, context, owner_id, TextInput(value=update.message.text or ""))


async def handle_image(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle photos and image documents."""
    owner_id = await _check_user(update, context)
    if not owner_id:
        return

    message = update.message
    if message.photo:
        # Largest size is last
        tg_file = await message.photo[-1].get_file()
        mime_type = "image/jpeg"
    else:
        tg_file = await message.document.get_file()
        mime_type = message.document.mime_type or "image/jpeg"

    blob = bytes(await tg_file.download_as_bytearray())
    await _save(update, context, owner_id, ImageInput(blob=blob, mime_type=mime_type))


async def list_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /list command - list notes with optional category filter."""
    owner_id = await _check_user(update, context)
    if not owner_id:
        return

    db: Database = context.bot_data["db"]
    category = context.args[0].lower() if context.args else None

    try:
        if category:
            notes = await asyncio.to_thread(db.list_by_owner_and_category, owner_id, category)
        else:
            notes = await asyncio.to_thread(db.list_by_owner, owner_id)
    except ClipnoteError as e:
        await update.message.reply_text(f"Error: {e}")
        return

    title = category.upper() if category else "NOTES"
    await update.message.reply_text(format_notes_telegram(notes, title, limit=15))


async def find_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /find command - search notes."""
    owner_id = await _check_user(update, context)
    if not owner_id:
        return

    if not context.args:
        await update.message.reply_text("Usage: /find <query>")
        return

    query = " ".join(context.args)

    try:
        notes = await asyncio.to_thread(context.bot_data["db"].list_by_owner, owner_id)
    except ClipnoteError as e:
        await update.message.reply_text(f"Error: {e}")
        return

    await update.message.reply_text(format_notes_telegram(search_notes(notes, query), f"SEARCH: {query}"))


async def _resolve(update: Update, context: ContextTypes.DEFAULT_TYPE, owner_id: str) -> str | None:
    db: Database = context.bot_data["db"]
    identifier = context.args[0]
    note_id = await asyncio.to_thread(db.resolve_note_id, owner_id, identifier)
    if not note_id:
        await update.message.reply_text(f"Note not found: {identifier}")
    return note_id


async def show_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /show command - show one note."""
    owner_id = await _check_user(update, context)
    if not owner_id:
        return

    if not context.args:
        await update.message.reply_text("Usage: /show <id>")
        return

    db: Database = context.bot_data["db"]
    try:
        note_id = await _resolve(update, context, owner_id)
        if not note_id:
            return
        note = await asyncio.to_thread(db.get, note_id)
        photo = None
        if note.content_type == "image":
            path = db.blob_path(note.original_content)
            photo = await asyncio.to_thread(path.read_bytes)
    except ClipnoteError as e:
        await update.message.reply_text(f"Error: {e}")
        return
    except FileNotFoundError:
        await update.message.reply_text(f"Image file missing: {path.name}")
        return

    if photo is not None:
        await update.message.reply_photo(photo, caption=note.display_title)
        return

    lines = [note.display_title, f"[{note.category or note.content_type}] {note.priority or ''}".strip()]
    if note.tags:
        lines.append("#" + " #".join(note.tags))
    lines += ["", note.cleaned_content]
    await update.message.reply_text("\n".join(lines))


async def delete_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /delete command - delete a note."""
    owner_id = await _check_user(update, context)
    if not owner_id:
        return

    if not context.args:
        await update.message.reply_text("Usage: /delete <id>")
        return

    try:
        note_id = await _resolve(update, context, owner_id)
        if not note_id:
            return
        await asyncio.to_thread(context.bot_data["db"].delete, note_id)
        await update.message.reply_text(f"Deleted: {note_id}")
    except ClipnoteError as e:
        await update.message.reply_text(f"Error: {e}")


async def remind_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /remind command - set or clear a reminder."""
    owner_id = await _check_user(update, context)
    if not owner_id:
        return

    if len(context.args or []) < 2:
        await update.message.reply_text("Usage: /remind <id> <when|off>")
        return

    db: Database = context.bot_data["db"]
    when = " ".join(context.args[1:])

    try:
        due_at = None if when.lower() == "off" else parse_due(when)
    except ValueError as e:
        await update.message.reply_text(f"Error: {e}")
        return

    try:
        note_id = await _resolve(update, context, owner_id)
        if not note_id:
            return
        if due_at is None:
            await asyncio.to_thread(db.disable_reminder, note_id)
            await update.message.reply_text(f"Reminder off: {note_id}")
        else:
            await asyncio.to_thread(db.set_reminder, note_id, due_at)
            await update.message.reply_text(f"Reminder set: {note_id} at {format_when(due_at)}")
    except ClipnoteError as e:
        await update.message.reply_text(f"Error: {e}")


async def reminders_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /reminders command - list upcoming reminders."""
    owner_id = await _check_user(update, context)
    if not owner_id:
        return

    try:
        notes = await asyncio.to_thread(
            context.bot_data["db"].list_upcoming_reminders, owner_id, datetime.now(timezone.utc)
        )
    except ClipnoteError as e:
        await update.message.reply_text(f"Error: {e}")
        return

    if not notes:
        await update.message.reply_text("No upcoming reminders.")
        return

    lines = ["UPCOMING REMINDERS", ""]
    for note in notes[:15]:
        lines.append(f"{note.id} {format_when(note.reminder.due_at)} {note.display_title[:40]}")
    await update.message.reply_text("\n".join(lines))


async def stats_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /stats command - show analytics."""
    owner_id = await _check_user(update, context)
    if not owner_id:
        return

    try:
        notes = await asyncio.to_thread(context.bot_data["db"].list_by_owner, owner_id)
    except ClipnoteError as e:
        await update.message.reply_text(f"Error: {e}")
        return

    stats = generate_analytics(notes)
    top = ", ".join(f"{s['category']} {s['count']}" for s in stats["category_stats"][:5])
    await update.message.reply_text(
        f"Notes: {stats['total_notes']} (today {stats['notes_today']}, "
        f"7 days {stats['notes_this_week']})\n"
        f"Top categories: {top or '-'}\n"
        f"Reminders active: {stats['reminder_stats']['active_reminders']}\n"
        f"Score: {stats['productivity_score']}/100"
    )


async def reminder_job(context: ContextTypes.DEFAULT_TYPE) -> None:
    """Repeating job: push due reminders, then mark them notified."""
    db: Database = context.bot_data["db"]
    shared_owner = context.bot_data.get("owner_id")

    recipients: dict[str, list[int]] = {}
    for user_id in context.bot_data.get("authorized_users", set()):
        recipients.setdefault(owner_for(user_id, shared_owner), []).append(user_id)

    now = datetime.now(timezone.utc)
    for owner_id, chat_ids in recipients.items():
        try:
            due = await asyncio.to_thread(db.list_due_unnotified_reminders, owner_id, now)
            for note in due:
                title, body = reminder_text(note)
                delivered = 0
                for chat_id in chat_ids:
                    try:
                        await context.bot.send_message(chat_id=chat_id, text=f"{title}\n{body}")
                        delivered += 1
                    except TelegramError as e:
                        logger.warning(f"Reminder {note.id} not delivered to {chat_id}: {e}")
                # Retried next tick only if nobody got it
                if delivered:
                    await asyncio.to_thread(db.mark_notified, note.id)
        except ClipnoteError as e:
            logger.error(f"Reminder sweep failed for {owner_id}: {e}")


def run_bot() -> None:
    """Run the Telegram bot."""
    config = load_config()
    bot_config = get_bot_config(config)
    ensure_dirs()

    # Create application
    app = Application.builder().token(bot_config["token"]).build()

    # Shared state for handlers
    app.bot_data["authorized_users"] = bot_config["authorized_users"]
    app.bot_data["owner_id"] = bot_config["owner_id"]
    app.bot_data["db"] = Database()
    app.bot_data["classifier"] = AIClassifier(config)

    # Add handlers
    app.add_handler(CommandHandler("start", start_command))
    app.add_handler(CommandHandler("help", help_command))
    app.add_handler(CommandHandler("id", id_command))
    app.add_handler(CommandHandler("list", list_command))
    app.add_handler(CommandHandler("find", find_command))
    app.add_handler(CommandHandler("show", show_command))
    app.add_handler(CommandHandler("delete", delete_command))
    app.add_handler(CommandHandler("remind", remind_command))
    app.add_handler(CommandHandler("reminders", reminders_command))
    app.add_handler(CommandHandler("stats", stats_command))
    app.add_handler(MessageHandler(filters.PHOTO | filters.Document.IMAGE, handle_image))
    app.add_handler(MessageHandler(filters.TEXT & ~filters.COMMAND, handle_message))

    # Reminder sweep; stopped together with the application
    app.job_queue.run_repeating(reminder_job, interval=bot_config["interval_seconds"], first=10)

    # Log startup info
    if bot_config["authorized_users"]:
        logger.info(f"Bot starting. Authorized users: {bot_config['authorized_users']}")
    else:
        logger.warning("No authorized users configured! Bot will deny all messages.")

    # Run bot
    app.run_polling(allowed_updates=Update.ALL_TYPES)


def main() -> int:
    """Entry point for CLI."""
    try:
        run_bot()
        return 0
    except ValueError as e:
        print(f"Error: {e}")
        return 1
    except KeyboardInterrupt:
        print("\nBot stopped.")
        return 0


if __name__ == "__main__":
    import sys
    sys.exit(main())
