"""
Reminder sweep for Clipnote.

Polls the store on a fixed interval for due reminders that have not fired,
notifies the user, then marks them notified.
"""

import logging
import subprocess
import time
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from clipnote.db import NoteStore
from clipnote.errors import StoreError
from clipnote.models import Note

logger = logging.getLogger(__name__)

Notify = Callable[[Note], None]


def send_notification(title: str, body: str = "") -> None:
    """Send desktop notification via notify-send."""
    try:
        cmd = ["notify-send", title]
        if body:
            cmd.append(body)
        subprocess.run(cmd, check=False, capture_output=True)
    except OSError as e:
        # Notifications are best-effort
        logger.debug("notify-send unavailable: %s", e)


def reminder_text(note: Note) -> tuple[str, str]:
    """Title and body for a reminder notification."""
    title = f"Reminder: {note.title or 'Note'}"
    body = note.summary or note.cleaned_content[:100]
    return title, body


def desktop_notify(note: Note) -> None:
    send_notification(*reminder_text(note))


def sweep_reminders(
    store: NoteStore,
    owner_id: str,
    notify: Notify,
    now: datetime | None = None,
) -> list[Note]:
    """
    Notify every due, unnotified reminder of owner_id once.

    A note is marked notified only after notify() returned. Store errors
    propagate; the next sweep picks up whatever was not marked.
    """
    now = now or datetime.now(timezone.utc)
    due = store.list_due_unnotified_reminders(owner_id, now)

    fired = []
    for note in due:
        notify(note)
        store.mark_notified(note.id)
        fired.append(note)
        logger.info("Reminder fired for note %s", note.id)

    return fired


def run_sweeper(
    store: NoteStore,
    owner_id: str,
    notify: Notify,
    interval_seconds: float = 60,
    sleep: Callable[[float], None] = time.sleep,
    max_sweeps: int | None = None,
) -> int:
    """
    Run the sweep every interval_seconds until interrupted.

    A store error skips the current sweep; the next one retries.
    Returns the total number of reminders fired.
    """
    total = 0
    sweeps = 0
    while True:
        try:
            total += len(sweep_reminders(store, owner_id, notify))
        except StoreError as e:
            logger.error("Reminder sweep failed: %s", e)
        sweeps += 1
        if max_sweeps is not None and sweeps >= max_sweeps:
            return total
        sleep(interval_seconds)


def parse_due(value: str, now: datetime | None = None) -> datetime:
    """
    Parse a reminder time.

    Accepts ISO 8601 ("2026-03-01T09:00", "2026-03-01") or a relative offset
    ("+30m", "+2h", "+1d", "+1w"). Naive times are taken as local time.
    Raises ValueError on anything else.
    """
    now = now or datetime.now(timezone.utc)
    value = value.strip()

    if value.startswith("+"):
        units = {"m": "minutes", "h": "hours", "d": "days", "w": "weeks"}
        amount, unit = value[1:-1], value[-1:].lower()
        if unit not in units or not amount.isdigit():
            raise ValueError(f"Invalid offset: {value} (use +30m, +2h, +1d or +1w)")
        return now + timedelta(**{units[unit]: int(amount)})

    due = datetime.fromisoformat(value)
    if due.tzinfo is None:
        due = due.astimezone()
    return due.astimezone(timezone.utc)
