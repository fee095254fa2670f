"""
Database module for Clipnote.

NoteStore is the contract the triage pipeline and the reminder sweep rely
on. Database implements it on SQLite in the clipnote home directory.
Every sqlite failure surfaces as a StoreError and rolls the write back.
"""

import json
import sqlite3
import uuid
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from clipnote.config import get_blob_dir, get_db_path
from clipnote.errors import StoreError
from clipnote.models import Note, NotePayload, Reminder

# Schema version for migrations
SCHEMA_VERSION = 1

SCHEMA = """
-- Schema version tracking
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY
);

-- One row per note. Reminder columns are NULL when no reminder was ever set.
CREATE TABLE IF NOT EXISTS notes (
    id TEXT PRIMARY KEY,
    owner_id TEXT NOT NULL,
    created_at TEXT NOT NULL,               -- ISO 8601, UTC, microseconds
    updated_at TEXT NOT NULL,
    original_content TEXT NOT NULL,
    cleaned_content TEXT NOT NULL,
    content_type TEXT NOT NULL CHECK(content_type IN ('url', 'code', 'mixed', 'text', 'image')),
    category TEXT,
    title TEXT,
    summary TEXT,
    tags TEXT,                              -- JSON array
    priority TEXT CHECK(priority IN ('low', 'medium', 'high')),
    metadata TEXT,                          -- JSON object
    reminder_enabled INTEGER,
    reminder_due_at TEXT,
    reminder_notified INTEGER
);

CREATE INDEX IF NOT EXISTS idx_notes_owner_created ON notes(owner_id, created_at);
CREATE INDEX IF NOT EXISTS idx_notes_owner_category ON notes(owner_id, category);
CREATE INDEX IF NOT EXISTS idx_notes_owner_reminder ON notes(owner_id, reminder_enabled, reminder_due_at);
"""

PAYLOAD_FIELDS = set(NotePayload.model_fields)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def to_iso(value: datetime) -> str:
    """Serialize a datetime as sortable UTC ISO 8601. Naive values are taken as UTC."""
    return _aware(value).astimezone(timezone.utc).isoformat(timespec="microseconds")


def from_iso(value: str | None) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(value)


def translate_error(error: sqlite3.Error) -> StoreError:
    """Map a sqlite3 error onto the StoreError taxonomy."""
    message = str(error)
    lowered = message.lower()
    if "readonly" in lowered or "permission" in lowered or "access" in lowered:
        return StoreError("permission_denied", message)
    if isinstance(error, sqlite3.OperationalError) and any(
        marker in lowered for marker in ("locked", "busy", "unable to open", "disk i/o")
    ):
        return StoreError("unavailable", message)
    if isinstance(
        error,
        (sqlite3.IntegrityError, sqlite3.ProgrammingError, sqlite3.InterfaceError, sqlite3.DataError),
    ):
        return StoreError("invalid_argument", message)
    return StoreError("unknown", message)


class NoteStore(ABC):
    """Persistence contract for notes."""

    @abstractmethod
    def create(self, owner_id: str, payload: NotePayload) -> str:
        """Persist a new note and return its id."""

    @abstractmethod
    def update(self, note_id: str, partial: dict[str, Any]) -> None:
        """Apply a partial update. Fields whose value is None are ignored."""

    @abstractmethod
    def get(self, note_id: str) -> Note | None:
        """Fetch one note by id."""

    @abstractmethod
    def list_by_owner(self, owner_id: str) -> list[Note]:
        """All notes of an owner, newest first."""

    @abstractmethod
    def list_by_owner_and_category(self, owner_id: str, category: str) -> list[Note]:
        """Notes of an owner in one category, newest first."""

    @abstractmethod
    def list_due_unnotified_reminders(self, owner_id: str, now: datetime) -> list[Note]:
        """Enabled, not yet notified reminders due at or before now."""

    @abstractmethod
    def list_upcoming_reminders(self, owner_id: str, now: datetime) -> list[Note]:
        """Enabled reminders due after now, soonest first."""

    @abstractmethod
    def mark_notified(self, note_id: str) -> None:
        """Flip reminder.notified to True. Calling it again is a no-op."""

    @abstractmethod
    def delete(self, note_id: str) -> None:
        """Delete a note."""

    @abstractmethod
    def save_blob(self, ref: str, data: bytes) -> bool:
        """Store image bytes under ref. Returns False if ref already existed."""

    @abstractmethod
    def delete_blob(self, ref: str) -> None:
        """Remove stored image bytes."""

    def set_reminder(self, note_id: str, due_at: datetime) -> None:
        """Replace the reminder with a fresh, enabled, not-yet-notified one."""
        self.update(note_id, {"reminder": Reminder(enabled=True, due_at=due_at, notified=False)})

    def disable_reminder(self, note_id: str) -> None:
        """Turn a reminder off, keeping its due date and notified flag."""
        note = self.get(note_id)
        if note is None:
            raise StoreError("invalid_argument", f"Note not found: {note_id}")
        if note.reminder is None or not note.reminder.enabled:
            return
        self.update(note_id, {"reminder": note.reminder.model_copy(update={"enabled": False})})


class Database(NoteStore):
    """SQLite database wrapper for Clipnote."""

    def __init__(
        self,
        db_path: Path | None = None,
        blob_dir: Path | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db_path = db_path or get_db_path()
        self.blob_dir = blob_dir or get_blob_dir()
        self.clock = clock
        self._ensure_db()

    def _ensure_db(self) -> None:
        """Ensure database exists and schema is current."""
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise _os_error(e) from e
        with self._connect() as conn:
            conn.executescript(SCHEMA)
            conn.execute(
                "INSERT OR REPLACE INTO schema_version (version) VALUES (?)",
                (SCHEMA_VERSION,)
            )

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        """Context manager for database connections. One transaction per block."""
        try:
            conn = sqlite3.connect(self.db_path)
        except sqlite3.Error as e:
            raise translate_error(e) from e
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise translate_error(e) from e
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def create(self, owner_id: str, payload: NotePayload) -> str:
        """Insert a triaged note. Returns note ID."""
        if not owner_id:
            raise StoreError("invalid_argument", "owner_id is required")

        note_id = uuid.uuid4().hex[:12]
        now = to_iso(self.clock())
        row = _payload_columns(payload)

        with self._connect() as conn:
            conn.execute("""
                INSERT INTO notes (
                    id, owner_id, created_at, updated_at,
                    original_content, cleaned_content, content_type,
                    category, title, summary, tags, priority, metadata,
                    reminder_enabled, reminder_due_at, reminder_notified
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                note_id, owner_id, now, now,
                row["original_content"], row["cleaned_content"], row["content_type"],
                row["category"], row["title"], row["summary"],
                row["tags"], row["priority"], row["metadata"],
                row["reminder_enabled"], row["reminder_due_at"], row["reminder_notified"],
            ))

        return note_id

    def update(self, note_id: str, partial: dict[str, Any]) -> None:
        """
        Apply a partial update to a note.

        None values are dropped so they never overwrite stored fields.
        The merged note is validated before anything is written.
        """
        changes = {key: value for key, value in partial.items() if value is not None}
        unknown = set(changes) - PAYLOAD_FIELDS
        if unknown:
            raise StoreError("invalid_argument", f"Unknown fields: {', '.join(sorted(unknown))}")

        with self._connect() as conn:
            current = conn.execute("SELECT * FROM notes WHERE id = ?", (note_id,)).fetchone()
            if current is None:
                raise StoreError("invalid_argument", f"Note not found: {note_id}")
            if not changes:
                return

            existing = _row_to_note(current)
            try:
                merged = Note.model_validate({**existing.model_dump(), **_dump_changes(changes)})
            except ValidationError as e:
                raise StoreError("invalid_argument", str(e)) from e

            updated_at = max(_aware(self.clock()), existing.created_at)
            row = _payload_columns(merged)
            conn.execute("""
                UPDATE notes SET
                    updated_at = ?, original_content = ?, cleaned_content = ?,
                    content_type = ?, category = ?, title = ?, summary = ?,
                    tags = ?, priority = ?, metadata = ?,
                    reminder_enabled = ?, reminder_due_at = ?, reminder_notified = ?
                WHERE id = ?
            """, (
                to_iso(updated_at), row["original_content"], row["cleaned_content"],
                row["content_type"], row["category"], row["title"], row["summary"],
                row["tags"], row["priority"], row["metadata"],
                row["reminder_enabled"], row["reminder_due_at"], row["reminder_notified"],
                note_id,
            ))

    def get(self, note_id: str) -> Note | None:
        """Get a single note by ID."""
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM notes WHERE id = ?", (note_id,)).fetchone()
        return _row_to_note(row) if row else None

    def resolve_note_id(self, owner_id: str, identifier: str) -> str | None:
        """Resolve a full id or a unique id prefix among an owner's notes."""
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT id FROM notes WHERE owner_id = ? AND substr(id, 1, length(?)) = ?",
                (owner_id, identifier, identifier),
            ).fetchall()
        ids = [row["id"] for row in rows]
        if identifier in ids:
            return identifier
        if len(ids) > 1:
            raise StoreError("invalid_argument", f"Ambiguous id prefix '{identifier}': {len(ids)} matches")
        return ids[0] if ids else None

    def list_by_owner(self, owner_id: str) -> list[Note]:
        """Get all notes of an owner, newest first."""
        return self._query(
            "SELECT * FROM notes WHERE owner_id = ? ORDER BY created_at DESC, rowid DESC",
            (owner_id,),
        )

    def list_by_owner_and_category(self, owner_id: str, category: str) -> list[Note]:
        """Get an owner's notes in one category, newest first."""
        return self._query("""
            SELECT * FROM notes
            WHERE owner_id = ? AND category = ?
            ORDER BY created_at DESC, rowid DESC
        """, (owner_id, category))

    def list_due_unnotified_reminders(self, owner_id: str, now: datetime) -> list[Note]:
        """Get reminders that are due and have not fired yet."""
        return self._query("""
            SELECT * FROM notes
            WHERE owner_id = ?
            AND reminder_enabled = 1
            AND reminder_notified = 0
            AND reminder_due_at IS NOT NULL
            AND reminder_due_at <= ?
            ORDER BY reminder_due_at ASC
        """, (owner_id, to_iso(now)))

    def list_upcoming_reminders(self, owner_id: str, now: datetime) -> list[Note]:
        """Get enabled reminders due in the future, soonest first."""
        return self._query("""
            SELECT * FROM notes
            WHERE owner_id = ?
            AND reminder_enabled = 1
            AND reminder_due_at > ?
            ORDER BY reminder_due_at ASC
        """, (owner_id, to_iso(now)))

    def mark_notified(self, note_id: str) -> None:
        """Mark a reminder as notified. Already-notified reminders are left alone."""
        with self._connect() as conn:
            cursor = conn.execute("""
                UPDATE notes
                SET reminder_notified = 1, updated_at = max(created_at, ?)
                WHERE id = ? AND reminder_notified = 0
            """, (to_iso(self.clock()), note_id))
            if cursor.rowcount == 0:
                exists = conn.execute("SELECT 1 FROM notes WHERE id = ?", (note_id,)).fetchone()
                if exists is None:
                    raise StoreError("invalid_argument", f"Note not found: {note_id}")

    def delete(self, note_id: str) -> None:
        """Delete a note. Deleting a missing note is a no-op."""
        with self._connect() as conn:
            conn.execute("DELETE FROM notes WHERE id = ?", (note_id,))

    def blob_path(self, ref: str) -> Path:
        """Filesystem path of an image reference like 'image/<sha256>.png'."""
        name = Path(ref).name
        if not name or name in (".", ".."):
            raise StoreError("invalid_argument", f"Invalid blob reference: {ref}")
        return self.blob_dir / name

    def save_blob(self, ref: str, data: bytes) -> bool:
        path = self.blob_path(ref)
        if path.exists():
            return False
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as e:
            raise _os_error(e) from e
        return True

    def delete_blob(self, ref: str) -> None:
        try:
            self.blob_path(ref).unlink(missing_ok=True)
        except OSError as e:
            raise _os_error(e) from e

    def _query(self, sql: str, params: tuple[Any, ...]) -> list[Note]:
        with self._connect() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [_row_to_note(row) for row in rows]


def _os_error(error: OSError) -> StoreError:
    if isinstance(error, PermissionError):
        return StoreError("permission_denied", str(error))
    return StoreError("unavailable", str(error))


def _dump_changes(changes: dict[str, Any]) -> dict[str, Any]:
    """Plain-python form of update values (models become dicts)."""
    return {
        key: value.model_dump() if isinstance(value, Reminder) else value
        for key, value in changes.items()
    }


def _payload_columns(payload: NotePayload) -> dict[str, Any]:
    """Flatten a payload into column values."""
    reminder = payload.reminder
    return {
        "original_content": payload.original_content,
        "cleaned_content": payload.cleaned_content,
        "content_type": payload.content_type,
        "category": payload.category,
        "title": payload.title,
        "summary": payload.summary,
        "tags": json.dumps(payload.tags) if payload.tags is not None else None,
        "priority": payload.priority,
        "metadata": json.dumps(payload.metadata) if payload.metadata is not None else None,
        "reminder_enabled": int(reminder.enabled) if reminder else None,
        "reminder_due_at": to_iso(reminder.due_at) if reminder and reminder.due_at else None,
        "reminder_notified": int(reminder.notified) if reminder else None,
    }


def _row_to_note(row: sqlite3.Row) -> Note:
    reminder = None
    if row["reminder_enabled"] is not None:
        reminder = Reminder(
            enabled=bool(row["reminder_enabled"]),
            due_at=from_iso(row["reminder_due_at"]),
            notified=bool(row["reminder_notified"]),
        )

    return Note(
        id=row["id"],
        owner_id=row["owner_id"],
        created_at=from_iso(row["created_at"]),
        updated_at=from_iso(row["updated_at"]),
        original_content=row["original_content"],
        cleaned_content=row["cleaned_content"],
        content_type=row["content_type"],
        category=row["category"],
        title=row["title"],
        summary=row["summary"],
        tags=json.loads(row["tags"]) if row["tags"] is not None else None,
        priority=row["priority"],
        metadata=json.loads(row["metadata"]) if row["metadata"] is not None else None,
        reminder=reminder,
    )
