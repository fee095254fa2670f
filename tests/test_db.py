"""Tests for the SQLite note store."""

import sqlite3
from datetime import timedelta
from types import SimpleNamespace
from unittest.mock import patch

import pytest

from clipnote.db import Database, translate_error
from clipnote.errors import StoreError
from clipnote.models import NotePayload, Reminder

from conftest import START


def payload(text: str = "hello", **fields) -> NotePayload:
    data = {
        "original_content": text,
        "cleaned_content": text,
        "content_type": "text",
        "category": "other",
        "title": text.title(),
        "summary": text,
        "tags": [],
        "priority": "medium",
    }
    data.update(fields)
    return NotePayload(**data)


class TestCreateAndGet:
    """Creating and reading notes."""

    def test_round_trip(self, db):
        note_id = db.create("alice", payload(
            "fix the bug",
            tags=["bug", "urgent"],
            metadata={"language": "python"},
            priority="high",
        ))
        note = db.get(note_id)

        assert note.id == note_id
        assert note.owner_id == "alice"
        assert note.original_content == "fix the bug"
        assert note.tags == ["bug", "urgent"]
        assert note.metadata == {"language": "python"}
        assert note.priority == "high"
        assert note.reminder is None
        assert note.created_at == START
        assert note.updated_at == note.created_at

    def test_timestamps_are_utc_aware(self, db):
        note = db.get(db.create("alice", payload()))
        assert note.created_at.tzinfo is not None
        assert note.created_at.utcoffset() == timedelta(0)

    def test_missing_owner(self, db):
        with pytest.raises(StoreError) as exc:
            db.create("", payload())
        assert exc.value.kind == "invalid_argument"

    def test_get_missing(self, db):
        assert db.get("nope") is None

    def test_image_note_without_descriptive_fields(self, db):
        note_id = db.create("alice", NotePayload(
            original_content="image/abc.png",
            cleaned_content="image/abc.png",
            content_type="image",
            metadata={"mime_type": "image/png", "size": 3},
        ))
        note = db.get(note_id)
        assert note.category is None
        assert note.tags is None
        assert note.metadata["size"] == 3


class TestListing:
    """Owner and category listings."""

    def test_newest_first(self, db, clock):
        first = db.create("alice", payload("one"))
        clock.advance(minutes=1)
        second = db.create("alice", payload("two"))
        clock.advance(minutes=1)
        third = db.create("alice", payload("three"))

        assert [n.id for n in db.list_by_owner("alice")] == [third, second, first]

    def test_same_timestamp_keeps_insertion_order(self, db):
        first = db.create("alice", payload("one"))
        second = db.create("alice", payload("two"))
        assert [n.id for n in db.list_by_owner("alice")] == [second, first]

    def test_owners_are_isolated(self, db):
        db.create("alice", payload("mine"))
        db.create("bob", payload("theirs"))
        assert [n.original_content for n in db.list_by_owner("alice")] == ["mine"]

    def test_category_filter(self, db, clock):
        db.create("alice", payload("job lead", category="work"))
        clock.advance(seconds=1)
        db.create("alice", payload("milk", category="shopping"))
        clock.advance(seconds=1)
        db.create("alice", payload("standup", category="work"))
        db.create("bob", payload("bob work", category="work"))

        notes = db.list_by_owner_and_category("alice", "work")
        assert [n.original_content for n in notes] == ["standup", "job lead"]

    def test_empty(self, db):
        assert db.list_by_owner("nobody") == []


class TestUpdate:
    """Partial updates."""

    def test_none_values_are_ignored(self, db):
        note_id = db.create("alice", payload("x", title="Keep Me"))
        db.update(note_id, {"title": None, "summary": "new summary"})

        note = db.get(note_id)
        assert note.title == "Keep Me"
        assert note.summary == "new summary"

    def test_updated_at_moves_forward(self, db, clock):
        note_id = db.create("alice", payload())
        clock.advance(hours=1)
        db.update(note_id, {"category": "work"})

        note = db.get(note_id)
        assert note.updated_at == START + timedelta(hours=1)
        assert note.created_at == START

    def test_updated_at_never_before_created_at(self, db, clock):
        note_id = db.create("alice", payload())
        clock.advance(hours=-2)
        db.update(note_id, {"category": "work"})

        note = db.get(note_id)
        assert note.updated_at >= note.created_at

    def test_empty_update_changes_nothing(self, db, clock):
        note_id = db.create("alice", payload())
        before = db.get(note_id)
        clock.advance(hours=1)
        db.update(note_id, {"title": None})
        assert db.get(note_id) == before

    def test_unknown_field(self, db):
        note_id = db.create("alice", payload())
        with pytest.raises(StoreError) as exc:
            db.update(note_id, {"owner_id": "mallory"})
        assert exc.value.kind == "invalid_argument"
        assert db.get(note_id).owner_id == "alice"

    def test_invalid_value(self, db):
        note_id = db.create("alice", payload())
        with pytest.raises(StoreError) as exc:
            db.update(note_id, {"priority": "urgent"})
        assert exc.value.kind == "invalid_argument"
        assert db.get(note_id).priority == "medium"

    def test_missing_note(self, db):
        with pytest.raises(StoreError) as exc:
            db.update("missing", {"title": "x"})
        assert exc.value.kind == "invalid_argument"

    def test_tags_replace(self, db):
        note_id = db.create("alice", payload(tags=["a"]))
        db.update(note_id, {"tags": ["b", "c"]})
        assert db.get(note_id).tags == ["b", "c"]


class TestReminders:
    """Reminder queries and state transitions."""

    def test_due_and_upcoming(self, db):
        past = db.create("alice", payload("past"))
        future = db.create("alice", payload("future"))
        db.create("alice", payload("none"))
        db.set_reminder(past, START - timedelta(minutes=5))
        db.set_reminder(future, START + timedelta(hours=1))

        assert [n.id for n in db.list_due_unnotified_reminders("alice", START)] == [past]
        assert [n.id for n in db.list_upcoming_reminders("alice", START)] == [future]

    def test_due_exactly_now_is_due(self, db):
        note_id = db.create("alice", payload())
        db.set_reminder(note_id, START)
        assert [n.id for n in db.list_due_unnotified_reminders("alice", START)] == [note_id]
        assert db.list_upcoming_reminders("alice", START) == []

    def test_due_ordered_oldest_first(self, db):
        later = db.create("alice", payload("later"))
        earlier = db.create("alice", payload("earlier"))
        db.set_reminder(later, START - timedelta(minutes=1))
        db.set_reminder(earlier, START - timedelta(hours=1))

        due = db.list_due_unnotified_reminders("alice", START)
        assert [n.id for n in due] == [earlier, later]

    def test_due_filters_by_owner(self, db):
        note_id = db.create("bob", payload())
        db.set_reminder(note_id, START - timedelta(minutes=1))
        assert db.list_due_unnotified_reminders("alice", START) == []

    def test_mark_notified(self, db):
        note_id = db.create("alice", payload())
        db.set_reminder(note_id, START - timedelta(minutes=1))

        db.mark_notified(note_id)

        assert db.list_due_unnotified_reminders("alice", START) == []
        assert db.get(note_id).reminder.notified is True

    def test_mark_notified_twice_is_noop(self, db, clock):
        note_id = db.create("alice", payload())
        db.set_reminder(note_id, START - timedelta(minutes=1))
        db.mark_notified(note_id)
        first = db.get(note_id)

        clock.advance(minutes=5)
        db.mark_notified(note_id)
        assert db.get(note_id) == first

    def test_mark_notified_missing(self, db):
        with pytest.raises(StoreError) as exc:
            db.mark_notified("missing")
        assert exc.value.kind == "invalid_argument"

    def test_mark_notified_never_before_created_at(self, db, clock):
        note_id = db.create("alice", payload())
        db.set_reminder(note_id, START - timedelta(minutes=1))
        clock.advance(hours=-2)

        db.mark_notified(note_id)

        note = db.get(note_id)
        assert note.reminder.notified is True
        assert note.updated_at >= note.created_at

    def test_set_reminder_resets_notified(self, db):
        note_id = db.create("alice", payload())
        db.set_reminder(note_id, START - timedelta(minutes=1))
        db.mark_notified(note_id)

        db.set_reminder(note_id, START - timedelta(seconds=1))

        reminder = db.get(note_id).reminder
        assert reminder.enabled is True
        assert reminder.notified is False
        assert len(db.list_due_unnotified_reminders("alice", START)) == 1

    def test_disable_reminder(self, db):
        note_id = db.create("alice", payload())
        due_at = START + timedelta(days=1)
        db.set_reminder(note_id, due_at)

        db.disable_reminder(note_id)

        reminder = db.get(note_id).reminder
        assert reminder.enabled is False
        assert reminder.due_at == due_at
        assert db.list_upcoming_reminders("alice", START) == []

    def test_disable_without_reminder_is_noop(self, db):
        note_id = db.create("alice", payload())
        db.disable_reminder(note_id)
        assert db.get(note_id).reminder is None

    def test_disable_missing_note(self, db):
        with pytest.raises(StoreError):
            db.disable_reminder("missing")

    def test_reminder_in_create_payload(self, db):
        reminder = Reminder(enabled=True, due_at=START - timedelta(minutes=1))
        note_id = db.create("alice", payload(reminder=reminder))
        assert [n.id for n in db.list_due_unnotified_reminders("alice", START)] == [note_id]


class TestDeleteAndResolve:
    """Deletion and id prefix resolution."""

    def test_delete(self, db):
        note_id = db.create("alice", payload())
        db.delete(note_id)
        assert db.get(note_id) is None

    def test_delete_missing_is_noop(self, db):
        db.delete("missing")

    def test_resolve_full_and_prefix(self, db):
        note_id = db.create("alice", payload())
        assert db.resolve_note_id("alice", note_id) == note_id
        assert db.resolve_note_id("alice", note_id[:4]) == note_id

    def test_resolve_other_owner(self, db):
        note_id = db.create("bob", payload())
        assert db.resolve_note_id("alice", note_id) is None

    def test_resolve_ambiguous_prefix(self, db):
        ids = [SimpleNamespace(hex="abc1" + "0" * 28), SimpleNamespace(hex="abc2" + "0" * 28)]
        with patch("clipnote.db.uuid.uuid4", side_effect=ids):
            db.create("alice", payload("one"))
            db.create("alice", payload("two"))

        with pytest.raises(StoreError) as exc:
            db.resolve_note_id("alice", "abc")
        assert exc.value.kind == "invalid_argument"
        assert db.resolve_note_id("alice", "abc2") == "abc200000000"

    def test_resolve_treats_wildcards_literally(self, db):
        db.create("alice", payload())
        assert db.resolve_note_id("alice", "%") is None
        assert db.resolve_note_id("alice", "_") is None


class TestBlobs:
    """Image blob storage."""

    def test_save_and_delete(self, db):
        assert db.save_blob("image/abc.png", b"data") is True
        assert db.blob_path("image/abc.png").read_bytes() == b"data"

        db.delete_blob("image/abc.png")
        assert not db.blob_path("image/abc.png").exists()

    def test_save_existing_returns_false(self, db):
        db.save_blob("image/abc.png", b"data")
        assert db.save_blob("image/abc.png", b"data") is False

    def test_delete_missing_blob(self, db):
        db.delete_blob("image/missing.png")

    def test_blob_path_stays_in_blob_dir(self, db):
        assert db.blob_path("image/../../etc/passwd").parent == db.blob_dir

    def test_invalid_blob_ref(self, db):
        with pytest.raises(StoreError):
            db.blob_path("..")


class TestErrors:
    """sqlite error translation."""

    @pytest.mark.parametrize("error, kind", [
        (sqlite3.OperationalError("database is locked"), "unavailable"),
        (sqlite3.OperationalError("unable to open database file"), "unavailable"),
        (sqlite3.OperationalError("attempt to write a readonly database"), "permission_denied"),
        (sqlite3.IntegrityError("UNIQUE constraint failed: notes.id"), "invalid_argument"),
        (sqlite3.DatabaseError("file is not a database"), "unknown"),
    ])
    def test_translate_error(self, error, kind):
        assert translate_error(error).kind == kind

    def test_unusable_location(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")

        with pytest.raises(StoreError) as exc:
            Database(blocker / "sub" / "clipnote.db", tmp_path / "images")
        assert exc.value.kind == "unavailable"

    def test_corrupt_database_file(self, tmp_path):
        path = tmp_path / "corrupt.db"
        path.write_bytes(b"this is not sqlite at all" * 100)

        with pytest.raises(StoreError):
            Database(path, tmp_path / "images")
