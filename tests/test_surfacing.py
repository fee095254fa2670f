"""Tests for search, formatting and analytics."""

from datetime import datetime, timedelta, timezone

from clipnote.models import Note, Reminder
from clipnote.surfacing import (
    _percent,
    format_analytics,
    format_note,
    format_notes,
    format_reminders,
    generate_analytics,
    search_notes,
)

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


def make_note(note_id="n1", created_at=NOW, **fields) -> Note:
    data = {
        "id": note_id,
        "owner_id": "alice",
        "created_at": created_at,
        "updated_at": created_at,
        "original_content": "original text",
        "cleaned_content": "cleaned text",
        "content_type": "text",
    }
    data.update(fields)
    return Note(**data)


class TestSearch:
    """In-memory note search."""

    def setup_method(self):
        self.notes = [
            make_note("a", title="Redis Caching", tags=["backend"], category="code"),
            make_note("b", title="Groceries", summary="Milk and EGGS", category="shopping"),
            make_note("c", cleaned_content="call mom on sunday", tags=["Family"]),
        ]

    def test_title_case_insensitive(self):
        assert [n.id for n in search_notes(self.notes, "redis")] == ["a"]

    def test_summary(self):
        assert [n.id for n in search_notes(self.notes, "eggs")] == ["b"]

    def test_content(self):
        assert [n.id for n in search_notes(self.notes, "SUNDAY")] == ["c"]

    def test_tags(self):
        assert [n.id for n in search_notes(self.notes, "family")] == ["c"]

    def test_category(self):
        assert [n.id for n in search_notes(self.notes, "shopping")] == ["b"]

    def test_blank_query_returns_all(self):
        assert len(search_notes(self.notes, "  ")) == 3

    def test_no_match(self):
        assert search_notes(self.notes, "kubernetes") == []


class TestFormatting:
    """Text rendering (NO_COLOR is set for tests)."""

    def test_format_notes(self):
        notes = [make_note("abc123", title="First", category="work")]
        output = format_notes(notes, "WORK")
        assert "WORK" in output
        assert "abc123" in output
        assert "First" in output
        assert "\033[" not in output

    def test_format_notes_limit(self):
        notes = [make_note(str(i)) for i in range(5)]
        assert "... and 3 more" in format_notes(notes, limit=2)

    def test_format_empty(self):
        assert format_notes([]) == "No notes found."

    def test_untitled_note_uses_first_line(self):
        note = make_note(cleaned_content="first line\nsecond line")
        assert note.display_title == "first line"
        assert "first line" in format_notes([note])

    def test_format_note(self):
        note = make_note(
            title="Dentist",
            category="health",
            priority="high",
            tags=["teeth"],
            summary="Book a checkup",
            reminder=Reminder(enabled=True, due_at=NOW),
        )
        output = format_note(note)
        assert "Dentist" in output
        assert "health" in output
        assert "teeth" in output
        assert "Book a checkup" in output
        assert "(pending)" in output

    def test_format_reminders(self):
        due = [make_note("d1", title="Overdue", reminder=Reminder(enabled=True, due_at=NOW))]
        upcoming = [make_note("u1", title="Later", reminder=Reminder(enabled=True, due_at=NOW + timedelta(days=1)))]
        output = format_reminders(due, upcoming)
        assert "DUE (1)" in output
        assert "UPCOMING (1)" in output
        assert "Overdue" in output

    def test_format_no_reminders(self):
        assert format_reminders([], []) == "No reminders set."


class TestAnalytics:
    """Usage analytics."""

    def setup_method(self):
        self.notes = [
            make_note("t", created_at=NOW - timedelta(hours=2), category="work", tags=["job"], priority="high"),
            make_note(
                "w",
                created_at=NOW - timedelta(days=3),
                category="work",
                tags=["job", "remote"],
                reminder=Reminder(enabled=True, due_at=NOW + timedelta(days=1)),
            ),
            make_note(
                "o",
                created_at=NOW - timedelta(days=20),
                content_type="url",
                reminder=Reminder(enabled=True, due_at=NOW - timedelta(days=19), notified=True),
            ),
        ]

    def test_counts(self):
        stats = generate_analytics(self.notes, now=NOW)
        assert stats["total_notes"] == 3
        assert stats["notes_today"] == 1
        assert stats["notes_this_week"] == 2

    def test_category_stats(self):
        stats = generate_analytics(self.notes, now=NOW)
        assert stats["category_stats"] == [
            {"category": "work", "count": 2, "percentage": 67},
            {"category": "uncategorized", "count": 1, "percentage": 33},
        ]

    def test_priority_and_type(self):
        stats = generate_analytics(self.notes, now=NOW)
        priorities = {s["priority"]: s["count"] for s in stats["priority_stats"]}
        types = {s["type"]: s["count"] for s in stats["type_stats"]}
        assert priorities == {"high": 1, "medium": 2}
        assert types == {"text": 2, "url": 1}

    def test_daily_activity(self):
        activity = generate_analytics(self.notes, now=NOW)["daily_activity"]
        assert len(activity) == 8
        assert activity[-1] == {"date": "Mar 10", "count": 1}
        assert activity[-4] == {"date": "Mar 07", "count": 1}

    def test_tags(self):
        stats = generate_analytics(self.notes, now=NOW)
        assert stats["tag_stats"] == [{"tag": "job", "count": 2}, {"tag": "remote", "count": 1}]

    def test_reminder_stats(self):
        stats = generate_analytics(self.notes, now=NOW)
        assert stats["reminder_stats"] == {
            "total_with_reminders": 2,
            "active_reminders": 1,
            "completed_reminders": 1,
        }

    def test_productivity_score(self):
        # 2 this week * 10 + 2 reminders * 5 + 2 categories * 3 + 2 tags * 2
        assert generate_analytics(self.notes, now=NOW)["productivity_score"] == 40

    def test_productivity_score_is_capped(self):
        notes = [make_note(str(i), created_at=NOW - timedelta(hours=i)) for i in range(20)]
        assert generate_analytics(notes, now=NOW)["productivity_score"] == 100

    def test_empty(self):
        stats = generate_analytics([], now=NOW)
        assert stats["total_notes"] == 0
        assert stats["category_stats"] == []
        assert stats["productivity_score"] == 0

    def test_percent_rounds_half_up(self):
        assert _percent(1, 8) == 13
        assert _percent(1, 3) == 33
        assert _percent(0, 0) == 0

    def test_format_analytics(self):
        output = format_analytics(generate_analytics(self.notes, now=NOW))
        assert "Total notes: 3" in output
        assert "work" in output
        assert "Productivity score: 40/100" in output
