"""
Surfacing module for Clipnote.

Search, listings and analytics over notes that were already fetched from
the store. Nothing here talks to the database directly.
"""

import math
import os
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Any

from clipnote.models import Note


# ANSI color codes
class Colors:
    """ANSI color codes for terminal output."""
    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"

    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    BLUE = "\033[34m"
    WHITE = "\033[37m"

    BRIGHT_RED = "\033[91m"
    BRIGHT_GREEN = "\033[92m"
    BRIGHT_YELLOW = "\033[93m"
    BRIGHT_BLUE = "\033[94m"
    BRIGHT_MAGENTA = "\033[95m"
    BRIGHT_CYAN = "\033[96m"

    @classmethod
    def enabled(cls) -> bool:
        """Check if colors should be enabled."""
        # Disable if NO_COLOR is set
        if os.environ.get("NO_COLOR"):
            return False
        return True


def c(text: str, *codes: str) -> str:
    """Apply color codes to text if colors are enabled."""
    if not Colors.enabled():
        return text
    return "".join(codes) + text + Colors.RESET


CATEGORY_COLORS = {
    "personal": Colors.BRIGHT_MAGENTA,
    "work": Colors.BRIGHT_BLUE,
    "ideas": Colors.BRIGHT_YELLOW,
    "links": Colors.BRIGHT_CYAN,
    "code": Colors.BRIGHT_GREEN,
    "health": Colors.BRIGHT_RED,
}

PRIORITY_COLORS = {
    "low": Colors.GREEN,
    "medium": Colors.YELLOW,
    "high": Colors.RED,
}


def search_notes(notes: list[Note], query: str) -> list[Note]:
    """
    Case-insensitive substring search over already-fetched notes.

    Matches title, summary, cleaned and original content, category and tags.
    A blank query returns every note.
    """
    if not query.strip():
        return list(notes)

    needle = query.lower()

    def matches(note: Note) -> bool:
        fields = [
            note.title,
            note.summary,
            note.cleaned_content,
            note.original_content,
            note.category,
        ]
        if any(field and needle in field.lower() for field in fields):
            return True
        return any(needle in tag.lower() for tag in note.tags or [])

    return [note for note in notes if matches(note)]


def format_notes(notes: list[Note], header: str = "NOTES", limit: int | None = None) -> str:
    """Format notes as a colored table."""
    if not notes:
        return c("No notes found.", Colors.DIM)

    shown = notes[:limit] if limit else notes
    lines = [c(f"━━━ {header} ━━━", Colors.BOLD, Colors.BLUE), ""]
    lines.append(c(f"{'ID':12}  {'CATEGORY':10}  {'TYPE':6}  TITLE", Colors.DIM))
    lines.append(c("─" * 70, Colors.DIM))

    for note in shown:
        category = note.category or "-"
        extra = ""
        if note.reminder and note.reminder.enabled and note.reminder.due_at:
            marker = "✓" if note.reminder.notified else "⏰"
            extra = c(f" [{marker} {format_when(note.reminder.due_at)}]", Colors.YELLOW)
        if note.priority == "high":
            extra += c(" !", Colors.RED)

        id_str = c(f"{note.id:12}", Colors.DIM)
        category_str = c(f"{category:10}", CATEGORY_COLORS.get(category, ""))
        lines.append(f"{id_str}  {category_str}  {note.content_type:6}  {note.display_title[:40]}{extra}")

    if limit and len(notes) > limit:
        lines.append(c(f"\n... and {len(notes) - limit} more", Colors.DIM))

    return "\n".join(lines)


def format_note(note: Note) -> str:
    """Format a single note with all its fields."""
    lines = [c(note.display_title, Colors.BOLD), ""]
    lines.append(f"ID:        {note.id}")
    lines.append(f"Type:      {note.content_type}")
    if note.category:
        lines.append(f"Category:  {c(note.category, CATEGORY_COLORS.get(note.category, ''))}")
    if note.priority:
        lines.append(f"Priority:  {c(note.priority, PRIORITY_COLORS.get(note.priority, ''))}")
    if note.tags:
        lines.append(f"Tags:      {', '.join(note.tags)}")
    for key, value in (note.metadata or {}).items():
        lines.append(f"{key + ':':<11}{value}")
    if note.reminder and note.reminder.due_at:
        state = "off" if not note.reminder.enabled else ("sent" if note.reminder.notified else "pending")
        lines.append(f"Reminder:  {format_when(note.reminder.due_at)} ({state})")
    lines.append(f"Created:   {format_when(note.created_at)}")
    if note.summary:
        lines += ["", c("Summary", Colors.DIM), note.summary]
    lines += ["", c("Content", Colors.DIM), note.cleaned_content]
    return "\n".join(lines)


def format_when(value: datetime) -> str:
    """Local, minute-precision rendering of a timestamp."""
    return value.astimezone().strftime("%Y-%m-%d %H:%M")


def format_reminders(due: list[Note], upcoming: list[Note]) -> str:
    """Format due and upcoming reminders."""
    if not due and not upcoming:
        return c("No reminders set.", Colors.DIM)

    lines = []
    if due:
        lines.append(c(f"━━━ DUE ({len(due)}) ━━━", Colors.BOLD, Colors.RED))
        for note in due:
            lines.append(f"  {note.id}  {note.display_title[:50]}  (due {format_when(note.reminder.due_at)})")
        lines.append("")
    if upcoming:
        lines.append(c(f"━━━ UPCOMING ({len(upcoming)}) ━━━", Colors.BOLD, Colors.BLUE))
        for note in upcoming:
            lines.append(f"  {note.id}  {note.display_title[:50]}  ({format_when(note.reminder.due_at)})")
    return "\n".join(lines).rstrip()


def _percent(count: int, total: int) -> int:
    """Percentage rounded half up."""
    return math.floor(count / total * 100 + 0.5) if total else 0


def _counted(counter: Counter, key_name: str, total: int) -> list[dict[str, Any]]:
    return [
        {key_name: key, "count": count, "percentage": _percent(count, total)}
        for key, count in counter.items()
    ]


def generate_analytics(notes: list[Note], now: datetime | None = None) -> dict[str, Any]:
    """
    Compute usage analytics for a list of notes.

    Days are calendar days in the timezone of `now` (UTC by default).
    """
    now = now or datetime.now(timezone.utc)
    today = now.replace(hour=0, minute=0, second=0, microsecond=0)
    week_ago = today - timedelta(days=7)
    total = len(notes)

    created = [note.created_at.astimezone(now.tzinfo) for note in notes]
    notes_today = sum(1 for ts in created if today <= ts <= now)
    notes_this_week = sum(1 for ts in created if ts >= week_ago)

    categories = Counter(note.category or "uncategorized" for note in notes)
    category_stats = sorted(
        _counted(categories, "category", total), key=lambda stat: -stat["count"]
    )
    priority_stats = _counted(Counter(note.priority or "medium" for note in notes), "priority", total)
    type_stats = _counted(Counter(note.content_type for note in notes), "type", total)

    per_day = Counter(ts.date() for ts in created)
    daily_activity = []
    day = week_ago
    while day <= now:
        daily_activity.append({"date": day.strftime("%b %d"), "count": per_day.get(day.date(), 0)})
        day += timedelta(days=1)

    tags = Counter(tag for note in notes for tag in note.tags or [])
    tag_stats = [{"tag": tag, "count": count} for tag, count in tags.most_common(10)]

    with_reminders = [note for note in notes if note.reminder and note.reminder.enabled]
    active = sum(
        1
        for note in with_reminders
        if note.reminder.due_at and note.reminder.due_at > now and not note.reminder.notified
    )
    completed = sum(1 for note in with_reminders if note.reminder.notified)

    productivity_score = min(
        100,
        notes_this_week * 10 + len(with_reminders) * 5 + len(category_stats) * 3 + len(tag_stats) * 2,
    )

    return {
        "total_notes": total,
        "notes_today": notes_today,
        "notes_this_week": notes_this_week,
        "category_stats": category_stats,
        "priority_stats": priority_stats,
        "type_stats": type_stats,
        "daily_activity": daily_activity,
        "tag_stats": tag_stats,
        "reminder_stats": {
            "total_with_reminders": len(with_reminders),
            "active_reminders": active,
            "completed_reminders": completed,
        },
        "productivity_score": productivity_score,
    }


def format_analytics(stats: dict[str, Any]) -> str:
    """Format analytics as a plain report."""
    lines = [c("Clipnote Statistics", Colors.BOLD), "-" * 30]
    lines.append(f"Total notes: {stats['total_notes']}")
    lines.append(f"Today: {stats['notes_today']}   Last 7 days: {stats['notes_this_week']}")
    lines.append(f"Productivity score: {stats['productivity_score']}/100")

    if stats["category_stats"]:
        lines.append("\nBy category:")
        for stat in stats["category_stats"]:
            lines.append(f"  {stat['category']:14} {stat['count']:4}  ({stat['percentage']}%)")

    if stats["type_stats"]:
        lines.append("\nBy type:")
        for stat in stats["type_stats"]:
            lines.append(f"  {stat['type']:14} {stat['count']:4}  ({stat['percentage']}%)")

    if stats["priority_stats"]:
        lines.append("\nBy priority:")
        for stat in stats["priority_stats"]:
            lines.append(f"  {stat['priority']:14} {stat['count']:4}  ({stat['percentage']}%)")

    lines.append("\nLast 8 days:")
    for day in stats["daily_activity"]:
        lines.append(f"  {day['date']}  {'█' * day['count']} {day['count']}")

    if stats["tag_stats"]:
        lines.append("\nTop tags: " + ", ".join(f"{t['tag']} ({t['count']})" for t in stats["tag_stats"]))

    reminders = stats["reminder_stats"]
    lines.append(
        f"\nReminders: {reminders['total_with_reminders']} set, "
        f"{reminders['active_reminders']} active, {reminders['completed_reminders']} sent"
    )
    return "\n".join(lines)
