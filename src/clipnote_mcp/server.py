"""
MCP Server for Clipnote.

Exposes capture, search and reminders as tools for MCP clients.
"""

import asyncio
from datetime import datetime, timezone

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

from clipnote.classifier import AIClassifier
from clipnote.config import ensure_dirs, get_owner_id, load_config
from clipnote.db import Database
from clipnote.errors import ClipnoteError
from clipnote.models import CATEGORIES, Note, TextInput
from clipnote.reminders import parse_due
from clipnote.surfacing import format_when, generate_analytics, search_notes
from clipnote.triage import capture

# Create MCP server
server = Server("clipnote")


@server.list_tools()
async def list_tools() -> list[Tool]:
    """List available tools."""
    return [
        Tool(
            name="clipnote_add",
            description="Save text, code or a link as a note. It is classified and tagged automatically.",
            inputSchema={
                "type": "object",
                "properties": {
                    "content": {
                        "type": "string",
                        "description": "The content to save",
                    },
                },
                "required": ["content"],
            },
        ),
        Tool(
            name="clipnote_search",
            description="Search notes by title, summary, content, category or tag.",
            inputSchema={
                "type": "object",
                "properties": {
                    "query": {
                        "type": "string",
                        "description": "Search query",
                    },
                    "limit": {
                        "type": "integer",
                        "description": "Maximum results to return (default: 10)",
                        "default": 10,
                    },
                },
                "required": ["query"],
            },
        ),
        Tool(
            name="clipnote_list",
            description="List recent notes, optionally filtered by category.",
            inputSchema={
                "type": "object",
                "properties": {
                    "category": {
                        "type": "string",
                        "description": "Filter by category (optional)",
                        "enum": list(CATEGORIES),
                    },
                    "limit": {
                        "type": "integer",
                        "description": "Maximum results to return (default: 20)",
                        "default": 20,
                    },
                },
            },
        ),
        Tool(
            name="clipnote_reminders",
            description="List due and upcoming reminders.",
            inputSchema={
                "type": "object",
                "properties": {},
            },
        ),
        Tool(
            name="clipnote_remind",
            description="Set a reminder on a note, or turn it off with when='off'.",
            inputSchema={
                "type": "object",
                "properties": {
                    "note_id": {
                        "type": "string",
                        "description": "The ID (or unique ID prefix) of the note",
                    },
                    "when": {
                        "type": "string",
                        "description": "ISO 8601 time, an offset like +30m, +2h, +1d, or 'off'",
                    },
                },
                "required": ["note_id", "when"],
            },
        ),
        Tool(
            name="clipnote_stats",
            description="Get note analytics: counts by category, type and priority, activity and reminders.",
            inputSchema={
                "type": "object",
                "properties": {},
            },
        ),
    ]


@server.call_tool()
async def call_tool(name: str, arguments: dict) -> list[TextContent]:
    """Handle tool calls."""
    tools = {
        "clipnote_add": tool_add,
        "clipnote_search": tool_search,
        "clipnote_list": tool_list,
        "clipnote_reminders": tool_reminders,
        "clipnote_remind": tool_remind,
        "clipnote_stats": tool_stats,
    }
    handler = tools.get(name)
    if handler is None:
        return _text(f"Unknown tool: {name}")

    try:
        return await handler(arguments or {})
    except (ClipnoteError, ValueError) as e:
        return _text(f"Error: {e}")


def _text(text: str) -> list[TextContent]:
    return [TextContent(type="text", text=text)]


def _context() -> tuple[dict, str, Database]:
    config = load_config()
    ensure_dirs()
    return config, get_owner_id(config), Database()


def _note_lines(notes: list[Note]) -> list[str]:
    lines = []
    for note in notes:
        label = note.category or note.content_type
        tags = f"  #{' #'.join(note.tags)}" if note.tags else ""
        lines.append(f"  {note.id}  [{label}] {note.display_title[:60]}{tags}")
    return lines


async def tool_add(args: dict) -> list[TextContent]:
    """Triage and save content."""
    content = args.get("content", "")
    if not content.strip():
        return _text("Error: Empty content")

    config, owner_id, db = _context()
    note = await asyncio.to_thread(capture, TextInput(value=content), owner_id, AIClassifier(config), db)

    label = note.category or note.content_type
    return _text(f"Saved: {note.id} [{label}] {note.display_title}")


async def tool_search(args: dict) -> list[TextContent]:
    """Search notes."""
    query = args.get("query", "").strip()
    limit = args.get("limit", 10)

    if not query:
        return _text("Error: Empty query")

    _, owner_id, db = _context()
    notes = search_notes(db.list_by_owner(owner_id), query)

    if not notes:
        return _text(f"No notes matching '{query}'.")
    return _text("\n".join([f"Notes matching '{query}':", ""] + _note_lines(notes[:limit])))


async def tool_list(args: dict) -> list[TextContent]:
    """List notes."""
    category = args.get("category")
    limit = args.get("limit", 20)

    _, owner_id, db = _context()
    if category:
        notes = db.list_by_owner_and_category(owner_id, category)
    else:
        notes = db.list_by_owner(owner_id)

    if not notes:
        return _text("No notes found.")

    header = f"{category} notes:" if category else "Recent notes:"
    lines = [header, ""] + _note_lines(notes[:limit])
    if len(notes) > limit:
        lines.append(f"  ... and {len(notes) - limit} more")
    return _text("\n".join(lines))


async def tool_reminders(args: dict) -> list[TextContent]:
    """List due and upcoming reminders."""
    _, owner_id, db = _context()
    now = datetime.now(timezone.utc)
    due = db.list_due_unnotified_reminders(owner_id, now)
    upcoming = db.list_upcoming_reminders(owner_id, now)

    if not due and not upcoming:
        return _text("No reminders set.")

    lines = []
    if due:
        lines.append("Due:")
        for note in due:
            lines.append(f"  {note.id}  {format_when(note.reminder.due_at)}  {note.display_title[:50]}")
    if upcoming:
        lines.append("Upcoming:")
        for note in upcoming:
            lines.append(f"  {note.id}  {format_when(note.reminder.due_at)}  {note.display_title[:50]}")
    return _text("\n".join(lines))


async def tool_remind(args: dict) -> list[TextContent]:
    """Set or clear a reminder."""
    identifier = args.get("note_id", "").strip()
    when = args.get("when", "").strip()

    if not identifier:
        return _text("Error: No note_id provided")
    if not when:
        return _text("Error: No time provided")

    due_at = None if when.lower() == "off" else parse_due(when)

    _, owner_id, db = _context()
    note_id = db.resolve_note_id(owner_id, identifier)
    if not note_id:
        return _text(f"Note not found: {identifier}")

    if due_at is None:
        db.disable_reminder(note_id)
        return _text(f"Reminder off: {note_id}")

    db.set_reminder(note_id, due_at)
    return _text(f"Reminder set: {note_id} at {format_when(due_at)}")


async def tool_stats(args: dict) -> list[TextContent]:
    """Get analytics."""
    _, owner_id, db = _context()
    stats = generate_analytics(db.list_by_owner(owner_id))

    lines = [
        f"Total notes: {stats['total_notes']}",
        f"Today: {stats['notes_today']}, last 7 days: {stats['notes_this_week']}",
        f"Productivity score: {stats['productivity_score']}/100",
        "",
        "By category:",
    ]
    for stat in stats["category_stats"]:
        lines.append(f"  {stat['category']}: {stat['count']} ({stat['percentage']}%)")
    if stats["tag_stats"]:
        lines.append("Top tags: " + ", ".join(f"{t['tag']} ({t['count']})" for t in stats["tag_stats"]))

    reminders = stats["reminder_stats"]
    lines.append(
        f"Reminders: {reminders['total_with_reminders']} set, "
        f"{reminders['active_reminders']} active, {reminders['completed_reminders']} sent"
    )
    return _text("\n".join(lines))


async def main():
    """Run the MCP server."""
    async with stdio_server() as (read_stream, write_stream):
        await server.run(read_stream, write_stream, server.create_initialization_options())


def run() -> None:
    """Console script entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    run()
