"""
CLI for Clipnote.

Minimal CLI using stdlib argument handling for fast startup.
Subcommands are imported lazily to avoid startup overhead.

Usage:
    clipnote "some text or a URL"    # Triage and save
    clipnote paste                   # Save whatever is on the clipboard
    clipnote --help                  # Show help
"""

import sys

EDITABLE_FIELDS = ("title", "summary", "category", "priority", "tags", "cleaned_content")


def print_help() -> None:
    """Print help message."""
    print("""clipnote - paste it, it gets sorted

Usage:
    clipnote "text, code or a URL"   Triage and save a note
    echo "..." | clipnote            Save piped input

Commands:
    clipnote paste                   Save the clipboard (text or image)
    clipnote list [options]          List notes (--category, --limit)
    clipnote show <id>               Show a note
    clipnote find <query>            Search notes
    clipnote edit <id> key=value     Edit title, summary, category, priority,
                                     tags (comma separated) or cleaned_content
    clipnote delete <id>             Delete a note
    clipnote remind <id> <when>      Set a reminder (ISO time, +30m, +2h, +1d)
    clipnote remind <id> off         Turn a reminder off
    clipnote reminders               Show due and upcoming reminders
    clipnote watch                   Send desktop notifications for reminders
    clipnote stats                   Show analytics
    clipnote health                  Check configuration and services

Options:
    clipnote --help, -h              Show this help
    clipnote --version, -v           Show version

Examples:
    clipnote "https://example.com/article"
    clipnote list --category work
    clipnote find "redis"
    clipnote remind 3f2a9c +2h""")


def print_version() -> None:
    """Print version."""
    from clipnote import __version__
    print(f"clipnote {__version__}")


def _context():
    """Load config, owner id and the store for a command."""
    from clipnote.config import configure_logging, ensure_dirs, get_owner_id, load_config
    from clipnote.db import Database

    configure_logging()
    config = load_config()
    ensure_dirs()
    return config, get_owner_id(config), Database()


def _resolve(db, owner_id: str, identifier: str) -> str | None:
    note_id = db.resolve_note_id(owner_id, identifier)
    if not note_id:
        print(f"Note not found: {identifier}", file=sys.stderr)
    return note_id


def capture(raw) -> int:
    """Triage raw input and save it. Prints the new note."""
    from clipnote.classifier import AIClassifier
    from clipnote.errors import ClipnoteError
    from clipnote.triage import capture as capture_note

    try:
        config, owner_id, db = _context()
        note = capture_note(raw, owner_id, AIClassifier(config), db)
    except ClipnoteError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    label = note.category or note.content_type
    print(f"{note.id}  [{label}] {note.display_title}")
    return 0


def cmd_capture_text(text: str) -> int:
    from clipnote.models import TextInput

    return capture(TextInput(value=text))


def cmd_paste() -> int:
    """Save the clipboard contents."""
    from clipnote.clipboard import read_clipboard
    from clipnote.errors import ClipnoteError

    try:
        raw = read_clipboard()
    except ClipnoteError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return capture(raw)


def cmd_list(args: list[str]) -> int:
    """List notes with optional filters."""
    from clipnote.errors import ClipnoteError
    from clipnote.surfacing import format_notes

    category = None
    limit = 20

    # Parse arguments
    i = 0
    while i < len(args):
        arg = args[i]
        if arg in ("--category", "-c") and i + 1 < len(args):
            category = args[i + 1].lower()
            i += 2
        elif arg in ("--limit", "-n") and i + 1 < len(args):
            if not args[i + 1].isdigit():
                print(f"Invalid limit: {args[i + 1]}", file=sys.stderr)
                return 1
            limit = int(args[i + 1])
            i += 2
        elif arg in ("--all", "-a"):
            limit = 0
            i += 1
        else:
            i += 1

    try:
        _, owner_id, db = _context()
        if category:
            notes = db.list_by_owner_and_category(owner_id, category)
        else:
            notes = db.list_by_owner(owner_id)
    except ClipnoteError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    header = category.upper() if category else "NOTES"
    print(format_notes(notes, header, limit=limit or None))
    return 0


def cmd_show(args: list[str]) -> int:
    """Show one note."""
    from clipnote.errors import ClipnoteError
    from clipnote.surfacing import format_note

    if not args:
        print("Usage: clipnote show <id>", file=sys.stderr)
        return 1

    try:
        _, owner_id, db = _context()
        note_id = _resolve(db, owner_id, args[0])
        if not note_id:
            return 1
        note = db.get(note_id)
    except ClipnoteError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(format_note(note))
    if note.content_type == "image":
        print(f"\nFile: {db.blob_path(note.original_content)}")
    return 0


def cmd_find(args: list[str]) -> int:
    """Search notes."""
    from clipnote.errors import ClipnoteError
    from clipnote.surfacing import format_notes, search_notes

    if not args:
        print("Usage: clipnote find <query>", file=sys.stderr)
        return 1

    query = " ".join(args)

    try:
        _, owner_id, db = _context()
        notes = search_notes(db.list_by_owner(owner_id), query)
    except ClipnoteError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if not notes:
        print(f"No notes matching '{query}'.")
        return 0
    print(format_notes(notes, f"SEARCH: {query}"))
    return 0


def parse_edits(pairs: list[str]) -> dict:
    """Turn key=value arguments into a partial update."""
    updates: dict = {}
    for pair in pairs:
        if "=" not in pair:
            raise ValueError(f"Invalid edit '{pair}'. Use key=value.")
        key, value = pair.split("=", 1)
        key = key.strip()
        if key not in EDITABLE_FIELDS:
            raise ValueError(f"Cannot edit '{key}'. Editable: {', '.join(EDITABLE_FIELDS)}")
        if key == "tags":
            updates[key] = [tag.strip() for tag in value.split(",") if tag.strip()]
        elif key in ("category", "priority"):
            updates[key] = value.strip().lower()
        else:
            updates[key] = value
    return updates


def cmd_edit(args: list[str]) -> int:
    """Edit fields of a note."""
    from clipnote.errors import ClipnoteError

    if len(args) < 2:
        print("Usage: clipnote edit <id> key=value [key=value ...]", file=sys.stderr)
        return 1

    try:
        updates = parse_edits(args[1:])
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    try:
        _, owner_id, db = _context()
        note_id = _resolve(db, owner_id, args[0])
        if not note_id:
            return 1
        db.update(note_id, updates)
    except ClipnoteError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(f"Updated: {note_id}")
    return 0


def cmd_delete(args: list[str]) -> int:
    """Delete a note."""
    from clipnote.errors import ClipnoteError

    if not args:
        print("Usage: clipnote delete <id>", file=sys.stderr)
        return 1

    try:
        _, owner_id, db = _context()
        note_id = _resolve(db, owner_id, args[0])
        if not note_id:
            return 1
        db.delete(note_id)
    except ClipnoteError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(f"Deleted: {note_id}")
    return 0


def cmd_remind(args: list[str]) -> int:
    """Set or turn off a reminder."""
    from clipnote.errors import ClipnoteError
    from clipnote.reminders import parse_due
    from clipnote.surfacing import format_when

    if len(args) < 2:
        print("Usage: clipnote remind <id> <when|off>", file=sys.stderr)
        return 1

    when = " ".join(args[1:])
    due_at = None
    if when.lower() != "off":
        try:
            due_at = parse_due(when)
        except ValueError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1

    try:
        _, owner_id, db = _context()
        note_id = _resolve(db, owner_id, args[0])
        if not note_id:
            return 1
        if due_at is None:
            db.disable_reminder(note_id)
        else:
            db.set_reminder(note_id, due_at)
    except ClipnoteError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if due_at is None:
        print(f"Reminder off: {note_id}")
    else:
        print(f"Reminder set: {note_id} at {format_when(due_at)}")
    return 0


def cmd_reminders() -> int:
    """Show due and upcoming reminders."""
    from datetime import datetime, timezone

    from clipnote.errors import ClipnoteError
    from clipnote.surfacing import format_reminders

    now = datetime.now(timezone.utc)
    try:
        _, owner_id, db = _context()
        due = db.list_due_unnotified_reminders(owner_id, now)
        upcoming = db.list_upcoming_reminders(owner_id, now)
    except ClipnoteError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(format_reminders(due, upcoming))
    return 0


def cmd_watch() -> int:
    """Run the reminder sweep until interrupted."""
    from clipnote.errors import ClipnoteError
    from clipnote.reminders import desktop_notify, run_sweeper

    try:
        config, owner_id, db = _context()
        interval = float(config.get("reminders", {}).get("interval_seconds", 60))
        print(f"Watching reminders every {interval:g}s. Ctrl-C to stop.")
        run_sweeper(db, owner_id, desktop_notify, interval_seconds=interval)
    except ClipnoteError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nStopped.")
    return 0


def cmd_stats() -> int:
    """Show analytics."""
    from clipnote.errors import ClipnoteError
    from clipnote.surfacing import format_analytics, generate_analytics

    try:
        _, owner_id, db = _context()
        stats = generate_analytics(db.list_by_owner(owner_id))
    except ClipnoteError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(format_analytics(stats))
    return 0


def cmd_health() -> int:
    """Show health report."""
    from clipnote.health import format_health_report, run_health_check

    print(format_health_report(run_health_check()))
    return 0


def main() -> int:
    """
    Main entry point.

    Optimized for minimal startup time on the capture path.
    """
    args = sys.argv[1:]

    # No args - check for piped input
    if not args:
        if not sys.stdin.isatty():
            return cmd_capture_text(sys.stdin.read())
        print_help()
        return 0

    first_arg = args[0]

    if first_arg in ("--help", "-h", "help"):
        print_help()
        return 0

    if first_arg in ("--version", "-v", "version"):
        print_version()
        return 0

    commands = {
        "paste": lambda: cmd_paste(),
        "list": lambda: cmd_list(args[1:]),
        "show": lambda: cmd_show(args[1:]),
        "find": lambda: cmd_find(args[1:]),
        "edit": lambda: cmd_edit(args[1:]),
        "delete": lambda: cmd_delete(args[1:]),
        "remind": lambda: cmd_remind(args[1:]),
        "reminders": lambda: cmd_reminders(),
        "watch": lambda: cmd_watch(),
        "stats": lambda: cmd_stats(),
        "health": lambda: cmd_health(),
    }
    if first_arg in commands:
        return commands[first_arg]()

    # Everything else is content to save
    return cmd_capture_text(" ".join(args))


if __name__ == "__main__":
    sys.exit(main())
