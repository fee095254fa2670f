"""
Health check module for Clipnote.

Reports system status across all components.
"""

import os
from datetime import datetime, timezone
from typing import Any

from clipnote.clipboard import find_backend
from clipnote.config import get_db_path, get_owner_id, load_config
from clipnote.errors import StoreError


def check_database(config: dict[str, Any]) -> tuple[str, str]:
    """Check database status."""
    db_path = get_db_path()
    if not db_path.exists():
        return "✗", "Not found"

    try:
        from clipnote.db import Database
        db = Database()
        notes = db.list_by_owner(get_owner_id(config))
        return "✓", f"OK ({len(notes)} notes)"
    except StoreError as e:
        return "✗", f"Error: {e}"


def check_classifier(config: dict[str, Any]) -> tuple[str, str]:
    """Check classifier (API) configuration."""
    ai_config = config.get("ai", {})
    if not ai_config.get("endpoint"):
        return "✗", "No endpoint"
    if not ai_config.get("api_key"):
        return "!", "No API key (keyword fallback only)"
    return "✓", "OK"


def check_clipboard() -> tuple[str, str]:
    """Check for a clipboard tool."""
    backend = find_backend()
    if not backend:
        return "!", "No wl-paste or xclip (paste as argument)"
    return "✓", f"OK ({backend})"


def check_telegram(config: dict[str, Any]) -> tuple[str, str]:
    """Check Telegram bot status."""
    tg_config = config.get("telegram", {})

    token = tg_config.get("token") or os.environ.get("CLIPNOTE_TELEGRAM_TOKEN")
    if not token:
        return "-", "Not configured"

    users = tg_config.get("authorized_users", [])
    if not users:
        env_users = os.environ.get("CLIPNOTE_TELEGRAM_USERS", "")
        users = [u.strip() for u in env_users.split(",") if u.strip()]

    if not users:
        return "!", "No authorized users"

    return "✓", f"OK ({len(users)} users)"


def check_reminders(config: dict[str, Any]) -> tuple[str, str]:
    """Check for reminders that are due but were never sent."""
    if not get_db_path().exists():
        return "-", "N/A"
    try:
        from clipnote.db import Database
        db = Database()
        due = db.list_due_unnotified_reminders(get_owner_id(config), datetime.now(timezone.utc))
    except StoreError:
        return "-", "N/A"

    if not due:
        return "✓", "Nothing overdue"
    return "!", f"{len(due)} due (is 'clipnote watch' running?)"


def run_health_check(config: dict[str, Any] | None = None) -> dict[str, tuple[str, str]]:
    """Run all health checks."""
    config = config or load_config()
    return {
        "Database": check_database(config),
        "Classifier": check_classifier(config),
        "Clipboard": check_clipboard(),
        "Telegram": check_telegram(config),
        "Reminders": check_reminders(config),
    }


def format_health_report(checks: dict[str, tuple[str, str]]) -> str:
    """Format health check results."""
    lines = ["Clipnote Health Check", "-" * 40]

    for name, (status, message) in checks.items():
        lines.append(f"{status} {name}: {message}")

    return "\n".join(lines)
