"""
Configuration management for Clipnote.

Uses XDG base directories:
- Config: ~/.config/clipnote/config.toml
- Data: ~/clipnote/ (database and pasted images)
"""

from pathlib import Path
from typing import Any
import getpass
import logging
import os

# XDG defaults
DEFAULT_CONFIG_HOME = Path.home() / ".config"
DEFAULT_DATA_HOME = Path.home() / "clipnote"

DEFAULT_AI_ENDPOINT = (
    "https://generativelanguage.googleapis.com/v1beta/models/gemini-2.0-flash:generateContent"
)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def get_config_dir() -> Path:
    """Get the config directory (XDG_CONFIG_HOME/clipnote)."""
    base = Path(os.environ.get("XDG_CONFIG_HOME", DEFAULT_CONFIG_HOME))
    return base / "clipnote"


def get_clipnote_home() -> Path:
    """Get the clipnote data directory (~/clipnote or CLIPNOTE_HOME)."""
    if env_home := os.environ.get("CLIPNOTE_HOME"):
        return Path(env_home)
    return DEFAULT_DATA_HOME


def get_config_path() -> Path:
    """Get the path to config.toml."""
    return get_config_dir() / "config.toml"


def get_db_path() -> Path:
    """Get the path to clipnote.db."""
    return get_clipnote_home() / "clipnote.db"


def get_blob_dir() -> Path:
    """Get the directory holding pasted images."""
    return get_clipnote_home() / "images"


def ensure_dirs() -> None:
    """Ensure all required directories exist."""
    get_config_dir().mkdir(parents=True, exist_ok=True)
    get_clipnote_home().mkdir(parents=True, exist_ok=True)


def configure_logging(level: str | None = None) -> None:
    """Configure root logging once for a process entry point."""
    level_name = (level or os.environ.get("CLIPNOTE_LOG_LEVEL", "WARNING")).upper()
    logging.basicConfig(format=LOG_FORMAT, level=getattr(logging, level_name, logging.WARNING))


def load_config() -> dict[str, Any]:
    """
    Load configuration from config.toml.

    Values in the file override the defaults section by section.
    Returns default config if file doesn't exist.
    """
    config = get_default_config()
    config_path = get_config_path()

    if not config_path.exists():
        return config

    # Lazy import tomli only when needed
    import tomli

    with open(config_path, "rb") as f:
        return merge_config(config, tomli.load(f))


def merge_config(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge override into a copy of base."""
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_config(merged[key], value)
        else:
            merged[key] = value
    return merged


def get_default_config() -> dict[str, Any]:
    """Return default configuration."""
    return {
        "clipnote": {
            "home": str(get_clipnote_home()),
        },
        "user": {
            "id": os.environ.get("CLIPNOTE_USER") or getpass.getuser(),
        },
        "ai": {
            "endpoint": (
                os.environ.get("CLIPNOTE_AI_ENDPOINT")
                or os.environ.get("GEMINI_API_URL")
                or DEFAULT_AI_ENDPOINT
            ),
            "api_key": os.environ.get("CLIPNOTE_AI_API_KEY") or os.environ.get("GEMINI_API_KEY"),
            "temperature": 0.1,  # Low temperature keeps categories repeatable
            "max_output_tokens": 500,
            "timeout": 30.0,
        },
        "reminders": {
            "interval_seconds": 60,
        },
        "telegram": {},
    }


def get_owner_id(config: dict[str, Any]) -> str:
    """Owner id for notes captured from this machine."""
    return str(config.get("user", {}).get("id") or getpass.getuser())
