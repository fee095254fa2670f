"""
Data model for Clipnote.

Pydantic models for raw input, triage results and persisted notes.
AI output goes through AIClassification validation before anything uses it.
"""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, model_validator

ContentType = Literal["url", "code", "mixed", "text", "image"]
Priority = Literal["low", "medium", "high"]

CATEGORIES = (
    "personal",
    "work",
    "ideas",
    "links",
    "code",
    "shopping",
    "health",
    "finance",
    "travel",
    "other",
)
PRIORITIES = ("low", "medium", "high")

DEFAULT_CATEGORY = "other"
DEFAULT_PRIORITY = "medium"
DEFAULT_TITLE = "Untitled Note"
SUMMARY_LENGTH = 100


def excerpt(content: str, length: int = SUMMARY_LENGTH) -> str:
    """Mechanical summary: the first characters of the content plus an ellipsis."""
    return content[:length] + "..."


class TextInput(BaseModel):
    """Typed or pasted text."""

    kind: Literal["text"] = "text"
    value: str


class ImageInput(BaseModel):
    """Pasted image bytes."""

    kind: Literal["image"] = "image"
    blob: bytes
    mime_type: str


RawInput = TextInput | ImageInput


class HeuristicResult(BaseModel):
    """Local, network-free classification of pasted text."""

    model_config = ConfigDict(frozen=True)

    content_type: ContentType
    metadata: dict[str, str] = Field(default_factory=dict)


def _text_or(value: Any, default: str) -> str:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return default


class AIClassification(BaseModel):
    """
    Descriptive fields for a note.

    Validation never rejects a record: every field is coerced or defaulted
    on its own. Pass the original content as validation context so the
    summary and cleaned content can fall back to it:

        AIClassification.model_validate(data, context={"content": text})
    """

    model_config = ConfigDict(populate_by_name=True)

    category: str = DEFAULT_CATEGORY
    title: str = DEFAULT_TITLE
    summary: str = ""
    tags: list[str] = Field(default_factory=list)
    cleaned_content: str = Field(default="", alias="cleanedContent")
    priority: Priority = DEFAULT_PRIORITY

    @model_validator(mode="before")
    @classmethod
    def _coerce(cls, data: Any, info: ValidationInfo) -> Any:
        if not isinstance(data, dict):
            return data
        content = (info.context or {}).get("content", "")

        category = data.get("category")
        if isinstance(category, str):
            category = category.strip().lower()
        if category not in CATEGORIES:
            category = DEFAULT_CATEGORY

        priority = data.get("priority")
        if isinstance(priority, str):
            priority = priority.strip().lower()
        if priority not in PRIORITIES:
            priority = DEFAULT_PRIORITY

        tags = data.get("tags")
        if isinstance(tags, list):
            tags = [t.strip() for t in tags if isinstance(t, str) and t.strip()]
        else:
            tags = []

        cleaned = data.get("cleanedContent", data.get("cleaned_content"))
        if not isinstance(cleaned, str) or not cleaned.strip():
            cleaned = content

        return {
            "category": category,
            "title": _text_or(data.get("title"), DEFAULT_TITLE),
            "summary": _text_or(data.get("summary"), excerpt(content)),
            "tags": tags,
            "cleanedContent": cleaned,
            "priority": priority,
        }


class Reminder(BaseModel):
    """Reminder sub-record. `notified` only goes from False to True."""

    enabled: bool = False
    due_at: datetime | None = None
    notified: bool = False


class NotePayload(BaseModel):
    """A triaged note, ready to hand to the store."""

    original_content: str
    cleaned_content: str
    content_type: ContentType
    category: str | None = None
    title: str | None = None
    summary: str | None = None
    tags: list[str] | None = None
    priority: Priority | None = None
    metadata: dict[str, Any] | None = None
    reminder: Reminder | None = None


class Note(NotePayload):
    """A persisted note."""

    id: str
    owner_id: str
    created_at: datetime
    updated_at: datetime

    @property
    def display_title(self) -> str:
        if self.title:
            return self.title
        first_line = self.cleaned_content.strip().splitlines()[0] if self.cleaned_content.strip() else ""
        return first_line[:60] or DEFAULT_TITLE
