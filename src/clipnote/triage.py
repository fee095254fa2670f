"""
Content triage for Clipnote.

Turns raw pasted input into a note payload:

    text  -> heuristics -> AI classifier -> (fallback on failure) -> payload
    image -> payload (no text analysis, no AI call)

The content type always comes from the local heuristics. The AI layer only
supplies the descriptive fields, and its failures never leave this module.
"""

import hashlib
import logging
import mimetypes
from dataclasses import dataclass
from typing import Protocol

from clipnote import heuristics
from clipnote.classifier import fallback_classify
from clipnote.errors import ClassificationError, EmptyInputError, StoreError
from clipnote.models import (
    AIClassification,
    ImageInput,
    Note,
    NotePayload,
    RawInput,
    TextInput,
)

logger = logging.getLogger(__name__)


class TextClassifier(Protocol):
    """Anything that classifies text, e.g. AIClassifier."""

    def classify(self, content: str, content_type: str = "text") -> AIClassification: ...


@dataclass(frozen=True)
class Classified:
    """The AI classifier answered with a usable classification."""

    classification: AIClassification


@dataclass(frozen=True)
class ClassificationFailed:
    """The AI classifier failed; the fallback supplies the fields."""

    error: ClassificationError


ClassificationOutcome = Classified | ClassificationFailed


def attempt_classification(
    classifier: TextClassifier, content: str, content_type: str
) -> ClassificationOutcome:
    """Run the AI classifier once and capture the result as an outcome."""
    try:
        return Classified(classifier.classify(content, content_type))
    except ClassificationError as e:
        return ClassificationFailed(e)


def resolve(outcome: ClassificationOutcome, content: str) -> AIClassification:
    """Collapse an outcome into a classification. Never fails."""
    if isinstance(outcome, Classified):
        return outcome.classification

    logger.warning(
        "AI classification failed (%s: %s), using keyword fallback",
        outcome.error.kind,
        outcome.error,
    )
    return fallback_classify(content)


def triage(raw: RawInput, classifier: TextClassifier) -> NotePayload:
    """
    Classify and normalize raw input into a note payload.

    Raises EmptyInputError for blank text before any network call.
    """
    if isinstance(raw, ImageInput):
        return triage_image(raw)
    return triage_text(raw, classifier)


def triage_text(raw: TextInput, classifier: TextClassifier) -> NotePayload:
    """Text path: heuristics, then AI, then fallback if the AI failed."""
    content = raw.value.strip()
    if not content:
        raise EmptyInputError()

    local = heuristics.classify(content)
    outcome = attempt_classification(classifier, content, local.content_type)
    classification = resolve(outcome, content)

    return NotePayload(
        original_content=content,
        cleaned_content=classification.cleaned_content,
        content_type=local.content_type,
        category=classification.category,
        title=classification.title,
        summary=classification.summary,
        tags=list(classification.tags),
        priority=classification.priority,
        metadata=dict(local.metadata) or None,
    )


def triage_image(raw: ImageInput) -> NotePayload:
    """Image path: store a reference to the blob, skip all analysis."""
    if not raw.blob:
        raise EmptyInputError("Nothing to save: the image is empty.")

    ref = blob_ref(raw.blob, raw.mime_type)
    return NotePayload(
        original_content=ref,
        cleaned_content=ref,
        content_type="image",
        metadata={
            "mime_type": raw.mime_type,
            "size": len(raw.blob),
            "image_ref": ref,
        },
    )


def blob_ref(blob: bytes, mime_type: str) -> str:
    """Content-addressed reference for an image blob."""
    digest = hashlib.sha256(blob).hexdigest()
    extension = mimetypes.guess_extension(mime_type) or ".bin"
    return f"image/{digest}{extension}"


def capture(raw: RawInput, owner_id: str, classifier: TextClassifier, store) -> Note:
    """
    Triage raw input and persist it for owner_id.

    Store errors propagate unchanged; nothing is retried. Repeated calls with
    the same input create separate notes.
    """
    payload = triage(raw, classifier)

    wrote_blob = False
    if isinstance(raw, ImageInput):
        wrote_blob = store.save_blob(payload.original_content, raw.blob)

    try:
        note_id = store.create(owner_id, payload)
    except StoreError:
        if wrote_blob:
            store.delete_blob(payload.original_content)
        raise

    note = store.get(note_id)
    if note is None:
        raise StoreError("unknown", f"Note {note_id} vanished after create")
    logger.info("Captured note %s (%s, %s)", note_id, note.content_type, note.category)
    return note
