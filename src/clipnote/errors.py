"""
Error types for Clipnote.

Classification errors never leave the triage pipeline; store errors always
reach the user.
"""


class ClipnoteError(Exception):
    """Base class for all clipnote errors."""


class EmptyInputError(ClipnoteError):
    """Raised when there is nothing to triage."""

    def __init__(self, message: str = "Nothing to save: the content is empty."):
        super().__init__(message)


class ClipboardUnavailableError(ClipnoteError):
    """Raised when the system clipboard cannot be read."""

    def __init__(self, message: str = "Clipboard is not available."):
        super().__init__(f"{message} Paste the content as an argument instead.")


class ClassificationError(ClipnoteError):
    """AI classification failed. Kind is 'transport' or 'unparseable'."""

    KINDS = ("transport", "unparseable")

    def __init__(self, kind: str, message: str = ""):
        if kind not in self.KINDS:
            raise ValueError(f"Invalid classification error kind: {kind}")
        self.kind = kind
        super().__init__(message or kind)


class StoreError(ClipnoteError):
    """Persistence failed. The note was not created or updated."""

    KINDS = ("permission_denied", "unavailable", "invalid_argument", "unknown")

    MESSAGES = {
        "permission_denied": "Permission denied. Check access to the notes database.",
        "unavailable": "Database unavailable. Try again in a moment.",
        "invalid_argument": "Invalid data",
        "unknown": "Database error",
    }

    def __init__(self, kind: str, detail: str = ""):
        if kind not in self.KINDS:
            kind = "unknown"
        self.kind = kind
        self.detail = detail
        message = self.MESSAGES[kind]
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
