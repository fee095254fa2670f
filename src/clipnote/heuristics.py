"""
Heuristic content classifier.

Decides url / code / mixed / text with regular expressions only.
No network, no state: the same text always gives the same result.
"""

import re
from urllib.parse import urlsplit

from clipnote.models import HeuristicResult

URL_RE = re.compile(r"^https?://\S+$", re.IGNORECASE)
EMBEDDED_URL_RE = re.compile(r"https?://\S+", re.IGNORECASE)

CODE_PATTERNS = [
    re.compile(r"function\s+\w+\s*\("),
    re.compile(r"const\s+\w+\s*="),
    re.compile(r"import\s+.*from"),
    re.compile(r"class\s+\w+"),
    re.compile(r"<\w+.*>"),
    re.compile(r"\{\s*\".*\":"),
    re.compile(r"def\s+\w+\s*\("),
    re.compile(r"public\s+class"),
]

# Checked in order, first match wins
LANGUAGE_RULES = [
    ("javascript", re.compile(r"import\s+.*from|const\s+.*=|function\s+.*\(")),
    ("python", re.compile(r"def\s+.*\(|import\s+\w+")),
    ("html", re.compile(r"<\w+.*>|</\w+>")),
    ("json", re.compile(r"\{\s*\".*\":")),
    ("java", re.compile(r"public\s+class|private\s+\w+")),
]


def classify(text: str) -> HeuristicResult:
    """Classify pasted text into a coarse content type with light metadata."""
    trimmed = text.strip()

    if URL_RE.match(trimmed):
        return HeuristicResult(content_type="url", metadata=url_metadata(trimmed))

    if is_code(trimmed):
        return HeuristicResult(
            content_type="code",
            metadata={"language": detect_language(trimmed)},
        )

    if EMBEDDED_URL_RE.search(trimmed):
        return HeuristicResult(content_type="mixed")

    return HeuristicResult(content_type="text")


def is_code(text: str) -> bool:
    """True if any code signal appears in the text."""
    return any(pattern.search(text) for pattern in CODE_PATTERNS)


def detect_language(code: str) -> str:
    """Best-effort language guess for a code snippet."""
    for language, pattern in LANGUAGE_RULES:
        if pattern.search(code):
            return language
    return "text"


def url_metadata(url: str) -> dict[str, str]:
    """Host and path of a bare URL. Malformed parts are left out."""
    try:
        parts = urlsplit(url)
        host = parts.hostname
    except ValueError:
        return {}

    metadata: dict[str, str] = {}
    if host:
        metadata["domain"] = host
    if parts.path:
        metadata["title"] = parts.path
    return metadata
