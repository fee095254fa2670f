"""
LLM Classifier for Clipnote.

Sends pasted content to a Gemini-style generateContent endpoint and turns
the answer into an AIClassification. The answer is never trusted: it is
parsed leniently and every field is validated on its own.

When the endpoint fails, callers use fallback_classify() instead. This
module never retries.
"""

import json
import logging
from typing import Any, Iterator

import httpx

from clipnote.config import DEFAULT_AI_ENDPOINT, load_config
from clipnote.errors import ClassificationError
from clipnote.models import (
    CATEGORIES,
    DEFAULT_PRIORITY,
    DEFAULT_TITLE,
    AIClassification,
    excerpt,
)

logger = logging.getLogger(__name__)


CLASSIFIER_PROMPT = """You are a content classifier for a personal notes app called Clipnote.
Analyze the content below and return ONLY a valid JSON object with these exact fields:

{{
  "category": "one of: {categories}",
  "title": "3-6 word title",
  "summary": "1-2 sentence summary",
  "tags": ["tag1", "tag2", "tag3"],
  "cleanedContent": "cleaned and formatted content",
  "priority": "low, medium, or high"
}}

## Rules
- Choose the most appropriate category from the list
- For job/career content, use "work"
- For personal thoughts/notes, use "personal"
- For project ideas, use "ideas"
- For URLs, use "links"
- For programming content, use "code"
- Keep the meaning of the content intact in cleanedContent; fix only formatting
- Return ONLY the JSON, no explanation or markdown

## Detected content type
{content_type}

## Content to classify
```
{content}
```"""


# Ordered keyword rules for the fallback. First matching group wins.
FALLBACK_RULES = [
    ("work", ("job", "work", "career", "freelance", "developer")),
    ("links", ("http", "www", ".com")),
    ("code", ("code", "function", "javascript", "react")),
]


def build_prompt(content: str, content_type: str) -> str:
    """Build the classification prompt for a piece of content."""
    return CLASSIFIER_PROMPT.format(
        categories=", ".join(CATEGORIES),
        content_type=content_type,
        content=content,
    )


def extract_json(text: str) -> dict[str, Any]:
    """
    Parse a JSON object out of a model answer.

    Tries the whole answer first, then each balanced {...} block in order.
    Raises ClassificationError(kind="unparseable") when nothing parses.
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        data = None
    if isinstance(data, dict):
        return data

    for block in iter_json_objects(text):
        try:
            data = json.loads(block)
        except json.JSONDecodeError:
            continue
        if isinstance(data, dict):
            return data

    raise ClassificationError("unparseable", "No JSON object in AI answer")


def iter_json_objects(text: str) -> Iterator[str]:
    """Yield balanced {...} substrings left to right, ignoring braces inside strings."""
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        end = None
        for i in range(start, len(text)):
            ch = text[i]
            if in_string:
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == '"':
                    in_string = False
            elif ch == '"':
                in_string = True
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    end = i
                    break
        if end is not None:
            yield text[start : end + 1]
        start = text.find("{", start + 1)


def normalize_classification(data: dict[str, Any], content: str) -> AIClassification:
    """Coerce parsed AI output into a fully defaulted AIClassification."""
    return AIClassification.model_validate(data, context={"content": content})


def fallback_classify(content: str) -> AIClassification:
    """
    Keyword fallback used when the AI call fails.

    Deterministic and total: it has no error path.
    """
    lowered = content.lower()
    category = "other"
    for rule_category, keywords in FALLBACK_RULES:
        if any(keyword in lowered for keyword in keywords):
            category = rule_category
            break

    return AIClassification(
        category=category,
        title=DEFAULT_TITLE,
        summary=excerpt(content),
        tags=[],
        cleaned_content=content,
        priority=DEFAULT_PRIORITY,
    )


class AIClassifier:
    """LLM-powered classifier for pasted content."""

    def __init__(
        self,
        config: dict[str, Any] | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        self.config = config or load_config()
        self.ai_config = self.config.get("ai", {})

        self.endpoint = self.ai_config.get("endpoint") or DEFAULT_AI_ENDPOINT
        # A missing key is allowed; the provider decides whether to reject
        self.api_key = self.ai_config.get("api_key")
        self.temperature = float(self.ai_config.get("temperature", 0.1))
        self.max_output_tokens = int(self.ai_config.get("max_output_tokens", 500))
        self.timeout = float(self.ai_config.get("timeout", 30.0))
        self._transport = transport

    def classify(self, content: str, content_type: str = "text") -> AIClassification:
        """
        Classify content with the AI endpoint.

        Raises ClassificationError on transport failure or unusable output.
        """
        prompt = build_prompt(content, content_type)
        answer = self._call_endpoint(prompt)
        logger.debug("Raw AI answer: %s", answer)

        data = extract_json(answer)
        return normalize_classification(data, content)

    def _call_endpoint(self, prompt: str) -> str:
        """POST the prompt and return the model's free-text answer."""
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["X-goog-api-key"] = self.api_key

        body = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": self.temperature,
                "maxOutputTokens": self.max_output_tokens,
            },
        }

        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                response = client.post(self.endpoint, headers=headers, json=body)
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise ClassificationError(
                "transport", f"AI endpoint returned {e.response.status_code}"
            ) from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise ClassificationError("transport", f"AI endpoint unreachable: {e}") from e

        try:
            payload = response.json()
        except ValueError as e:
            raise ClassificationError("unparseable", "AI endpoint did not return JSON") from e

        answer = _answer_text(payload)
        if not answer:
            raise ClassificationError("unparseable", "No answer text from AI endpoint")
        return answer


def _answer_text(payload: Any) -> str | None:
    """Dig candidates[0].content.parts[0].text out of a response payload."""
    try:
        text = payload["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        return None
    return text if isinstance(text, str) else None
