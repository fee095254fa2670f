"""Shared fixtures for clipnote tests."""

import json
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from clipnote.db import Database
from clipnote.errors import ClassificationError
from clipnote.models import AIClassification

AI_ENDPOINT = "https://ai.test/v1beta/models/test:generateContent"
START = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    """Point every path and credential at the test's temp directory."""
    monkeypatch.setenv("CLIPNOTE_HOME", str(tmp_path / "home"))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("CLIPNOTE_USER", "tester")
    monkeypatch.setenv("NO_COLOR", "1")
    for name in (
        "CLIPNOTE_AI_API_KEY",
        "GEMINI_API_KEY",
        "CLIPNOTE_AI_ENDPOINT",
        "GEMINI_API_URL",
        "CLIPNOTE_TELEGRAM_TOKEN",
        "CLIPNOTE_TELEGRAM_USERS",
        "CLIPNOTE_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)


class FakeClock:
    """Manually advanced clock for the store."""

    def __init__(self, start: datetime = START):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class StubClassifier:
    """Records calls; answers with a fixed classification or raises."""

    def __init__(self, result: AIClassification | None = None, error: ClassificationError | None = None):
        self.result = result or AIClassification(
            category="ideas",
            title="Stub Title",
            summary="Stub summary.",
            tags=["stub"],
            cleaned_content="stub cleaned",
            priority="high",
        )
        self.error = error
        self.calls: list[tuple[str, str]] = []

    def classify(self, content: str, content_type: str = "text") -> AIClassification:
        self.calls.append((content, content_type))
        if self.error:
            raise self.error
        return self.result


def gemini_payload(text: str) -> dict:
    """A generateContent response whose first candidate answers with text."""
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


def json_transport(answer: str, status_code: int = 200, seen: list | None = None) -> httpx.MockTransport:
    """MockTransport answering every request with a fixed model answer."""

    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        if status_code != 200:
            return httpx.Response(status_code, text="server error")
        return httpx.Response(200, json=gemini_payload(answer))

    return httpx.MockTransport(handler)


def ai_config(api_key: str | None = "test-key") -> dict:
    return {"ai": {"endpoint": AI_ENDPOINT, "api_key": api_key}}


def classification_json(**overrides) -> str:
    data = {
        "category": "work",
        "title": "Backend Job Lead",
        "summary": "A lead for a backend role.",
        "tags": ["job", "backend"],
        "cleanedContent": "Backend role at Acme",
        "priority": "high",
    }
    data.update(overrides)
    return json.dumps(data)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def db(tmp_path, clock):
    return Database(tmp_path / "test.db", tmp_path / "images", clock=clock)


@pytest.fixture
def stub_classifier():
    return StubClassifier()
