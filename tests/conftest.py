"""Shared fixtures and test doubles."""

from __future__ import annotations

import httpx
import pytest
from fastapi.testclient import TestClient

from bookscan.core.notify import Notifier, Prompter
from bookscan.web import app as web_app

ANIMAL_FARM = {
    "ISBN:0451526538": {
        "title": "Animal Farm",
        "authors": [{"name": "George Orwell", "url": "https://openlibrary.org/authors/OL118077A"}],
    }
}


class RecordingNotifier(Notifier):
    def __init__(self) -> None:
        self.messages: list[str] = []

    def notify(self, message: str) -> None:
        self.messages.append(message)


class ScriptedPrompter(Prompter):
    """Answers every prompt with a fixed reply and remembers what was asked."""

    def __init__(self, answer: str | None) -> None:
        self.answer = answer
        self.asked: list[tuple[str, str]] = []

    def prompt(self, message: str, default: str = "") -> str | None:
        self.asked.append((message, default))
        return self.answer


def catalog_transport(payload: dict, status_code: int = 200) -> httpx.MockTransport:
    """Transport that answers every catalog request with ``payload``."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, json=payload)

    return httpx.MockTransport(handler)


def failing_transport() -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    return httpx.MockTransport(handler)


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def client(monkeypatch):
    """API client whose lookups are answered from ANIMAL_FARM."""
    monkeypatch.setattr(web_app, "lookup_transport", catalog_transport(ANIMAL_FARM))
    web_app.sessions.clear()
    web_app._rate_log.clear()
    with TestClient(web_app.app) as c:
        yield c
    web_app.sessions.clear()
    web_app._rate_log.clear()


@pytest.fixture
def session_id(client) -> str:
    return client.post("/api/session").json()["session_id"]
