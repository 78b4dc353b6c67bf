"""Customs assistant tests; the provider HTTP call is replaced."""

import pytest
import requests

from etrans.services import assistant_service
from etrans.services.assistant_service import GeminiAssistant


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self._payload = payload
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        return self._payload


@pytest.fixture
def assistant(app):
    previous = app.extensions["assistant"]
    app.extensions["assistant"] = GeminiAssistant("test-key", "gemini-test")
    yield app.extensions["assistant"]
    app.extensions["assistant"] = previous


def test_status_without_key(client, director_a, auth_headers):
    resp = client.get("/api/ai/status", headers=auth_headers(director_a))
    assert resp.get_json()["data"] == {"available": False, "model": None}


def test_chat_without_key_is_503(client, director_a, auth_headers):
    resp = client.post("/api/ai/chat", json={"message": "Hello"}, headers=auth_headers(director_a))
    assert resp.status_code == 503
    assert resp.get_json()["code"] == "AI_UNAVAILABLE"


def test_chat(client, director_a, auth_headers, assistant, monkeypatch):
    calls = []

    def fake_post(url, **kwargs):
        calls.append((url, kwargs))
        return FakeResponse({"candidates": [{"content": {"parts": [{"text": "DD is 35%."}]}}]})

    monkeypatch.setattr(assistant_service.requests, "post", fake_post)

    resp = client.post("/api/ai/chat", json={"message": "What is the DD rate?"}, headers=auth_headers(director_a))
    assert resp.status_code == 200
    assert resp.get_json()["data"]["response"] == "DD is 35%."
    url, kwargs = calls[0]
    assert "gemini-test" in url
    assert kwargs["params"] == {"key": "test-key"}


def test_chat_provider_failure(client, director_a, auth_headers, assistant, monkeypatch):
    monkeypatch.setattr(assistant_service.requests, "post", lambda url, **kw: FakeResponse({}, 500))
    resp = client.post("/api/ai/chat", json={"message": "Hi"}, headers=auth_headers(director_a))
    assert resp.status_code == 503
    assert resp.get_json()["code"] == "AI_ERROR"


@pytest.mark.parametrize("message", ["", "   ", None, "x" * 2001])
def test_chat_message_validation(client, director_a, auth_headers, assistant, message):
    resp = client.post("/api/ai/chat", json={"message": message}, headers=auth_headers(director_a))
    assert resp.status_code == 400


def test_status_with_key(client, director_a, auth_headers, assistant):
    resp = client.get("/api/ai/status", headers=auth_headers(director_a))
    assert resp.get_json()["data"] == {"available": True, "model": "gemini-test"}
