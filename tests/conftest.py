"""Pytest configuration and shared fixtures."""
import os

os.environ.setdefault("LOG_FILE", os.devnull)

import pytest
from fastapi.testclient import TestClient

from controller import ChatController
from models import ExchangeFailure, ExchangeSuccess


class FakeTransport:
    """Records exchange requests and answers with canned results."""

    def __init__(self, *results):
        self.results = list(results) or [ExchangeSuccess(content="ok")]
        self.requests = []

    async def send(self, request):
        self.requests.append(request)
        result = self.results.pop(0) if len(self.results) > 1 else self.results[0]
        if isinstance(result, Exception):
            raise result
        return result


class FakeResponse:
    """Just enough of requests.Response for the Gemini helpers."""

    def __init__(self, status_code=200, payload=None, text=None):
        self.status_code = status_code
        self.ok = 200 <= status_code < 400
        self._payload = payload
        self.text = text if text is not None else ("" if payload is None else str(payload))

    def json(self):
        if self._payload is None:
            raise ValueError("No JSON object could be decoded")
        return self._payload


def gemini_reply(text):
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


@pytest.fixture
def api_key(monkeypatch):
    monkeypatch.setenv("GEMINI_API_KEY", "test-key")
    return "test-key"


@pytest.fixture
def upstream(monkeypatch):
    """Patch requests.post; tests set ``upstream.response`` and read ``upstream.calls``."""

    class Upstream:
        response = FakeResponse(200, gemini_reply("4"))
        calls = []

        def post(self, url, params=None, json=None, **kwargs):
            self.calls.append({"url": url, "params": params, "json": json})
            if isinstance(self.response, Exception):
                raise self.response
            return self.response

    fake = Upstream()
    fake.calls = []
    monkeypatch.setattr("gemini_utils.requests.post", fake.post)
    return fake


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def controller(transport):
    return ChatController(transport=transport)


@pytest.fixture
def client(controller):
    from main import app, get_controller

    app.dependency_overrides[get_controller] = lambda: controller
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def failing_transport():
    return FakeTransport(ExchangeFailure(status=500, error="Gemini API returned 500: boom"))
