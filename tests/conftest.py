"""Pytest configuration and fixtures."""

import json
import pytest
from typing import Generator

import httpx
from fastapi.testclient import TestClient

from chatbridge.config import Settings
from chatbridge.main import create_app


class FakeUpstream:
    """In-process upstream: records requests and replays queued responses."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.responses: list = []

    def queue(self, response) -> None:
        self.responses.append(response)

    def queue_json(self, payload: dict, status_code: int = 200) -> None:
        self.queue(httpx.Response(status_code, json=payload))

    def queue_stream(self, chunks: list, status_code: int = 200) -> None:
        """Queue an OpenAI SSE stream; dict chunks are JSON-encoded, strings sent as-is."""
        lines = []
        for chunk in chunks:
            data = chunk if isinstance(chunk, str) else json.dumps(chunk)
            lines.append(f"data: {data}\n\n")
        self.queue(httpx.Response(
            status_code,
            content="".join(lines).encode("utf-8"),
            headers={"content-type": "text/event-stream"},
        ))

    def handler(self, request: httpx.Request):
        self.requests.append(request)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def last_json(self) -> dict:
        return json.loads(self.requests[-1].content)


def parse_sse(text: str) -> list[dict]:
    """Split an Anthropic SSE body into [{"event": ..., "data": ...}]."""
    events = []
    for frame in text.split("\n\n"):
        if not frame.strip():
            continue
        lines = frame.split("\n")
        assert lines[0].startswith("event: ")
        assert lines[1].startswith("data: ")
        events.append({
            "event": lines[0][len("event: "):],
            "data": json.loads(lines[1][len("data: "):]),
        })
    return events


@pytest.fixture
def fake_upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
def groq_settings() -> Settings:
    """Settings for the translating (OpenAI-compatible) provider."""
    return Settings(
        _env_file=None,
        provider="groq",
        groq_base_url="https://groq.test/openai/v1",
        groq_api_key="groq-key",
        groq_model=None,
    )


@pytest.fixture
def moonshot_settings() -> Settings:
    """Settings for the pass-through (Anthropic-compatible) provider."""
    return Settings(
        _env_file=None,
        provider="moonshot",
        moonshot_base_url="https://moonshot.test/anthropic",
        moonshot_api_key="moonshot-key",
    )


@pytest.fixture
def test_client(groq_settings, fake_upstream) -> Generator:
    """Create a test client for the translating proxy."""
    app = create_app(groq_settings, upstream_transport=fake_upstream.transport)
    with TestClient(app) as client:
        yield client


@pytest.fixture
def passthrough_client(moonshot_settings, fake_upstream) -> Generator:
    """Create a test client for the pass-through proxy."""
    app = create_app(moonshot_settings, upstream_transport=fake_upstream.transport)
    with TestClient(app) as client:
        yield client


@pytest.fixture
def sample_anthropic_request():
    """Sample Anthropic message request."""
    return {
        "model": "claude-3-5-sonnet-20241022",
        "max_tokens": 1024,
        "messages": [
            {"role": "user", "content": "Hello!"},
        ],
    }
