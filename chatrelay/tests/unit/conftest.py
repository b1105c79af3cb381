"""
Conftest for unit tests.

IMPORTANT: This file must set environment variables BEFORE any chatrelay
imports so that pydantic settings never pick up real vendor keys or an
encryption key from the developer's environment.
"""

import json
import os
import sys

# Set environment variables BEFORE importing pytest or any chatrelay modules
os.environ["CHATRELAY_ENVIRONMENT"] = "test"
os.environ["CHATRELAY_LOG_LEVEL"] = "DEBUG"
os.environ["CHATRELAY_ENCRYPTION_KEY"] = ""
os.environ["CHATRELAY_ENCRYPTION_SECRET"] = ""
for _provider in ("openai", "anthropic", "gemini", "chutes", "openrouter"):
    os.environ[f"CHATRELAY_{_provider.upper()}_API_KEY"] = ""

# Ensure the chatrelay package can be found
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "..", ".."))

import httpx
import pytest


class RecordingTransport:
    """httpx.MockTransport that keeps every request it answers."""

    def __init__(self, handler):
        self.requests: list[httpx.Request] = []
        self._handler = handler
        self.transport = httpx.MockTransport(self._handle)

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self._handler(request)

    @property
    def last_request(self) -> httpx.Request:
        return self.requests[-1]

    @property
    def last_json(self) -> dict:
        return json.loads(self.requests[-1].content)


def sse_response(chunks, status_code: int = 200) -> httpx.Response:
    """Streaming response delivering the given byte chunks one by one."""

    async def body():
        for chunk in chunks:
            yield chunk.encode() if isinstance(chunk, str) else chunk

    return httpx.Response(
        status_code,
        content=body(),
        headers={"content-type": "text/event-stream"},
    )


@pytest.fixture
def recorder():
    """Factory: recorder(handler) -> RecordingTransport."""
    return RecordingTransport


@pytest.fixture
def json_reply():
    """Factory: json_reply(payload, status) -> handler answering every request."""

    def factory(payload, status_code: int = 200):
        return lambda request: httpx.Response(status_code, json=payload)

    return factory


@pytest.fixture
def sse_reply():
    """Factory: sse_reply(chunks, status) -> handler streaming the chunks."""

    def factory(chunks, status_code: int = 200):
        return lambda request: sse_response(chunks, status_code)

    return factory


@pytest.fixture
def failing_transport():
    """Transport raising a connection error on every request."""

    def handler(request):
        raise httpx.ConnectError("Name or service not known", request=request)

    return RecordingTransport(handler)


@pytest.fixture
def user_hello():
    return [{"role": "user", "content": "Hello"}]


async def collect(stream) -> list:
    """Drain an async chunk iterator into a list."""
    return [chunk async for chunk in stream]


@pytest.fixture
def drain():
    return collect
