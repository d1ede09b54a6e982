"""Pytest configuration for unit tests."""

import asyncio
import json
import os

# Keep test runs quiet and fast before importing anything from src.
os.environ.setdefault("LOG_FILE_PATH", "")
os.environ.setdefault("RETRY_DELAY_SECONDS", "0")

import httpx
import pytest

from src.core.client import DeepSeekClient
from src.core.constants import Constants

_real_sleep = asyncio.sleep


def delta_event(content, finish_reason=None, chunk_id="chatcmpl-1"):
    return {
        "id": chunk_id,
        "choices": [
            {"index": 0, "delta": {"content": content}, "finish_reason": finish_reason}
        ],
    }


def sse_body(*chunks) -> bytes:
    return "".join(f"data: {json.dumps(chunk)}\n\n" for chunk in chunks).encode("utf-8")


def event_stream_response(body, status_code=200) -> httpx.Response:
    return httpx.Response(
        status_code,
        headers={"content-type": "text/event-stream; charset=utf-8"},
        content=body,
    )


class FakeDeepSeek:
    """In-memory stand-in for the upstream web chat API."""

    def __init__(self):
        self.calls = []
        self.log = []
        self.invalid_tokens = set()
        self.completion_payloads = []
        self.completion_body = sse_body(
            delta_event("Hello"), delta_event(" world"), delta_event("", "stop")
        )
        self.on_clear_context = None
        self.on_completion = None

    def count(self, path):
        return sum(1 for _, call_path, _ in self.calls if call_path == path)

    async def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        token = request.headers.get("authorization", "")[len("Bearer "):]
        self.calls.append((request.method, path, token))

        if path == Constants.PATH_CURRENT_USER:
            if token in self.invalid_tokens:
                return httpx.Response(
                    200, json={"code": 40003, "msg": "Authorization Failed", "data": None}
                )
            return httpx.Response(
                200, json={"code": 0, "msg": "", "data": {"token": f"access-{token}"}}
            )

        if path == Constants.PATH_CLEAR_CONTEXT:
            self.log.append(("clear", token))
            if self.on_clear_context is not None:
                return await self.on_clear_context(request)
            await _real_sleep(0.01)
            return httpx.Response(200, json={"code": 0, "msg": "", "data": {}})

        if path == Constants.PATH_COMPLETIONS:
            self.log.append(("complete", token))
            self.completion_payloads.append(json.loads(request.content))
            if self.on_completion is not None:
                return await self.on_completion(request)
            return event_stream_response(self.completion_body)

        return httpx.Response(404, json={"code": 404, "msg": "not found", "data": None})


@pytest.fixture
def upstream():
    return FakeDeepSeek()


@pytest.fixture
def make_client(upstream):
    def factory(**kwargs):
        kwargs.setdefault("retry_delay", 0)
        return DeepSeekClient(
            base_url="https://deepseek.test",
            transport=httpx.MockTransport(upstream.handler),
            **kwargs,
        )

    return factory


@pytest.fixture
def sleeps(monkeypatch):
    """Record retry delays instead of waiting for them."""
    recorded = []

    async def fake_sleep(delay, *args, **kwargs):
        recorded.append(delay)
        await _real_sleep(0)

    monkeypatch.setattr("src.core.client.asyncio.sleep", fake_sleep)
    return recorded
