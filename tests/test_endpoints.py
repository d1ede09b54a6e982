import pytest
from fastapi.testclient import TestClient

import src.api.endpoints as endpoints
from src.core.exceptions import UpstreamAuthError
from src.main import app


class StubClient:
    def __init__(self):
        self.calls = []
        self.error = None

    async def create_chat_completion(self, model, messages, refresh_token):
        self.calls.append(("sync", model, len(messages), refresh_token))
        if self.error:
            raise self.error
        return {"id": "", "object": "chat.completion", "model": model, "choices": []}

    async def create_chat_completion_stream(self, model, messages, refresh_token):
        self.calls.append(("stream", model, len(messages), refresh_token))

        async def frames():
            yield 'data: {"object": "chat.completion.chunk"}\n\n'
            yield "data: [DONE]\n\n"

        return frames()

    async def get_token_live_status(self, refresh_token):
        return refresh_token == "good"


@pytest.fixture
def stub(monkeypatch):
    stub_client = StubClient()
    monkeypatch.setattr(endpoints, "deepseek_client", stub_client)
    return stub_client


@pytest.fixture
def http():
    return TestClient(app)


CHAT_BODY = {"model": "deepseek-chat", "messages": [{"role": "user", "content": "hi"}]}


def test_chat_completion_picks_one_of_the_tokens(stub, http):
    resp = http.post(
        "/v1/chat/completions", json=CHAT_BODY, headers={"Authorization": "Bearer t1,t2"}
    )

    assert resp.status_code == 200
    assert resp.json()["object"] == "chat.completion"
    kind, model, count, token = stub.calls[0]
    assert (kind, model, count) == ("sync", "deepseek-chat", 1)
    assert token in ("t1", "t2")


def test_chat_completion_streams_event_frames(stub, http):
    resp = http.post(
        "/v1/chat/completions",
        json={**CHAT_BODY, "stream": True},
        headers={"Authorization": "Bearer t1"},
    )

    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/event-stream")
    assert resp.text.endswith("data: [DONE]\n\n")
    assert stub.calls[0][0] == "stream"


def test_missing_authorization_is_rejected(stub, http):
    resp = http.post("/v1/chat/completions", json=CHAT_BODY)

    assert resp.status_code == 400
    assert resp.json()["code"] == -2000
    assert stub.calls == []


@pytest.mark.parametrize("authorization", ["Bearer", "Bearer ", "Bearer , "])
def test_authorization_without_tokens_is_rejected(stub, http, authorization):
    resp = http.post(
        "/v1/chat/completions", json=CHAT_BODY, headers={"Authorization": authorization}
    )

    assert resp.status_code == 400
    assert resp.json()["code"] == -2000
    assert stub.calls == []


def test_upstream_errors_use_error_envelope(stub, http):
    stub.error = UpstreamAuthError("[Request deepseek failed]: token invalid")

    resp = http.post(
        "/v1/chat/completions", json=CHAT_BODY, headers={"Authorization": "Bearer t1"}
    )

    assert resp.status_code == 401
    assert resp.json() == {
        "code": -2002,
        "message": "[Request deepseek failed]: token invalid",
        "data": None,
    }


def test_invalid_body_is_rejected(stub, http):
    resp = http.post(
        "/v1/chat/completions",
        json={"model": "deepseek-chat", "messages": []},
        headers={"Authorization": "Bearer t1"},
    )

    assert resp.status_code == 400
    assert resp.json()["code"] == -1001


def test_models_and_token_check(stub, http):
    models = http.get("/v1/models").json()
    assert [model["id"] for model in models["data"]] == ["deepseek-chat", "deepseek-coder"]

    assert http.post("/token/check", json={"token": "good"}).json() == {"live": True}
    assert http.post("/token/check", json={"token": "bad"}).json() == {"live": False}


def test_health(http):
    assert http.get("/health").json() == {"status": "healthy"}
