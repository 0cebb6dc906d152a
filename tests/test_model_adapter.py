from __future__ import annotations

import asyncio
import json
from typing import Any, Callable, List

import httpx
import pytest

from askexcel.config import Settings
from askexcel.errors import (
    CredentialMissing,
    MalformedProviderResponse,
    ProviderHTTPError,
    ProviderUnavailable,
)
from askexcel.model_adapter import CLAUDE_MODEL, GEMINI_MODEL, OPENAI_MODEL, OLLAMA_MODEL, ModelAdapter

SCRIPT = 'tell application "Microsoft Excel"\n  return "ok"\nend tell'


def _recording_transport(
    requests: List[httpx.Request],
    responder: Callable[[httpx.Request], httpx.Response],
) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return responder(request)

    return httpx.MockTransport(handler)


def _settings(provider: str, credential: str = "sk-test") -> Settings:
    return Settings(provider=provider, credentials={provider: credential})


def _complete(provider: str, body: Any, *, credential: str = "sk-test", status: int = 200) -> tuple[str, httpx.Request]:
    requests: List[httpx.Request] = []
    transport = _recording_transport(requests, lambda request: httpx.Response(status, json=body))
    adapter = ModelAdapter(_settings(provider, credential), transport=transport)
    text = asyncio.run(adapter.complete("PROMPT"))
    assert len(requests) == 1
    return text, requests[0]


def test_openai_request_shape() -> None:
    text, request = _complete("openai", {"choices": [{"message": {"content": SCRIPT}}]})

    assert text == SCRIPT
    assert str(request.url) == "https://api.openai.com/v1/chat/completions"
    assert request.headers["Authorization"] == "Bearer sk-test"
    payload = json.loads(request.content)
    assert payload["model"] == OPENAI_MODEL
    assert payload["temperature"] == 0
    assert payload["messages"] == [{"role": "user", "content": "PROMPT"}]


def test_gemini_request_uses_query_key() -> None:
    body = {"candidates": [{"content": {"parts": [{"text": SCRIPT}]}}]}
    text, request = _complete("gemini", body, credential="g-key")

    assert text == SCRIPT
    assert request.url.path == f"/v1beta/models/{GEMINI_MODEL}:generateContent"
    assert request.url.params["key"] == "g-key"
    payload = json.loads(request.content)
    assert payload["contents"][0]["parts"][0]["text"] == "PROMPT"
    assert payload["generationConfig"]["temperature"] == 0


def test_claude_request_headers() -> None:
    text, request = _complete("claude", {"content": [{"type": "text", "text": SCRIPT}]}, credential="c-key")

    assert text == SCRIPT
    assert str(request.url) == "https://api.anthropic.com/v1/messages"
    assert request.headers["x-api-key"] == "c-key"
    assert request.headers["anthropic-version"] == "2023-06-01"
    payload = json.loads(request.content)
    assert payload["model"] == CLAUDE_MODEL
    assert payload["max_tokens"] == 2000


def test_ollama_posts_to_configured_host() -> None:
    text, request = _complete("ollama", {"message": {"role": "assistant", "content": SCRIPT}}, credential="http://gpu-box:11434/")

    assert text == SCRIPT
    assert str(request.url) == "http://gpu-box:11434/api/chat"
    payload = json.loads(request.content)
    assert payload["model"] == OLLAMA_MODEL
    assert payload["stream"] is False


@pytest.mark.parametrize("provider", ["openai", "gemini", "claude", "ollama"])
def test_missing_credential_fails_before_network(provider: str) -> None:
    requests: List[httpx.Request] = []
    transport = _recording_transport(requests, lambda request: httpx.Response(200, json={}))
    adapter = ModelAdapter(_settings(provider, "  "), transport=transport)

    with pytest.raises(CredentialMissing) as excinfo:
        asyncio.run(adapter.complete("PROMPT"))

    assert requests == []
    assert excinfo.value.provider == provider


def test_credential_missing_message_names_provider() -> None:
    adapter = ModelAdapter(Settings(provider="claude"))
    with pytest.raises(CredentialMissing, match="Add Claude API key in configuration"):
        asyncio.run(adapter.complete("PROMPT"))


def test_non_success_status_raises_http_error() -> None:
    with pytest.raises(ProviderHTTPError) as excinfo:
        _complete("openai", {"error": {"message": "bad key"}}, status=401)

    assert excinfo.value.status == 401
    assert excinfo.value.message == "OpenAI error: 401"


@pytest.mark.parametrize(
    "body",
    [
        {"choices": []},
        {"choices": [{"message": {}}]},
        {"choices": [{"message": {"content": None}}]},
        ["unexpected"],
    ],
)
def test_unexpected_shape_raises_malformed(body: Any) -> None:
    with pytest.raises(MalformedProviderResponse):
        _complete("openai", body)


def test_non_json_body_raises_malformed() -> None:
    transport = httpx.MockTransport(lambda request: httpx.Response(200, text="<html>oops</html>"))
    adapter = ModelAdapter(_settings("openai"), transport=transport)
    with pytest.raises(MalformedProviderResponse):
        asyncio.run(adapter.complete("PROMPT"))


def test_transport_failure_raises_unavailable() -> None:
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    adapter = ModelAdapter(_settings("ollama", "http://127.0.0.1:11434"), transport=httpx.MockTransport(refuse))
    with pytest.raises(ProviderUnavailable, match="Unable to reach Ollama: ConnectError"):
        asyncio.run(adapter.complete("PROMPT"))
