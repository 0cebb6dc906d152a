"""AI provider client: one adapter per backend behind a single ``complete`` call."""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Mapping

import httpx  # type: ignore[import-untyped]

from askexcel.config import Settings
from askexcel.errors import (
    CredentialMissing,
    MalformedProviderResponse,
    ProviderHTTPError,
    ProviderUnavailable,
)

logger = logging.getLogger(__name__)

OPENAI_MODEL = "gpt-4o"
GEMINI_MODEL = "gemini-2.0-flash"
CLAUDE_MODEL = "claude-sonnet-4-20250514"
OLLAMA_MODEL = "llama3"


@dataclass(frozen=True)
class ProviderRequest:
    url: str
    payload: Dict[str, Any]
    headers: Dict[str, str] = field(default_factory=dict)
    params: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ProviderAdapter:
    """Request/response shape of one vendor API."""

    name: str
    label: str
    build: Callable[[str, str], ProviderRequest]
    extract: Callable[[Any], Any]


def _openai_request(prompt: str, api_key: str) -> ProviderRequest:
    return ProviderRequest(
        url="https://api.openai.com/v1/chat/completions",
        headers={"Authorization": f"Bearer {api_key}"},
        payload={
            "model": OPENAI_MODEL,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": 0,
        },
    )


def _gemini_request(prompt: str, api_key: str) -> ProviderRequest:
    return ProviderRequest(
        url=f"https://generativelanguage.googleapis.com/v1beta/models/{GEMINI_MODEL}:generateContent",
        params={"key": api_key},
        payload={
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {"temperature": 0},
        },
    )


def _claude_request(prompt: str, api_key: str) -> ProviderRequest:
    return ProviderRequest(
        url="https://api.anthropic.com/v1/messages",
        headers={"x-api-key": api_key, "anthropic-version": "2023-06-01"},
        payload={
            "model": CLAUDE_MODEL,
            "max_tokens": 2000,
            "messages": [{"role": "user", "content": prompt}],
        },
    )


def _ollama_request(prompt: str, host: str) -> ProviderRequest:
    return ProviderRequest(
        url=f"{host.rstrip('/')}/api/chat",
        payload={
            "model": OLLAMA_MODEL,
            "messages": [{"role": "user", "content": prompt}],
            "stream": False,
            "options": {"temperature": 0},
        },
    )


ADAPTERS: Mapping[str, ProviderAdapter] = {
    "openai": ProviderAdapter(
        name="openai",
        label="OpenAI",
        build=_openai_request,
        extract=lambda data: data["choices"][0]["message"]["content"],
    ),
    "gemini": ProviderAdapter(
        name="gemini",
        label="Gemini",
        build=_gemini_request,
        extract=lambda data: data["candidates"][0]["content"]["parts"][0]["text"],
    ),
    "claude": ProviderAdapter(
        name="claude",
        label="Claude",
        build=_claude_request,
        extract=lambda data: data["content"][0]["text"],
    ),
    "ollama": ProviderAdapter(
        name="ollama",
        label="Ollama",
        build=_ollama_request,
        extract=lambda data: data["message"]["content"],
    ),
}


class ModelAdapter:
    """Send a prompt to the configured provider and return the raw completion.

    Exactly one HTTP request per call: no retries, no streaming, and the
    httpx default timeout.
    """

    def __init__(self, settings: Settings, *, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._settings = settings
        self._transport = transport

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def provider(self) -> str:
        return self._settings.provider

    async def complete(self, prompt: str) -> str:
        adapter = ADAPTERS[self._settings.provider]
        credential = self._settings.credential()
        if not credential:
            raise CredentialMissing(adapter.name, adapter.label)

        request = adapter.build(prompt, credential)
        logger.info("Sending prompt to %s (%d chars)", adapter.label, len(prompt))
        started = time.monotonic()
        try:
            async with httpx.AsyncClient(transport=self._transport) as client:
                response = await client.post(
                    request.url,
                    json=request.payload,
                    headers=request.headers or None,
                    params=request.params or None,
                )
        except httpx.RequestError as exc:
            raise ProviderUnavailable(adapter.name, adapter.label, exc.__class__.__name__) from exc

        if not response.is_success:
            logger.warning("%s returned HTTP %s", adapter.label, response.status_code)
            raise ProviderHTTPError(adapter.name, adapter.label, response.status_code)

        try:
            text = adapter.extract(response.json())
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise MalformedProviderResponse(adapter.name, adapter.label) from exc
        if not isinstance(text, str):
            raise MalformedProviderResponse(adapter.name, adapter.label)

        logger.info("%s reply received in %.2fs", adapter.label, time.monotonic() - started)
        return text


__all__ = ["ADAPTERS", "ModelAdapter", "ProviderAdapter", "ProviderRequest"]
