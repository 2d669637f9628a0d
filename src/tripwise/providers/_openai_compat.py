"""Shared base and response helpers for OpenAI-format chat completion APIs."""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import httpx

from tripwise.config import MissingAPIKeyError
from tripwise.providers.base import Message

logger = logging.getLogger(__name__)

_DONE_LINE = "data: [DONE]"


class StreamError(Exception):
    """Raised when a stream reports an error event in-band."""


@asynccontextmanager
async def _client_for(
    shared: httpx.AsyncClient | None, timeout: float
) -> AsyncIterator[httpx.AsyncClient]:
    """Use the shared client when one was injected, else a client for this call only."""
    if shared is not None:
        yield shared
        return
    async with httpx.AsyncClient(timeout=timeout) as client:
        yield client


def extract_content(data: dict[str, Any]) -> str:
    """Return the first choice's message text, or '' if there is none."""
    choices = data.get("choices") or []
    if not choices:
        return ""
    message = choices[0].get("message") or {}
    return message.get("content") or ""


def count_tool_invocations(data: dict[str, Any]) -> int:
    """Count tools the backend ran while producing the first choice.

    Groq compound models report server-side tools as ``executed_tools``;
    standard models report requested calls as ``tool_calls``.
    """
    choices = data.get("choices") or []
    if not choices:
        return 0
    message = choices[0].get("message") or {}
    executed = message.get("executed_tools") or []
    calls = message.get("tool_calls") or []
    return len(executed) + len(calls)


def parse_sse_delta(line: str) -> str | None:
    """Return the text delta carried by one SSE line.

    Returns ``None`` for the ``[DONE]`` sentinel and '' for lines that carry no
    text (role headers, keep-alives, comments, finish markers).
    """
    line = line.strip()
    if not line.startswith("data:"):
        return ""
    data_str = line.removeprefix("data:").strip()
    if data_str == "[DONE]":
        return None
    try:
        event = json.loads(data_str)
    except json.JSONDecodeError:
        logger.debug("Skipping malformed SSE line: %.80s", data_str)
        return ""
    if "error" in event:
        raise StreamError(str(event["error"]))
    choices = event.get("choices") or []
    if not choices:
        return ""
    delta = choices[0].get("delta") or {}
    return delta.get("content") or ""


class OpenAICompatibleProvider:
    """Base for providers that use the OpenAI /chat/completions format.

    Subclass and set ``name`` and the default ``base_url`` to create a
    concrete provider.
    """

    name: str = ""

    def __init__(
        self,
        api_key: str,
        base_url: str,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self._http_client = http_client

    def _auth_headers(self) -> dict[str, str]:
        if not self.api_key:
            raise MissingAPIKeyError
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }

    def _build_payload(
        self,
        model: str,
        messages: list[Message],
        temperature: float | None,
        max_tokens: int | None,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {"model": model, "messages": messages}
        if temperature is not None:
            payload["temperature"] = temperature
        if max_tokens is not None:
            payload["max_tokens"] = max_tokens
        return payload

    async def achat_completion(
        self,
        model: str,
        messages: list[Message],
        *,
        temperature: float | None = None,
        max_tokens: int | None = None,
        timeout: float = 60.0,
    ) -> dict[str, Any]:
        async with _client_for(self._http_client, timeout) as client:
            resp = await client.post(
                f"{self.base_url}/chat/completions",
                headers=self._auth_headers(),
                json=self._build_payload(model, messages, temperature, max_tokens),
                timeout=timeout,
            )
            resp.raise_for_status()
            result: dict[str, Any] = resp.json()
            return result

    async def astream_completion(
        self,
        model: str,
        messages: list[Message],
        *,
        temperature: float | None = None,
        max_tokens: int | None = None,
        timeout: float = 60.0,
    ) -> AsyncIterator[str]:
        payload = self._build_payload(model, messages, temperature, max_tokens)
        payload["stream"] = True
        async with _client_for(self._http_client, timeout) as client:
            async with client.stream(
                "POST",
                f"{self.base_url}/chat/completions",
                headers=self._auth_headers(),
                json=payload,
                timeout=timeout,
            ) as resp:
                resp.raise_for_status()
                async for line in resp.aiter_lines():
                    if line:
                        yield line
                        if line.strip() == _DONE_LINE:
                            break
