"""Groq provider — OpenAI-compatible chat completions on Groq."""

from __future__ import annotations

import httpx

from tripwise.providers._openai_compat import OpenAICompatibleProvider

_DEFAULT_BASE_URL = "https://api.groq.com/openai/v1"


class GroqProvider(OpenAICompatibleProvider):
    """Groq API (OpenAI-compatible, including compound models with web search)."""

    name = "groq"

    def __init__(
        self,
        api_key: str,
        base_url: str = _DEFAULT_BASE_URL,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(api_key, base_url, http_client=http_client)
