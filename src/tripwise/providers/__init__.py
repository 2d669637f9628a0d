"""Generation backends for TripWise."""

from __future__ import annotations

import httpx

from tripwise.config import Settings
from tripwise.providers._openai_compat import (
    OpenAICompatibleProvider,
    StreamError,
    count_tool_invocations,
    extract_content,
    parse_sse_delta,
)
from tripwise.providers.base import LLMProvider
from tripwise.providers.groq import GroqProvider


def create_provider(
    settings: Settings,
    http_client: httpx.AsyncClient | None = None,
) -> GroqProvider:
    """Build the configured backend; a missing key is reported on first use."""
    return GroqProvider(
        settings.groq_api_key,
        settings.groq_base_url,
        http_client=http_client,
    )


__all__ = [
    "GroqProvider",
    "LLMProvider",
    "OpenAICompatibleProvider",
    "StreamError",
    "count_tool_invocations",
    "create_provider",
    "extract_content",
    "parse_sse_delta",
]
