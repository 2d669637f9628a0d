"""Protocol every generation backend implements."""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any, Protocol, runtime_checkable

# One OpenAI-format chat message, e.g. {"role": "user", "content": "..."}
Message = dict[str, Any]


@runtime_checkable
class LLMProvider(Protocol):
    """An async chat-completion backend speaking the OpenAI wire format.

    The orchestrator, the stream adapter and the answer corrector reach the
    backend only through these two calls. ``timeout`` bounds one HTTP
    request; the caller's overall deadline is enforced above this layer.
    """

    name: str

    async def achat_completion(
        self,
        model: str,
        messages: list[Message],
        *,
        temperature: float | None = None,
        max_tokens: int | None = None,
        timeout: float = 60.0,
    ) -> dict[str, Any]:
        """Return the full response body of one completion."""
        ...

    def astream_completion(
        self,
        model: str,
        messages: list[Message],
        *,
        temperature: float | None = None,
        max_tokens: int | None = None,
        timeout: float = 60.0,
    ) -> AsyncIterator[str]:
        """Yield raw SSE lines, ending with ``data: [DONE]`` when the backend sends it."""
        ...
