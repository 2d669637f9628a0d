"""Shared test fixtures and mock data."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock

import httpx
import pytest

from tripwise.config import Settings, reset_settings
from tripwise.orchestrator import RequestOrchestrator

SAMPLE_ANSWERS = [
    "Paris, France",
    "$2,000",
    "May 1-5, 2025",
    "2 adults",
    "art and food",
    "boutique hotel",
    "balanced",
    "public transport",
    "the Louvre",
]

ITINERARY = (
    "OVERVIEW: Paris rewards slow wandering.\n"
    "Day 1: Louvre in the morning, Marais in the afternoon, Seine cruise at night.\n"
    "Day 2: Montmartre and Sacre-Coeur, then dinner in Pigalle."
)


def http_error(status: int) -> httpx.HTTPStatusError:
    """Build the error httpx raises from ``raise_for_status`` for *status*."""
    request = httpx.Request("POST", "https://api.groq.com/openai/v1/chat/completions")
    response = httpx.Response(status, request=request)
    return httpx.HTTPStatusError(
        f"Server responded with status code {status}", request=request, response=response
    )


def sse_line(text: str) -> str:
    return "data: " + json.dumps({"choices": [{"index": 0, "delta": {"content": text}}]})


class ScriptedProvider:
    """Mock provider that plays back one scripted outcome per call.

    An outcome is the response text, an exception to raise, or (for streams
    only) a list mixing text pieces and a trailing exception to simulate a
    stream that fails part way.
    """

    name = "scripted"

    def __init__(self, *outcomes, pieces: int = 3):
        self._outcomes = list(outcomes)
        self._pieces = pieces
        self.calls: list[dict] = []

    def _next(self, model, messages, kwargs):
        self.calls.append({"model": model, "messages": messages, **kwargs})
        if not self._outcomes:
            raise AssertionError("ScriptedProvider ran out of outcomes")
        return self._outcomes.pop(0)

    @property
    def models_called(self) -> list[str]:
        return [c["model"] for c in self.calls]

    async def achat_completion(self, model, messages, **kwargs):
        outcome = self._next(model, messages, kwargs)
        if isinstance(outcome, BaseException):
            raise outcome
        return {"choices": [{"message": {"role": "assistant", "content": outcome}}]}

    async def astream_completion(self, model, messages, **kwargs):
        outcome = self._next(model, messages, kwargs)
        if isinstance(outcome, BaseException):
            raise outcome
        if isinstance(outcome, str):
            size = max(1, len(outcome) // self._pieces + 1)
            outcome = [outcome[i : i + size] for i in range(0, len(outcome), size)]
        yield 'data: {"choices": [{"index": 0, "delta": {"role": "assistant"}}]}'
        for item in outcome:
            if isinstance(item, BaseException):
                raise item
            yield sse_line(item)
        yield "data: [DONE]"


@pytest.fixture(autouse=True)
def _reset_settings(monkeypatch, tmp_path):
    """Reset global settings between tests and keep real config out of them."""
    monkeypatch.setenv("TRIPWISE_CONFIG", str(tmp_path / "missing.yaml"))
    monkeypatch.delenv("GROQ_API_KEY", raising=False)
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def settings() -> Settings:
    return Settings(groq_api_key="gsk-test")


@pytest.fixture
def make_orchestrator(settings: Settings):
    """Build an orchestrator over a ScriptedProvider, with backoff sleeps mocked."""

    def _make(*outcomes, **kwargs) -> RequestOrchestrator:
        kwargs.setdefault("settings", settings)
        kwargs.setdefault("sleep", AsyncMock())
        return RequestOrchestrator(ScriptedProvider(*outcomes), **kwargs)

    return _make
