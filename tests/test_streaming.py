"""Tests for the stream adapter."""

from __future__ import annotations

import asyncio

import pytest
from conftest import ITINERARY, SAMPLE_ANSWERS, ScriptedProvider, http_error, sse_line

from tripwise.config import Settings
from tripwise.errors import GenerationError, SinkError
from tripwise.models import ErrorKind, StreamChunk
from tripwise.orchestrator import RequestOrchestrator
from tripwise.providers import StreamError
from tripwise.streaming import StreamAdapter


class Sink:
    """Collects chunks the way a UI would, clearing on reset."""

    def __init__(self):
        self.chunks: list[StreamChunk] = []
        self.completed: list[str] = []
        self.shown = ""

    def on_chunk(self, chunk: StreamChunk) -> None:
        self.chunks.append(chunk)
        if chunk.reset:
            self.shown = ""
        elif not chunk.is_final:
            self.shown += chunk.text

    def on_complete(self, text: str) -> None:
        self.completed.append(text)

    @property
    def finals(self) -> list[StreamChunk]:
        return [c for c in self.chunks if c.is_final]


class TestGenerateStream:
    async def test_concatenation_matches_generate(self, make_orchestrator):
        sink = Sink()
        adapter = StreamAdapter(make_orchestrator(ITINERARY))
        streamed = await adapter.generate_stream(SAMPLE_ANSWERS, sink.on_chunk, sink.on_complete)

        plain = await make_orchestrator(ITINERARY).generate(SAMPLE_ANSWERS)
        text = "".join(c.text for c in sink.chunks if not c.is_final)
        assert text == plain.content == streamed.content
        assert len(sink.chunks) > 2
        assert sink.completed == [ITINERARY]

    async def test_exactly_one_final_chunk_last(self, make_orchestrator):
        sink = Sink()
        await StreamAdapter(make_orchestrator(ITINERARY)).generate_stream(
            SAMPLE_ANSWERS, sink.on_chunk
        )
        assert len(sink.finals) == 1
        assert sink.chunks[-1].is_final
        assert sink.chunks[-1].text == ""

    async def test_streamed_requests_match_tier(self, make_orchestrator):
        orch = make_orchestrator(ITINERARY)
        await StreamAdapter(orch).generate_stream(SAMPLE_ANSWERS, lambda c: None)
        call = orch.provider.calls[0]
        assert call["max_tokens"] == 1200
        assert call["timeout"] == orch.request_timeout

    async def test_async_callbacks(self, make_orchestrator):
        received = []

        async def on_chunk(chunk):
            received.append(chunk)

        async def on_complete(text):
            received.append(text)

        await StreamAdapter(make_orchestrator(ITINERARY)).generate_stream(
            SAMPLE_ANSWERS, on_chunk, on_complete
        )
        assert received[-1] == ITINERARY
        assert received[-2].is_final

    async def test_failure_before_any_text_needs_no_reset(self, make_orchestrator):
        sink = Sink()
        orch = make_orchestrator(http_error(429), ITINERARY)
        result = await StreamAdapter(orch).generate_stream(SAMPLE_ANSWERS, sink.on_chunk)
        assert result.producing_tier.id == orch.cascade[1].id
        assert not any(c.reset for c in sink.chunks)
        assert sink.shown == ITINERARY


class TestPartialFailure:
    async def test_mid_stream_failure_is_withdrawn(self, make_orchestrator):
        sink = Sink()
        orch = make_orchestrator(["Day 1: Lou", http_error(503)], ITINERARY)
        result = await StreamAdapter(orch).generate_stream(SAMPLE_ANSWERS, sink.on_chunk)

        resets = [i for i, c in enumerate(sink.chunks) if c.reset]
        assert len(resets) == 1
        assert sink.chunks[resets[0] - 1].text == "Day 1: Lou"
        assert sink.shown == ITINERARY
        after_reset = "".join(c.text for c in sink.chunks[resets[0] + 1 :] if not c.is_final)
        assert after_reset == result.content
        # same tier retried after a transient failure
        assert orch.provider.models_called == [orch.cascade.primary.id] * 2
        assert result.trace.attempts[0].error_kind == ErrorKind.SERVICE_UNAVAILABLE

    async def test_in_band_error_event(self, make_orchestrator):
        sink = Sink()
        orch = make_orchestrator(["Day 1", StreamError("rate_limit_exceeded")], ITINERARY)
        result = await StreamAdapter(orch).generate_stream(SAMPLE_ANSWERS, sink.on_chunk)
        assert result.trace.attempts[0].error_kind == ErrorKind.RATE_LIMITED
        assert result.producing_tier.id == orch.cascade[1].id
        assert sink.shown == ITINERARY

    async def test_short_stream_rejected_and_withdrawn(self, make_orchestrator):
        sink = Sink()
        orch = make_orchestrator("Too short.", ITINERARY)
        result = await StreamAdapter(orch).generate_stream(SAMPLE_ANSWERS, sink.on_chunk)
        assert result.trace.attempts[0].error_kind == ErrorKind.CONTENT_REJECTED
        assert sum(c.reset for c in sink.chunks) == 1
        assert sink.shown == ITINERARY


class TestStreamExhaustion:
    async def test_final_chunk_carries_message(self, make_orchestrator):
        sink = Sink()
        orch = make_orchestrator(*[http_error(503)] * 9)
        with pytest.raises(GenerationError) as exc_info:
            await StreamAdapter(orch).generate_stream(
                SAMPLE_ANSWERS, sink.on_chunk, sink.on_complete
            )
        message = exc_info.value.message
        assert len(sink.finals) == 1
        assert sink.chunks[-1].text == message
        assert sink.completed == [message]

    async def test_partial_text_withdrawn_before_error(self, make_orchestrator):
        sink = Sink()
        orch = make_orchestrator("short", "short", "short")
        with pytest.raises(GenerationError):
            await StreamAdapter(orch).generate_stream(SAMPLE_ANSWERS, sink.on_chunk)
        assert sink.shown == ""
        assert sink.chunks[-2].reset

    async def test_missing_key(self):
        sink = Sink()
        orch = RequestOrchestrator(ScriptedProvider(), settings=Settings())
        with pytest.raises(GenerationError) as exc_info:
            await StreamAdapter(orch).generate_stream(SAMPLE_ANSWERS, sink.on_chunk)
        assert exc_info.value.kind == ErrorKind.CONFIGURATION_MISSING
        assert sink.chunks == [StreamChunk(text=exc_info.value.message, is_final=True)]


class TestAstream:
    async def test_yields_all_chunks(self, make_orchestrator):
        adapter = StreamAdapter(make_orchestrator(ITINERARY))
        chunks = [c async for c in adapter.astream(SAMPLE_ANSWERS)]
        assert chunks[-1].is_final
        assert "".join(c.text for c in chunks[:-1]) == ITINERARY

    async def test_failure_ends_with_message_chunk(self, make_orchestrator):
        adapter = StreamAdapter(make_orchestrator(*[http_error(429)] * 3))
        chunks = [c async for c in adapter.astream(SAMPLE_ANSWERS)]
        assert len(chunks) == 1
        assert chunks[0].is_final
        assert "currently busy" in chunks[0].text


class TestDeadline:
    async def test_deadline_withdraws_text_and_reports_timeout(self):
        class StallingProvider(ScriptedProvider):
            async def astream_completion(self, model, messages, **kwargs):
                self.calls.append({"model": model})
                yield sse_line("Day 1: Louvre")
                await asyncio.sleep(10)

        sink = Sink()
        settings = Settings(groq_api_key="gsk-test", generation_timeout=0.05)
        orch = RequestOrchestrator(StallingProvider(), settings=settings)
        with pytest.raises(GenerationError) as exc_info:
            await StreamAdapter(orch).generate_stream(
                SAMPLE_ANSWERS, sink.on_chunk, sink.on_complete
            )
        assert exc_info.value.kind == ErrorKind.TIMEOUT
        assert sink.chunks[0].text == "Day 1: Louvre"
        assert sink.chunks[-2].reset
        assert sink.chunks[-1] == StreamChunk(text=exc_info.value.message, is_final=True)
        assert sink.completed == [exc_info.value.message]
        assert sink.shown == ""


class TestEmptyStream:
    async def test_no_content_moves_to_next_tier_without_reset(self, make_orchestrator):
        sink = Sink()
        orch = make_orchestrator("", ITINERARY)
        result = await StreamAdapter(orch).generate_stream(SAMPLE_ANSWERS, sink.on_chunk)
        attempts = result.trace.attempts
        assert attempts[0].error_kind == ErrorKind.CONTENT_REJECTED
        assert result.producing_tier.id == orch.provider.models_called[1]
        assert orch.provider.models_called[0] != orch.provider.models_called[1]
        assert not any(c.reset for c in sink.chunks)
        assert sink.shown == ITINERARY


class TestCallbackFailure:
    async def test_chunk_callback_error_stops_cascade(self, make_orchestrator):
        completed = []

        def on_chunk(chunk):
            raise BrokenPipeError("terminal closed")

        orch = make_orchestrator(ITINERARY, ITINERARY, ITINERARY)
        with pytest.raises(SinkError) as exc_info:
            await StreamAdapter(orch).generate_stream(
                SAMPLE_ANSWERS, on_chunk, completed.append
            )
        assert isinstance(exc_info.value.__cause__, BrokenPipeError)
        assert len(orch.provider.calls) == 1
        assert completed == []

    async def test_callback_error_after_failed_attempt(self, make_orchestrator):
        sink = Sink()
        seen = []

        def on_chunk(chunk):
            seen.append(chunk)
            if chunk.reset:
                raise RuntimeError("display gone")

        orch = make_orchestrator(["Day 1: Lou", http_error(503)], ITINERARY, ITINERARY)
        with pytest.raises(SinkError):
            await StreamAdapter(orch).generate_stream(
                SAMPLE_ANSWERS, on_chunk, sink.on_complete
            )
        assert len(orch.provider.calls) == 1
        assert seen[-1].reset
        assert sink.completed == []

    async def test_async_completion_error(self, make_orchestrator):
        sink = Sink()

        async def on_complete(text):
            raise ConnectionResetError("client went away")

        orch = make_orchestrator(ITINERARY)
        with pytest.raises(SinkError) as exc_info:
            await StreamAdapter(orch).generate_stream(SAMPLE_ANSWERS, sink.on_chunk, on_complete)
        assert isinstance(exc_info.value.__cause__, ConnectionResetError)
        assert sink.finals == [StreamChunk(is_final=True)]
