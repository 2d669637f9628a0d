"""Stream adapter — the orchestrator's cascade, delivered as incremental chunks."""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import AsyncIterator, Callable, Sequence
from typing import Any

from tripwise.errors import GenerationError, SinkError, check_content
from tripwise.models import (
    GenerationResult,
    GenerationTrace,
    ModelTier,
    StreamChunk,
    TerminationState,
)
from tripwise.orchestrator import RequestOrchestrator
from tripwise.prompt import build_prompt
from tripwise.providers import parse_sse_delta

logger = logging.getLogger(__name__)

ChunkSink = Callable[[StreamChunk], Any]
CompletionSink = Callable[[str], Any]


async def _deliver(sink: Callable[[Any], Any] | None, value: Any) -> None:
    if sink is None:
        return
    try:
        result = sink(value)
        if inspect.isawaitable(result):
            await result
    except Exception as exc:
        raise SinkError(f"stream callback failed: {exc!r}") from exc


class StreamAdapter:
    """Streams an itinerary through the same cascade as :class:`RequestOrchestrator`.

    Tier order, the retry bound and error classification are the
    orchestrator's own. A streamed attempt that fails part way, delivers
    nothing, or ends up too short counts as one failed attempt; partial streams
    are never resumed.

    Text already delivered for a failed attempt is withdrawn with a ``reset``
    chunk before the next attempt starts, so the sink can clear it and show the
    replacement. For a backend that never fails, the text of all non-final
    chunks concatenates to the ``content`` that :meth:`RequestOrchestrator.generate`
    returns.
    """

    def __init__(self, orchestrator: RequestOrchestrator) -> None:
        self.orchestrator = orchestrator

    async def generate_stream(
        self,
        answers: Sequence[str],
        on_chunk: ChunkSink,
        on_complete: CompletionSink | None = None,
    ) -> GenerationResult:
        """Stream the itinerary for *answers* to *on_chunk*.

        ``on_chunk`` receives zero or more text chunks followed by exactly one
        ``is_final`` chunk; ``on_complete`` is then called once with the full
        text, or with the user-facing error message if every tier failed.
        Either callback may be a plain function or a coroutine function.

        Raises:
            GenerationError: after the final chunk, when no tier succeeded.
            SinkError: when a callback raises. No further attempts are made and
                nothing more is sent to the callbacks.
        """
        prompt, params = build_prompt(answers)
        logger.info(
            "Streaming %d-day itinerary for %s", params.duration_days, params.destination
        )
        return await self.stream_prompt(prompt, on_chunk, on_complete)

    async def stream_prompt(
        self,
        prompt: str,
        on_chunk: ChunkSink,
        on_complete: CompletionSink | None = None,
        *,
        deadline: float | None = None,
    ) -> GenerationResult:
        orchestrator = self.orchestrator
        trace = GenerationTrace()
        # True while the sink holds text that a later reset must withdraw
        dirty = False

        async def emit(chunk: StreamChunk) -> None:
            nonlocal dirty
            await _deliver(on_chunk, chunk)
            if chunk.text and not chunk.is_final:
                dirty = True
            elif chunk.reset:
                dirty = False

        async def withdraw() -> None:
            if dirty:
                await emit(StreamChunk(reset=True))

        async def stream_tier(tier: ModelTier, tier_prompt: str) -> tuple[str, int]:
            parts: list[str] = []
            try:
                async for line in orchestrator.provider.astream_completion(
                    model=tier.id,
                    messages=[{"role": "user", "content": tier_prompt}],
                    temperature=tier.temperature,
                    max_tokens=tier.max_output_tokens,
                    timeout=orchestrator.request_timeout,
                ):
                    delta = parse_sse_delta(line)
                    if delta is None:
                        break
                    if delta:
                        parts.append(delta)
                        await emit(StreamChunk(text=delta))
                content = check_content("".join(parts), orchestrator.min_content_length)
            except SinkError:
                raise
            except Exception:
                await withdraw()
                raise
            return content, 0

        try:
            result = await orchestrator.run(
                prompt, stream_tier, deadline=deadline, trace=trace
            )
        except SinkError as exc:
            trace.termination_state = TerminationState.ABORTED
            logger.error("[%s] Stream aborted, %s", trace.request_id, exc)
            raise
        except GenerationError as exc:
            await withdraw()
            await emit(StreamChunk(text=exc.message, is_final=True))
            await _deliver(on_complete, exc.message)
            raise

        await emit(StreamChunk(is_final=True))
        await _deliver(on_complete, result.content)
        return result

    async def astream(self, answers: Sequence[str]) -> AsyncIterator[StreamChunk]:
        """Yield the chunks of :meth:`generate_stream` as an async iterator.

        A failed generation ends with a final chunk holding the user-facing
        error message instead of raising.
        """
        prompt, _ = build_prompt(answers)
        queue: asyncio.Queue[StreamChunk | None] = asyncio.Queue()

        async def produce() -> GenerationResult:
            try:
                return await self.stream_prompt(prompt, queue.put)
            finally:
                await queue.put(None)

        task = asyncio.create_task(produce())
        try:
            while True:
                chunk = await queue.get()
                if chunk is None:
                    break
                yield chunk
            try:
                await task
            except GenerationError as exc:
                logger.info(
                    "Stream %s ended with %s",
                    exc.trace.request_id if exc.trace else "-",
                    exc.kind.value,
                )
        finally:
            if not task.done():
                task.cancel()

