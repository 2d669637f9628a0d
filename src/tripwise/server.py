"""FastAPI server exposing itinerary generation and answer validation."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.responses import JSONResponse, StreamingResponse

from tripwise import __version__
from tripwise.cascade import ModelCascade
from tripwise.config import get_settings
from tripwise.errors import GenerationError
from tripwise.models import GenerateRequest, ValidateRequest
from tripwise.orchestrator import RequestOrchestrator
from tripwise.prompt import ANSWER_COUNT
from tripwise.providers import create_provider
from tripwise.streaming import StreamAdapter
from tripwise.validation import validate_answer

logger = logging.getLogger(__name__)


class _State:
    """Mutable application state managed by the lifespan."""

    http_client: httpx.AsyncClient
    orchestrator: RequestOrchestrator
    adapter: StreamAdapter


state = _State()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application lifecycle — create/destroy shared HTTP client."""
    settings = get_settings()
    state.http_client = httpx.AsyncClient(timeout=settings.request_timeout)
    provider = create_provider(settings, http_client=state.http_client)
    state.orchestrator = RequestOrchestrator(
        provider, ModelCascade.from_settings(settings), settings=settings
    )
    state.adapter = StreamAdapter(state.orchestrator)
    yield
    await state.http_client.aclose()


app = FastAPI(
    title="TripWise",
    description="Travel itinerary generation over a cascade of language models",
    version=__version__,
    lifespan=lifespan,
)


@app.exception_handler(RequestValidationError)
async def invalid_body(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.info("Rejected %s body: %s", request.url.path, exc.errors())
    return JSONResponse(status_code=400, content={"error": "Invalid request body"})


def _check_answers(answers: list[str]) -> JSONResponse | None:
    if len(answers) != ANSWER_COUNT:
        return JSONResponse(
            status_code=400,
            content={"error": f"Expected {ANSWER_COUNT} answers, got {len(answers)}"},
        )
    return None


@app.post("/api/generate-itinerary", response_model=None)
async def generate_itinerary(request: GenerateRequest) -> dict[str, Any] | JSONResponse:
    """Generate a complete itinerary in one response."""
    invalid = _check_answers(request.answers)
    if invalid is not None:
        return invalid

    try:
        result = await state.orchestrator.generate(request.answers)
    except GenerationError as e:
        return JSONResponse(status_code=e.http_status, content={"error": e.message})

    return {
        "success": True,
        "itinerary": result.content,
        "model": result.producing_tier.id,
        "tool_invocations": result.tool_invocation_count,
        "trace": result.trace.model_dump(
            mode="json", exclude={"attempts": {"__all__": {"detail"}}}
        ),
    }


@app.post("/api/generate-itinerary/stream", response_model=None)
async def generate_itinerary_stream(
    request: GenerateRequest,
) -> StreamingResponse | JSONResponse:
    """Stream an itinerary as server-sent events, one StreamChunk per event."""
    invalid = _check_answers(request.answers)
    if invalid is not None:
        return invalid

    async def _generate() -> AsyncIterator[str]:
        async for chunk in state.adapter.astream(request.answers):
            yield f"data: {chunk.model_dump_json()}\n\n"
        yield "data: [DONE]\n\n"

    return StreamingResponse(_generate(), media_type="text/event-stream")


@app.post("/api/validate", response_model=None)
async def validate(request: ValidateRequest) -> dict[str, Any] | JSONResponse:
    """Validate one answer of the question flow."""
    try:
        result = validate_answer(request.question_index, request.answer)
    except ValueError as e:
        return JSONResponse(status_code=400, content={"error": str(e)})
    return result.model_dump()


@app.get("/health")
async def health() -> dict[str, Any]:
    """Health check endpoint."""
    return {
        "status": "ok",
        "version": __version__,
        "configured": state.orchestrator.configured,
    }
