"""Pydantic data models for TripWise."""

from __future__ import annotations

from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


class ErrorKind(str, Enum):
    """Closed taxonomy of generation failures."""

    CONFIGURATION_MISSING = "configuration_missing"
    RATE_LIMITED = "rate_limited"
    SERVICE_UNAVAILABLE = "service_unavailable"
    TIMEOUT = "timeout"
    CONTENT_REJECTED = "content_rejected"
    UNKNOWN_PROVIDER = "unknown_provider"


class AttemptOutcome(str, Enum):
    """Outcome of a single call to a single tier."""

    SUCCESS = "success"
    TRANSIENT_FAILURE = "transient_failure"
    TERMINAL_FAILURE = "terminal_failure"


class OrchestratorState(str, Enum):
    """States of the generation state machine."""

    IDLE = "idle"
    TRYING_TIER = "trying_tier"
    RETRYING = "retrying"
    ADVANCING_TIER = "advancing_tier"
    SUCCEEDED = "succeeded"
    ALL_TIERS_EXHAUSTED = "all_tiers_exhausted"


class TerminationState(str, Enum):
    """Final state of a generation invocation."""

    PENDING = "pending"
    COMPLETED = "completed"
    EXHAUSTED = "exhausted"
    ABORTED = "aborted"
    TIMED_OUT = "timed_out"


class ModelTier(BaseModel):
    """One configured backend model choice in the cascade."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Backend model identifier, e.g. 'llama3-70b-8192'")
    max_output_tokens: int = Field(default=800, ge=1)
    supports_tools: bool = Field(
        default=False, description="Whether the model can run tools such as web search"
    )
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    fallback_note: str = Field(
        default="",
        description="Text appended to the prompt when this tier is used as a fallback",
    )


class TripParameters(BaseModel):
    """Values derived from the answer set that shape the prompt."""

    model_config = ConfigDict(frozen=True)

    destination: str
    budget: str
    dates: str
    interests: str = ""
    accommodation: str = ""
    duration_days: int = Field(default=3, ge=1)


class Attempt(BaseModel):
    """A single call to a single tier, as recorded in the trace."""

    tier_id: str
    tier_index: int
    attempt_index: int = Field(description="0 for the first call to a tier, 1+ for retries")
    outcome: AttemptOutcome
    error_kind: ErrorKind | None = None
    detail: str | None = Field(
        default=None, description="Raw provider detail, for operators only"
    )


class GenerationTrace(BaseModel):
    """Ordered log of every attempt made during one invocation."""

    request_id: str = Field(default_factory=lambda: uuid4().hex[:12])
    attempts: list[Attempt] = Field(default_factory=list)
    termination_state: TerminationState = TerminationState.PENDING
    final_error_kind: ErrorKind | None = None
    producing_tier_id: str | None = None

    @property
    def attempt_count(self) -> int:
        return len(self.attempts)

    def record(
        self,
        tier: ModelTier,
        tier_index: int,
        attempt_index: int,
        outcome: AttemptOutcome,
        error_kind: ErrorKind | None = None,
        detail: str | None = None,
    ) -> Attempt:
        attempt = Attempt(
            tier_id=tier.id,
            tier_index=tier_index,
            attempt_index=attempt_index,
            outcome=outcome,
            error_kind=error_kind,
            detail=detail,
        )
        self.attempts.append(attempt)
        return attempt

    def attempts_for(self, tier_id: str) -> list[Attempt]:
        return [a for a in self.attempts if a.tier_id == tier_id]


class GenerationResult(BaseModel):
    """A finished itinerary and the tier that produced it."""

    model_config = ConfigDict(frozen=True)

    content: str
    producing_tier: ModelTier
    tool_invocation_count: int = Field(default=0, ge=0)
    trace: GenerationTrace = Field(default_factory=GenerationTrace)


class StreamChunk(BaseModel):
    """One incremental piece of a streamed itinerary.

    A chunk with ``reset`` set tells the sink to discard text received since
    the previous reset: the attempt that produced it failed and the next
    attempt starts over.
    """

    model_config = ConfigDict(frozen=True)

    text: str = ""
    is_final: bool = False
    reset: bool = False


class ValidationResult(BaseModel):
    """Outcome of checking one answer."""

    valid: bool
    message: str = ""


class GenerateRequest(BaseModel):
    """Body of an itinerary generation request."""

    answers: list[str]


class ValidateRequest(BaseModel):
    """Body of an answer validation request."""

    question_index: int
    answer: str
