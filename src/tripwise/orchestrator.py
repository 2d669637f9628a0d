"""Request orchestrator — walks the model cascade until a tier produces an itinerary."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

from tripwise.cascade import ModelCascade
from tripwise.config import Settings, get_settings
from tripwise.errors import GenerationError, SinkError, check_content, classify, describe
from tripwise.models import (
    AttemptOutcome,
    ErrorKind,
    GenerationResult,
    GenerationTrace,
    ModelTier,
    OrchestratorState,
    TerminationState,
)
from tripwise.prompt import build_prompt, with_fallback_note
from tripwise.providers import LLMProvider, count_tool_invocations, extract_content
from tripwise.retry import RetryPolicy

logger = logging.getLogger(__name__)

# (tier, prompt for that tier) -> (content, tool invocation count)
TierCall = Callable[[ModelTier, str], Awaitable[tuple[str, int]]]

# Kinds that end the invocation at once, whatever tiers remain
_ABORT_KINDS: dict[ErrorKind, TerminationState] = {
    ErrorKind.CONFIGURATION_MISSING: TerminationState.ABORTED,
    ErrorKind.TIMEOUT: TerminationState.TIMED_OUT,
}


class RequestOrchestrator:
    """Generates an itinerary by trying each cascade tier in order.

    For every tier the orchestrator sends the same prompt (with the tier's
    fallback note appended for non-primary tiers) and moves through the
    states ``trying_tier -> retrying -> succeeded | advancing_tier``:

    * output longer than ``min_content_length`` succeeds;
    * ``service_unavailable`` is retried on the same tier after a linear
      backoff, up to ``RetryPolicy.max_retries`` times;
    * ``rate_limited``, ``content_rejected`` and ``unknown_provider`` move
      straight to the next tier;
    * ``configuration_missing`` and ``timeout`` end the invocation.

    When every tier has failed, a :class:`GenerationError` carrying the last
    classified kind is raised. Attempts are strictly sequential and the total
    is bounded by ``len(cascade) * (max_retries + 1)``.
    """

    def __init__(
        self,
        provider: LLMProvider,
        cascade: ModelCascade | None = None,
        policy: RetryPolicy | None = None,
        *,
        settings: Settings | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        settings = settings or get_settings()
        self.provider = provider
        self.cascade = cascade or ModelCascade.from_settings(settings)
        self.policy = policy or RetryPolicy.from_settings(settings)
        self.min_content_length = settings.min_content_length
        self.generation_timeout = settings.generation_timeout
        self.request_timeout = settings.request_timeout
        self.configured = settings.has_api_key
        self._sleep = sleep
        if not self.configured:
            logger.warning("No API key configured; generation requests will fail")

    # -- Public API ------------------------------------------------------------

    async def generate(self, answers: Sequence[str]) -> GenerationResult:
        """Build the prompt for *answers* and generate the itinerary."""
        prompt, params = build_prompt(answers)
        logger.info(
            "Generating %d-day itinerary for %s", params.duration_days, params.destination
        )
        return await self.generate_prompt(prompt)

    async def generate_prompt(
        self, prompt: str, *, deadline: float | None = None
    ) -> GenerationResult:
        """Generate from an already-built prompt."""
        return await self.run(prompt, self._complete, deadline=deadline)

    def generate_sync(self, answers: Sequence[str]) -> GenerationResult:
        """Blocking wrapper around :meth:`generate` for scripts and the CLI."""
        return asyncio.run(self.generate(answers))

    async def run(
        self,
        prompt: str,
        call_tier: TierCall,
        *,
        deadline: float | None = None,
        trace: GenerationTrace | None = None,
    ) -> GenerationResult:
        """Drive the cascade with *call_tier*, bounded by the caller's deadline.

        ``deadline`` defaults to ``generation_timeout``; ``0`` disables it.
        """
        trace = trace if trace is not None else GenerationTrace()
        limit = self.generation_timeout if deadline is None else deadline
        try:
            return await asyncio.wait_for(
                self._walk_cascade(prompt, call_tier, trace),
                timeout=limit if limit and limit > 0 else None,
            )
        except asyncio.TimeoutError:
            raise self._terminate(
                trace,
                ErrorKind.TIMEOUT,
                f"deadline of {limit}s elapsed",
                TerminationState.TIMED_OUT,
            ) from None

    # -- State machine ---------------------------------------------------------

    async def _walk_cascade(
        self,
        prompt: str,
        call_tier: TierCall,
        trace: GenerationTrace,
    ) -> GenerationResult:
        if not self.configured:
            raise self._terminate(
                trace,
                ErrorKind.CONFIGURATION_MISSING,
                "no API key configured",
                TerminationState.ABORTED,
            )

        last_kind = ErrorKind.UNKNOWN_PROVIDER
        last_detail: str | None = None
        state = OrchestratorState.IDLE

        for tier_index, tier in enumerate(self.cascade):
            tier_prompt = (
                prompt if tier_index == 0 else with_fallback_note(prompt, tier.fallback_note)
            )
            state = OrchestratorState.TRYING_TIER
            attempt_index = 0

            while True:
                if state is OrchestratorState.RETRYING:
                    delay = self.policy.backoff_duration(attempt_index)
                    logger.info(
                        "[%s] Retry %d for %s after %.1fs",
                        trace.request_id,
                        attempt_index,
                        tier.id,
                        delay,
                    )
                    await self._sleep(delay)

                try:
                    content, tool_count = await call_tier(tier, tier_prompt)
                    content = check_content(content, self.min_content_length)
                except SinkError:
                    raise
                except Exception as exc:
                    kind = classify(exc)
                    detail = describe(exc)
                    trace.record(
                        tier,
                        tier_index,
                        attempt_index,
                        AttemptOutcome.TRANSIENT_FAILURE
                        if self.policy.is_transient(kind)
                        else AttemptOutcome.TERMINAL_FAILURE,
                        error_kind=kind,
                        detail=detail,
                    )
                    logger.warning(
                        "[%s] %s attempt %d failed: %s (%s)",
                        trace.request_id,
                        tier.id,
                        attempt_index + 1,
                        kind.value,
                        detail,
                    )
                    if kind in _ABORT_KINDS:
                        raise self._terminate(trace, kind, detail, _ABORT_KINDS[kind]) from exc
                    last_kind, last_detail = kind, detail
                    if self.policy.should_retry(attempt_index, kind):
                        state = OrchestratorState.RETRYING
                        attempt_index += 1
                        continue
                    state = OrchestratorState.ADVANCING_TIER
                    break

                trace.record(tier, tier_index, attempt_index, AttemptOutcome.SUCCESS)
                trace.termination_state = TerminationState.COMPLETED
                trace.producing_tier_id = tier.id
                state = OrchestratorState.SUCCEEDED
                if tool_count:
                    logger.info(
                        "[%s] %s used %d tool call(s)", trace.request_id, tier.id, tool_count
                    )
                logger.info(
                    "[%s] %s after %d attempt(s) on %s",
                    trace.request_id,
                    state.value,
                    trace.attempt_count,
                    tier.id,
                )
                return GenerationResult(
                    content=content,
                    producing_tier=tier,
                    tool_invocation_count=tool_count,
                    trace=trace,
                )

            logger.info("[%s] %s from %s", trace.request_id, state.value, tier.id)

        logger.info("[%s] %s", trace.request_id, OrchestratorState.ALL_TIERS_EXHAUSTED.value)
        raise self._terminate(trace, last_kind, last_detail, TerminationState.EXHAUSTED)

    async def _complete(self, tier: ModelTier, prompt: str) -> tuple[str, int]:
        data = await self.provider.achat_completion(
            model=tier.id,
            messages=[{"role": "user", "content": prompt}],
            temperature=tier.temperature,
            max_tokens=tier.max_output_tokens,
            timeout=self.request_timeout,
        )
        return extract_content(data), count_tool_invocations(data)

    @staticmethod
    def _terminate(
        trace: GenerationTrace,
        kind: ErrorKind,
        detail: str | None,
        termination: TerminationState,
    ) -> GenerationError:
        trace.termination_state = termination
        trace.final_error_kind = kind
        logger.error(
            "[%s] Generation %s with %s after %d attempt(s): %s",
            trace.request_id,
            termination.value,
            kind.value,
            trace.attempt_count,
            detail,
        )
        return GenerationError(kind, trace=trace, detail=detail)
