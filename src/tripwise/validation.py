"""Answer validation and best-effort correction before itinerary generation."""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Callable, Sequence

import httpx

from tripwise.cascade import ModelCascade
from tripwise.config import Settings, get_settings
from tripwise.errors import describe
from tripwise.models import ModelTier, ValidationResult
from tripwise.prompt import ANSWER_COUNT, QUESTIONS
from tripwise.providers import LLMProvider, extract_content

logger = logging.getLogger(__name__)

_GREETING = re.compile(r"^(hi|hello|hey)$", re.I)
_DIGIT = re.compile(r"\d")


def validate_destination(text: str) -> ValidationResult:
    if len(text) < 2:
        return ValidationResult(
            valid=False,
            message="Please enter a valid destination name (at least 2 characters).",
        )
    if _DIGIT.search(text):
        return ValidationResult(
            valid=False,
            message="A destination name shouldn't contain numbers. "
            "Please enter a valid city or country name.",
        )
    if _GREETING.match(text.strip()):
        return ValidationResult(
            valid=False,
            message="Please enter a destination name instead of a greeting. "
            "Where would you like to travel?",
        )
    return ValidationResult(valid=True)


def validate_budget(text: str) -> ValidationResult:
    cleaned = re.sub(r"[$,]", "", text).strip()
    match = re.match(r"[-+]?\d*\.?\d+", cleaned)
    if match is None or float(match.group()) <= 0:
        return ValidationResult(
            valid=False, message="Please enter a valid positive amount for your budget."
        )
    return ValidationResult(valid=True)


def validate_dates(text: str) -> ValidationResult:
    if not _DIGIT.search(text):
        return ValidationResult(
            valid=False,
            message="Please include dates in your response (e.g., May 1-5, 2025).",
        )
    return ValidationResult(valid=True)


def validate_travelers(text: str) -> ValidationResult:
    match = re.match(r"[-+]?\d+", text.strip())
    if match is None or int(match.group()) <= 0:
        return ValidationResult(
            valid=False,
            message="Please enter a valid number of travelers (must be at least 1).",
        )
    return ValidationResult(valid=True)


VALIDATORS: dict[int, Callable[[str], ValidationResult]] = {
    0: validate_destination,
    1: validate_budget,
    2: validate_dates,
    3: validate_travelers,
}


def validate_answer(question_index: int, text: str) -> ValidationResult:
    """Check one answer; questions without a rule accept anything."""
    if not 0 <= question_index < ANSWER_COUNT:
        raise ValueError(f"question_index must be in [0, {ANSWER_COUNT}), got {question_index}")
    validator = VALIDATORS.get(question_index)
    if validator is None:
        return ValidationResult(valid=True)
    return validator(text)


def validate_answers(answers: Sequence[str]) -> dict[int, ValidationResult]:
    """Return the failing answers of a full set, keyed by question index.

    An empty dict means the set can go straight to the orchestrator.
    """
    if len(answers) != ANSWER_COUNT:
        raise ValueError(f"Expected {ANSWER_COUNT} answers, got {len(answers)}")
    failures: dict[int, ValidationResult] = {}
    for index, text in enumerate(answers):
        result = validate_answer(index, text)
        if not result.valid:
            failures[index] = result
    return failures


_CORRECTION_PROMPT = (
    "A traveler answered a trip-planning question.\n"
    "Question: {question}\n"
    "Answer: {answer}\n\n"
    "Rewrite the answer so it is clear and complete, fixing spelling mistakes. "
    "Reply with the corrected answer only, on one line, with no explanation."
)


class AnswerCorrector:
    """Asks the simplest cascade tier to tidy up a single answer.

    Correction is advisory: it runs under the short ``validation_timeout`` and
    any failure yields ``None`` so the caller keeps the original answer.
    """

    def __init__(
        self,
        provider: LLMProvider,
        tier: ModelTier | None = None,
        *,
        settings: Settings | None = None,
    ) -> None:
        settings = settings or get_settings()
        self.provider = provider
        self.tier = tier or ModelCascade.from_settings(settings).simplest
        self.timeout = settings.validation_timeout
        self.configured = settings.has_api_key

    async def correct(self, question_index: int, answer: str) -> str | None:
        """Return a corrected answer, or ``None`` if none could be produced."""
        if not self.configured:
            return None
        if not 0 <= question_index < ANSWER_COUNT:
            raise ValueError(f"question_index must be in [0, {ANSWER_COUNT}), got {question_index}")
        prompt = _CORRECTION_PROMPT.format(question=QUESTIONS[question_index], answer=answer)
        try:
            data = await asyncio.wait_for(
                self.provider.achat_completion(
                    model=self.tier.id,
                    messages=[{"role": "user", "content": prompt}],
                    temperature=0.0,
                    max_tokens=100,
                    timeout=self.timeout,
                ),
                timeout=self.timeout,
            )
            corrected = extract_content(data).strip().splitlines()
        except asyncio.TimeoutError:
            logger.warning("Answer correction timed out after %.1fs", self.timeout)
            return None
        # Bad JSON is a ValueError; a body of the wrong shape is AttributeError or TypeError
        except (httpx.HTTPError, ValueError, KeyError, AttributeError, TypeError) as e:
            logger.warning("Answer correction failed: %s", describe(e))
            return None

        if not corrected or not corrected[0].strip():
            return None
        return corrected[0].strip()
