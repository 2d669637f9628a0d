"""Prompt builder — turns the nine trip answers into an itinerary prompt."""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence

from tripwise.models import TripParameters

logger = logging.getLogger(__name__)

QUESTIONS: tuple[str, ...] = (
    "Hey there! Where are you planning to travel?",
    "Cool! What's your budget for this trip in dollars?",
    "When are you traveling, and how many days are you staying? (e.g., May 1-5, 2025)",
    "How many people are traveling with you?",
    "What are you into—culture, food, adventure, relaxation, or something else?",
    "Any preference for accommodation—like hotels, Airbnb, or budget stays?",
    "What kind of pace do you prefer—relaxed, balanced, or packed with activities?",
    "Would you like public transport, rental car, or private taxis during your stay?",
    "Do you have any must-visit places or experiences in mind?",
)

ANSWER_LABELS: tuple[str, ...] = (
    "Destination",
    "Budget",
    "Travel dates",
    "Travelers",
    "Interests",
    "Accommodation",
    "Pace",
    "Local transport",
    "Must-see places",
)

ANSWER_COUNT = len(QUESTIONS)

DEFAULT_DURATION_DAYS = 3

# "1-5", "1–5", "1—5", "1 to 5"
_DATE_RANGE = re.compile(r"(\d+)\s*(?:[-–—]+|to)\s*(\d+)", re.I)


def parse_duration(dates: str) -> int:
    """Return the trip length in days from a dates answer.

    ``"May 1-5, 2025"`` gives 5. Anything without a usable numeric range
    gives ``DEFAULT_DURATION_DAYS``.
    """
    match = _DATE_RANGE.search(dates)
    if match is None:
        return DEFAULT_DURATION_DAYS
    start, end = int(match.group(1)), int(match.group(2))
    days = end - start + 1
    if days < 1:
        logger.debug("Date range %r is not increasing, using default duration", dates)
        return DEFAULT_DURATION_DAYS
    return days


def trip_parameters(answers: Sequence[str]) -> TripParameters:
    """Derive the prompt-shaping values from a full answer set."""
    _check_shape(answers)
    return TripParameters(
        destination=answers[0],
        budget=answers[1],
        dates=answers[2],
        interests=answers[4],
        accommodation=answers[5],
        duration_days=parse_duration(answers[2]),
    )


def build_prompt(answers: Sequence[str]) -> tuple[str, TripParameters]:
    """Build the itinerary prompt and its derived parameters.

    Raises:
        ValueError: if *answers* does not hold exactly one entry per question.
    """
    params = trip_parameters(answers)

    preferences = "\n".join(
        f"- {label}: {answer}" for label, answer in zip(ANSWER_LABELS, answers)
    )
    day_entries = "\n".join(
        f"   Day {day}: morning, afternoon and evening activities with operating hours"
        for day in range(1, params.duration_days + 1)
    )

    prompt = (
        f"Create a comprehensive {params.duration_days}-day travel itinerary.\n\n"
        f"Traveler preferences:\n{preferences}\n\n"
        "If you can search the web, use it to gather current information on weather, "
        "top-rated attractions and their opening hours and prices, travel advisories "
        "and local events, accommodation pricing and well-reviewed restaurants.\n\n"
        "Include these sections:\n"
        "1. OVERVIEW: Brief intro to the destination and its highlights\n"
        "2. TRAVEL METHOD: Transportation options to and around the destination\n"
        "3. ACCOMMODATION: 2-3 specific options of the preferred type that fit the budget\n"
        f"4. DAY-BY-DAY ITINERARY: exactly {params.duration_days} day entries\n"
        f"{day_entries}\n"
        "5. DINING RECOMMENDATIONS: 4-6 specific restaurants with signature dishes\n"
        "6. LOCAL EXPERIENCES: Activities matching the stated interests\n"
        "7. TRAVEL TIPS: Local customs, tipping practices and safety information\n"
        "8. BUDGET BREAKDOWN: Estimated costs for the entire itinerary\n\n"
        "Format with clear section headings and be specific with venue names and activities."
    )
    return prompt, params


def with_fallback_note(prompt: str, note: str) -> str:
    """Return *prompt* with a fallback tier's note appended, if it has one."""
    if not note:
        return prompt
    return f"{prompt}\n\nNote: {note}"


def _check_shape(answers: Sequence[str]) -> None:
    if len(answers) != ANSWER_COUNT:
        raise ValueError(f"Expected {ANSWER_COUNT} answers, got {len(answers)}")
