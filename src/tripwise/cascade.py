"""Model cascade — the fixed, ordered list of tiers tried on failure."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from typing import TYPE_CHECKING, Any

from tripwise.models import ModelTier

if TYPE_CHECKING:
    from tripwise.config import Settings
    from tripwise.retry import RetryPolicy

DEFAULT_TIERS: tuple[ModelTier, ...] = (
    ModelTier(
        id="compound-beta",
        max_output_tokens=1200,
        supports_tools=True,
        temperature=0.7,
    ),
    ModelTier(
        id="llama3-70b-8192",
        max_output_tokens=800,
        temperature=0.7,
        fallback_note="Generate this itinerary based on your existing knowledge.",
    ),
    ModelTier(
        id="gemma2-9b-it",
        max_output_tokens=600,
        temperature=0.7,
        fallback_note="Generate a simplified itinerary based on your existing knowledge.",
    ),
)


class ModelCascade:
    """Ordered, read-only sequence of model tiers, richest first.

    Instances never change after construction, so one cascade can be shared by
    any number of concurrent orchestrator calls.
    """

    __slots__ = ("_tiers",)

    def __init__(self, tiers: Iterable[ModelTier] = DEFAULT_TIERS) -> None:
        tiers = tuple(tiers)
        if len(tiers) < 2:
            raise ValueError("A cascade needs at least two tiers to fall back")
        ids = [t.id for t in tiers]
        if len(set(ids)) != len(ids):
            raise ValueError(f"Duplicate tier ids in cascade: {ids}")
        object.__setattr__(self, "_tiers", tiers)

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError("ModelCascade is immutable")

    @classmethod
    def from_settings(cls, settings: Settings) -> ModelCascade:
        """Build the cascade from a config-file override, or the defaults."""
        if not settings.cascade:
            return cls()
        return cls(ModelTier(**entry) for entry in settings.cascade)

    @property
    def tiers(self) -> tuple[ModelTier, ...]:
        return self._tiers

    @property
    def primary(self) -> ModelTier:
        return self._tiers[0]

    @property
    def simplest(self) -> ModelTier:
        return self._tiers[-1]

    def max_attempts(self, policy: RetryPolicy) -> int:
        """Upper bound on attempts one invocation can make across all tiers."""
        return len(self._tiers) * policy.attempts_per_tier

    def __iter__(self) -> Iterator[ModelTier]:
        return iter(self._tiers)

    def __len__(self) -> int:
        return len(self._tiers)

    def __getitem__(self, index: int) -> ModelTier:
        return self._tiers[index]

    def __repr__(self) -> str:
        return f"ModelCascade({[t.id for t in self._tiers]!r})"
