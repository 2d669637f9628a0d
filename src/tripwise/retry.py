"""Retry policy — bounded, linear-backoff retries within one tier."""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import TYPE_CHECKING

from tripwise.models import ErrorKind

if TYPE_CHECKING:
    from tripwise.config import Settings

# Only these kinds are worth resending unchanged to the same tier
_RETRYABLE_KINDS = frozenset({ErrorKind.SERVICE_UNAVAILABLE})


@dataclass(frozen=True)
class RetryPolicy:
    """When to retry a tier, and how long to wait first.

    ``attempt_index`` is 0 for the first call to a tier. With the default
    ``max_retries=2`` a tier gets at most three calls, waiting
    ``base_delay * 1`` and then ``base_delay * 2`` seconds between them.
    """

    max_retries: int = 2
    base_delay: float = 1.0
    jitter: float = 0.0

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.base_delay < 0 or self.jitter < 0:
            raise ValueError("base_delay and jitter must be >= 0")

    @classmethod
    def from_settings(cls, settings: Settings) -> RetryPolicy:
        return cls(max_retries=settings.max_retries, base_delay=settings.retry_base_delay)

    @property
    def attempts_per_tier(self) -> int:
        return self.max_retries + 1

    @staticmethod
    def is_transient(error_kind: ErrorKind) -> bool:
        return error_kind in _RETRYABLE_KINDS

    def should_retry(self, attempt_index: int, error_kind: ErrorKind) -> bool:
        """Whether a failed call at *attempt_index* earns another call to the same tier."""
        return self.is_transient(error_kind) and attempt_index < self.max_retries

    def backoff_duration(self, attempt_index: int) -> float:
        """Seconds to wait before the call numbered *attempt_index* (1 for the first retry)."""
        delay = self.base_delay * max(attempt_index, 0)
        if self.jitter:
            delay += random.uniform(0, self.jitter)
        return delay
