"""TripWise — travel itineraries from a cascade of LLMs."""

from importlib.metadata import version

from tripwise.cascade import ModelCascade
from tripwise.errors import GenerationError
from tripwise.models import (
    ErrorKind,
    GenerationResult,
    GenerationTrace,
    ModelTier,
    StreamChunk,
    TerminationState,
)
from tripwise.orchestrator import RequestOrchestrator
from tripwise.retry import RetryPolicy
from tripwise.streaming import StreamAdapter

__version__ = version("tripwise")
__all__ = [
    "ErrorKind",
    "GenerationError",
    "GenerationResult",
    "GenerationTrace",
    "ModelCascade",
    "ModelTier",
    "RequestOrchestrator",
    "RetryPolicy",
    "StreamAdapter",
    "StreamChunk",
    "TerminationState",
    "__version__",
]
