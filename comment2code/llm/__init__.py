"""Adapters around the external code-generation CLI."""

from .runner import (
    GenerationCancelled,
    GenerationError,
    GenerationRequest,
    NonZeroExitError,
    OpencodeRunner,
    ToolNotFoundError,
)

__all__ = [
    "GenerationCancelled",
    "GenerationError",
    "GenerationRequest",
    "NonZeroExitError",
    "OpencodeRunner",
    "ToolNotFoundError",
]
