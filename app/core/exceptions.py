"""Error taxonomy for the AI response cache.

Validation errors are raised immediately and never retried. Store errors are
raised on read and administrative paths and absorbed on the write-after-miss
path, where caching is best-effort.
"""


class AICacheError(Exception):
    """Base class for cache failures."""


class InvalidInputError(AICacheError, ValueError):
    """A key descriptor or argument is malformed."""


class InvalidArgumentError(InvalidInputError):
    """An identifier argument does not have the expected shape."""


class StoreUnavailableError(AICacheError):
    """The backing store could not be reached or rejected the operation."""

    def __init__(self, operation: str, message: str) -> None:
        self.operation = operation
        super().__init__(f"Cache store unavailable during {operation}: {message}")


class AggregationUnavailableError(AICacheError):
    """The statistics aggregation entry point is missing or failed."""
