"""
Error taxonomy for the vector engine.
Engine failures derive from VectorStoreError; provider failures do not.
"""

from typing import Optional


class VectorStoreError(Exception):
    """Base class for failures raised by the vector engine itself."""

    batch_position: Optional[int] = None
    """Position of the offending record when a batch write was rejected"""


class DimensionMismatchError(VectorStoreError, ValueError):
    """Vector length inconsistent with the index or the other operand."""

    def __init__(self, expected: int, actual: int, context: str = "vector"):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"{context} dimension {actual} does not match expected dimension {expected}"
        )


class InvalidArgumentError(VectorStoreError, ValueError):
    """Bad k, bad threshold, empty required field or non-finite values."""
    pass


class DegenerateVectorError(VectorStoreError, ValueError):
    """Zero-magnitude vector where a direction is required (cosine)."""
    pass


class CorruptDataError(VectorStoreError):
    """Snapshot bytes are unreadable or internally inconsistent."""
    pass


class ProviderError(Exception):
    """
    Embedding provider failure (network, quota, invalid input).

    Not a VectorStoreError: callers must be able to tell a provider outage
    apart from an engine fault. When raised during a batch add the facade
    fills in which document failed before re-raising the same object.
    """

    def __init__(self, message: str, document_index: Optional[int] = None,
                 document_id: Optional[str] = None):
        super().__init__(message)
        self.document_index = document_index
        self.document_id = document_id


class EmbeddingTimeoutError(ProviderError):
    """Provider call exceeded the caller's timeout."""
    pass
