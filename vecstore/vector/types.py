"""
Record and result types shared by every index backend and the store facade.
"""

import math
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Sequence, Union

import numpy as np

from ..core.errors import InvalidArgumentError

MetadataValue = Union[str, int, float, bool]


def as_embedding(values: Union[Sequence[float], np.ndarray], context: str = "embedding") -> np.ndarray:
    """Convert to a read-only 1-D float64 array, rejecting empty or non-finite input."""
    try:
        vector = np.array(values, dtype=np.float64)
    except (TypeError, ValueError) as exc:
        raise InvalidArgumentError(f"{context} must be a sequence of numbers") from exc

    if vector.ndim != 1:
        raise InvalidArgumentError(f"{context} must be one-dimensional, got shape {vector.shape}")
    if vector.size == 0:
        raise InvalidArgumentError(f"{context} must not be empty")
    if not np.all(np.isfinite(vector)):
        raise InvalidArgumentError(f"{context} contains NaN or infinite values")

    vector.flags.writeable = False
    return vector


def check_encodable(value: str, what: str) -> None:
    """Reject strings UTF-8 cannot encode, such as lone surrogates."""
    try:
        value.encode("utf-8")
    except UnicodeEncodeError as exc:
        raise InvalidArgumentError(f"{what} is not valid UTF-8 text: {exc.reason}") from None


def validate_metadata(metadata: Optional[Mapping[str, Any]]) -> Dict[str, MetadataValue]:
    """Copy metadata, allowing only string keys and scalar values."""
    if metadata is None:
        return {}
    if not isinstance(metadata, Mapping):
        raise InvalidArgumentError("metadata must be a mapping")

    cleaned = {}
    for key, value in metadata.items():
        if not isinstance(key, str):
            raise InvalidArgumentError(f"metadata key {key!r} must be a string")
        check_encodable(key, "metadata key")
        if not isinstance(value, (str, int, float, bool)):
            raise InvalidArgumentError(
                f"metadata value for {key!r} must be str, int, float or bool, got {type(value).__name__}"
            )
        if isinstance(value, float) and not math.isfinite(value):
            raise InvalidArgumentError(f"metadata value for {key!r} is not finite")
        if isinstance(value, str):
            check_encodable(value, f"metadata value for {key!r}")
        cleaned[key] = value
    return cleaned


@dataclass(frozen=True, eq=False)
class VectorRecord:
    """Represents a stored vector with its text payload and metadata."""

    id: str
    """Unique identifier within an index"""

    content: str
    """Text payload, opaque to the engine"""

    embedding: np.ndarray
    """Read-only float64 vector"""

    metadata: Dict[str, MetadataValue] = field(default_factory=dict)
    """Scalar metadata, passed through unmodified"""

    def __post_init__(self):
        if not isinstance(self.id, str) or not self.id.strip():
            raise InvalidArgumentError("record id must be a non-empty string")
        check_encodable(self.id, "record id")
        if not isinstance(self.content, str):
            raise InvalidArgumentError(f"content of record {self.id!r} must be a string")
        check_encodable(self.content, f"content of record {self.id!r}")
        object.__setattr__(self, "embedding", as_embedding(self.embedding, f"embedding of record {self.id!r}"))
        object.__setattr__(self, "metadata", validate_metadata(self.metadata))

    @property
    def dimension(self) -> int:
        return int(self.embedding.shape[0])

    def copy(self) -> "VectorRecord":
        """Transient copy for results; the embedding is read-only and shared."""
        return VectorRecord(id=self.id, content=self.content, embedding=self.embedding,
                            metadata=dict(self.metadata))

    def __eq__(self, other):
        if not isinstance(other, VectorRecord):
            return NotImplemented
        return (self.id == other.id and self.content == other.content
                and self.metadata == other.metadata
                and np.array_equal(self.embedding, other.embedding))


@dataclass
class Document:
    """Input unit for the store facade: text to embed plus metadata."""

    content: str
    metadata: Dict[str, MetadataValue] = field(default_factory=dict)
    id: Optional[str] = None

    def __post_init__(self):
        if not isinstance(self.content, str) or not self.content.strip():
            raise InvalidArgumentError("document content must be a non-empty string")
        check_encodable(self.content, "document content")
        if self.id is not None and (not isinstance(self.id, str) or not self.id.strip()):
            raise InvalidArgumentError("document id must be a non-empty string when given")
        if self.id is not None:
            check_encodable(self.id, "document id")
        self.metadata = validate_metadata(self.metadata)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "Document":
        if "content" not in data:
            raise InvalidArgumentError("document mapping requires a 'content' field")
        return cls(content=data["content"], metadata=data.get("metadata") or {}, id=data.get("id"))


@dataclass(frozen=True)
class QueryResult:
    """Represents a search result from an index."""

    record: VectorRecord
    """Transient copy of the matching record"""

    score: float
    """Similarity score, higher is more similar"""

    @property
    def id(self) -> str:
        return self.record.id

    @property
    def content(self) -> str:
        return self.record.content

    @property
    def metadata(self) -> Dict[str, MetadataValue]:
        return self.record.metadata

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "content": self.content,
            "metadata": dict(self.metadata),
            "score": self.score,
        }


@dataclass(frozen=True)
class DeleteResult:
    """Outcome of a delete: how many ids were asked for and how many were removed."""

    requested: int
    removed: int

    @property
    def success(self) -> bool:
        """True when every requested id was present and removed."""
        return self.removed == self.requested

    @property
    def missing(self) -> int:
        return self.requested - self.removed
