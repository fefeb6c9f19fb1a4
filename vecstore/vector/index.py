"""
Vector index backends.

IVectorIndex is the capability set every backend offers. InMemoryIndex is the
reference engine: an id -> record mapping answered by a full linear scan.
Accelerated variants must return the same records in the same order.
"""

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple, Union

import numpy as np

from ..core.errors import DegenerateVectorError, DimensionMismatchError, InvalidArgumentError
from ..util.logging import logger
from .locks import ReadWriteLock
from .metrics import Metric, is_degenerate, score_matrix, threshold_bounds
from .types import QueryResult, VectorRecord, as_embedding

DEFAULT_TOP_K = 4


def validate_k(k) -> int:
    """Reject bools, non-integers and non-positive values."""
    if isinstance(k, bool) or not isinstance(k, (int, np.integer)):
        raise InvalidArgumentError(f"k must be a positive integer, got {k!r}")
    if k <= 0:
        raise InvalidArgumentError(f"k must be a positive integer, got {k}")
    return int(k)


def validate_threshold(metric: Metric, threshold) -> Optional[float]:
    """None means accept everything; otherwise the value must lie in the metric's range."""
    if threshold is None:
        return None
    if isinstance(threshold, bool) or not isinstance(threshold, (int, float, np.integer, np.floating)):
        raise InvalidArgumentError(f"threshold must be a number, got {threshold!r}")
    threshold = float(threshold)
    if not math.isfinite(threshold):
        raise InvalidArgumentError("threshold must be finite")
    low, high = threshold_bounds(metric)
    if threshold < low or threshold > high:
        raise InvalidArgumentError(
            f"threshold {threshold} outside valid range [{low}, {high}] for {metric.value} similarity"
        )
    return threshold


@dataclass(frozen=True)
class IndexSnapshot:
    """Point-in-time copy of an index's contents."""

    metric: Metric
    dimension: Optional[int]
    records: Tuple[VectorRecord, ...]
    fixed_dimension: Optional[int] = None


class IVectorIndex(ABC):
    """Abstract interface for vector index operations."""

    @property
    @abstractmethod
    def metric(self) -> Metric:
        pass

    @property
    @abstractmethod
    def dimension(self) -> Optional[int]:
        """Established vector length, or None while unset."""
        pass

    @abstractmethod
    def upsert(self, record: VectorRecord) -> None:
        """Insert a record or replace the one with the same id."""
        pass

    @abstractmethod
    def upsert_many(self, records: Iterable[VectorRecord]) -> int:
        """Upsert a batch atomically; returns the number of records written."""
        pass

    @abstractmethod
    def delete(self, ids: Iterable[str]) -> int:
        """Delete records by id; returns how many were actually removed."""
        pass

    @abstractmethod
    def query(self, query_vector, k: int = DEFAULT_TOP_K,
              threshold: Optional[float] = None) -> List[QueryResult]:
        """Search for similar vectors and return ranked results."""
        pass

    @abstractmethod
    def get(self, record_id: str) -> Optional[VectorRecord]:
        pass

    @abstractmethod
    def snapshot(self) -> IndexSnapshot:
        pass

    @abstractmethod
    def restore(self, snapshot: IndexSnapshot) -> None:
        """Replace the whole contents with those of an earlier snapshot."""
        pass

    @abstractmethod
    def clear(self) -> None:
        """Clear all records from the index."""
        pass

    @abstractmethod
    def __len__(self) -> int:
        pass

    @abstractmethod
    def __contains__(self, record_id: object) -> bool:
        pass


class InMemoryIndex(IVectorIndex):
    """
    Exact in-memory index scored by a full linear scan.

    Upserting an existing id replaces the record in place, so it keeps its
    original insertion position for tie breaking. The first record fixes the
    dimension; if the index later becomes empty the next record sets it again,
    unless a dimension was given to the constructor.

    Queries share a reader lock; upsert, delete and clear take the writer lock.
    """

    def __init__(self, metric: Union[str, Metric] = Metric.COSINE, dimension: Optional[int] = None):
        self._metric = Metric.parse(metric)
        if dimension is not None:
            if isinstance(dimension, bool) or not isinstance(dimension, int) or dimension <= 0:
                raise InvalidArgumentError(f"dimension must be a positive integer, got {dimension!r}")
        self._fixed_dimension = dimension
        self._dimension = dimension
        self._records: Dict[str, VectorRecord] = {}
        self._lock = ReadWriteLock()

    @property
    def metric(self) -> Metric:
        return self._metric

    @property
    def dimension(self) -> Optional[int]:
        with self._lock.read_locked():
            return self._dimension

    def upsert(self, record: VectorRecord) -> None:
        self.upsert_many([record])

    def upsert_many(self, records: Iterable[VectorRecord]) -> int:
        records = list(records)
        if not records:
            return 0

        with self._lock.write_locked():
            dimension = self._validate_batch(records)
            for record in records:
                self._records[record.id] = record
            self._dimension = dimension
            self._invalidate()

        record_id = records[0].id if len(records) == 1 else f"batch[{len(records)}]"
        logger.log_vector_operation("upsert", record_id, {"count": len(records), "dimension": dimension})
        return len(records)

    def delete(self, ids: Iterable[str]) -> int:
        if isinstance(ids, str):
            ids = [ids]
        unique_ids = set()
        for record_id in ids:
            if not isinstance(record_id, str):
                raise InvalidArgumentError(f"record ids must be strings, got {record_id!r}")
            unique_ids.add(record_id)

        removed = 0
        with self._lock.write_locked():
            for record_id in unique_ids:
                if self._records.pop(record_id, None) is not None:
                    removed += 1
            if not self._records and self._fixed_dimension is None:
                self._dimension = None
            if removed:
                self._invalidate()

        logger.log_vector_operation("delete", f"batch[{len(unique_ids)}]",
                                    {"requested": len(unique_ids), "removed": removed})
        return removed

    def query(self, query_vector, k: int = DEFAULT_TOP_K,
              threshold: Optional[float] = None) -> List[QueryResult]:
        k = validate_k(k)
        threshold = validate_threshold(self._metric, threshold)
        vector = as_embedding(query_vector, "query vector")

        with self._lock.read_locked():
            if self._dimension is not None and vector.shape[0] != self._dimension:
                raise DimensionMismatchError(self._dimension, vector.shape[0], "query")
            if not self._records:
                return []
            records = list(self._records.values())
            scores = self._score_all(vector, records)

        # stable sort keeps insertion order among equal scores
        order = np.argsort(-scores, kind="stable")
        results = []
        for position in order:
            value = float(scores[position])
            # NaN never satisfies a threshold
            if threshold is not None and not value >= threshold:
                break
            results.append(QueryResult(record=records[position].copy(), score=value))
            if len(results) == k:
                break
        return results

    def get(self, record_id: str) -> Optional[VectorRecord]:
        with self._lock.read_locked():
            record = self._records.get(record_id)
        return record.copy() if record is not None else None

    def ids(self) -> List[str]:
        with self._lock.read_locked():
            return list(self._records)

    def snapshot(self) -> IndexSnapshot:
        with self._lock.read_locked():
            return IndexSnapshot(
                metric=self._metric,
                dimension=self._dimension,
                records=tuple(record.copy() for record in self._records.values()),
                fixed_dimension=self._fixed_dimension,
            )

    def restore(self, snapshot: IndexSnapshot) -> None:
        if snapshot.metric is not self._metric:
            raise InvalidArgumentError(
                f"cannot restore a {snapshot.metric.value} snapshot into a {self._metric.value} index"
            )
        with self._lock.write_locked():
            self._records = {record.id: record for record in snapshot.records}
            self._dimension = snapshot.dimension
            self._invalidate()
        logger.log_vector_operation("restore", "*", {"count": len(snapshot.records)})

    def clear(self) -> None:
        with self._lock.write_locked():
            count = len(self._records)
            self._records.clear()
            if self._fixed_dimension is None:
                self._dimension = None
            self._invalidate()
        logger.log_vector_operation("clear", "*", {"removed": count})

    def __len__(self) -> int:
        with self._lock.read_locked():
            return len(self._records)

    def __contains__(self, record_id: object) -> bool:
        with self._lock.read_locked():
            return record_id in self._records

    def _validate_batch(self, records: List[VectorRecord]) -> Optional[int]:
        """Check the whole batch before anything is written; returns the resulting dimension."""
        dimension = self._dimension
        for position, record in enumerate(records):
            if not isinstance(record, VectorRecord):
                raise InvalidArgumentError(f"expected VectorRecord, got {type(record).__name__}")
            error = None
            if dimension is None:
                dimension = record.dimension
            elif record.dimension != dimension:
                error = DimensionMismatchError(dimension, record.dimension, f"record {record.id!r}")
            if error is None and self._metric is Metric.COSINE and is_degenerate(record.embedding):
                error = DegenerateVectorError(f"record {record.id!r} has a zero-magnitude embedding")
            if error is not None:
                error.batch_position = position
                raise error
        return dimension

    def _score_all(self, vector: np.ndarray, records: List[VectorRecord]) -> np.ndarray:
        """Score vector against records, positionally aligned. Called under the read lock."""
        matrix = np.vstack([record.embedding for record in records])
        return score_matrix(self._metric, vector, matrix)

    def _invalidate(self) -> None:
        """Hook for derived caches. Called under the write lock after every mutation."""
        pass
