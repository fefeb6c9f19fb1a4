"""
FAISS-backed index variant.
Uses exact flat FAISS indexes for scoring; storage, ordering and threshold
rules come from InMemoryIndex so results match the reference engine.
"""

import threading
from typing import List, Optional, Union

import numpy as np

from ..core.errors import DegenerateVectorError
from .index import InMemoryIndex
from .metrics import Metric, is_degenerate, l2_normalize
from .types import VectorRecord


class FaissIndex(InMemoryIndex):
    """
    InMemoryIndex whose scan runs through a FAISS flat index.

    FAISS has no cheap in-place delete, so the flat index is rebuilt lazily
    on the first query after any mutation. Scores are computed in float32 and
    may differ from the reference engine in the last few bits.
    """

    def __init__(self, metric: Union[str, Metric] = Metric.COSINE, dimension: Optional[int] = None):
        try:
            import faiss
        except ImportError:
            raise ImportError("FAISS not installed. Please install faiss-cpu package.")
        super().__init__(metric=metric, dimension=dimension)
        self.faiss = faiss
        self._flat_index = None
        self._cache_lock = threading.Lock()

    @property
    def is_built(self) -> bool:
        return self._flat_index is not None

    def _invalidate(self) -> None:
        self._flat_index = None

    def _build(self, records: List[VectorRecord]):
        matrix = np.vstack([record.embedding for record in records])
        if self._metric is Metric.COSINE:
            # normalise in float64; float32 cannot hold extreme components
            matrix = l2_normalize(matrix)
        matrix = matrix.astype(np.float32)
        dimension = matrix.shape[1]

        if self._metric is Metric.EUCLIDEAN:
            flat_index = self.faiss.IndexFlatL2(dimension)
        else:
            # Inner product; rows are already unit length for cosine
            flat_index = self.faiss.IndexFlatIP(dimension)

        flat_index.add(np.ascontiguousarray(matrix))
        return flat_index

    def _score_all(self, vector: np.ndarray, records: List[VectorRecord]) -> np.ndarray:
        # Readers may race to build; the cache lock makes it happen once
        with self._cache_lock:
            if self._flat_index is None:
                self._flat_index = self._build(records)
            flat_index = self._flat_index

        if self._metric is Metric.COSINE:
            if is_degenerate(vector):
                raise DegenerateVectorError("cosine similarity is undefined for a zero-magnitude query")
            vector = l2_normalize(vector)
        query = vector.astype(np.float32).reshape(1, -1)

        distances, labels = flat_index.search(np.ascontiguousarray(query), len(records))

        # FAISS returns rank order; put scores back in insertion order
        scores = np.empty(len(records), dtype=np.float64)
        scores[labels[0]] = distances[0]

        if self._metric is Metric.EUCLIDEAN:
            # IndexFlatL2 reports squared distances
            return 1.0 / (1.0 + np.sqrt(np.maximum(scores, 0.0)))
        if self._metric is Metric.COSINE:
            return np.clip(scores, -1.0, 1.0)
        return scores
