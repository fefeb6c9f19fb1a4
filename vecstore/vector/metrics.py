"""
Similarity metrics over equal-length vectors.

All arithmetic is done in float64 whatever the input dtype. Scores are
oriented so that higher always means more similar:

- cosine: dot(a, b) / (|a| * |b|), clamped to [-1, 1]
- dot: raw inner product
- euclidean: 1 / (1 + |a - b|), in (0, 1]

Cosine similarity with a zero-magnitude operand raises DegenerateVectorError
instead of returning 0 or NaN.
"""

import math
from enum import Enum
from typing import Sequence, Tuple, Union

import numpy as np

from ..core.errors import DegenerateVectorError, DimensionMismatchError, InvalidArgumentError

VectorLike = Union[Sequence[float], np.ndarray]


class Metric(str, Enum):
    COSINE = "cosine"
    DOT = "dot"
    EUCLIDEAN = "euclidean"

    @classmethod
    def parse(cls, value: Union[str, "Metric"]) -> "Metric":
        if isinstance(value, Metric):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            valid = [m.value for m in cls]
            raise InvalidArgumentError(f"Unknown metric {value!r}, expected one of {valid}") from None


def _as_pair(a: VectorLike, b: VectorLike) -> Tuple[np.ndarray, np.ndarray]:
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    if va.shape != vb.shape:
        raise DimensionMismatchError(va.shape[0] if va.ndim else 0, vb.shape[0] if vb.ndim else 0)
    return va, vb


def _scale_by_peak(values: np.ndarray) -> np.ndarray:
    """
    Divide each row by a power of two so its largest magnitude lies in [0.5, 1).

    The scaling is exact and keeps sums of squares away from overflow and from
    underflowing to zero.
    """
    peak = np.max(np.abs(values), axis=-1, keepdims=True)
    _, exponent = np.frexp(peak)
    return np.ldexp(values, -exponent)


def _unit(values: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Unit-length rows plus the norm of each scaled row; zero rows stay zero with norm 0."""
    scaled = _scale_by_peak(values)
    norms = np.sqrt(np.sum(scaled * scaled, axis=-1, keepdims=True))
    unit = scaled / np.where(norms == 0.0, 1.0, norms)
    return unit, norms[..., 0]


def is_degenerate(vector: VectorLike) -> bool:
    """True when vector has no direction, so cosine similarity is undefined for it."""
    _, norm = _unit(np.asarray(vector, dtype=np.float64))
    return bool(norm == 0.0)


def l2_normalize(values: VectorLike) -> np.ndarray:
    """Scale a vector, or each row of a matrix, to unit length in float64."""
    unit, _ = _unit(np.asarray(values, dtype=np.float64))
    return unit


def dot_product(a: VectorLike, b: VectorLike) -> float:
    va, vb = _as_pair(a, b)
    return float(np.dot(va, vb))


def euclidean_distance(a: VectorLike, b: VectorLike) -> float:
    va, vb = _as_pair(a, b)
    diff = va - vb
    return math.sqrt(float(np.dot(diff, diff)))


def cosine_similarity(a: VectorLike, b: VectorLike) -> float:
    """Cosine of the angle between a and b."""
    va, vb = _as_pair(a, b)
    ua, norm_a = _unit(va)
    ub, norm_b = _unit(vb)
    if norm_a == 0.0 or norm_b == 0.0:
        raise DegenerateVectorError("cosine similarity is undefined for a zero-magnitude vector")

    similarity = float(np.dot(ua, ub))
    # rounding can push |similarity| a hair past 1
    return max(-1.0, min(1.0, similarity))


def score(metric: Union[str, Metric], a: VectorLike, b: VectorLike) -> float:
    """Similarity of a and b under metric, higher is more similar."""
    metric = Metric.parse(metric)
    if metric is Metric.COSINE:
        return cosine_similarity(a, b)
    if metric is Metric.DOT:
        return dot_product(a, b)
    return 1.0 / (1.0 + euclidean_distance(a, b))


def score_matrix(metric: Union[str, Metric], query: VectorLike, matrix: np.ndarray) -> np.ndarray:
    """
    Score query against every row of matrix.

    Args:
        metric: Metric to apply
        query: 1-D vector of length d
        matrix: Array of shape (n, d)

    Returns:
        float64 array of n scores, same orientation as score()
    """
    metric = Metric.parse(metric)
    q = np.asarray(query, dtype=np.float64)
    m = np.asarray(matrix, dtype=np.float64)
    if m.ndim != 2:
        raise InvalidArgumentError(f"matrix must be two-dimensional, got shape {m.shape}")
    if m.shape[0] == 0:
        return np.empty(0, dtype=np.float64)
    if q.ndim != 1 or q.shape[0] != m.shape[1]:
        raise DimensionMismatchError(m.shape[1], q.shape[0] if q.ndim else 0, "query")

    if metric is Metric.DOT:
        return m @ q

    if metric is Metric.EUCLIDEAN:
        diff = m - q
        distances = np.sqrt(np.einsum("ij,ij->i", diff, diff))
        return 1.0 / (1.0 + distances)

    unit_q, q_norm = _unit(q)
    if q_norm == 0.0:
        raise DegenerateVectorError("cosine similarity is undefined for a zero-magnitude query")
    unit_m, row_norms = _unit(m)
    if np.any(row_norms == 0.0):
        raise DegenerateVectorError("cosine similarity is undefined for a zero-magnitude vector")
    return np.clip(unit_m @ unit_q, -1.0, 1.0)


def threshold_bounds(metric: Union[str, Metric]) -> Tuple[float, float]:
    """Inclusive range a similarity threshold may take under metric."""
    metric = Metric.parse(metric)
    if metric is Metric.COSINE:
        return -1.0, 1.0
    if metric is Metric.EUCLIDEAN:
        return 0.0, 1.0
    return -math.inf, math.inf
