"""
Tests for similarity metrics.
"""

import math

import numpy as np
import pytest

from vecstore.core.errors import DegenerateVectorError, DimensionMismatchError, InvalidArgumentError
from vecstore.vector.metrics import (
    Metric,
    cosine_similarity,
    dot_product,
    euclidean_distance,
    is_degenerate,
    l2_normalize,
    score,
    score_matrix,
    threshold_bounds,
)


def test_cosine_is_symmetric():
    a = [0.3, -1.2, 4.5, 0.01]
    b = [2.0, 0.1, -0.7, 3.3]
    assert cosine_similarity(a, b) == cosine_similarity(b, a)


def test_cosine_of_vector_with_itself_is_one():
    rng = np.random.default_rng(7)
    for _ in range(20):
        a = rng.normal(size=64)
        assert cosine_similarity(a, a) == pytest.approx(1.0, abs=1e-12)


def test_cosine_known_values():
    assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == 0.0
    assert cosine_similarity([1.0, 0.0], [-2.0, 0.0]) == -1.0
    assert cosine_similarity([1.0, 0.0], [3.0, 4.0]) == 0.6


def test_cosine_stays_in_range():
    rng = np.random.default_rng(11)
    for _ in range(50):
        a = rng.normal(size=8)
        value = cosine_similarity(a, a * 3.7)
        assert -1.0 <= value <= 1.0


def test_cosine_dimension_mismatch():
    with pytest.raises(DimensionMismatchError):
        cosine_similarity([1.0, 2.0], [1.0, 2.0, 3.0])


def test_cosine_zero_vector_is_degenerate():
    with pytest.raises(DegenerateVectorError):
        cosine_similarity([0.0, 0.0, 0.0], [1.0, 2.0, 3.0])
    with pytest.raises(DegenerateVectorError):
        cosine_similarity([1.0, 2.0, 3.0], [0.0, 0.0, 0.0])


def test_cosine_uses_double_precision_for_float32_input():
    """Result matches an exact-sum reference even when inputs are float32."""
    rng = np.random.default_rng(3)
    a = rng.normal(size=1536).astype(np.float32)
    b = rng.normal(size=1536).astype(np.float32)

    da = [float(x) for x in a]
    db = [float(x) for x in b]
    dot = math.fsum(x * y for x, y in zip(da, db))
    norm_a = math.sqrt(math.fsum(x * x for x in da))
    norm_b = math.sqrt(math.fsum(y * y for y in db))

    result = cosine_similarity(a, b)
    assert isinstance(result, float)
    assert result == pytest.approx(dot / (norm_a * norm_b), abs=1e-12)


def test_dot_and_euclidean():
    assert dot_product([1.0, 2.0, 3.0], [4.0, 5.0, 6.0]) == 32.0
    assert euclidean_distance([0.0, 0.0], [3.0, 4.0]) == 5.0
    with pytest.raises(DimensionMismatchError):
        dot_product([1.0], [1.0, 2.0])


def test_score_orientation():
    """Higher is more similar for every metric."""
    assert score(Metric.EUCLIDEAN, [1.0, 1.0], [1.0, 1.0]) == 1.0
    assert score("euclidean", [0.0, 0.0], [3.0, 4.0]) == pytest.approx(1.0 / 6.0)
    assert score(Metric.DOT, [1.0, 2.0], [3.0, 4.0]) == 11.0
    assert score("cosine", [1.0, 0.0], [3.0, 4.0]) == 0.6


def test_score_matrix_matches_scalar():
    rng = np.random.default_rng(5)
    matrix = rng.normal(size=(12, 10))
    query = rng.normal(size=10)

    for metric in Metric:
        batch = score_matrix(metric, query, matrix)
        assert batch.shape == (12,)
        for row, value in zip(matrix, batch):
            assert value == pytest.approx(score(metric, query, row), abs=1e-12)


def test_score_matrix_empty_and_mismatch():
    assert score_matrix(Metric.COSINE, [1.0, 2.0], np.empty((0, 2))).size == 0
    with pytest.raises(DimensionMismatchError):
        score_matrix(Metric.COSINE, [1.0, 2.0, 3.0], np.ones((2, 2)))


def test_score_matrix_zero_query_is_degenerate():
    with pytest.raises(DegenerateVectorError):
        score_matrix(Metric.COSINE, [0.0, 0.0], np.ones((3, 2)))
    # Other metrics are defined for zero vectors
    assert list(score_matrix(Metric.DOT, [0.0, 0.0], np.ones((2, 2)))) == [0.0, 0.0]


def test_threshold_bounds():
    assert threshold_bounds(Metric.COSINE) == (-1.0, 1.0)
    assert threshold_bounds("euclidean") == (0.0, 1.0)
    low, high = threshold_bounds(Metric.DOT)
    assert math.isinf(low) and math.isinf(high)


def test_metric_parse():
    assert Metric.parse("COSINE") is Metric.COSINE
    assert Metric.parse(" dot ") is Metric.DOT
    assert Metric.parse(Metric.EUCLIDEAN) is Metric.EUCLIDEAN
    with pytest.raises(InvalidArgumentError):
        Metric.parse("manhattan")


@pytest.mark.parametrize("vector", [[1e-200, 0.0], [5e-324, 0.0], [1e200, 1e200], [1.7e308, -1.7e308]])
def test_cosine_handles_extreme_magnitudes(vector):
    """Norms neither underflow to zero nor overflow to infinity."""
    direction = np.sign(vector)
    value = cosine_similarity(vector, direction)
    assert math.isfinite(value)
    assert value == pytest.approx(1.0, abs=1e-12)

    batch = score_matrix(Metric.COSINE, direction, np.array([vector, [1.0, 0.0]]))
    assert np.all(np.isfinite(batch))
    assert batch[0] == pytest.approx(1.0, abs=1e-12)


def test_is_degenerate():
    assert is_degenerate([0.0, 0.0])
    assert is_degenerate([-0.0])
    assert not is_degenerate([5e-324, 0.0])
    assert not is_degenerate([1e300, 1e300])


def test_l2_normalize_rows():
    unit = l2_normalize([[3.0, 4.0], [1e-200, 0.0], [0.0, 0.0]])
    assert unit[0].tolist() == pytest.approx([0.6, 0.8])
    assert unit[1].tolist() == [1.0, 0.0]
    assert unit[2].tolist() == [0.0, 0.0]
