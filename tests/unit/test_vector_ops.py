"""
Unit tests for rag_memory/compute/vector_ops.py
"""
import numpy as np
import pytest

from rag_memory.compute.vector_ops import (
    cosine_similarity,
    l2_normalize,
    pairwise_cosine,
    to_float_list,
)
from rag_memory.errors import DimensionMismatch


def test_identical_vectors_have_similarity_one():
    assert cosine_similarity([0.3, -1.2, 4.0], [0.3, -1.2, 4.0]) == pytest.approx(1.0)


def test_opposite_and_orthogonal_vectors():
    assert cosine_similarity([1, 2], [-1, -2]) == pytest.approx(-1.0)
    assert cosine_similarity([1, 0], [0, 5]) == pytest.approx(0.0)


def test_similarity_is_symmetric():
    rng = np.random.default_rng(7)
    for _ in range(20):
        a = rng.normal(size=8)
        b = rng.normal(size=8)
        assert cosine_similarity(a, b) == pytest.approx(cosine_similarity(b, a))


def test_similarity_is_bounded():
    rng = np.random.default_rng(11)
    for _ in range(50):
        a = rng.normal(size=16) * 1e6
        b = rng.normal(size=16) * 1e-6
        assert -1.0 <= cosine_similarity(a, b) <= 1.0


def test_zero_vector_yields_zero():
    assert cosine_similarity([0, 0, 0], [1, 2, 3]) == 0.0
    assert cosine_similarity([0, 0], [0, 0]) == 0.0


def test_length_mismatch_raises():
    with pytest.raises(DimensionMismatch) as exc_info:
        cosine_similarity([1, 2, 3], [1, 2])
    assert exc_info.value.left == 3
    assert exc_info.value.right == 2
    # Also a ValueError for callers that don't know the taxonomy
    assert isinstance(exc_info.value, ValueError)


def test_l2_normalize():
    unit = l2_normalize([3.0, 4.0])
    assert np.linalg.norm(unit) == pytest.approx(1.0)
    assert list(l2_normalize([0.0, 0.0])) == [0.0, 0.0]


def test_pairwise_matches_single_pairs():
    vectors = [[1, 0, 0], [1, 1, 0], [0, 0, 2]]
    sims = pairwise_cosine(vectors)
    assert sims.shape == (3, 3)
    for i in range(3):
        for j in range(3):
            assert sims[i, j] == pytest.approx(cosine_similarity(vectors[i], vectors[j]))


def test_pairwise_zero_vector_row_is_zero():
    sims = pairwise_cosine([[0, 0], [1, 1]])
    assert sims[0, 0] == 0.0
    assert sims[0, 1] == 0.0
    assert sims[1, 1] == pytest.approx(1.0)


def test_pairwise_rejects_mixed_lengths():
    with pytest.raises(DimensionMismatch):
        pairwise_cosine([[1, 0], [1, 0, 0]])


def test_pairwise_empty():
    assert pairwise_cosine([]).shape == (0, 0)


def test_to_float_list_accepts_lists_and_arrays():
    assert to_float_list([1, 2.5]) == [1.0, 2.5]
    assert to_float_list(np.array([0.5, -1.0], dtype=np.float32)) == [0.5, -1.0]
    assert to_float_list((3,)) == [3.0]


@pytest.mark.parametrize("value", [None, [], np.array([]), np.ones((1, 3)), "abc", [[1.0], [2.0]]])
def test_to_float_list_rejects_unusable_output(value):
    assert to_float_list(value) is None
