"""Tests for vector math."""

import math

import pytest

from recall.vectors import DIMENSION_MISMATCH, cosine_similarity, embedding_stats, norm


class TestCosineSimilarity:

    def test_identical_vectors(self):
        assert cosine_similarity([0.3, 0.4, 0.5], [0.3, 0.4, 0.5]) == pytest.approx(1.0)

    def test_symmetric(self):
        a = [1.0, 2.0, -3.0, 0.5]
        b = [-0.5, 4.0, 1.0, 2.0]
        assert cosine_similarity(a, b) == pytest.approx(cosine_similarity(b, a))

    def test_orthogonal(self):
        assert cosine_similarity([1, 0, 0, 0], [0, 1, 0, 0]) == 0.0

    def test_opposite(self):
        assert cosine_similarity([1.0, 1.0], [-1.0, -1.0]) == pytest.approx(-1.0)

    def test_scale_invariant(self):
        assert cosine_similarity([1, 2, 3], [10, 20, 30]) == pytest.approx(1.0)

    def test_zero_norm_returns_zero(self):
        assert cosine_similarity([0.0, 0.0], [1.0, 2.0]) == 0.0
        assert cosine_similarity([1.0, 2.0], [0.0, 0.0]) == 0.0

    def test_length_mismatch_returns_sentinel(self):
        """Different lengths never raise."""
        assert cosine_similarity([1.0] * 4, [1.0] * 8) == DIMENSION_MISMATCH
        assert cosine_similarity([], [1.0]) == DIMENSION_MISMATCH


def test_norm():
    assert norm([3.0, 4.0]) == pytest.approx(5.0)
    assert norm([]) == 0.0


class TestEmbeddingStats:

    def test_stats(self):
        stats = embedding_stats([1.0, -1.0, 3.0, 0.0, 2.0, 5.0])
        assert stats["dimension"] == 6
        assert stats["min"] == -1.0
        assert stats["max"] == 5.0
        assert math.isclose(stats["mean"], 10.0 / 6)
        assert stats["head"] == [1.0, -1.0, 3.0, 0.0, 2.0]

    def test_empty(self):
        assert embedding_stats([]) == {"dimension": 0}
