"""Tests for relevance blending and recency decay."""

import pytest

from codegen_daemon.search.relevance import (
    MS_PER_HOUR,
    combined_score,
    normalize_scores,
    rank,
    recency_decay,
)

NOW = 1_700_000_000_000


class TestRecencyDecay:
    """Test the hyperbolic recency decay."""

    def test_just_accessed(self):
        assert recency_decay(NOW, NOW, 24) == 1.0

    def test_half_life(self):
        assert recency_decay(NOW - 24 * MS_PER_HOUR, NOW, 24) == pytest.approx(0.5)

    def test_never_accessed(self):
        assert recency_decay(None, NOW, 24) == 0.0

    def test_future_access_is_clamped(self):
        assert recency_decay(NOW + MS_PER_HOUR, NOW, 24) == 1.0

    def test_monotonically_decreasing(self):
        decays = [
            recency_decay(NOW - hours * MS_PER_HOUR, NOW, 24)
            for hours in (0, 1, 12, 48, 1000)
        ]

        assert decays == sorted(decays, reverse=True)


class TestNormalizeScores:
    """Test text score normalization."""

    def test_scaled_by_maximum(self):
        assert normalize_scores([4.0, 2.0, 1.0]) == [1.0, 0.5, 0.25]

    def test_divisor_floored_at_one(self):
        """Weak matches are not inflated to a perfect score."""
        assert normalize_scores([0.5, 0.25]) == [0.5, 0.25]

    def test_empty(self):
        assert normalize_scores([]) == []


class TestRank:
    """Test blended ranking."""

    def test_combined_score(self):
        assert combined_score(1.0, 0.0, 0.75) == pytest.approx(0.75)
        assert combined_score(0.0, 1.0, 0.75) == pytest.approx(0.25)

    def test_recency_breaks_equal_relevance(self):
        ranked = rank(
            ids=["old", "new"],
            relevances=[1.0, 1.0],
            last_accessed=[NOW - 48 * MS_PER_HOUR, NOW],
            now=NOW,
            alpha=0.75,
            half_life_hours=24,
        )

        assert [hit.id for hit in ranked] == ["new", "old"]

    def test_relevance_dominates_with_high_alpha(self):
        ranked = rank(
            ids=["exact", "recent"],
            relevances=[1.0, 0.3],
            last_accessed=[NOW - 24 * MS_PER_HOUR, NOW - MS_PER_HOUR],
            now=NOW,
            alpha=0.95,
            half_life_hours=24,
        )

        assert ranked[0].id == "exact"
        assert ranked[0].decay == pytest.approx(0.5)

    def test_ties_keep_input_order(self):
        ranked = rank(
            ids=["a", "b", "c"],
            relevances=[0.5, 0.5, 0.5],
            last_accessed=[None, None, None],
            now=NOW,
            alpha=0.75,
            half_life_hours=24,
        )

        assert [hit.id for hit in ranked] == ["a", "b", "c"]
        assert [hit.order for hit in ranked] == [0, 1, 2]
