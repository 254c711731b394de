"""Tests for recommendation source scorers."""

import pytest

from bookrank.config import RecommendationWeights
from bookrank.scoring import (
    category_pick_score,
    friends_score,
    high_rating_score,
    new_release_score,
    same_author_score,
    similar_score,
    trending_pick_score,
)


class TestRecommendationScores:
    """Tests for the per-source score formulas."""

    def test_similar(self) -> None:
        """Similarity scaled to 0-100."""
        assert similar_score(0.9) == pytest.approx(90.0)

    def test_category_pick(self) -> None:
        """Trending score discounted by 0.8."""
        assert category_pick_score(50.0) == pytest.approx(40.0)

    def test_same_author(self) -> None:
        """Base 80 plus dampened views."""
        assert same_author_score(99) == pytest.approx(90.0)
        assert same_author_score(0) == pytest.approx(80.0)

    def test_friends(self) -> None:
        """Base 70 plus 10 per friend."""
        assert friends_score(1) == pytest.approx(80.0)
        assert friends_score(3) == pytest.approx(100.0)

    def test_trending_pick(self) -> None:
        """Global trending score halved."""
        assert trending_pick_score(0.9) == pytest.approx(0.45)

    def test_new_release_with_category_boost(self) -> None:
        """Base, views, freshness and the preferred-category boost add up."""
        assert new_release_score(99, 1.0, True) == pytest.approx(50 + 20 + 10 + 20)
        assert new_release_score(99, 1.0, False) == pytest.approx(50 + 20 + 10)

    def test_high_rating(self) -> None:
        """Rating times ten."""
        assert high_rating_score(9.0) == pytest.approx(90.0)

    def test_missing_inputs_never_raise(self) -> None:
        """Every scorer is total."""
        assert similar_score(None) == 0.0
        assert category_pick_score(None) == 0.0
        assert high_rating_score(None) == 0.0

    def test_custom_weights(self) -> None:
        """Constants come from configuration."""
        weights = RecommendationWeights(friends_base_score=10.0, friends_per_follower=1.0)
        assert friends_score(2, weights) == pytest.approx(12.0)
