"""Tests for ranking scorers and shared scoring primitives."""

import math
from datetime import timedelta

import pytest

from bookrank.config import RankingWeights
from bookrank.data_model import EvaluationTag
from bookrank.scoring import (
    category_score,
    evaluation_tag,
    freshness,
    hot_search_score,
    item_trending_score,
    log_dampen,
    masterpiece_score,
    new_book_score,
    passes_credibility_gate,
    potential_masterpiece_score,
    screen_score,
    top_chart_score,
    trending_score,
    value_or_zero,
)
from tests.helpers.time import FIXED_NOW


class TestPrimitives:
    """Tests for value_or_zero and log_dampen."""

    def test_missing_value_is_zero(self) -> None:
        """None maps to zero."""
        assert value_or_zero(None) == 0.0

    def test_negative_value_is_zero(self) -> None:
        """Negative counters are treated as missing."""
        assert value_or_zero(-3) == 0.0

    def test_positive_value_is_float(self) -> None:
        """Positive values pass through as floats."""
        assert value_or_zero(2) == 2.0
        assert isinstance(value_or_zero(2), float)

    def test_log_dampen(self) -> None:
        """log10(count + 1)."""
        assert log_dampen(9) == pytest.approx(1.0)
        assert log_dampen(99) == pytest.approx(2.0)
        assert log_dampen(None) == 0.0
        assert log_dampen(0) == 0.0


class TestFreshness:
    """Tests for the linear freshness bonus."""

    def test_created_now_is_one(self) -> None:
        """A brand-new item has full freshness."""
        assert freshness(FIXED_NOW, FIXED_NOW) == 1.0

    def test_future_creation_clamps_to_one(self) -> None:
        """Clock skew never pushes freshness above one."""
        assert freshness(FIXED_NOW + timedelta(days=3), FIXED_NOW) == 1.0

    def test_half_horizon(self) -> None:
        """Freshness decays linearly."""
        created = FIXED_NOW - timedelta(days=50)
        assert freshness(created, FIXED_NOW, horizon_days=100) == pytest.approx(0.5)

    def test_past_horizon_is_zero(self) -> None:
        """Items older than the horizon get no bonus."""
        created = FIXED_NOW - timedelta(days=400)
        assert freshness(created, FIXED_NOW, horizon_days=365) == 0.0

    def test_unknown_creation_is_zero(self) -> None:
        """Unknown creation time scores zero."""
        assert freshness(None, FIXED_NOW) == 0.0


class TestEvaluationTag:
    """Tests for rating-derived evaluation tags."""

    @pytest.mark.parametrize(
        ("rating", "expected"),
        [
            (9.8, EvaluationTag.MASTERPIECE),
            (9.5, EvaluationTag.MASTERPIECE),
            (9.2, EvaluationTag.HIGHLY_PRAISED),
            (9.0, EvaluationTag.HIGHLY_PRAISED),
            (8.0, EvaluationTag.WORTH_READING),
            (7.9, None),
            (None, None),
            (0.0, None),
        ],
    )
    def test_thresholds(self, rating: float | None, expected: EvaluationTag | None) -> None:
        """The highest threshold met wins."""
        assert evaluation_tag(rating) == expected


class TestCredibilityGate:
    """Tests for the hard eligibility filter."""

    def test_high_rating_with_few_ratings_is_rejected(self) -> None:
        """A rating-count below the floor never passes, however high the rating."""
        assert not passes_credibility_gate(10.0, 99, 9.5, 100)

    def test_meets_both_floors(self) -> None:
        """Rating and count at the floors pass."""
        assert passes_credibility_gate(9.5, 100, 9.5, 100)

    def test_unknown_rating_is_rejected(self) -> None:
        """Unrated items are never eligible."""
        assert not passes_credibility_gate(None, 500, 9.0, 10)

    def test_reader_ceiling(self) -> None:
        """With a reader ceiling, popular items are rejected."""
        assert passes_credibility_gate(9.1, 20, 9.0, 10, max_readers=1000, total_readers=1000)
        assert not passes_credibility_gate(
            9.1, 20, 9.0, 10, max_readers=1000, total_readers=1001
        )


class TestTrendingScore:
    """Tests for the trending formula."""

    def test_formula(self) -> None:
        """sessions x log10(duration + 1) x weight."""
        assert trending_score(10, 3600) == pytest.approx(10 * math.log10(3601) * 10)

    def test_session_count_outweighs_duration(self) -> None:
        """Ten short sessions beat five long ones under log dampening."""
        many_short = trending_score(10, 3600)
        few_long = trending_score(5, 36000)

        assert many_short == pytest.approx(355.64, abs=0.01)
        assert few_long == pytest.approx(227.82, abs=0.01)
        assert many_short > few_long

    def test_missing_signals_score_zero(self) -> None:
        """Missing inputs map to zero instead of raising."""
        assert trending_score(None, None) == 0.0

    def test_weight_is_configurable(self) -> None:
        """The session weight only scales the score."""
        weights = RankingWeights(trending_session_weight=1.0)
        assert trending_score(10, 3600, weights) == pytest.approx(10 * math.log10(3601))


class TestTypeScorers:
    """Tests for the remaining ranking scorers."""

    def test_hot_search(self) -> None:
        """Raw search count."""
        assert hot_search_score(42) == 42.0

    def test_new_book(self) -> None:
        """0.5 views + 2 readers + 10 rating."""
        assert new_book_score(100, 10, 8.0) == pytest.approx(150.0)

    def test_new_book_without_stats(self) -> None:
        """Views alone still score."""
        assert new_book_score(100, None, None) == pytest.approx(50.0)

    def test_category(self) -> None:
        """100 popularity + 0.5 readers + 2 x rating on a 0-100 scale."""
        assert category_score(1.0, 100, 8.0) == pytest.approx(100.0 + 50.0 + 160.0)

    def test_screen(self) -> None:
        """views + 2 readers."""
        assert screen_score(100, 10) == pytest.approx(120.0)

    def test_top_chart_rated(self) -> None:
        """Popularity scaled by rating / 5 plus a dampened reader bonus."""
        assert top_chart_score(2.0, 99, 10.0) == pytest.approx(2.0 * 2.0 * 100 + 2.0 * 10)

    def test_top_chart_unrated_uses_fixed_multiplier(self) -> None:
        """Unrated items use the 0.5 multiplier instead of zero."""
        assert top_chart_score(2.0, 0, None) == pytest.approx(100.0)

    def test_masterpiece(self) -> None:
        """Rating dominates; readers break ties."""
        assert masterpiece_score(9.6, 99) == pytest.approx(962.0)
        assert masterpiece_score(9.7, 0) > masterpiece_score(9.6, 10_000)

    def test_potential_masterpiece(self) -> None:
        """Rating plus a clamped freshness bonus."""
        assert potential_masterpiece_score(9.2, 0.5) == pytest.approx(930.0)
        assert potential_masterpiece_score(9.2, 5.0) == pytest.approx(940.0)

    def test_item_trending(self) -> None:
        """log10(sessions + 1) x log10(duration + 1) x 100."""
        assert item_trending_score(9, 99) == pytest.approx(200.0)
        assert item_trending_score(0, 5000) == 0.0
