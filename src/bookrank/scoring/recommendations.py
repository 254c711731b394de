"""Recommendation source scorers."""

from bookrank.config.schemas.recommendations import RecommendationWeights
from bookrank.scoring.common import log_dampen, value_or_zero


_DEFAULTS = RecommendationWeights()


def similar_score(similarity: float | None, weights: RecommendationWeights = _DEFAULTS) -> float:
    """Similar-to-reading: edge similarity scaled to 0-100."""
    return value_or_zero(similarity) * weights.similar_score_weight


def category_pick_score(
    trending_score: float | None, weights: RecommendationWeights = _DEFAULTS
) -> float:
    """Popular-in-category: discounted trending score."""
    return value_or_zero(trending_score) * weights.category_score_weight


def same_author_score(
    view_count: int | None, weights: RecommendationWeights = _DEFAULTS
) -> float:
    """Same-author: base score plus dampened popularity."""
    return weights.author_base_score + log_dampen(view_count) * weights.author_log_weight


def friends_score(follower_count: int | None, weights: RecommendationWeights = _DEFAULTS) -> float:
    """Friends-reading: base score plus a step per distinct follower."""
    return weights.friends_base_score + value_or_zero(follower_count) * weights.friends_per_follower


def trending_pick_score(
    trending_score: float | None, weights: RecommendationWeights = _DEFAULTS
) -> float:
    """Trending: global trending score scaled down."""
    return value_or_zero(trending_score) * weights.trending_score_weight


def new_release_score(
    view_count: int | None,
    freshness_value: float,
    in_preferred_category: bool,
    weights: RecommendationWeights = _DEFAULTS,
) -> float:
    """New release: base plus dampened views, freshness and category affinity."""
    boost = weights.new_release_category_boost if in_preferred_category else 0.0
    return (
        weights.new_release_base_score
        + log_dampen(view_count) * weights.new_release_log_weight
        + min(1.0, max(0.0, freshness_value)) * weights.new_release_freshness_weight
        + boost
    )


def high_rating_score(
    average_rating: float | None, weights: RecommendationWeights = _DEFAULTS
) -> float:
    """High-rating: rating alone."""
    return value_or_zero(average_rating) * weights.high_rating_weight
