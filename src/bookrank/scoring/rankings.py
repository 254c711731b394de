"""Ranking scorers, one per ranking type."""

from bookrank.config.schemas.rankings import RankingWeights
from bookrank.scoring.common import log_dampen, value_or_zero


_DEFAULTS = RankingWeights()


def trending_score(
    session_count: int | None,
    total_duration_seconds: int | None,
    weights: RankingWeights = _DEFAULTS,
) -> float:
    """Trending: sessions x log10(duration + 1) x weight."""
    return (
        value_or_zero(session_count)
        * log_dampen(total_duration_seconds)
        * weights.trending_session_weight
    )


def hot_search_score(search_count: int | None) -> float:
    """Hot search: raw search count."""
    return value_or_zero(search_count)


def new_book_score(
    view_count: int | None,
    total_readers: int | None,
    average_rating: float | None,
    weights: RankingWeights = _DEFAULTS,
) -> float:
    """New releases: weighted views, readers and rating."""
    return (
        value_or_zero(view_count) * weights.new_books_view_weight
        + value_or_zero(total_readers) * weights.new_books_reader_weight
        + value_or_zero(average_rating) * weights.new_books_rating_weight
    )


def category_score(
    popularity_score: float | None,
    total_readers: int | None,
    average_rating: float | None,
    weights: RankingWeights = _DEFAULTS,
) -> float:
    """Category composite: w1*popularity + w2*readers + w3*rating(0-100)."""
    rating_term = value_or_zero(average_rating) * 10.0
    return (
        value_or_zero(popularity_score) * weights.category_popularity_weight
        + value_or_zero(total_readers) * weights.category_reader_weight
        + rating_term * weights.category_rating_weight
    )


def screen_score(
    view_count: int | None,
    total_readers: int | None,
    weights: RankingWeights = _DEFAULTS,
) -> float:
    """Film/TV and audiobook charts: views plus weighted readers."""
    return (
        value_or_zero(view_count) * weights.screen_view_weight
        + value_or_zero(total_readers) * weights.screen_reader_weight
    )


def top_chart_score(
    popularity_score: float | None,
    total_readers: int | None,
    average_rating: float | None,
    weights: RankingWeights = _DEFAULTS,
) -> float:
    """All-time chart: popularity scaled by rating plus a dampened reader bonus.

    Unrated items use a fixed rating multiplier instead of zero.
    """
    if average_rating:
        rating_multiplier = average_rating / weights.top_chart_rating_divisor
    else:
        rating_multiplier = weights.top_chart_unrated_weight
    return (
        value_or_zero(popularity_score)
        * rating_multiplier
        * weights.top_chart_popularity_weight
        + log_dampen(total_readers) * weights.top_chart_reader_weight
    )


def masterpiece_score(average_rating: float | None, total_readers: int | None) -> float:
    """Masterpiece: rating dominates, reader count breaks ties."""
    return value_or_zero(average_rating) * 100.0 + log_dampen(total_readers)


def potential_masterpiece_score(
    average_rating: float | None,
    freshness_value: float,
    weights: RankingWeights = _DEFAULTS,
) -> float:
    """Hidden gems: rating plus a freshness bonus."""
    return (
        value_or_zero(average_rating) * 100.0
        + min(1.0, max(0.0, freshness_value)) * weights.potential_freshness_weight
    )


def item_trending_score(
    session_count: int | None,
    total_duration_seconds: int | None,
    weights: RankingWeights = _DEFAULTS,
) -> float:
    """Catalog trending score written back to the signal store."""
    return (
        log_dampen(session_count)
        * log_dampen(total_duration_seconds)
        * weights.item_trending_weight
    )
