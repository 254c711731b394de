"""Pure scoring functions for rankings and recommendation sources."""

from bookrank.scoring.common import (
    evaluation_tag,
    freshness,
    log_dampen,
    passes_credibility_gate,
    value_or_zero,
)
from bookrank.scoring.rankings import (
    category_score,
    hot_search_score,
    item_trending_score,
    masterpiece_score,
    new_book_score,
    potential_masterpiece_score,
    screen_score,
    top_chart_score,
    trending_score,
)
from bookrank.scoring.recommendations import (
    category_pick_score,
    friends_score,
    high_rating_score,
    new_release_score,
    same_author_score,
    similar_score,
    trending_pick_score,
)


__all__ = [
    "category_pick_score",
    "category_score",
    "evaluation_tag",
    "freshness",
    "friends_score",
    "high_rating_score",
    "hot_search_score",
    "item_trending_score",
    "log_dampen",
    "masterpiece_score",
    "new_book_score",
    "new_release_score",
    "passes_credibility_gate",
    "potential_masterpiece_score",
    "same_author_score",
    "screen_score",
    "similar_score",
    "top_chart_score",
    "trending_pick_score",
    "trending_score",
    "value_or_zero",
]
