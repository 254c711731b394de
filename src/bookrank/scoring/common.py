"""Shared scoring primitives.

Every function here is total: missing inputs map to a defined default
instead of raising, so one sparse catalog row never aborts a batch.
"""

import math
from datetime import datetime

from bookrank.config.constants import (
    HIGHLY_PRAISED_TAG_THRESHOLD,
    MASTERPIECE_TAG_THRESHOLD,
    WORTH_READING_TAG_THRESHOLD,
)
from bookrank.data_model import EvaluationTag


SECONDS_PER_DAY = 86_400


def value_or_zero(value: float | None) -> float:
    """Map a missing or negative signal to zero."""
    if value is None or value < 0:
        return 0.0
    return float(value)


def log_dampen(count: float | None) -> float:
    """Log-dampen a non-negative count: log10(count + 1)."""
    return math.log10(value_or_zero(count) + 1.0)


def freshness(
    created_at: datetime | None,
    now: datetime,
    horizon_days: int = 365,
) -> float:
    """Linear freshness bonus in [0, 1].

    1.0 for an item created now (or in the future), decreasing linearly to
    0.0 at ``horizon_days`` of age. Unknown creation time scores 0.0.

    Args:
        created_at: Item creation timestamp.
        now: Reference time.
        horizon_days: Age at which freshness reaches zero.

    Returns:
        Freshness in [0, 1].
    """
    if created_at is None or horizon_days <= 0:
        return 0.0
    age_seconds = (now - created_at).total_seconds()
    fraction = 1.0 - age_seconds / (horizon_days * SECONDS_PER_DAY)
    return min(1.0, max(0.0, fraction))


def evaluation_tag(rating: float | None) -> EvaluationTag | None:
    """Derive the evaluation tag from an average rating.

    Args:
        rating: Average rating on a 0-10 scale.

    Returns:
        The highest tag whose threshold the rating meets, or None.
    """
    if not rating:
        return None
    if rating >= MASTERPIECE_TAG_THRESHOLD:
        return EvaluationTag.MASTERPIECE
    if rating >= HIGHLY_PRAISED_TAG_THRESHOLD:
        return EvaluationTag.HIGHLY_PRAISED
    if rating >= WORTH_READING_TAG_THRESHOLD:
        return EvaluationTag.WORTH_READING
    return None


def passes_credibility_gate(
    average_rating: float | None,
    rating_count: int | None,
    min_rating: float,
    min_rating_count: int,
    max_readers: int | None = None,
    total_readers: int | None = None,
) -> bool:
    """Hard eligibility filter for rating-driven candidates.

    An item is eligible only with a known rating at or above ``min_rating``
    and at least ``min_rating_count`` ratings. When ``max_readers`` is set the
    item must also have at most that many readers.

    Returns:
        True when the item may be scored at all.
    """
    if average_rating is None or average_rating < min_rating:
        return False
    if (rating_count or 0) < min_rating_count:
        return False
    return max_readers is None or (total_readers or 0) <= max_readers
