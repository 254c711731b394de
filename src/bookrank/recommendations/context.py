"""User context construction."""

from collections import Counter

import structlog

from bookrank.config.schemas.recommendations import RecommendationWeights
from bookrank.execution import Deadline, fan_out
from bookrank.recommendations.models import UserContext
from bookrank.signals import (
    ItemMetadata,
    SignalReader,
    SocialGraph,
    UserReadHistory,
    guarded_fetch,
)


logger = structlog.get_logger()


def _top(counter: Counter[int] | Counter[str], n: int) -> list:
    # most_common keeps first-seen order for equal counts
    return [key for key, _ in counter.most_common(n)]


def build_user_context(
    reader: SignalReader,
    user_id: int,
    weights: RecommendationWeights,
    max_workers: int = 1,
    deadline: Deadline | None = None,
) -> UserContext:
    """Build the context of one user.

    The read history is load-bearing. The social graph and the
    category/author preferences are optional and fall back to empty.

    Args:
        reader: Signal reader.
        user_id: User id.
        weights: Recommendation constants (preference list sizes).
        max_workers: Parallel fetches.
        deadline: Budget of the enclosing unit.

    Returns:
        Fresh user context.

    Raises:
        SignalUnavailableError: If the read history cannot be read.
        UnitTimeoutError: If the deadline passes.
    """
    unit = f"user:{user_id}"
    sections = fan_out(
        {
            "history": lambda: guarded_fetch(
                "user_read_history",
                lambda: reader.fetch_user_read_history(user_id),
                unit=unit,
            ),
            "social": lambda: guarded_fetch(
                "user_social_graph",
                lambda: reader.fetch_user_social_graph(user_id),
                default=SocialGraph(),
                unit=unit,
            ),
        },
        max_workers=max_workers,
        deadline=deadline,
    )
    history: UserReadHistory = sections["history"]
    social: SocialGraph = sections["social"]

    read_ids = history.read_item_ids
    metadata: list[ItemMetadata] = []
    if read_ids:
        metadata = guarded_fetch(
            "read_item_metadata",
            lambda: reader.fetch_item_metadata(read_ids),
            default=[],
            unit=unit,
        )

    categories: Counter[int] = Counter()
    authors: Counter[str] = Counter()
    for item in metadata:
        if item.category_id is not None:
            categories[item.category_id] += 1
        if item.author:
            authors[item.author] += 1

    context = UserContext(
        user_id=user_id,
        read_item_ids=read_ids,
        currently_reading_item_ids=history.currently_reading_item_ids,
        preferred_category_ids=_top(categories, weights.preferred_categories),
        favorite_authors=_top(authors, weights.favorite_authors),
        following_user_ids=social.following_user_ids,
    )
    logger.debug(
        "user_context_built",
        user_id=user_id,
        read_count=len(context.read_item_ids),
        reading_count=len(context.currently_reading_item_ids),
        category_count=len(context.preferred_category_ids),
        author_count=len(context.favorite_authors),
        following_count=len(context.following_user_ids),
    )
    return context
