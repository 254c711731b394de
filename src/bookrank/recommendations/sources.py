"""Recommendation candidate sources.

Each source maps a user context to candidates independently of the
others; filtering and deduplication happen afterwards in the assembler.
"""

from datetime import datetime, timedelta

from bookrank.config.schemas.recommendations import RecommendationWeights
from bookrank.data_model import CandidateSource, ItemType, ReasonType
from bookrank.recommendations.models import Candidate, UserContext
from bookrank.scoring import (
    category_pick_score,
    freshness,
    friends_score,
    high_rating_score,
    new_release_score,
    passes_credibility_gate,
    same_author_score,
    similar_score,
    trending_pick_score,
)
from bookrank.signals import Category, SignalReader, guarded_fetch
from bookrank.store.protocols import RelatedItemRepository


class CandidateSources:
    """The six candidate sources of the recommendation assembler."""

    def __init__(
        self,
        reader: SignalReader,
        related: RelatedItemRepository,
        weights: RecommendationWeights,
        item_type: ItemType = ItemType.EBOOK,
    ) -> None:
        """Initialize the sources.

        Args:
            reader: Signal reader.
            related: Relatedness edge repository.
            weights: Recommendation constants.
            item_type: Catalog item type recommended.
        """
        self._reader = reader
        self._related = related
        self._weights = weights
        self._item_type = item_type

    def generate(
        self, source: CandidateSource, context: UserContext, now: datetime
    ) -> list[Candidate]:
        """Run one source.

        Args:
            source: Source to run.
            context: User context.
            now: Reference time.

        Returns:
            Candidates in discovery order.

        Raises:
            SignalUnavailableError: If a signal read of the source fails.
        """
        match source:
            case CandidateSource.SIMILARITY:
                return self.similar_to_reading(context)
            case CandidateSource.SAME_AUTHOR:
                return self.same_author(context)
            case CandidateSource.CATEGORY:
                return self.popular_in_category(context)
            case CandidateSource.SOCIAL:
                return self.friends_reading(context)
            case CandidateSource.TRENDING:
                return self.trending(context, now)
            case CandidateSource.RATING:
                return self.high_rated(context)

    def similar_to_reading(self, context: UserContext) -> list[Candidate]:
        """Neighbours of the items being read and the most recent reads."""
        w = self._weights
        unit = f"user:{context.user_id}"
        source_ids = list(
            dict.fromkeys(
                context.currently_reading_item_ids
                + context.read_item_ids[: w.similar_recent_reads]
            )
        )
        if not source_ids:
            return []

        titles = {
            item.item_id: item.title
            for item in guarded_fetch(
                "source_item_metadata",
                lambda: self._reader.fetch_item_metadata(source_ids),
                default=[],
                unit=unit,
            )
        }

        candidates = []
        for source_id in source_ids:
            edges = guarded_fetch(
                "related_edges",
                lambda: self._related.get_related_edges(
                    self._item_type, source_id, w.similar_edges_per_source
                ),
                unit=unit,
            )
            title = titles.get(source_id)
            reason = (
                f'Because you enjoyed "{title}"'
                if title
                else "Based on your reading preferences"
            )
            candidates.extend(
                Candidate(
                    item_id=edge.related_item_id,
                    score=similar_score(edge.similarity_score, w),
                    reason_type=ReasonType.SIMILAR_BOOK,
                    reason=reason,
                    source=CandidateSource.SIMILARITY,
                    source_item_id=source_id,
                )
                for edge in edges
            )
        return candidates

    def same_author(self, context: UserContext) -> list[Candidate]:
        """Other items by the user's favourite authors."""
        w = self._weights
        unit = f"user:{context.user_id}"
        candidates = []
        for author in context.favorite_authors[: w.author_sources]:
            items = guarded_fetch(
                "items_by_author",
                lambda: self._reader.fetch_items_by_author(
                    author, None, w.author_items_per_author
                ),
                unit=unit,
            )
            candidates.extend(
                Candidate(
                    item_id=item.item_id,
                    score=same_author_score(item.view_count, w),
                    reason_type=ReasonType.SAME_AUTHOR,
                    reason=f"More from {author}",
                    source=CandidateSource.SAME_AUTHOR,
                )
                for item in items
            )
        return candidates

    def popular_in_category(self, context: UserContext) -> list[Candidate]:
        """Trending items of the user's preferred categories."""
        w = self._weights
        unit = f"user:{context.user_id}"
        candidates = []
        for category_id in context.preferred_category_ids:
            category: Category | None = guarded_fetch(
                "category",
                lambda: self._reader.fetch_category(category_id),
                default=None,
                unit=unit,
            )
            items = guarded_fetch(
                "items_in_category",
                lambda: self._reader.fetch_items_in_category(
                    category_id, [], w.category_items_per_category
                ),
                unit=unit,
            )
            reason = f"Popular in {category.label}" if category else "Trending pick"
            candidates.extend(
                Candidate(
                    item_id=item.item_id,
                    score=category_pick_score(item.trending_score, w),
                    reason_type=ReasonType.SAME_CATEGORY,
                    reason=reason,
                    source=CandidateSource.CATEGORY,
                )
                for item in items
            )
        return candidates

    def friends_reading(self, context: UserContext) -> list[Candidate]:
        """Items currently being read by followed users."""
        if not context.following_user_ids:
            return []
        w = self._weights
        counts = guarded_fetch(
            "items_currently_read_by",
            lambda: self._reader.fetch_items_currently_read_by(
                context.following_user_ids, w.friends_limit
            ),
            unit=f"user:{context.user_id}",
        )
        candidates = []
        for row in counts:
            friend_count = max(1, row.user_count)
            reason = (
                f"{friend_count} friends are reading this"
                if friend_count > 1
                else "A friend is reading this"
            )
            candidates.append(
                Candidate(
                    item_id=row.item_id,
                    score=friends_score(friend_count, w),
                    reason_type=ReasonType.FRIEND_ACTIVITY,
                    reason=reason,
                    source=CandidateSource.SOCIAL,
                )
            )
        return candidates

    def trending(self, context: UserContext, now: datetime) -> list[Candidate]:
        """Globally trending items followed by recent releases."""
        w = self._weights
        unit = f"user:{context.user_id}"

        trending = guarded_fetch(
            "trending_items",
            lambda: self._reader.fetch_trending_items(w.trending_min_score, w.trending_limit),
            unit=unit,
        )
        candidates = [
            Candidate(
                item_id=item.item_id,
                score=trending_pick_score(item.trending_score, w),
                reason_type=ReasonType.TRENDING,
                reason="Trending now",
                source=CandidateSource.TRENDING,
            )
            for item in trending
        ]

        since = now - timedelta(days=w.new_release_window_days)
        releases = guarded_fetch(
            "created_since",
            lambda: self._reader.fetch_created_since(since, w.new_release_limit),
            unit=unit,
        )
        preferred = set(context.preferred_category_ids)
        candidates.extend(
            Candidate(
                item_id=item.item_id,
                score=new_release_score(
                    item.view_count,
                    freshness(item.created_at, now, w.freshness_horizon_days),
                    item.category_id in preferred,
                    w,
                ),
                reason_type=ReasonType.NEW_IN_CATEGORY,
                reason="New release",
                source=CandidateSource.TRENDING,
            )
            for item in releases
        )
        return candidates

    def high_rated(self, context: UserContext) -> list[Candidate]:
        """Items passing the rating and rating-count floors."""
        w = self._weights
        stats = guarded_fetch(
            "rated_stats",
            lambda: self._reader.fetch_rated_stats(
                self._item_type,
                w.high_rating_min_rating,
                w.high_rating_min_count,
                None,
                w.high_rating_limit,
            ),
            unit=f"user:{context.user_id}",
        )
        candidates = []
        for row in stats:
            if not passes_credibility_gate(
                row.average_rating,
                row.rating_count,
                w.high_rating_min_rating,
                w.high_rating_min_count,
            ):
                continue
            rating = row.average_rating or 0.0
            candidates.append(
                Candidate(
                    item_id=row.item_id,
                    score=high_rating_score(rating, w),
                    reason_type=ReasonType.HIGH_RATING,
                    reason=f"Highly rated ({rating:.1f}/10)",
                    source=CandidateSource.RATING,
                )
            )
        return candidates
