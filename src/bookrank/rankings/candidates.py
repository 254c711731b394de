"""Type-specific candidate fetching and scoring for ranking snapshots.

Each ranking type reads its own signal set and applies its scorer.
Candidates are returned in discovery order (the order of the driving
query) so the stable sort in the manager breaks score ties
deterministically.
"""

from datetime import datetime, timedelta

import structlog

from bookrank.config.schemas.rankings import RankingDefinition, RankingWeights
from bookrank.data_model import ItemType, RankingType
from bookrank.rankings.models import PeriodWindow, ScoredCandidate
from bookrank.scoring import (
    category_score,
    freshness,
    hot_search_score,
    masterpiece_score,
    new_book_score,
    passes_credibility_gate,
    potential_masterpiece_score,
    screen_score,
    top_chart_score,
    trending_score,
)
from bookrank.signals import (
    ItemMetadata,
    ItemStats,
    SignalReader,
    TimeWindow,
    guarded_fetch,
)


logger = structlog.get_logger()


class CandidateScorer:
    """Fetches and scores ranking candidates for one ranking type."""

    def __init__(
        self,
        reader: SignalReader,
        weights: RankingWeights,
        item_type: ItemType = ItemType.EBOOK,
    ) -> None:
        """Initialize the scorer.

        Args:
            reader: Signal reader.
            weights: Ranking scorer constants.
            item_type: Catalog item type ranked.
        """
        self._reader = reader
        self._weights = weights
        self._item_type = item_type

    def score(
        self,
        definition: RankingDefinition,
        window: PeriodWindow,
        now: datetime,
    ) -> list[ScoredCandidate]:
        """Score the candidates of a ranking type.

        Args:
            definition: Ranking definition.
            window: Resolved period window.
            now: Reference time.

        Returns:
            Scored candidates in discovery order.

        Raises:
            SignalUnavailableError: If a load-bearing signal read fails.
        """
        unit = definition.type.value
        match definition.type:
            case RankingType.TRENDING:
                return self._trending(window, unit)
            case RankingType.HOT_SEARCH:
                return self._hot_search(unit)
            case RankingType.NEW_BOOKS:
                return self._new_books(now, unit)
            case RankingType.FICTION | RankingType.NON_FICTION:
                return self._category(definition.category or definition.type.value, unit)
            case RankingType.FILM_TV:
                return self._screen(
                    guarded_fetch(
                        "film_adaptations",
                        lambda: self._reader.fetch_film_adaptations(
                            self._weights.screen_candidate_limit
                        ),
                        unit=unit,
                    ),
                    unit,
                )
            case RankingType.AUDIOBOOK:
                return self._screen(
                    guarded_fetch(
                        "audiobooks",
                        lambda: self._reader.fetch_audiobooks(
                            self._weights.screen_candidate_limit
                        ),
                        unit=unit,
                    ),
                    unit,
                )
            case RankingType.TOP_200:
                return self._top_chart(unit)
            case RankingType.MASTERPIECE:
                return self._masterpiece(unit)
            case RankingType.POTENTIAL_MASTERPIECE:
                return self._potential_masterpiece(now, unit)

    # ===== Signal helpers =====

    def _metadata(self, item_ids: list[int], unit: str) -> dict[int, ItemMetadata]:
        """Item metadata is load-bearing: items cannot be ranked without it."""
        rows = guarded_fetch(
            "item_metadata",
            lambda: self._reader.fetch_item_metadata(item_ids),
            unit=unit,
        )
        return {row.item_id: row for row in rows}

    def _optional_stats(self, item_ids: list[int], unit: str) -> dict[int, ItemStats]:
        """Statistics that only refine a score fall back to empty."""
        rows: list[ItemStats] = guarded_fetch(
            "item_stats",
            lambda: self._reader.fetch_item_stats(self._item_type, item_ids),
            default=[],
            unit=unit,
        )
        return {row.item_id: row for row in rows}

    @staticmethod
    def _candidate(
        item: ItemMetadata, score: float, stats: ItemStats | None
    ) -> ScoredCandidate:
        return ScoredCandidate(
            item_id=item.item_id,
            score=score,
            title=item.title,
            item_type=item.item_type,
            author=item.author,
            cover_url=item.cover_url,
            reader_count=stats.total_readers if stats else 0,
            rating=stats.average_rating if stats else None,
        )

    # ===== Activity and catalog driven types =====

    def _trending(self, window: PeriodWindow, unit: str) -> list[ScoredCandidate]:
        activity = guarded_fetch(
            "reading_activity",
            lambda: self._reader.fetch_reading_activity(
                self._item_type,
                TimeWindow(start=window.period_start, end=window.period_end),
            ),
            unit=unit,
        )
        item_ids = [a.item_id for a in activity]
        metadata = self._metadata(item_ids, unit)
        stats = self._optional_stats(item_ids, unit)

        candidates = []
        for row in activity:
            item = metadata.get(row.item_id)
            if item is None:
                continue
            score = trending_score(
                row.session_count, row.total_duration_seconds, self._weights
            )
            candidates.append(self._candidate(item, score, stats.get(row.item_id)))
        return candidates

    def _hot_search(self, unit: str) -> list[ScoredCandidate]:
        items = guarded_fetch(
            "top_searched",
            lambda: self._reader.fetch_top_searched(
                self._weights.hot_search_min_searches,
                self._weights.hot_search_candidate_limit,
            ),
            unit=unit,
        )
        stats = self._optional_stats([i.item_id for i in items], unit)
        return [
            self._candidate(item, hot_search_score(item.search_count), stats.get(item.item_id))
            for item in items
        ]

    def _new_books(self, now: datetime, unit: str) -> list[ScoredCandidate]:
        since = now - timedelta(days=self._weights.new_books_window_days)
        items = guarded_fetch(
            "created_since",
            lambda: self._reader.fetch_created_since(
                since, self._weights.new_books_candidate_limit
            ),
            unit=unit,
        )
        stats = self._optional_stats([i.item_id for i in items], unit)

        candidates = []
        for item in items:
            item_stats = stats.get(item.item_id)
            score = new_book_score(
                item.view_count,
                item_stats.total_readers if item_stats else None,
                item_stats.average_rating if item_stats else None,
                self._weights,
            )
            candidates.append(self._candidate(item, score, item_stats))
        return candidates

    def _category(self, category_name: str, unit: str) -> list[ScoredCandidate]:
        category = guarded_fetch(
            "category",
            lambda: self._reader.fetch_category_by_name(category_name),
            unit=unit,
        )
        if category is None:
            logger.warning(
                "ranking_category_missing",
                ranking_type=unit,
                category=category_name,
            )
            return []

        items = guarded_fetch(
            "items_in_category",
            lambda: self._reader.fetch_items_in_category(
                category.category_id, [], self._weights.category_candidate_limit
            ),
            unit=unit,
        )
        stats = self._optional_stats([i.item_id for i in items], unit)

        candidates = []
        for item in items:
            item_stats = stats.get(item.item_id)
            score = category_score(
                item_stats.popularity_score if item_stats else None,
                item_stats.total_readers if item_stats else None,
                item_stats.average_rating if item_stats else None,
                self._weights,
            )
            candidates.append(self._candidate(item, score, item_stats))
        return candidates

    def _screen(self, items: list[ItemMetadata], unit: str) -> list[ScoredCandidate]:
        stats = self._optional_stats([i.item_id for i in items], unit)
        candidates = []
        for item in items:
            item_stats = stats.get(item.item_id)
            score = screen_score(
                item.view_count,
                item_stats.total_readers if item_stats else None,
                self._weights,
            )
            candidates.append(self._candidate(item, score, item_stats))
        return candidates

    # ===== Statistics driven types =====

    def _top_chart(self, unit: str) -> list[ScoredCandidate]:
        stats = guarded_fetch(
            "most_popular_stats",
            lambda: self._reader.fetch_most_popular_stats(
                self._item_type, self._weights.top_chart_candidate_limit
            ),
            unit=unit,
        )
        metadata = self._metadata([s.item_id for s in stats], unit)

        candidates = []
        for row in stats:
            item = metadata.get(row.item_id)
            if item is None:
                continue
            score = top_chart_score(
                row.popularity_score, row.total_readers, row.average_rating, self._weights
            )
            candidates.append(self._candidate(item, score, row))
        return candidates

    def _masterpiece(self, unit: str) -> list[ScoredCandidate]:
        w = self._weights
        stats = guarded_fetch(
            "rated_stats",
            lambda: self._reader.fetch_rated_stats(
                self._item_type,
                w.masterpiece_min_rating,
                w.masterpiece_min_rating_count,
                None,
                w.masterpiece_candidate_limit,
            ),
            unit=unit,
        )
        eligible = [
            s
            for s in stats
            if passes_credibility_gate(
                s.average_rating,
                s.rating_count,
                w.masterpiece_min_rating,
                w.masterpiece_min_rating_count,
            )
        ]
        metadata = self._metadata([s.item_id for s in eligible], unit)

        candidates = []
        for row in eligible:
            item = metadata.get(row.item_id)
            if item is None:
                continue
            score = masterpiece_score(row.average_rating, row.total_readers)
            candidates.append(self._candidate(item, score, row))
        return candidates

    def _potential_masterpiece(self, now: datetime, unit: str) -> list[ScoredCandidate]:
        w = self._weights
        stats = guarded_fetch(
            "rated_stats",
            lambda: self._reader.fetch_rated_stats(
                self._item_type,
                w.potential_min_rating,
                w.potential_min_rating_count,
                w.potential_max_readers,
                w.potential_candidate_limit,
            ),
            unit=unit,
        )
        eligible = [
            s
            for s in stats
            if passes_credibility_gate(
                s.average_rating,
                s.rating_count,
                w.potential_min_rating,
                w.potential_min_rating_count,
                max_readers=w.potential_max_readers,
                total_readers=s.total_readers,
            )
        ]
        metadata = self._metadata([s.item_id for s in eligible], unit)

        candidates = []
        for row in eligible:
            item = metadata.get(row.item_id)
            if item is None:
                continue
            fresh = freshness(item.created_at, now, w.freshness_horizon_days)
            score = potential_masterpiece_score(row.average_rating, fresh, w)
            candidates.append(self._candidate(item, score, row))
        return candidates


def rank_candidates(
    candidates: list[ScoredCandidate], limit: int
) -> list[ScoredCandidate]:
    """Sort by score descending and truncate.

    Python's sort is stable, so equal scores keep discovery order.
    """
    return sorted(candidates, key=lambda c: c.score, reverse=True)[:limit]
