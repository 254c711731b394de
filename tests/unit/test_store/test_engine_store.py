"""Tests for EngineStore repositories."""

import sqlite3
from datetime import timedelta
from pathlib import Path

import pytest

from bookrank.data_model import (
    EvaluationTag,
    ItemType,
    PeriodType,
    RankingType,
    ReasonType,
    RecommendationType,
    RelationType,
)
from bookrank.store import (
    ConnectionError as StoreConnectionError,
    CURRENT_VERSION,
    EngineStore,
    RankedEntry,
    RankingRepository,
    RecommendationDraft,
    RecommendationNotFoundError,
    RecommendationRepository,
    RelatedItemEdge,
    RelatedItemRepository,
    SnapshotDraft,
    SnapshotNotFoundError,
    StoreMetrics,
)
from tests.helpers.time import FIXED_NOW


def make_draft(
    ranking_type: RankingType = RankingType.TRENDING,
    computed_offset_minutes: int = 0,
) -> SnapshotDraft:
    """Create a snapshot draft."""
    computed_at = FIXED_NOW + timedelta(minutes=computed_offset_minutes)
    return SnapshotDraft(
        ranking_type=ranking_type,
        period_type=PeriodType.WEEKLY,
        period_start=FIXED_NOW - timedelta(days=2),
        period_end=FIXED_NOW + timedelta(days=4),
        display_name="Rising Stars",
        theme_color="#FF6B6B",
        computed_at=computed_at,
        expires_at=FIXED_NOW + timedelta(days=5),
    )


def make_entry(item_id: int, rank: int, score: float = 10.0) -> RankedEntry:
    """Create a ranked entry."""
    return RankedEntry(
        item_id=item_id,
        rank=rank,
        score=score,
        rating=9.6,
        evaluation_tag=EvaluationTag.MASTERPIECE,
        title=f"Book {item_id}",
    )


def make_edge(related_id: int, similarity: float, confidence: float = 0.5) -> RelatedItemEdge:
    """Create an edge from item 1."""
    return RelatedItemEdge(
        source_item_id=1,
        related_item_id=related_id,
        relation_type=RelationType.SAME_CATEGORY,
        similarity_score=similarity,
        confidence=confidence,
        computed_at=FIXED_NOW,
    )


def make_recommendation(
    user_id: int, item_id: int, position: int, expires_in_days: float = 7
) -> RecommendationDraft:
    """Create a recommendation draft."""
    return RecommendationDraft(
        user_id=user_id,
        item_id=item_id,
        recommendation_type=RecommendationType.FOR_YOU,
        reason_type=ReasonType.HIGH_RATING,
        reason="Highly rated (9.0/10)",
        score=90.0 - position,
        position=position,
        created_at=FIXED_NOW,
        expires_at=FIXED_NOW + timedelta(days=expires_in_days),
    )


class TestConnection:
    """Tests for connection lifecycle."""

    def test_operations_require_connection(self, temp_db_path: Path) -> None:
        """Using the store before connect raises."""
        store = EngineStore(temp_db_path)
        with pytest.raises(StoreConnectionError):
            store.get_stats()

    def test_connect_applies_migrations(self, store: EngineStore) -> None:
        """A fresh database is migrated to the current version."""
        assert store.is_connected
        assert store.get_schema_version() == CURRENT_VERSION

    def test_in_memory_database(self) -> None:
        """The store also runs on an in-memory database."""
        with EngineStore(":memory:") as store:
            assert store.get_stats() == {
                "ranking_snapshots": 0,
                "ranking_entries": 0,
                "related_items": 0,
                "user_recommendations": 0,
                "recommendation_runs": 0,
            }

    def test_implements_repositories(self, store: EngineStore) -> None:
        """EngineStore satisfies all three repository protocols."""
        assert isinstance(store, RankingRepository)
        assert isinstance(store, RelatedItemRepository)
        assert isinstance(store, RecommendationRepository)


class TestSnapshots:
    """Tests for snapshot swaps and reads."""

    def test_swap_persists_snapshot_and_entries(self, store: EngineStore) -> None:
        """The new snapshot is active and its entries read back by rank."""
        snapshot = store.swap_active_snapshot(make_draft(), [make_entry(5, 1), make_entry(6, 2)])

        assert snapshot.is_active
        active = store.get_active_snapshot(RankingType.TRENDING)
        assert active == snapshot

        entries = store.get_snapshot_entries(snapshot.id)
        assert [(e.item_id, e.rank) for e in entries] == [(5, 1), (6, 2)]
        assert entries[0].evaluation_tag == EvaluationTag.MASTERPIECE
        assert entries[0].item_type == ItemType.EBOOK
        assert store.count_snapshot_entries(snapshot.id) == 2

    def test_swap_deactivates_previous(self, store: EngineStore) -> None:
        """Exactly one active snapshot per type after repeated swaps."""
        first = store.swap_active_snapshot(make_draft(), [make_entry(5, 1)])
        second = store.swap_active_snapshot(make_draft(computed_offset_minutes=5), [])

        assert store.count_active_snapshots(RankingType.TRENDING) == 1
        assert store.get_active_snapshot(RankingType.TRENDING) == second
        assert not store.get_snapshot(first.id).is_active

    def test_types_are_independent(self, store: EngineStore) -> None:
        """Swapping one type leaves other types active."""
        store.swap_active_snapshot(make_draft(RankingType.TRENDING), [])
        store.swap_active_snapshot(make_draft(RankingType.HOT_SEARCH), [])

        assert store.count_active_snapshots(RankingType.TRENDING) == 1
        assert store.count_active_snapshots(RankingType.HOT_SEARCH) == 1

    def test_latest_snapshot_ignores_active_flag(self, store: EngineStore) -> None:
        """The latest snapshot is the most recently computed one."""
        store.swap_active_snapshot(make_draft(), [])
        second = store.swap_active_snapshot(make_draft(computed_offset_minutes=1), [])
        assert store.get_latest_snapshot(RankingType.TRENDING) == second

    def test_never_computed_type(self, store: EngineStore) -> None:
        """Reads on an unknown type return None."""
        assert store.get_active_snapshot(RankingType.MASTERPIECE) is None
        assert store.get_latest_snapshot(RankingType.MASTERPIECE) is None

    def test_unknown_snapshot_id(self, store: EngineStore) -> None:
        """Lookup by a missing id raises."""
        with pytest.raises(SnapshotNotFoundError):
            store.get_snapshot(404)

    def test_entry_paging(self, store: EngineStore) -> None:
        """Entries page with limit and offset."""
        snapshot = store.swap_active_snapshot(
            make_draft(), [make_entry(i, i) for i in range(1, 6)]
        )
        page = store.get_snapshot_entries(snapshot.id, limit=2, offset=2)
        assert [e.rank for e in page] == [3, 4]

    def test_list_active_skips_expired(self, store: EngineStore) -> None:
        """Expired active snapshots are not listed."""
        store.swap_active_snapshot(make_draft(RankingType.TRENDING), [])
        store.swap_active_snapshot(make_draft(RankingType.HOT_SEARCH), [])

        listed = store.list_active_snapshots(FIXED_NOW)
        assert [s.ranking_type for s in listed] == [RankingType.HOT_SEARCH, RankingType.TRENDING]
        assert store.list_active_snapshots(FIXED_NOW + timedelta(days=6)) == []

    def test_swap_records_metrics(self, store: EngineStore) -> None:
        """Swaps are counted."""
        store.swap_active_snapshot(make_draft(), [make_entry(1, 1), make_entry(2, 2)])
        metrics = StoreMetrics.get_instance()
        assert metrics.snapshots_swapped_total == 1
        assert metrics.entries_written_total == 2

    def test_failed_swap_rolls_back(self, store: EngineStore) -> None:
        """A failing entry insert leaves the previous snapshot active."""
        first = store.swap_active_snapshot(make_draft(), [make_entry(1, 1)])
        duplicate_rank = [make_entry(2, 1), make_entry(3, 1)]

        with pytest.raises(sqlite3.IntegrityError):
            store.swap_active_snapshot(make_draft(computed_offset_minutes=1), duplicate_rank)

        assert store.get_active_snapshot(RankingType.TRENDING) == first
        assert StoreMetrics.get_instance().db_tx_failed_total == 1


class TestRelatedEdges:
    """Tests for edge upserts."""

    def test_upsert_and_read_ordered_by_similarity(self, store: EngineStore) -> None:
        """Edges read back strongest first."""
        store.upsert_edges([make_edge(2, 0.5), make_edge(3, 0.9)])
        edges = store.get_related_edges(ItemType.EBOOK, 1, limit=10)
        assert [e.related_item_id for e in edges] == [3, 2]

    def test_upsert_keeps_maximum_similarity(self, store: EngineStore) -> None:
        """A weaker recomputation never lowers a stored similarity."""
        store.upsert_edges([make_edge(2, 0.8, confidence=0.4)])
        store.upsert_edges([make_edge(2, 0.6, confidence=0.9)])

        [edge] = store.get_related_edges(ItemType.EBOOK, 1, limit=10)
        assert edge.similarity_score == pytest.approx(0.8)
        assert edge.confidence == pytest.approx(0.9)

    def test_upsert_raises_similarity(self, store: EngineStore) -> None:
        """Stronger evidence raises the stored similarity."""
        store.upsert_edges([make_edge(2, 0.6)])
        store.upsert_edges([make_edge(2, 0.7)])
        [edge] = store.get_related_edges(ItemType.EBOOK, 1, limit=10)
        assert edge.similarity_score == pytest.approx(0.7)

    def test_relation_filter_and_limit(self, store: EngineStore) -> None:
        """Edges can be restricted to one relation type."""
        author_edge = RelatedItemEdge(
            source_item_id=1,
            related_item_id=4,
            relation_type=RelationType.SAME_AUTHOR,
            similarity_score=0.9,
            confidence=1.0,
            computed_at=FIXED_NOW,
        )
        store.upsert_edges([make_edge(2, 0.5), make_edge(3, 0.6), author_edge])

        only_author = store.get_related_edges(
            ItemType.EBOOK, 1, limit=10, relation_type=RelationType.SAME_AUTHOR
        )
        assert [e.related_item_id for e in only_author] == [4]
        assert len(store.get_related_edges(ItemType.EBOOK, 1, limit=2)) == 2

    def test_empty_upsert(self, store: EngineStore) -> None:
        """Nothing to write is a no-op."""
        assert store.upsert_edges([]) == 0


class TestRecommendations:
    """Tests for recommendation rows."""

    def test_replace_and_read_by_position(self, store: EngineStore) -> None:
        """Rows read back by position."""
        store.replace_user_recommendations(
            1, [make_recommendation(1, 30, 1), make_recommendation(1, 20, 0)], FIXED_NOW
        )
        rows = store.get_user_recommendations(1, FIXED_NOW)
        assert [r.item_id for r in rows] == [20, 30]
        assert store.count_live_recommendations(1, FIXED_NOW) == 2

    def test_replace_removes_previous_set(self, store: EngineStore) -> None:
        """A regeneration replaces the user's rows."""
        store.replace_user_recommendations(1, [make_recommendation(1, 20, 0)], FIXED_NOW)
        store.replace_user_recommendations(1, [make_recommendation(1, 40, 0)], FIXED_NOW)

        assert [r.item_id for r in store.get_user_recommendations(1, FIXED_NOW)] == [40]

    def test_replace_leaves_other_users(self, store: EngineStore) -> None:
        """Replacing one user's rows does not touch another user."""
        store.replace_user_recommendations(1, [make_recommendation(1, 20, 0)], FIXED_NOW)
        store.replace_user_recommendations(2, [make_recommendation(2, 20, 0)], FIXED_NOW)
        store.replace_user_recommendations(1, [], FIXED_NOW)

        assert store.count_live_recommendations(1, FIXED_NOW) == 0
        assert store.count_live_recommendations(2, FIXED_NOW) == 1

    def test_replace_records_the_generation(self, store: EngineStore) -> None:
        """Every replace, empty or not, stamps the user's last generation."""
        assert store.get_last_generated_at(1) is None

        store.replace_user_recommendations(1, [make_recommendation(1, 20, 0)], FIXED_NOW)
        later = FIXED_NOW + timedelta(hours=3)
        store.replace_user_recommendations(1, [], later)

        assert store.get_last_generated_at(1) == later
        assert store.get_last_generated_at(2) is None
        assert store.get_stats()["recommendation_runs"] == 1

    def test_dismissed_rows_survive_replacement(self, store: EngineStore) -> None:
        """Live dismissals are remembered across regenerations."""
        store.replace_user_recommendations(
            1, [make_recommendation(1, 20, 0), make_recommendation(1, 30, 1)], FIXED_NOW
        )
        [first, _] = store.get_user_recommendations(1, FIXED_NOW)
        store.dismiss(first.id)

        store.replace_user_recommendations(1, [make_recommendation(1, 40, 0)], FIXED_NOW)

        assert store.get_dismissed_item_ids(1, FIXED_NOW) == {20}
        assert [r.item_id for r in store.get_user_recommendations(1, FIXED_NOW)] == [40]

    def test_expired_rows_are_hidden_and_purged(self, store: EngineStore) -> None:
        """Expired rows are not live and are removed on the next replace."""
        store.replace_user_recommendations(
            1, [make_recommendation(1, 20, 0, expires_in_days=1)], FIXED_NOW
        )
        later = FIXED_NOW + timedelta(days=2)
        assert store.get_user_recommendations(1, later) == []
        assert store.count_live_recommendations(1, later) == 0

        store.replace_user_recommendations(1, [], later)
        assert store.get_stats()["user_recommendations"] == 0

    def test_expired_dismissals_are_forgotten(self, store: EngineStore) -> None:
        """A dismissal stops excluding its item once the row expires."""
        store.replace_user_recommendations(
            1, [make_recommendation(1, 20, 0, expires_in_days=1)], FIXED_NOW
        )
        [row] = store.get_user_recommendations(1, FIXED_NOW)
        store.dismiss(row.id)

        assert store.get_dismissed_item_ids(1, FIXED_NOW) == {20}
        assert store.get_dismissed_item_ids(1, FIXED_NOW + timedelta(days=2)) == set()

    def test_filter_by_type_and_paging(self, store: EngineStore) -> None:
        """Shelf filter and offset apply."""
        similar = make_recommendation(1, 50, 2).model_copy(
            update={"recommendation_type": RecommendationType.SIMILAR_TO_READING}
        )
        store.replace_user_recommendations(
            1, [make_recommendation(1, 20, 0), make_recommendation(1, 30, 1), similar], FIXED_NOW
        )
        shelf = store.get_user_recommendations(
            1, FIXED_NOW, RecommendationType.SIMILAR_TO_READING
        )
        assert [r.item_id for r in shelf] == [50]
        assert [r.item_id for r in store.get_user_recommendations(1, FIXED_NOW, offset=1)] == [
            30,
            50,
        ]

    def test_interaction_flags(self, store: EngineStore) -> None:
        """Viewed, clicked and dismissed flags are set independently."""
        store.replace_user_recommendations(
            1, [make_recommendation(1, 20, 0), make_recommendation(1, 30, 1)], FIXED_NOW
        )
        first, second = store.get_user_recommendations(1, FIXED_NOW)

        assert store.mark_viewed([first.id, 999]) == 1
        assert store.get_recommendation(first.id).is_viewed

        clicked = store.mark_clicked(second.id)
        assert clicked.is_clicked
        assert clicked.is_viewed

        dismissed = store.dismiss(second.id)
        assert dismissed.is_dismissed
        assert not dismissed.is_live(FIXED_NOW)
        assert store.count_live_recommendations(1, FIXED_NOW) == 1

    def test_mark_viewed_empty(self, store: EngineStore) -> None:
        """No ids, no update."""
        assert store.mark_viewed([]) == 0

    def test_unknown_recommendation_id(self, store: EngineStore) -> None:
        """Flag updates on a missing id raise."""
        with pytest.raises(RecommendationNotFoundError):
            store.mark_clicked(404)
        with pytest.raises(RecommendationNotFoundError):
            store.dismiss(404)
