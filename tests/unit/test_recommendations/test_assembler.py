"""Tests for RecommendationAssembler."""

from datetime import timedelta

import pytest

from bookrank.config import EngineConfig, ExecutionConfig
from bookrank.data_model import ReadStatus, ReasonType, RecommendationType
from bookrank.errors import ErrorClass, SignalUnavailableError, UnitTimeoutError
from bookrank.execution import Deadline
from bookrank.recommendations import (
    NOT_COMPUTED_HINT,
    GenerateOptions,
    RecommendationAssembler,
    RecommendationMetrics,
)
from bookrank.signals import SignalReader
from bookrank.store import EngineStore, RecommendationNotFoundError
from tests.helpers.catalog import CatalogBuilder, FailingSignalReader, always
from tests.helpers.time import FIXED_NOW, fixed_clock


READER = 1
FRIEND = 2


@pytest.fixture
def catalog_with_friend(catalog: CatalogBuilder) -> CatalogBuilder:
    """The reader read two fiction books; their friend is reading science fiction."""
    catalog.category(1, "fiction", "Fiction").category(2, "sci_fi", "Sci-Fi")
    catalog.item(1, "Book A", category_id=1)
    catalog.item(2, "Book B", category_id=1)
    catalog.item(3, "Book C", category_id=2)
    catalog.item(4, "Book D", category_id=1, age_days=10, trending_score=0.9)
    catalog.read(READER, 1, days_ago=1).read(READER, 2, days_ago=2)
    catalog.follow(READER, FRIEND).reading(FRIEND, 3)
    return catalog


def assembler_for(
    reader: SignalReader, store: EngineStore, config: EngineConfig | None = None
) -> RecommendationAssembler:
    return RecommendationAssembler(reader, store, store, config, clock=fixed_clock)


class TestGenerate:
    """Tests for generate_user_recommendations."""

    def test_friend_activity_and_new_release(
        self, catalog_with_friend: CatalogBuilder, store: EngineStore
    ) -> None:
        """Read items are excluded and the rest are ranked by score."""
        assembler = assembler_for(catalog_with_friend.build(), store)

        rows = assembler.generate_user_recommendations(READER)

        assert [(r.item_id, r.position) for r in rows] == [(3, 0), (4, 1)]
        friend_row, release_row = rows
        assert friend_row.reason_type == ReasonType.FRIEND_ACTIVITY
        assert friend_row.recommendation_type == RecommendationType.FRIENDS_READING
        assert friend_row.reason == "A friend is reading this"
        assert release_row.reason_type == ReasonType.NEW_IN_CATEGORY
        assert release_row.recommendation_type == RecommendationType.POPULAR_IN_CATEGORY
        assert friend_row.expires_at == FIXED_NOW + timedelta(days=7)

    def test_include_read_items(
        self, catalog_with_friend: CatalogBuilder, store: EngineStore
    ) -> None:
        """Read items come back when exclusion is off."""
        assembler = assembler_for(catalog_with_friend.build(), store)

        rows = assembler.generate_user_recommendations(
            READER, GenerateOptions(exclude_read=False)
        )

        assert {1, 2} <= {r.item_id for r in rows}

    def test_limit(self, catalog_with_friend: CatalogBuilder, store: EngineStore) -> None:
        """Only the top rows are persisted."""
        assembler = assembler_for(catalog_with_friend.build(), store)

        rows = assembler.generate_user_recommendations(READER, GenerateOptions(limit=1))

        assert [r.item_id for r in rows] == [3]
        assert store.count_live_recommendations(READER, FIXED_NOW) == 1

    def test_min_rating_drops_known_low_ratings(
        self, catalog_with_friend: CatalogBuilder, store: EngineStore
    ) -> None:
        """Items rated below the floor are dropped; unrated items stay."""
        catalog_with_friend.stat(3, average_rating=6.0, rating_count=10)
        catalog_with_friend.stat(4, average_rating=6.0, rating_count=0)
        assembler = assembler_for(catalog_with_friend.build(), store)

        rows = assembler.generate_user_recommendations(READER, GenerateOptions(min_rating=7.0))

        assert [r.item_id for r in rows] == [4]

    def test_regeneration_replaces_rows(
        self, catalog_with_friend: CatalogBuilder, store: EngineStore
    ) -> None:
        """A second run replaces the first set instead of appending."""
        assembler = assembler_for(catalog_with_friend.build(), store)

        assembler.generate_user_recommendations(READER)
        rows = assembler.generate_user_recommendations(READER)

        assert len(rows) == 2
        assert store.get_stats()["user_recommendations"] == 2

    def test_dismissed_item_stays_excluded(
        self, catalog_with_friend: CatalogBuilder, store: EngineStore
    ) -> None:
        """Dismissals survive regeneration."""
        assembler = assembler_for(catalog_with_friend.build(), store)
        rows = assembler.generate_user_recommendations(READER)

        assembler.dismiss_recommendation(rows[0].id)
        regenerated = assembler.generate_user_recommendations(READER)

        assert [r.item_id for r in regenerated] == [4]
        assert store.get_dismissed_item_ids(READER, FIXED_NOW) == {3}

    def test_failed_source_contributes_nothing(
        self, catalog_with_friend: CatalogBuilder, store: EngineStore
    ) -> None:
        """One broken source does not fail the user."""
        reader = FailingSignalReader(
            catalog_with_friend.build(), {"fetch_items_currently_read_by": always}
        )

        rows = assembler_for(reader, store).generate_user_recommendations(READER)

        assert [r.item_id for r in rows] == [4]
        assert RecommendationMetrics.get_instance().source_failures == {"social": 1}

    def test_history_failure_fails_user(
        self, catalog_with_friend: CatalogBuilder, store: EngineStore
    ) -> None:
        """Without history nothing is written."""
        reader = FailingSignalReader(
            catalog_with_friend.build(), {"fetch_user_read_history": always}
        )

        with pytest.raises(SignalUnavailableError):
            assembler_for(reader, store).generate_user_recommendations(READER)

        assert store.count_live_recommendations(READER, FIXED_NOW) == 0
        assert RecommendationMetrics.get_instance().users_failed_total == 1

    def test_expired_deadline_writes_nothing(
        self, catalog_with_friend: CatalogBuilder, store: EngineStore
    ) -> None:
        """A timed-out generation leaves the previous set alone."""
        config = EngineConfig(execution=ExecutionConfig(fanout_workers=1))
        assembler = assembler_for(catalog_with_friend.build(), store, config)
        deadline = Deadline("user:1", 1.0, clock=iter([0.0, 5.0]).__next__)

        with pytest.raises(UnitTimeoutError):
            assembler.generate_user_recommendations(READER, deadline=deadline)

        assert store.count_live_recommendations(READER, FIXED_NOW) == 0
        assert RecommendationMetrics.get_instance().users_timed_out_total == 1

    def test_default_options_follow_config(self, store: EngineStore) -> None:
        """Configured defaults become the generation defaults."""
        options = assembler_for(CatalogBuilder().build(), store).default_options()
        assert options == GenerateOptions(limit=50, exclude_read=True, min_rating=7.0)


class TestGenerateBatch:
    """Tests for generate_batch."""

    def test_failure_is_isolated_per_user(
        self, catalog_with_friend: CatalogBuilder, store: EngineStore
    ) -> None:
        """A failing user is reported while the others are written."""
        reader = FailingSignalReader(
            catalog_with_friend.build(),
            {"fetch_user_read_history": lambda user_id: user_id == 5},
        )

        result = assembler_for(reader, store).generate_batch([READER, 5])

        assert result.generated == {READER: 2}
        assert len(result.failures) == 1
        assert result.failures[0].unit == "user:5"
        assert result.failures[0].error_class == ErrorClass.SIGNAL_UNAVAILABLE
        assert not result.success


class TestReads:
    """Tests for serving persisted recommendations."""

    def test_not_computed_before_generation(self, store: EngineStore) -> None:
        """Reads never compute; an empty user gets a retry hint."""
        result = assembler_for(CatalogBuilder().build(), store).get_user_recommendations(READER)

        assert result.status == ReadStatus.NOT_COMPUTED
        assert result.recommendations == []
        assert result.hint == NOT_COMPUTED_HINT

    def test_ready_after_generation(
        self, catalog_with_friend: CatalogBuilder, store: EngineStore
    ) -> None:
        """Rows can be filtered by shelf."""
        assembler = assembler_for(catalog_with_friend.build(), store)
        assembler.generate_user_recommendations(READER)

        everything = assembler.get_user_recommendations(READER)
        friends = assembler.get_user_recommendations(
            READER, RecommendationType.FRIENDS_READING
        )

        assert everything.status == ReadStatus.READY
        assert len(everything.recommendations) == 2
        assert [r.item_id for r in friends.recommendations] == [3]
        assert friends.recommendation_type == RecommendationType.FRIENDS_READING

    def test_empty_shelf_of_computed_user_is_ready(
        self, catalog_with_friend: CatalogBuilder, store: EngineStore
    ) -> None:
        """A computed user with nothing on one shelf is READY, not NOT_COMPUTED."""
        assembler = assembler_for(catalog_with_friend.build(), store)
        assembler.generate_user_recommendations(READER)

        result = assembler.get_user_recommendations(READER, RecommendationType.FOR_YOU)

        assert result.status == ReadStatus.READY
        assert result.recommendations == []

    def test_generated_user_without_candidates_is_ready(self, store: EngineStore) -> None:
        """An empty generation is READY until it passes the expiry horizon."""
        reader = CatalogBuilder().build()
        assert assembler_for(reader, store).generate_user_recommendations(9) == []

        result = assembler_for(reader, store).get_user_recommendations(9)
        later = RecommendationAssembler(
            reader, store, store, clock=lambda: FIXED_NOW + timedelta(days=8)
        ).get_user_recommendations(9)

        assert result.status == ReadStatus.READY
        assert result.recommendations == []
        assert result.hint is None
        assert later.status == ReadStatus.NOT_COMPUTED

    def test_serve_regenerates_when_too_few(
        self, catalog_with_friend: CatalogBuilder, store: EngineStore
    ) -> None:
        """Serving regenerates only below half of the requested rows."""
        assembler = assembler_for(catalog_with_friend.build(), store)
        metrics = RecommendationMetrics.get_instance()

        first = assembler.serve_recommendations(READER, limit=4)
        assert [r.item_id for r in first] == [3, 4]
        assert metrics.serve_regenerations_total == 1

        assembler.serve_recommendations(READER, limit=4)
        assert metrics.serve_regenerations_total == 1

        assembler.serve_recommendations(READER, limit=5)
        assert metrics.serve_regenerations_total == 2

    def test_category_recommendations(
        self, catalog_with_friend: CatalogBuilder, store: EngineStore
    ) -> None:
        """Category items by trending score, minus exclusions."""
        assembler = assembler_for(catalog_with_friend.build(), store)

        items = assembler.get_category_recommendations(1, exclude_item_ids=[2], limit=5)

        assert [i.item_id for i in items] == [4, 1]


class TestInteractionFlags:
    """Tests for viewed, clicked and dismissed flags."""

    def test_flags(self, catalog_with_friend: CatalogBuilder, store: EngineStore) -> None:
        """Clicking implies viewing; dismissing hides the row."""
        assembler = assembler_for(catalog_with_friend.build(), store)
        rows = assembler.generate_user_recommendations(READER)

        assert assembler.mark_viewed([rows[0].id, 9999]) == 1
        clicked = assembler.mark_clicked(rows[1].id)
        dismissed = assembler.dismiss_recommendation(rows[0].id)

        assert clicked.is_clicked and clicked.is_viewed
        assert dismissed.is_dismissed and dismissed.is_viewed
        live = assembler.get_user_recommendations(READER).recommendations
        assert [r.item_id for r in live] == [4]

    def test_unknown_id(self, store: EngineStore) -> None:
        """Flagging a missing row raises."""
        assembler = assembler_for(CatalogBuilder().build(), store)

        with pytest.raises(RecommendationNotFoundError):
            assembler.mark_clicked(9999)
