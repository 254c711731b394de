"""Tests for user context construction."""

import pytest

from bookrank.config import RecommendationWeights
from bookrank.errors import SignalUnavailableError
from bookrank.recommendations import build_user_context
from bookrank.signals import InMemorySignalReader
from tests.helpers.catalog import CatalogBuilder, FailingSignalReader, always


@pytest.fixture
def reader(catalog: CatalogBuilder) -> InMemorySignalReader:
    """User 7 read three books by two authors in two categories."""
    catalog.item(1, author="Ann", category_id=1)
    catalog.item(2, author="Ann", category_id=1)
    catalog.item(3, author="Bob", category_id=2)
    catalog.item(4)
    catalog.read(7, 1, days_ago=1).read(7, 2, days_ago=2).read(7, 3, days_ago=3)
    catalog.reading(7, 4)
    catalog.follow(7, 9, 8)
    return catalog.build()


class TestBuildUserContext:
    """Tests for build_user_context."""

    def test_full_context(self, reader: InMemorySignalReader) -> None:
        """History, preferences and social graph are assembled."""
        context = build_user_context(reader, 7, RecommendationWeights())

        assert context.read_item_ids == [1, 2, 3]
        assert context.currently_reading_item_ids == [4]
        assert context.preferred_category_ids == [1, 2]
        assert context.favorite_authors == ["Ann", "Bob"]
        assert context.following_user_ids == [8, 9]
        assert context.seen_item_ids == {1, 2, 3, 4}

    def test_concurrent_fetches_match_sequential(self, reader: InMemorySignalReader) -> None:
        """Fan-out width does not change the result."""
        weights = RecommendationWeights()
        assert build_user_context(reader, 7, weights, max_workers=4) == build_user_context(
            reader, 7, weights, max_workers=1
        )

    def test_preference_lists_are_capped(self, reader: InMemorySignalReader) -> None:
        """Only the most frequent categories and authors are kept."""
        weights = RecommendationWeights(preferred_categories=1, favorite_authors=1)

        context = build_user_context(reader, 7, weights)

        assert context.preferred_category_ids == [1]
        assert context.favorite_authors == ["Ann"]

    def test_new_user_has_empty_context(self, reader: InMemorySignalReader) -> None:
        """A user with no signals gets an empty but valid context."""
        context = build_user_context(reader, 99, RecommendationWeights())

        assert context.read_item_ids == []
        assert context.preferred_category_ids == []
        assert context.following_user_ids == []

    def test_history_is_load_bearing(self, reader: InMemorySignalReader) -> None:
        """Without the read history there is no context."""
        failing = FailingSignalReader(reader, {"fetch_user_read_history": always})

        with pytest.raises(SignalUnavailableError) as exc_info:
            build_user_context(failing, 7, RecommendationWeights())

        assert exc_info.value.unit == "user:7"

    def test_social_graph_is_optional(self, reader: InMemorySignalReader) -> None:
        """A failed social read leaves the user following nobody."""
        failing = FailingSignalReader(reader, {"fetch_user_social_graph": always})

        context = build_user_context(failing, 7, RecommendationWeights())

        assert context.following_user_ids == []
        assert context.read_item_ids == [1, 2, 3]

    def test_preferences_are_optional(self, reader: InMemorySignalReader) -> None:
        """A failed metadata read leaves preferences empty."""
        failing = FailingSignalReader(reader, {"fetch_item_metadata": always})

        context = build_user_context(failing, 7, RecommendationWeights())

        assert context.preferred_category_ids == []
        assert context.favorite_authors == []
        assert context.read_item_ids == [1, 2, 3]
