"""Protocol interfaces for signal readers.

Signal readers are read-only views over the external signal store:
reading sessions, bookshelf status, catalog metadata, reader statistics
and the social graph. Every list-returning query has a deterministic
order (its primary sort key, then ascending item id) so scoring runs are
reproducible.
"""

from datetime import datetime
from typing import Protocol, runtime_checkable

from bookrank.data_model import ItemType
from bookrank.signals.models import (
    Category,
    ItemMetadata,
    ItemStats,
    ItemUserCount,
    ReadingActivity,
    SocialGraph,
    TimeWindow,
    UserReadHistory,
)


@runtime_checkable
class SignalReader(Protocol):
    """Read interface consumed by scorers, builders and assemblers."""

    def fetch_reading_activity(
        self, item_type: ItemType, window: TimeWindow
    ) -> list[ReadingActivity]:
        """Aggregate reading sessions per item inside a window.

        Returns:
            Activity rows ordered by item id.
        """
        ...

    def fetch_item_metadata(self, item_ids: list[int]) -> list[ItemMetadata]:
        """Fetch catalog metadata for the given items (missing ids are skipped)."""
        ...

    def fetch_item_stats(
        self, item_type: ItemType, item_ids: list[int]
    ) -> list[ItemStats]:
        """Fetch reader statistics for the given items (missing ids are skipped)."""
        ...

    def fetch_user_read_history(self, user_id: int) -> UserReadHistory:
        """Fetch read items (most recent first) and currently-reading items."""
        ...

    def fetch_user_social_graph(self, user_id: int) -> SocialGraph:
        """Fetch the users a user follows."""
        ...

    def fetch_co_occurring_readers(
        self, item_type: ItemType, item_id: int, limit: int
    ) -> list[int]:
        """Fetch ids of users who read an item of the given type, ordered by user id."""
        ...

    def fetch_items_read_by_users(
        self,
        item_type: ItemType,
        user_ids: list[int],
        exclude_item_id: int | None,
        limit: int,
    ) -> list[ItemUserCount]:
        """Count distinct users per item of the given type over the users' history.

        Returns:
            Counts ordered by user count descending.
        """
        ...

    def fetch_items_currently_read_by(
        self, user_ids: list[int], limit: int
    ) -> list[ItemUserCount]:
        """Count distinct users currently reading each item.

        Returns:
            Counts ordered by user count descending.
        """
        ...

    def list_item_ids(self, limit: int) -> list[int]:
        """List catalog item ids in ascending order."""
        ...

    def fetch_category(self, category_id: int) -> Category | None:
        """Fetch a category by id."""
        ...

    def fetch_category_by_name(self, name: str) -> Category | None:
        """Fetch a category by its machine name."""
        ...

    def fetch_items_by_author(
        self, author: str, exclude_item_id: int | None, limit: int
    ) -> list[ItemMetadata]:
        """Fetch an author's items ordered by view count descending."""
        ...

    def fetch_items_in_category(
        self, category_id: int, exclude_item_ids: list[int], limit: int
    ) -> list[ItemMetadata]:
        """Fetch a category's items ordered by trending score descending."""
        ...

    def fetch_top_searched(self, min_searches: int, limit: int) -> list[ItemMetadata]:
        """Fetch items ordered by search count descending."""
        ...

    def fetch_created_since(self, since: datetime, limit: int) -> list[ItemMetadata]:
        """Fetch items created at or after a timestamp, by view count descending."""
        ...

    def fetch_film_adaptations(self, limit: int) -> list[ItemMetadata]:
        """Fetch screen-adapted items ordered by view count descending."""
        ...

    def fetch_audiobooks(self, limit: int) -> list[ItemMetadata]:
        """Fetch items with an audiobook edition ordered by view count descending."""
        ...

    def fetch_trending_items(self, min_score: float, limit: int) -> list[ItemMetadata]:
        """Fetch items at or above a trending score, by trending score descending."""
        ...

    def fetch_most_popular_stats(
        self, item_type: ItemType, limit: int
    ) -> list[ItemStats]:
        """Fetch statistics ordered by popularity score descending."""
        ...

    def fetch_rated_stats(
        self,
        item_type: ItemType,
        min_rating: float,
        min_rating_count: int,
        max_readers: int | None,
        limit: int,
    ) -> list[ItemStats]:
        """Fetch statistics passing rating gates, by average rating descending."""
        ...


@runtime_checkable
class TrendingScoreWriter(Protocol):
    """Optional capability: persist refreshed item trending scores."""

    def write_trending_scores(self, scores: dict[int, float]) -> int:
        """Write trending scores keyed by item id.

        Returns:
            Number of items updated.
        """
        ...
