"""In-memory signal reader.

Backed by plain lists of signal records; used by tests and by callers that
already hold a catalog snapshot in memory. Query ordering matches
SqliteSignalReader so both readers produce identical engine output.
"""

import threading
from collections import defaultdict
from collections.abc import Iterable
from datetime import datetime

from bookrank.data_model import ItemType
from bookrank.signals.models import (
    Category,
    HistoryEntry,
    ItemMetadata,
    ItemStats,
    ItemUserCount,
    ReadingActivity,
    ReadingSession,
    ShelfEntry,
    SocialGraph,
    TimeWindow,
    UserReadHistory,
)


def _count_users(
    pairs: Iterable[tuple[int, int]], limit: int
) -> list[ItemUserCount]:
    """Count distinct users per item from (user_id, item_id) pairs."""
    users_by_item: dict[int, set[int]] = defaultdict(set)
    for user_id, item_id in pairs:
        users_by_item[item_id].add(user_id)
    counts = [
        ItemUserCount(item_id=item_id, user_count=len(users))
        for item_id, users in users_by_item.items()
    ]
    counts.sort(key=lambda c: (-c.user_count, c.item_id))
    return counts[:limit]


class InMemorySignalReader:
    """SignalReader over in-memory records."""

    def __init__(
        self,
        items: Iterable[ItemMetadata] = (),
        stats: Iterable[ItemStats] = (),
        categories: Iterable[Category] = (),
        sessions: Iterable[ReadingSession] = (),
        history: Iterable[HistoryEntry] = (),
        shelves: Iterable[ShelfEntry] = (),
        following: dict[int, list[int]] | None = None,
    ) -> None:
        """Initialize the reader.

        Args:
            items: Catalog metadata rows.
            stats: Reader statistics rows.
            categories: Catalog categories.
            sessions: Raw reading sessions.
            history: Raw reading-history rows.
            shelves: Raw bookshelf rows.
            following: Mapping of user id to followed user ids.
        """
        self._items: dict[int, ItemMetadata] = {i.item_id: i for i in items}
        self._stats: dict[tuple[ItemType, int], ItemStats] = {
            (s.item_type, s.item_id): s for s in stats
        }
        self._categories: dict[int, Category] = {c.category_id: c for c in categories}
        self._sessions = list(sessions)
        self._history = list(history)
        self._shelves = list(shelves)
        self._following = {k: list(v) for k, v in (following or {}).items()}
        self._lock = threading.Lock()

    # ===== Activity =====

    def fetch_reading_activity(
        self, item_type: ItemType, window: TimeWindow
    ) -> list[ReadingActivity]:
        """Aggregate sessions per item inside the window."""
        sessions: dict[int, int] = defaultdict(int)
        durations: dict[int, int] = defaultdict(int)
        for session in self._sessions:
            if session.item_type != item_type or not window.contains(session.start_time):
                continue
            sessions[session.item_id] += 1
            durations[session.item_id] += session.duration_seconds
        return [
            ReadingActivity(
                item_id=item_id,
                session_count=sessions[item_id],
                total_duration_seconds=durations[item_id],
            )
            for item_id in sorted(sessions)
        ]

    # ===== Catalog =====

    def _catalog(self) -> list[ItemMetadata]:
        with self._lock:
            return sorted(self._items.values(), key=lambda i: i.item_id)

    def fetch_item_metadata(self, item_ids: list[int]) -> list[ItemMetadata]:
        """Fetch metadata rows in the order requested."""
        with self._lock:
            return [self._items[i] for i in item_ids if i in self._items]

    def fetch_item_stats(
        self, item_type: ItemType, item_ids: list[int]
    ) -> list[ItemStats]:
        """Fetch statistics rows in the order requested."""
        return [
            self._stats[(item_type, i)] for i in item_ids if (item_type, i) in self._stats
        ]

    def list_item_ids(self, limit: int) -> list[int]:
        """List catalog ids in ascending order."""
        return [i.item_id for i in self._catalog()][:limit]

    def fetch_category(self, category_id: int) -> Category | None:
        """Fetch a category by id."""
        return self._categories.get(category_id)

    def fetch_category_by_name(self, name: str) -> Category | None:
        """Fetch a category by machine name."""
        for category in sorted(self._categories.values(), key=lambda c: c.category_id):
            if category.name == name:
                return category
        return None

    def fetch_items_by_author(
        self, author: str, exclude_item_id: int | None, limit: int
    ) -> list[ItemMetadata]:
        """Fetch an author's items by view count descending."""
        matches = [
            i for i in self._catalog() if i.author == author and i.item_id != exclude_item_id
        ]
        matches.sort(key=lambda i: (-i.view_count, i.item_id))
        return matches[:limit]

    def fetch_items_in_category(
        self, category_id: int, exclude_item_ids: list[int], limit: int
    ) -> list[ItemMetadata]:
        """Fetch a category's items by trending score descending."""
        excluded = set(exclude_item_ids)
        matches = [
            i
            for i in self._catalog()
            if i.category_id == category_id and i.item_id not in excluded
        ]
        matches.sort(key=lambda i: (-i.trending_score, i.item_id))
        return matches[:limit]

    def fetch_top_searched(self, min_searches: int, limit: int) -> list[ItemMetadata]:
        """Fetch items by search count descending."""
        matches = [i for i in self._catalog() if i.search_count >= min_searches]
        matches.sort(key=lambda i: (-i.search_count, i.item_id))
        return matches[:limit]

    def fetch_created_since(self, since: datetime, limit: int) -> list[ItemMetadata]:
        """Fetch items created at or after a timestamp by view count descending."""
        matches = [
            i for i in self._catalog() if i.created_at is not None and i.created_at >= since
        ]
        matches.sort(key=lambda i: (-i.view_count, i.item_id))
        return matches[:limit]

    def fetch_film_adaptations(self, limit: int) -> list[ItemMetadata]:
        """Fetch screen-adapted items by view count descending."""
        matches = [i for i in self._catalog() if i.is_film_adaptation]
        matches.sort(key=lambda i: (-i.view_count, i.item_id))
        return matches[:limit]

    def fetch_audiobooks(self, limit: int) -> list[ItemMetadata]:
        """Fetch items with an audiobook edition by view count descending."""
        matches = [i for i in self._catalog() if i.has_audiobook]
        matches.sort(key=lambda i: (-i.view_count, i.item_id))
        return matches[:limit]

    def fetch_trending_items(self, min_score: float, limit: int) -> list[ItemMetadata]:
        """Fetch items at or above a trending score."""
        matches = [i for i in self._catalog() if i.trending_score >= min_score]
        matches.sort(key=lambda i: (-i.trending_score, i.item_id))
        return matches[:limit]

    def fetch_most_popular_stats(
        self, item_type: ItemType, limit: int
    ) -> list[ItemStats]:
        """Fetch statistics by popularity score descending."""
        matches = [s for (t, _), s in self._stats.items() if t == item_type]
        matches.sort(key=lambda s: (-s.popularity_score, s.item_id))
        return matches[:limit]

    def fetch_rated_stats(
        self,
        item_type: ItemType,
        min_rating: float,
        min_rating_count: int,
        max_readers: int | None,
        limit: int,
    ) -> list[ItemStats]:
        """Fetch statistics passing rating gates by rating descending."""
        matches = [
            s
            for (t, _), s in self._stats.items()
            if t == item_type
            and s.average_rating is not None
            and s.average_rating >= min_rating
            and s.rating_count >= min_rating_count
            and (max_readers is None or s.total_readers <= max_readers)
        ]
        matches.sort(key=lambda s: (-(s.average_rating or 0.0), s.item_id))
        return matches[:limit]

    # ===== Users =====

    def fetch_user_read_history(self, user_id: int) -> UserReadHistory:
        """Fetch read items most recent first and currently-reading items."""
        entries = [h for h in self._history if h.user_id == user_id]
        entries.sort(key=lambda h: (-h.last_read_at.timestamp(), h.item_id))
        read_ids: list[int] = []
        for entry in entries:
            if entry.item_id not in read_ids:
                read_ids.append(entry.item_id)
        reading = sorted(
            {s.item_id for s in self._shelves if s.user_id == user_id and s.status == "reading"}
        )
        return UserReadHistory(read_item_ids=read_ids, currently_reading_item_ids=reading)

    def fetch_user_social_graph(self, user_id: int) -> SocialGraph:
        """Fetch followed users."""
        return SocialGraph(following_user_ids=sorted(self._following.get(user_id, [])))

    def fetch_co_occurring_readers(
        self, item_type: ItemType, item_id: int, limit: int
    ) -> list[int]:
        """Fetch users whose history contains the item."""
        return sorted(
            {
                h.user_id
                for h in self._history
                if h.item_type == item_type and h.item_id == item_id
            }
        )[:limit]

    def fetch_items_read_by_users(
        self,
        item_type: ItemType,
        user_ids: list[int],
        exclude_item_id: int | None,
        limit: int,
    ) -> list[ItemUserCount]:
        """Count distinct users per item over the users' history."""
        wanted = set(user_ids)
        return _count_users(
            (
                (h.user_id, h.item_id)
                for h in self._history
                if h.user_id in wanted
                and h.item_type == item_type
                and h.item_id != exclude_item_id
            ),
            limit,
        )

    def fetch_items_currently_read_by(
        self, user_ids: list[int], limit: int
    ) -> list[ItemUserCount]:
        """Count distinct users currently reading each item."""
        wanted = set(user_ids)
        return _count_users(
            (
                (s.user_id, s.item_id)
                for s in self._shelves
                if s.user_id in wanted and s.status == "reading"
            ),
            limit,
        )

    # ===== Writes =====

    def write_trending_scores(self, scores: dict[int, float]) -> int:
        """Store refreshed trending scores on catalog rows."""
        updated = 0
        with self._lock:
            for item_id, score in scores.items():
                item = self._items.get(item_id)
                if item is None:
                    continue
                self._items[item_id] = item.model_copy(update={"trending_score": score})
                updated += 1
        return updated
