"""SQLite-backed signal reader.

Reads the external signal store (catalog, statistics, reading activity and
social graph) from a SQLite database.
"""

import sqlite3
import threading
from collections.abc import Iterable
from datetime import datetime
from pathlib import Path

import structlog

from bookrank.data_model import ItemType
from bookrank.data_model.times import from_db_time, to_db_time
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
from bookrank.store.errors import ConnectionError as StoreConnectionError


logger = structlog.get_logger()


SIGNAL_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS categories (
    id INTEGER PRIMARY KEY,
    name TEXT NOT NULL UNIQUE,
    display_name TEXT
);

CREATE TABLE IF NOT EXISTS items (
    id INTEGER PRIMARY KEY,
    item_type TEXT NOT NULL DEFAULT 'ebook',
    title TEXT NOT NULL,
    author TEXT,
    category_id INTEGER,
    cover_url TEXT,
    created_at TEXT,
    view_count INTEGER NOT NULL DEFAULT 0,
    search_count INTEGER NOT NULL DEFAULT 0,
    trending_score REAL NOT NULL DEFAULT 0,
    is_film_adaptation INTEGER NOT NULL DEFAULT 0,
    has_audiobook INTEGER NOT NULL DEFAULT 0
);

CREATE INDEX IF NOT EXISTS idx_items_author ON items(author);
CREATE INDEX IF NOT EXISTS idx_items_category ON items(category_id);

CREATE TABLE IF NOT EXISTS item_stats (
    item_type TEXT NOT NULL,
    item_id INTEGER NOT NULL,
    total_readers INTEGER NOT NULL DEFAULT 0,
    average_rating REAL,
    rating_count INTEGER NOT NULL DEFAULT 0,
    popularity_score REAL NOT NULL DEFAULT 0,
    PRIMARY KEY (item_type, item_id)
);

CREATE TABLE IF NOT EXISTS reading_sessions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL,
    item_id INTEGER NOT NULL,
    item_type TEXT NOT NULL,
    start_time TEXT NOT NULL,
    duration_seconds INTEGER NOT NULL DEFAULT 0
);

CREATE INDEX IF NOT EXISTS idx_sessions_start ON reading_sessions(item_type, start_time);

CREATE TABLE IF NOT EXISTS reading_history (
    user_id INTEGER NOT NULL,
    item_id INTEGER NOT NULL,
    item_type TEXT NOT NULL,
    last_read_at TEXT NOT NULL,
    PRIMARY KEY (user_id, item_type, item_id)
);

CREATE TABLE IF NOT EXISTS bookshelves (
    user_id INTEGER NOT NULL,
    item_id INTEGER NOT NULL,
    item_type TEXT NOT NULL,
    status TEXT NOT NULL,
    PRIMARY KEY (user_id, item_type, item_id)
);

CREATE TABLE IF NOT EXISTS user_following (
    follower_id INTEGER NOT NULL,
    following_id INTEGER NOT NULL,
    PRIMARY KEY (follower_id, following_id)
);
"""


def _placeholders(count: int) -> str:
    return ", ".join("?" for _ in range(count))


class SqliteSignalReader:
    """SignalReader over a SQLite signal database."""

    def __init__(self, db_path: Path | str, create_schema: bool = False) -> None:
        """Initialize the reader.

        Args:
            db_path: Path to the SQLite signal database.
            create_schema: Create signal tables on connect (fixtures and imports).
        """
        self._db_path = Path(db_path) if isinstance(db_path, str) else db_path
        self._create_schema = create_schema
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.RLock()
        self._log = logger.bind(component="signals", db_path=str(self._db_path))

    @property
    def db_path(self) -> Path:
        """Get the database path."""
        return self._db_path

    def connect(self) -> None:
        """Open the database connection."""
        if self._conn is not None:
            return

        if self._create_schema:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)

        self._conn = sqlite3.connect(str(self._db_path), check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        if self._create_schema:
            self._conn.executescript(SIGNAL_SCHEMA_SQL)
            self._conn.commit()
        self._log.info("signal_store_connected")

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None
            self._log.info("signal_store_closed")

    def __enter__(self) -> "SqliteSignalReader":
        """Context manager entry."""
        self.connect()
        return self

    def __exit__(
        self,
        exc_type: type | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        """Context manager exit."""
        self.close()

    def _query(self, sql: str, params: Iterable[object] = ()) -> list[sqlite3.Row]:
        if self._conn is None:
            raise StoreConnectionError("Signal store not connected. Call connect() first.")
        with self._lock:
            return self._conn.execute(sql, tuple(params)).fetchall()

    def _row_to_item(self, row: sqlite3.Row) -> ItemMetadata:
        return ItemMetadata(
            item_id=row["id"],
            item_type=ItemType(row["item_type"]),
            title=row["title"],
            author=row["author"],
            category_id=row["category_id"],
            cover_url=row["cover_url"],
            created_at=from_db_time(row["created_at"]),
            view_count=row["view_count"] or 0,
            search_count=row["search_count"] or 0,
            trending_score=row["trending_score"] or 0.0,
            is_film_adaptation=bool(row["is_film_adaptation"]),
            has_audiobook=bool(row["has_audiobook"]),
        )

    def _row_to_stats(self, row: sqlite3.Row) -> ItemStats:
        return ItemStats(
            item_id=row["item_id"],
            item_type=ItemType(row["item_type"]),
            total_readers=row["total_readers"] or 0,
            average_rating=row["average_rating"],
            rating_count=row["rating_count"] or 0,
            popularity_score=row["popularity_score"] or 0.0,
        )

    def _items_where(
        self, where: str, order: str, params: list[object], limit: int
    ) -> list[ItemMetadata]:
        rows = self._query(
            f"SELECT * FROM items WHERE {where} ORDER BY {order}, id ASC LIMIT ?",  # noqa: S608
            [*params, limit],
        )
        return [self._row_to_item(row) for row in rows]

    # ===== Activity =====

    def fetch_reading_activity(
        self, item_type: ItemType, window: TimeWindow
    ) -> list[ReadingActivity]:
        """Aggregate sessions per item inside the window."""
        rows = self._query(
            """
            SELECT item_id, COUNT(*) AS session_count,
                   COALESCE(SUM(duration_seconds), 0) AS total_duration
            FROM reading_sessions
            WHERE item_type = ? AND start_time >= ? AND start_time <= ?
            GROUP BY item_id
            ORDER BY item_id ASC
            """,
            (item_type.value, to_db_time(window.start), to_db_time(window.end)),
        )
        return [
            ReadingActivity(
                item_id=row["item_id"],
                session_count=row["session_count"],
                total_duration_seconds=row["total_duration"],
            )
            for row in rows
        ]

    # ===== Catalog =====

    def fetch_item_metadata(self, item_ids: list[int]) -> list[ItemMetadata]:
        """Fetch metadata rows in the order requested."""
        if not item_ids:
            return []
        rows = self._query(
            f"SELECT * FROM items WHERE id IN ({_placeholders(len(item_ids))})",  # noqa: S608
            item_ids,
        )
        by_id = {row["id"]: self._row_to_item(row) for row in rows}
        return [by_id[i] for i in item_ids if i in by_id]

    def fetch_item_stats(
        self, item_type: ItemType, item_ids: list[int]
    ) -> list[ItemStats]:
        """Fetch statistics rows in the order requested."""
        if not item_ids:
            return []
        rows = self._query(
            f"""
            SELECT * FROM item_stats
            WHERE item_type = ? AND item_id IN ({_placeholders(len(item_ids))})
            """,  # noqa: S608
            [item_type.value, *item_ids],
        )
        by_id = {row["item_id"]: self._row_to_stats(row) for row in rows}
        return [by_id[i] for i in item_ids if i in by_id]

    def list_item_ids(self, limit: int) -> list[int]:
        """List catalog ids in ascending order."""
        rows = self._query("SELECT id FROM items ORDER BY id ASC LIMIT ?", (limit,))
        return [row["id"] for row in rows]

    def fetch_category(self, category_id: int) -> Category | None:
        """Fetch a category by id."""
        rows = self._query("SELECT * FROM categories WHERE id = ?", (category_id,))
        if not rows:
            return None
        row = rows[0]
        return Category(category_id=row["id"], name=row["name"], display_name=row["display_name"])

    def fetch_category_by_name(self, name: str) -> Category | None:
        """Fetch a category by machine name."""
        rows = self._query("SELECT * FROM categories WHERE name = ?", (name,))
        if not rows:
            return None
        row = rows[0]
        return Category(category_id=row["id"], name=row["name"], display_name=row["display_name"])

    def fetch_items_by_author(
        self, author: str, exclude_item_id: int | None, limit: int
    ) -> list[ItemMetadata]:
        """Fetch an author's items by view count descending."""
        return self._items_where(
            "author = ? AND id IS NOT ?",
            "view_count DESC",
            [author, exclude_item_id],
            limit,
        )

    def fetch_items_in_category(
        self, category_id: int, exclude_item_ids: list[int], limit: int
    ) -> list[ItemMetadata]:
        """Fetch a category's items by trending score descending."""
        where = "category_id = ?"
        params: list[object] = [category_id]
        if exclude_item_ids:
            where += f" AND id NOT IN ({_placeholders(len(exclude_item_ids))})"
            params.extend(exclude_item_ids)
        return self._items_where(where, "trending_score DESC", params, limit)

    def fetch_top_searched(self, min_searches: int, limit: int) -> list[ItemMetadata]:
        """Fetch items by search count descending."""
        return self._items_where("search_count >= ?", "search_count DESC", [min_searches], limit)

    def fetch_created_since(self, since: datetime, limit: int) -> list[ItemMetadata]:
        """Fetch items created at or after a timestamp by view count descending."""
        return self._items_where(
            "created_at IS NOT NULL AND created_at >= ?",
            "view_count DESC",
            [to_db_time(since)],
            limit,
        )

    def fetch_film_adaptations(self, limit: int) -> list[ItemMetadata]:
        """Fetch screen-adapted items by view count descending."""
        return self._items_where("is_film_adaptation = 1", "view_count DESC", [], limit)

    def fetch_audiobooks(self, limit: int) -> list[ItemMetadata]:
        """Fetch items with an audiobook edition by view count descending."""
        return self._items_where("has_audiobook = 1", "view_count DESC", [], limit)

    def fetch_trending_items(self, min_score: float, limit: int) -> list[ItemMetadata]:
        """Fetch items at or above a trending score."""
        return self._items_where(
            "trending_score >= ?", "trending_score DESC", [min_score], limit
        )

    def fetch_most_popular_stats(
        self, item_type: ItemType, limit: int
    ) -> list[ItemStats]:
        """Fetch statistics by popularity score descending."""
        rows = self._query(
            """
            SELECT * FROM item_stats WHERE item_type = ?
            ORDER BY popularity_score DESC, item_id ASC LIMIT ?
            """,
            (item_type.value, limit),
        )
        return [self._row_to_stats(row) for row in rows]

    def fetch_rated_stats(
        self,
        item_type: ItemType,
        min_rating: float,
        min_rating_count: int,
        max_readers: int | None,
        limit: int,
    ) -> list[ItemStats]:
        """Fetch statistics passing rating gates by rating descending."""
        where = (
            "item_type = ? AND average_rating IS NOT NULL "
            "AND average_rating >= ? AND rating_count >= ?"
        )
        params: list[object] = [item_type.value, min_rating, min_rating_count]
        if max_readers is not None:
            where += " AND total_readers <= ?"
            params.append(max_readers)
        rows = self._query(
            f"""
            SELECT * FROM item_stats WHERE {where}
            ORDER BY average_rating DESC, item_id ASC LIMIT ?
            """,  # noqa: S608
            [*params, limit],
        )
        return [self._row_to_stats(row) for row in rows]

    # ===== Users =====

    def fetch_user_read_history(self, user_id: int) -> UserReadHistory:
        """Fetch read items most recent first and currently-reading items."""
        read_rows = self._query(
            """
            SELECT item_id, MAX(last_read_at) AS last_read_at FROM reading_history
            WHERE user_id = ?
            GROUP BY item_id
            ORDER BY last_read_at DESC, item_id ASC
            """,
            (user_id,),
        )
        shelf_rows = self._query(
            """
            SELECT DISTINCT item_id FROM bookshelves
            WHERE user_id = ? AND status = 'reading'
            ORDER BY item_id ASC
            """,
            (user_id,),
        )
        return UserReadHistory(
            read_item_ids=[row["item_id"] for row in read_rows],
            currently_reading_item_ids=[row["item_id"] for row in shelf_rows],
        )

    def fetch_user_social_graph(self, user_id: int) -> SocialGraph:
        """Fetch followed users."""
        rows = self._query(
            """
            SELECT following_id FROM user_following
            WHERE follower_id = ? ORDER BY following_id ASC
            """,
            (user_id,),
        )
        return SocialGraph(following_user_ids=[row["following_id"] for row in rows])

    def fetch_co_occurring_readers(
        self, item_type: ItemType, item_id: int, limit: int
    ) -> list[int]:
        """Fetch users whose history contains the item."""
        rows = self._query(
            """
            SELECT DISTINCT user_id FROM reading_history
            WHERE item_type = ? AND item_id = ?
            ORDER BY user_id ASC LIMIT ?
            """,
            (item_type.value, item_id, limit),
        )
        return [row["user_id"] for row in rows]

    def fetch_items_read_by_users(
        self,
        item_type: ItemType,
        user_ids: list[int],
        exclude_item_id: int | None,
        limit: int,
    ) -> list[ItemUserCount]:
        """Count distinct users per item over the users' history."""
        if not user_ids:
            return []
        rows = self._query(
            f"""
            SELECT item_id, COUNT(DISTINCT user_id) AS user_count FROM reading_history
            WHERE item_type = ?
              AND user_id IN ({_placeholders(len(user_ids))})
              AND item_id IS NOT ?
            GROUP BY item_id
            ORDER BY user_count DESC, item_id ASC
            LIMIT ?
            """,  # noqa: S608
            [item_type.value, *user_ids, exclude_item_id, limit],
        )
        return [ItemUserCount(item_id=row["item_id"], user_count=row["user_count"]) for row in rows]

    def fetch_items_currently_read_by(
        self, user_ids: list[int], limit: int
    ) -> list[ItemUserCount]:
        """Count distinct users currently reading each item."""
        if not user_ids:
            return []
        rows = self._query(
            f"""
            SELECT item_id, COUNT(DISTINCT user_id) AS user_count FROM bookshelves
            WHERE user_id IN ({_placeholders(len(user_ids))}) AND status = 'reading'
            GROUP BY item_id
            ORDER BY user_count DESC, item_id ASC
            LIMIT ?
            """,  # noqa: S608
            [*user_ids, limit],
        )
        return [ItemUserCount(item_id=row["item_id"], user_count=row["user_count"]) for row in rows]

    # ===== Writes =====

    def write_trending_scores(self, scores: dict[int, float]) -> int:
        """Store refreshed trending scores on catalog rows."""
        if self._conn is None:
            raise StoreConnectionError("Signal store not connected. Call connect() first.")
        with self._lock:
            cursor = self._conn.executemany(
                "UPDATE items SET trending_score = ? WHERE id = ?",
                [(score, item_id) for item_id, score in scores.items()],
            )
            self._conn.commit()
        self._log.info("trending_scores_written", count=cursor.rowcount)
        return cursor.rowcount

    def insert_records(
        self,
        items: Iterable[ItemMetadata] = (),
        stats: Iterable[ItemStats] = (),
        categories: Iterable[Category] = (),
        sessions: Iterable[ReadingSession] = (),
        history: Iterable[HistoryEntry] = (),
        shelves: Iterable[ShelfEntry] = (),
        following: dict[int, list[int]] | None = None,
    ) -> None:
        """Load signal records (fixtures and imports).

        Args:
            items: Catalog metadata rows.
            stats: Reader statistics rows.
            categories: Catalog categories.
            sessions: Raw reading sessions.
            history: Raw reading-history rows.
            shelves: Raw bookshelf rows.
            following: Mapping of user id to followed user ids.
        """
        if self._conn is None:
            raise StoreConnectionError("Signal store not connected. Call connect() first.")
        with self._lock:
            conn = self._conn
            conn.executemany(
                "INSERT OR REPLACE INTO categories (id, name, display_name) VALUES (?, ?, ?)",
                [(c.category_id, c.name, c.display_name) for c in categories],
            )
            conn.executemany(
                """
                INSERT OR REPLACE INTO items (
                    id, item_type, title, author, category_id, cover_url, created_at,
                    view_count, search_count, trending_score, is_film_adaptation, has_audiobook
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    (
                        i.item_id,
                        i.item_type.value,
                        i.title,
                        i.author,
                        i.category_id,
                        i.cover_url,
                        to_db_time(i.created_at) if i.created_at else None,
                        i.view_count,
                        i.search_count,
                        i.trending_score,
                        int(i.is_film_adaptation),
                        int(i.has_audiobook),
                    )
                    for i in items
                ],
            )
            conn.executemany(
                """
                INSERT OR REPLACE INTO item_stats (
                    item_type, item_id, total_readers, average_rating, rating_count,
                    popularity_score
                ) VALUES (?, ?, ?, ?, ?, ?)
                """,
                [
                    (
                        s.item_type.value,
                        s.item_id,
                        s.total_readers,
                        s.average_rating,
                        s.rating_count,
                        s.popularity_score,
                    )
                    for s in stats
                ],
            )
            conn.executemany(
                """
                INSERT INTO reading_sessions (
                    user_id, item_id, item_type, start_time, duration_seconds
                )
                VALUES (?, ?, ?, ?, ?)
                """,
                [
                    (
                        s.user_id,
                        s.item_id,
                        s.item_type.value,
                        to_db_time(s.start_time),
                        s.duration_seconds,
                    )
                    for s in sessions
                ],
            )
            conn.executemany(
                """
                INSERT OR REPLACE INTO reading_history (user_id, item_id, item_type, last_read_at)
                VALUES (?, ?, ?, ?)
                """,
                [
                    (h.user_id, h.item_id, h.item_type.value, to_db_time(h.last_read_at))
                    for h in history
                ],
            )
            conn.executemany(
                """
                INSERT OR REPLACE INTO bookshelves (user_id, item_id, item_type, status)
                VALUES (?, ?, ?, ?)
                """,
                [(s.user_id, s.item_id, s.item_type.value, s.status) for s in shelves],
            )
            conn.executemany(
                "INSERT OR IGNORE INTO user_following (follower_id, following_id) VALUES (?, ?)",
                [
                    (follower, followed)
                    for follower, followed_ids in (following or {}).items()
                    for followed in followed_ids
                ],
            )
            conn.commit()
