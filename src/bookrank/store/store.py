"""SQLite engine store implementation."""

import sqlite3
import threading
import time
import uuid
from collections.abc import Generator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path

import structlog

from bookrank.data_model import (
    EvaluationTag,
    ItemType,
    PeriodType,
    RankingType,
    ReasonType,
    RecommendationType,
    RelationType,
)
from bookrank.data_model.times import from_db_time, to_db_time
from bookrank.store.errors import (
    ConnectionError as StoreConnectionError,
    RecommendationNotFoundError,
    SnapshotNotFoundError,
)
from bookrank.store.metrics import StoreMetrics, TransactionContext
from bookrank.store.migrations import CURRENT_VERSION, MigrationManager
from bookrank.store.models import (
    RankedEntry,
    RankingEntry,
    RankingSnapshot,
    RecommendationDraft,
    RelatedItemEdge,
    SnapshotDraft,
    UserRecommendation,
)


logger = structlog.get_logger()


def _required_time(value: str) -> datetime:
    parsed = from_db_time(value)
    if parsed is None:
        msg = "missing timestamp in non-null column"
        raise ValueError(msg)
    return parsed


class EngineStore:
    """SQLite store for ranking snapshots, relatedness edges and recommendations.

    Implements RankingRepository, RelatedItemRepository and
    RecommendationRepository. A single connection is shared across worker
    threads; every read and every transaction holds the store lock, so a
    reader never observes a half-applied snapshot swap or replace-set.
    """

    def __init__(self, db_path: Path | str, run_id: str | None = None) -> None:
        """Initialize the store.

        Args:
            db_path: Path to SQLite database file, or ":memory:".
            run_id: Optional run ID for logging context.
        """
        self._db_path = Path(db_path) if isinstance(db_path, str) else db_path
        self._run_id = run_id or str(uuid.uuid4())
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.RLock()
        self._metrics = StoreMetrics.get_instance()
        self._log = logger.bind(
            component="store",
            run_id=self._run_id,
            db_path=str(self._db_path),
        )

    @property
    def db_path(self) -> Path:
        """Get the database path."""
        return self._db_path

    @property
    def run_id(self) -> str:
        """Get the current run ID."""
        return self._run_id

    @property
    def is_connected(self) -> bool:
        """Check if connected to database."""
        return self._conn is not None

    def connect(self) -> None:
        """Open connection to database and apply migrations.

        Creates the database file and parent directories if they don't exist.
        Enables WAL mode for reliability.
        """
        if self._conn is not None:
            return

        in_memory = str(self._db_path) == ":memory:"
        if not in_memory:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)

        self._log.info("connecting_to_database")

        self._conn = sqlite3.connect(str(self._db_path), check_same_thread=False)
        self._conn.row_factory = sqlite3.Row

        if not in_memory:
            self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA synchronous=NORMAL")
        self._conn.execute("PRAGMA foreign_keys=ON")

        migration_mgr = MigrationManager(self._conn)
        old_version = migration_mgr.get_current_version()
        applied = migration_mgr.apply_migrations()

        self._log.info(
            "database_connected",
            old_version=old_version,
            new_version=CURRENT_VERSION,
            migrations_applied=applied,
        )

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None
            self._log.info("database_closed")

    def __enter__(self) -> "EngineStore":
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

    def _ensure_connected(self) -> sqlite3.Connection:
        """Ensure database is connected.

        Returns:
            The database connection.

        Raises:
            StoreConnectionError: If not connected.
        """
        if self._conn is None:
            raise StoreConnectionError("Database not connected. Call connect() first.")
        return self._conn

    def _read(self, sql: str, params: tuple[object, ...] = ()) -> list[sqlite3.Row]:
        conn = self._ensure_connected()
        with self._lock:
            return conn.execute(sql, params).fetchall()

    @contextmanager
    def _transaction(self, operation: str) -> Generator[TransactionContext]:
        """Context manager for transactions with timing and logging.

        Holds the store lock for the whole transaction.

        Args:
            operation: Name of the operation for logging.

        Yields:
            Transaction context with timing information.
        """
        conn = self._ensure_connected()
        tx_id = str(uuid.uuid4())[:8]

        with self._lock:
            start_ns = time.perf_counter_ns()
            ctx = TransactionContext(tx_id=tx_id, start_time_ns=start_ns, operation=operation)
            self._log.debug("transaction_started", tx_id=tx_id, op=operation)

            try:
                yield ctx
                conn.commit()
            except Exception:
                conn.rollback()
                duration_ms = (time.perf_counter_ns() - start_ns) / 1_000_000
                self._metrics.record_tx_failed()
                self._log.error(
                    "transaction_failed",
                    tx_id=tx_id,
                    op=operation,
                    duration_ms=round(duration_ms, 2),
                )
                raise

            duration_ms = (time.perf_counter_ns() - start_ns) / 1_000_000
            self._metrics.record_tx_duration(duration_ms)
            self._log.info(
                "transaction_complete",
                tx_id=tx_id,
                op=operation,
                affected_rows=ctx.affected_rows,
                duration_ms=round(duration_ms, 2),
            )

    # ===== Ranking Snapshots =====

    def swap_active_snapshot(
        self, draft: SnapshotDraft, entries: list[RankedEntry]
    ) -> RankingSnapshot:
        """Atomically replace the active snapshot of a ranking type.

        Deactivates every existing snapshot of the type and inserts the new
        snapshot with its entries as active, in one transaction.

        Args:
            draft: Snapshot to insert.
            entries: Ranked entries of the snapshot.

        Returns:
            The persisted active snapshot.
        """
        with self._transaction("swap_active_snapshot") as ctx:
            conn = self._ensure_connected()
            cursor = conn.execute(
                "UPDATE ranking_snapshots SET is_active = 0 "
                "WHERE ranking_type = ? AND is_active = 1",
                (draft.ranking_type.value,),
            )
            ctx.add_affected_rows(cursor.rowcount)

            cursor = conn.execute(
                """
                INSERT INTO ranking_snapshots (
                    ranking_type, period_type, period_start, period_end,
                    display_name, theme_color, description,
                    computed_at, expires_at, is_active
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, 1)
                """,
                (
                    draft.ranking_type.value,
                    draft.period_type.value,
                    to_db_time(draft.period_start),
                    to_db_time(draft.period_end),
                    draft.display_name,
                    draft.theme_color,
                    draft.description,
                    to_db_time(draft.computed_at),
                    to_db_time(draft.expires_at),
                ),
            )
            snapshot_id = cursor.lastrowid
            if snapshot_id is None:
                msg = "snapshot insert returned no row id"
                raise RuntimeError(msg)
            ctx.add_affected_rows(1)

            conn.executemany(
                """
                INSERT INTO ranking_entries (
                    snapshot_id, item_id, item_type, rank, previous_rank, rank_change,
                    score, reader_count, rating, evaluation_tag, title, author, cover_url
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    (
                        snapshot_id,
                        e.item_id,
                        e.item_type.value,
                        e.rank,
                        e.previous_rank,
                        e.rank_change,
                        e.score,
                        e.reader_count,
                        e.rating,
                        e.evaluation_tag.value if e.evaluation_tag else None,
                        e.title,
                        e.author,
                        e.cover_url,
                    )
                    for e in entries
                ],
            )
            ctx.add_affected_rows(len(entries))

        self._metrics.record_snapshot_swap(len(entries))
        self._log.info(
            "snapshot_swapped",
            ranking_type=draft.ranking_type.value,
            snapshot_id=snapshot_id,
            entry_count=len(entries),
        )
        return RankingSnapshot(id=snapshot_id, is_active=True, **draft.model_dump())

    def _row_to_snapshot(self, row: sqlite3.Row) -> RankingSnapshot:
        return RankingSnapshot(
            id=row["id"],
            ranking_type=RankingType(row["ranking_type"]),
            period_type=PeriodType(row["period_type"]),
            period_start=_required_time(row["period_start"]),
            period_end=_required_time(row["period_end"]),
            display_name=row["display_name"],
            theme_color=row["theme_color"],
            description=row["description"],
            computed_at=_required_time(row["computed_at"]),
            expires_at=_required_time(row["expires_at"]),
            is_active=bool(row["is_active"]),
        )

    def get_snapshot(self, snapshot_id: int) -> RankingSnapshot:
        """Get a snapshot by id.

        Raises:
            SnapshotNotFoundError: If the id does not exist.
        """
        rows = self._read("SELECT * FROM ranking_snapshots WHERE id = ?", (snapshot_id,))
        if not rows:
            raise SnapshotNotFoundError(snapshot_id)
        return self._row_to_snapshot(rows[0])

    def get_active_snapshot(self, ranking_type: RankingType) -> RankingSnapshot | None:
        """Get the active snapshot of a ranking type.

        Args:
            ranking_type: Ranking type key.

        Returns:
            The active snapshot, or None if the type was never computed.
        """
        rows = self._read(
            "SELECT * FROM ranking_snapshots WHERE ranking_type = ? AND is_active = 1",
            (ranking_type.value,),
        )
        return self._row_to_snapshot(rows[0]) if rows else None

    def get_latest_snapshot(self, ranking_type: RankingType) -> RankingSnapshot | None:
        """Get the most recent snapshot of a type regardless of the active flag."""
        rows = self._read(
            """
            SELECT * FROM ranking_snapshots WHERE ranking_type = ?
            ORDER BY computed_at DESC, id DESC LIMIT 1
            """,
            (ranking_type.value,),
        )
        return self._row_to_snapshot(rows[0]) if rows else None

    def list_active_snapshots(self, now: datetime) -> list[RankingSnapshot]:
        """List active, non-expired snapshots ordered by ranking type."""
        rows = self._read(
            """
            SELECT * FROM ranking_snapshots WHERE is_active = 1 AND expires_at >= ?
            ORDER BY ranking_type ASC
            """,
            (to_db_time(now),),
        )
        return [self._row_to_snapshot(row) for row in rows]

    def count_active_snapshots(self, ranking_type: RankingType) -> int:
        """Count active snapshots of a type (zero or one under correct operation)."""
        rows = self._read(
            "SELECT COUNT(*) FROM ranking_snapshots WHERE ranking_type = ? AND is_active = 1",
            (ranking_type.value,),
        )
        return rows[0][0]

    def get_snapshot_entries(
        self, snapshot_id: int, limit: int | None = None, offset: int = 0
    ) -> list[RankingEntry]:
        """Page the entries of a snapshot ordered by rank.

        Args:
            snapshot_id: Snapshot id.
            limit: Maximum entries returned (all when None).
            offset: Entries skipped.

        Returns:
            Entries ordered by rank.
        """
        rows = self._read(
            """
            SELECT * FROM ranking_entries WHERE snapshot_id = ?
            ORDER BY rank ASC LIMIT ? OFFSET ?
            """,
            (snapshot_id, -1 if limit is None else limit, offset),
        )
        return [
            RankingEntry(
                snapshot_id=row["snapshot_id"],
                item_id=row["item_id"],
                item_type=ItemType(row["item_type"]),
                rank=row["rank"],
                previous_rank=row["previous_rank"],
                rank_change=row["rank_change"],
                score=row["score"],
                reader_count=row["reader_count"],
                rating=row["rating"],
                evaluation_tag=(
                    EvaluationTag(row["evaluation_tag"]) if row["evaluation_tag"] else None
                ),
                title=row["title"],
                author=row["author"],
                cover_url=row["cover_url"],
            )
            for row in rows
        ]

    def count_snapshot_entries(self, snapshot_id: int) -> int:
        """Count the entries of a snapshot."""
        rows = self._read(
            "SELECT COUNT(*) FROM ranking_entries WHERE snapshot_id = ?", (snapshot_id,)
        )
        return rows[0][0]

    # ===== Related Items =====

    def upsert_edges(self, edges: list[RelatedItemEdge]) -> int:
        """Upsert relatedness edges.

        On key conflict the stored similarity becomes the maximum of the
        stored and new values; confidence and computed_at take the new values.

        Args:
            edges: Edges to upsert.

        Returns:
            Number of edges written.
        """
        if not edges:
            return 0

        with self._transaction("upsert_edges") as ctx:
            conn = self._ensure_connected()
            conn.executemany(
                """
                INSERT INTO related_items (
                    source_item_type, source_item_id, related_item_type, related_item_id,
                    relation_type, similarity_score, confidence, computed_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(
                    source_item_type, source_item_id,
                    related_item_type, related_item_id, relation_type
                ) DO UPDATE SET
                    similarity_score = MAX(similarity_score, excluded.similarity_score),
                    confidence = excluded.confidence,
                    computed_at = excluded.computed_at
                """,
                [
                    (
                        e.source_item_type.value,
                        e.source_item_id,
                        e.related_item_type.value,
                        e.related_item_id,
                        e.relation_type.value,
                        e.similarity_score,
                        e.confidence,
                        to_db_time(e.computed_at),
                    )
                    for e in edges
                ],
            )
            ctx.add_affected_rows(len(edges))

        self._metrics.record_edges_upserted(len(edges))
        return len(edges)

    def get_related_edges(
        self,
        item_type: ItemType,
        item_id: int,
        limit: int,
        relation_type: RelationType | None = None,
    ) -> list[RelatedItemEdge]:
        """Get the strongest outgoing edges of an item.

        Args:
            item_type: Source item type.
            item_id: Source item id.
            limit: Maximum edges returned.
            relation_type: Restrict to one relation type.

        Returns:
            Edges ordered by similarity descending.
        """
        sql = "SELECT * FROM related_items WHERE source_item_type = ? AND source_item_id = ?"
        params: list[object] = [item_type.value, item_id]
        if relation_type is not None:
            sql += " AND relation_type = ?"
            params.append(relation_type.value)
        sql += " ORDER BY similarity_score DESC, related_item_id ASC, relation_type ASC LIMIT ?"
        params.append(limit)

        rows = self._read(sql, tuple(params))
        return [
            RelatedItemEdge(
                source_item_type=ItemType(row["source_item_type"]),
                source_item_id=row["source_item_id"],
                related_item_type=ItemType(row["related_item_type"]),
                related_item_id=row["related_item_id"],
                relation_type=RelationType(row["relation_type"]),
                similarity_score=row["similarity_score"],
                confidence=row["confidence"],
                computed_at=_required_time(row["computed_at"]),
            )
            for row in rows
        ]

    # ===== Recommendations =====

    def replace_user_recommendations(
        self, user_id: int, drafts: list[RecommendationDraft], now: datetime
    ) -> int:
        """Replace a user's recommendation set in one transaction.

        Deletes the user's non-dismissed rows and every expired row, then
        inserts the new set. Live dismissed rows survive so dismissals are
        remembered across regenerations. The generation itself is recorded,
        so an empty set still counts as computed.

        Args:
            user_id: User id.
            drafts: New positioned rows.
            now: Reference time for expiry.

        Returns:
            Number of rows inserted.
        """
        with self._transaction("replace_user_recommendations") as ctx:
            conn = self._ensure_connected()
            cursor = conn.execute(
                """
                DELETE FROM user_recommendations
                WHERE user_id = ? AND (is_dismissed = 0 OR expires_at <= ?)
                """,
                (user_id, to_db_time(now)),
            )
            deleted = cursor.rowcount
            ctx.add_affected_rows(deleted)

            conn.executemany(
                """
                INSERT INTO user_recommendations (
                    user_id, item_id, item_type, recommendation_type, reason_type, reason,
                    source_item_id, score, position, created_at, expires_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    (
                        d.user_id,
                        d.item_id,
                        d.item_type.value,
                        d.recommendation_type.value,
                        d.reason_type.value,
                        d.reason,
                        d.source_item_id,
                        d.score,
                        d.position,
                        to_db_time(d.created_at),
                        to_db_time(d.expires_at),
                    )
                    for d in drafts
                ],
            )
            ctx.add_affected_rows(len(drafts))

            conn.execute(
                """
                INSERT INTO recommendation_runs (user_id, generated_at, row_count)
                VALUES (?, ?, ?)
                ON CONFLICT(user_id) DO UPDATE SET
                    generated_at = excluded.generated_at,
                    row_count = excluded.row_count
                """,
                (user_id, to_db_time(now), len(drafts)),
            )

        self._metrics.record_recommendations_replaced(deleted, len(drafts))
        return len(drafts)

    def _row_to_recommendation(self, row: sqlite3.Row) -> UserRecommendation:
        return UserRecommendation(
            id=row["id"],
            user_id=row["user_id"],
            item_id=row["item_id"],
            item_type=ItemType(row["item_type"]),
            recommendation_type=RecommendationType(row["recommendation_type"]),
            reason_type=ReasonType(row["reason_type"]),
            reason=row["reason"],
            source_item_id=row["source_item_id"],
            score=row["score"],
            position=row["position"],
            is_viewed=bool(row["is_viewed"]),
            is_clicked=bool(row["is_clicked"]),
            is_dismissed=bool(row["is_dismissed"]),
            created_at=_required_time(row["created_at"]),
            expires_at=_required_time(row["expires_at"]),
        )

    def get_recommendation(self, recommendation_id: int) -> UserRecommendation:
        """Get a recommendation row by id.

        Raises:
            RecommendationNotFoundError: If the id does not exist.
        """
        rows = self._read(
            "SELECT * FROM user_recommendations WHERE id = ?", (recommendation_id,)
        )
        if not rows:
            raise RecommendationNotFoundError(recommendation_id)
        return self._row_to_recommendation(rows[0])

    def get_user_recommendations(
        self,
        user_id: int,
        now: datetime,
        recommendation_type: RecommendationType | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> list[UserRecommendation]:
        """Page a user's live rows ordered by position.

        Args:
            user_id: User id.
            now: Reference time for expiry.
            recommendation_type: Restrict to one shelf.
            limit: Maximum rows returned.
            offset: Rows skipped.

        Returns:
            Non-dismissed, non-expired rows.
        """
        sql = """
            SELECT * FROM user_recommendations
            WHERE user_id = ? AND is_dismissed = 0 AND expires_at > ?
        """
        params: list[object] = [user_id, to_db_time(now)]
        if recommendation_type is not None:
            sql += " AND recommendation_type = ?"
            params.append(recommendation_type.value)
        sql += " ORDER BY position ASC LIMIT ? OFFSET ?"
        params.extend([limit, offset])

        return [self._row_to_recommendation(row) for row in self._read(sql, tuple(params))]

    def count_live_recommendations(self, user_id: int, now: datetime) -> int:
        """Count a user's non-dismissed, non-expired rows."""
        rows = self._read(
            """
            SELECT COUNT(*) FROM user_recommendations
            WHERE user_id = ? AND is_dismissed = 0 AND expires_at > ?
            """,
            (user_id, to_db_time(now)),
        )
        return rows[0][0]

    def get_last_generated_at(self, user_id: int) -> datetime | None:
        """When the user's recommendations were last generated, if ever."""
        rows = self._read(
            "SELECT generated_at FROM recommendation_runs WHERE user_id = ?",
            (user_id,),
        )
        return from_db_time(rows[0]["generated_at"]) if rows else None

    def get_dismissed_item_ids(self, user_id: int, now: datetime) -> set[int]:
        """Items the user dismissed on rows that have not expired."""
        rows = self._read(
            """
            SELECT DISTINCT item_id FROM user_recommendations
            WHERE user_id = ? AND is_dismissed = 1 AND expires_at > ?
            """,
            (user_id, to_db_time(now)),
        )
        return {row["item_id"] for row in rows}

    def mark_viewed(self, recommendation_ids: list[int]) -> int:
        """Set the viewed flag on rows.

        Args:
            recommendation_ids: Row ids; unknown ids are ignored.

        Returns:
            Number of rows updated.
        """
        if not recommendation_ids:
            return 0

        placeholders = ", ".join("?" for _ in recommendation_ids)
        with self._transaction("mark_viewed") as ctx:
            conn = self._ensure_connected()
            cursor = conn.execute(
                "UPDATE user_recommendations SET is_viewed = 1 "
                f"WHERE id IN ({placeholders})",  # noqa: S608
                tuple(recommendation_ids),
            )
            ctx.add_affected_rows(cursor.rowcount)
        return ctx.affected_rows

    def _set_flags(
        self, recommendation_id: int, operation: str, assignments: str
    ) -> UserRecommendation:
        with self._transaction(operation) as ctx:
            conn = self._ensure_connected()
            cursor = conn.execute(
                f"UPDATE user_recommendations SET {assignments} WHERE id = ?",  # noqa: S608
                (recommendation_id,),
            )
            if cursor.rowcount == 0:
                raise RecommendationNotFoundError(recommendation_id)
            ctx.add_affected_rows(cursor.rowcount)
        return self.get_recommendation(recommendation_id)

    def mark_clicked(self, recommendation_id: int) -> UserRecommendation:
        """Set the clicked flag on a row; a click implies a view.

        Raises:
            RecommendationNotFoundError: If the id does not exist.
        """
        return self._set_flags(recommendation_id, "mark_clicked", "is_clicked = 1, is_viewed = 1")

    def dismiss(self, recommendation_id: int) -> UserRecommendation:
        """Set the dismissed flag on a row.

        Raises:
            RecommendationNotFoundError: If the id does not exist.
        """
        return self._set_flags(recommendation_id, "dismiss_recommendation", "is_dismissed = 1")

    # ===== Stats =====

    def get_stats(self) -> dict[str, int]:
        """Get row counts for all tables.

        Returns:
            Dictionary mapping table name to row count.
        """
        stats: dict[str, int] = {}
        for table in (
            "ranking_snapshots",
            "ranking_entries",
            "related_items",
            "user_recommendations",
            "recommendation_runs",
        ):
            rows = self._read(f"SELECT COUNT(*) FROM {table}")  # noqa: S608
            stats[table] = rows[0][0]
        return stats

    def get_schema_version(self) -> int:
        """Get current schema version.

        Returns:
            Current schema version number.
        """
        conn = self._ensure_connected()
        with self._lock:
            return MigrationManager(conn).get_current_version()
