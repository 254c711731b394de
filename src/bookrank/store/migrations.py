"""SQLite schema migrations for the engine store."""

import sqlite3
from dataclasses import dataclass
from datetime import UTC, datetime

import structlog

from bookrank.store.errors import MigrationError


logger = structlog.get_logger()

# Current schema version
CURRENT_VERSION = 3


@dataclass(frozen=True)
class Migration:
    """A database migration.

    Attributes:
        version: Target version after applying this migration.
        description: Human-readable description.
        up_sql: SQL to apply the migration.
        down_sql: SQL to rollback the migration.
    """

    version: int
    description: str
    up_sql: str
    down_sql: str


# All migrations in order
MIGRATIONS: list[Migration] = [
    Migration(
        version=1,
        description="Ranking snapshots, ranking entries and related item edges",
        up_sql="""
-- Snapshots: one versioned leaderboard per ranking type and window
CREATE TABLE IF NOT EXISTS ranking_snapshots (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    ranking_type TEXT NOT NULL,
    period_type TEXT NOT NULL,
    period_start TEXT NOT NULL,
    period_end TEXT NOT NULL,
    display_name TEXT NOT NULL,
    theme_color TEXT NOT NULL,
    description TEXT NOT NULL,
    computed_at TEXT NOT NULL,
    expires_at TEXT NOT NULL,
    is_active INTEGER NOT NULL DEFAULT 0
);
CREATE INDEX IF NOT EXISTS idx_snapshots_type ON ranking_snapshots(ranking_type, computed_at);
CREATE UNIQUE INDEX IF NOT EXISTS idx_snapshots_one_active
    ON ranking_snapshots(ranking_type) WHERE is_active = 1;

-- Entries: ranked items of a snapshot
CREATE TABLE IF NOT EXISTS ranking_entries (
    snapshot_id INTEGER NOT NULL REFERENCES ranking_snapshots(id) ON DELETE CASCADE,
    item_id INTEGER NOT NULL,
    item_type TEXT NOT NULL,
    rank INTEGER NOT NULL,
    previous_rank INTEGER,
    rank_change INTEGER NOT NULL DEFAULT 0,
    score REAL NOT NULL,
    reader_count INTEGER NOT NULL DEFAULT 0,
    rating REAL,
    evaluation_tag TEXT,
    title TEXT NOT NULL,
    author TEXT,
    cover_url TEXT,
    PRIMARY KEY (snapshot_id, rank)
);
CREATE INDEX IF NOT EXISTS idx_entries_item ON ranking_entries(snapshot_id, item_id);

-- Related item edges: directed, typed, max-merged similarity
CREATE TABLE IF NOT EXISTS related_items (
    source_item_type TEXT NOT NULL,
    source_item_id INTEGER NOT NULL,
    related_item_type TEXT NOT NULL,
    related_item_id INTEGER NOT NULL,
    relation_type TEXT NOT NULL,
    similarity_score REAL NOT NULL,
    confidence REAL NOT NULL,
    computed_at TEXT NOT NULL,
    PRIMARY KEY (
        source_item_type, source_item_id,
        related_item_type, related_item_id,
        relation_type
    )
);
CREATE INDEX IF NOT EXISTS idx_related_source
    ON related_items(source_item_type, source_item_id, similarity_score);
""",
        down_sql="""
DROP INDEX IF EXISTS idx_related_source;
DROP TABLE IF EXISTS related_items;
DROP INDEX IF EXISTS idx_entries_item;
DROP TABLE IF EXISTS ranking_entries;
DROP INDEX IF EXISTS idx_snapshots_one_active;
DROP INDEX IF EXISTS idx_snapshots_type;
DROP TABLE IF EXISTS ranking_snapshots;
""",
    ),
    Migration(
        version=2,
        description="Per-user recommendation rows",
        up_sql="""
CREATE TABLE IF NOT EXISTS user_recommendations (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL,
    item_id INTEGER NOT NULL,
    item_type TEXT NOT NULL,
    recommendation_type TEXT NOT NULL,
    reason_type TEXT NOT NULL,
    reason TEXT NOT NULL,
    source_item_id INTEGER,
    score REAL NOT NULL,
    position INTEGER NOT NULL,
    is_viewed INTEGER NOT NULL DEFAULT 0,
    is_clicked INTEGER NOT NULL DEFAULT 0,
    is_dismissed INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    expires_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_recommendations_user
    ON user_recommendations(user_id, position);
CREATE INDEX IF NOT EXISTS idx_recommendations_expiry
    ON user_recommendations(user_id, expires_at);
""",
        down_sql="""
DROP INDEX IF EXISTS idx_recommendations_expiry;
DROP INDEX IF EXISTS idx_recommendations_user;
DROP TABLE IF EXISTS user_recommendations;
""",
    ),
    Migration(
        version=3,
        description="Recommendation generation runs",
        up_sql="""
-- One row per user, rewritten with every generation, including empty ones
CREATE TABLE IF NOT EXISTS recommendation_runs (
    user_id INTEGER PRIMARY KEY,
    generated_at TEXT NOT NULL,
    row_count INTEGER NOT NULL
);
""",
        down_sql="""
DROP TABLE IF EXISTS recommendation_runs;
""",
    ),
]


def get_migrations_to_apply(current_version: int) -> list[Migration]:
    """Get migrations that need to be applied.

    Args:
        current_version: The current schema version.

    Returns:
        List of migrations to apply in order.
    """
    return [m for m in MIGRATIONS if m.version > current_version]


class MigrationManager:
    """Manages SQLite schema migrations."""

    VERSION_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY,
    applied_at TEXT NOT NULL,
    description TEXT
);
"""

    def __init__(self, connection: sqlite3.Connection) -> None:
        """Initialize the migration manager.

        Args:
            connection: SQLite connection to manage.
        """
        self._conn = connection
        self._log = logger.bind(component="store", operation="migration")

    def ensure_version_table(self) -> None:
        """Ensure the schema_version table exists."""
        self._conn.execute(self.VERSION_TABLE_SQL)
        self._conn.commit()

    def get_current_version(self) -> int:
        """Get the current schema version.

        Returns:
            Current version number, or 0 if no migrations applied.
        """
        self.ensure_version_table()
        row = self._conn.execute("SELECT MAX(version) FROM schema_version").fetchone()
        return row[0] if row[0] is not None else 0

    def apply_migrations(self) -> list[int]:
        """Apply all pending migrations.

        Returns:
            List of version numbers that were applied.

        Raises:
            MigrationError: If a migration script fails.
        """
        current = self.get_current_version()
        pending = get_migrations_to_apply(current)

        if not pending:
            self._log.info("no_migrations_pending", current_version=current)
            return []

        applied: list[int] = []
        for migration in pending:
            self._log.info(
                "applying_migration",
                version=migration.version,
                description=migration.description,
            )
            try:
                self._conn.executescript(migration.up_sql)
                self._conn.execute(
                    """
                    INSERT INTO schema_version (version, applied_at, description)
                    VALUES (?, ?, ?)
                    """,
                    (
                        migration.version,
                        datetime.now(UTC).isoformat(),
                        migration.description,
                    ),
                )
                self._conn.commit()
            except sqlite3.Error as e:
                self._log.error("migration_failed", version=migration.version, error=str(e))
                self._conn.rollback()
                raise MigrationError(migration.version, str(e)) from e

            applied.append(migration.version)
            self._log.info("migration_applied", version=migration.version)

        return applied

    def rollback_to(self, target_version: int) -> list[int]:
        """Rollback to a specific version.

        Args:
            target_version: The version to rollback to.

        Returns:
            List of version numbers that were rolled back, newest first.

        Raises:
            ValueError: If target version is invalid.
            MigrationError: If a rollback script fails.
        """
        if target_version < 0:
            msg = f"Invalid target version: {target_version}"
            raise ValueError(msg)

        rolled_back: list[int] = []
        by_version = {m.version: m for m in MIGRATIONS}

        while (current := self.get_current_version()) > target_version:
            migration = by_version.get(current)
            if migration is None:
                break

            self._log.info(
                "rolling_back_migration",
                version=migration.version,
                description=migration.description,
            )
            try:
                self._conn.executescript(migration.down_sql)
                self._conn.execute(
                    "DELETE FROM schema_version WHERE version = ?",
                    (migration.version,),
                )
                self._conn.commit()
            except sqlite3.Error as e:
                self._log.error("rollback_failed", version=migration.version, error=str(e))
                self._conn.rollback()
                raise MigrationError(migration.version, str(e)) from e

            rolled_back.append(migration.version)
            self._log.info("migration_rolled_back", version=migration.version)

        return rolled_back

    def get_applied_migrations(self) -> list[dict[str, str | int]]:
        """Get list of applied migrations.

        Returns:
            List of dicts with version, applied_at, and description.
        """
        self.ensure_version_table()
        cursor = self._conn.execute(
            """
            SELECT version, applied_at, description
            FROM schema_version
            ORDER BY version
            """
        )
        return [
            {"version": row[0], "applied_at": row[1], "description": row[2]}
            for row in cursor.fetchall()
        ]
