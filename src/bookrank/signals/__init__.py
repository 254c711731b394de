"""Read-only signal readers over reading activity, catalog and social graph."""

from bookrank.signals.guard import REQUIRED, guarded_fetch
from bookrank.signals.memory import InMemorySignalReader
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
from bookrank.signals.protocols import SignalReader, TrendingScoreWriter
from bookrank.signals.sqlite_reader import SIGNAL_SCHEMA_SQL, SqliteSignalReader


__all__ = [
    "REQUIRED",
    "SIGNAL_SCHEMA_SQL",
    "Category",
    "HistoryEntry",
    "InMemorySignalReader",
    "ItemMetadata",
    "ItemStats",
    "ItemUserCount",
    "ReadingActivity",
    "ReadingSession",
    "ShelfEntry",
    "SignalReader",
    "SocialGraph",
    "SqliteSignalReader",
    "TimeWindow",
    "TrendingScoreWriter",
    "UserReadHistory",
    "guarded_fetch",
]
