"""SQLite engine store for snapshots, relatedness edges and recommendations.

This package provides persistent storage for:
- Ranking snapshots and their entries, with an atomic active-snapshot swap
- Relatedness edges with max-merge upserts
- Per-user recommendation rows with a transactional replace-set
"""

from bookrank.store.errors import (
    ConnectionError,
    MigrationError,
    RecommendationNotFoundError,
    SnapshotNotFoundError,
    StateStoreError,
)
from bookrank.store.metrics import StoreMetrics, TransactionContext
from bookrank.store.migrations import CURRENT_VERSION, MIGRATIONS, MigrationManager
from bookrank.store.models import (
    RankedEntry,
    RankingEntry,
    RankingSnapshot,
    RecommendationDraft,
    RelatedItemEdge,
    SnapshotDraft,
    UserRecommendation,
)
from bookrank.store.protocols import (
    RankingRepository,
    RecommendationRepository,
    RelatedItemRepository,
)
from bookrank.store.store import EngineStore


__all__ = [
    # Errors
    "ConnectionError",
    "MigrationError",
    "RecommendationNotFoundError",
    "SnapshotNotFoundError",
    "StateStoreError",
    # Metrics
    "StoreMetrics",
    "TransactionContext",
    # Migrations
    "CURRENT_VERSION",
    "MIGRATIONS",
    "MigrationManager",
    # Models
    "RankedEntry",
    "RankingEntry",
    "RankingSnapshot",
    "RecommendationDraft",
    "RelatedItemEdge",
    "SnapshotDraft",
    "UserRecommendation",
    # Repositories
    "RankingRepository",
    "RecommendationRepository",
    "RelatedItemRepository",
    # Store
    "EngineStore",
]
