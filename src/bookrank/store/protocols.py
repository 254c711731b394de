"""Repository interfaces the engine writes computed state through.

Each protocol is narrow enough that the storage engine is substitutable;
EngineStore implements all three over SQLite.
"""

from datetime import datetime
from typing import Protocol, runtime_checkable

from bookrank.data_model import ItemType, RankingType, RecommendationType
from bookrank.store.models import (
    RankedEntry,
    RankingEntry,
    RankingSnapshot,
    RecommendationDraft,
    RelatedItemEdge,
    SnapshotDraft,
    UserRecommendation,
)


@runtime_checkable
class RankingRepository(Protocol):
    """Snapshots and entries of ranking types."""

    def swap_active_snapshot(
        self, draft: SnapshotDraft, entries: list[RankedEntry]
    ) -> RankingSnapshot:
        """Deactivate every snapshot of the type and insert the new active one.

        Must be atomic: no reader observes zero or two active snapshots.
        """
        ...

    def get_active_snapshot(self, ranking_type: RankingType) -> RankingSnapshot | None:
        """Get the active snapshot of a type."""
        ...

    def get_latest_snapshot(self, ranking_type: RankingType) -> RankingSnapshot | None:
        """Get the most recently computed snapshot of a type, active or not."""
        ...

    def list_active_snapshots(self, now: datetime) -> list[RankingSnapshot]:
        """List active, non-expired snapshots ordered by ranking type."""
        ...

    def get_snapshot_entries(
        self, snapshot_id: int, limit: int | None = None, offset: int = 0
    ) -> list[RankingEntry]:
        """Page the entries of a snapshot ordered by rank."""
        ...

    def count_snapshot_entries(self, snapshot_id: int) -> int:
        """Count the entries of a snapshot."""
        ...


@runtime_checkable
class RelatedItemRepository(Protocol):
    """Relatedness edges."""

    def upsert_edges(self, edges: list[RelatedItemEdge]) -> int:
        """Upsert edges keeping the maximum similarity per key."""
        ...

    def get_related_edges(
        self, item_type: ItemType, item_id: int, limit: int
    ) -> list[RelatedItemEdge]:
        """Get the strongest outgoing edges of an item."""
        ...


@runtime_checkable
class RecommendationRepository(Protocol):
    """Per-user recommendation rows."""

    def replace_user_recommendations(
        self, user_id: int, drafts: list[RecommendationDraft], now: datetime
    ) -> int:
        """Replace a user's recommendation set in one transaction."""
        ...

    def get_user_recommendations(
        self,
        user_id: int,
        now: datetime,
        recommendation_type: RecommendationType | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> list[UserRecommendation]:
        """Page a user's live rows ordered by position."""
        ...

    def count_live_recommendations(self, user_id: int, now: datetime) -> int:
        """Count a user's live rows."""
        ...

    def get_last_generated_at(self, user_id: int) -> datetime | None:
        """When the user's recommendations were last generated, if ever."""
        ...

    def get_dismissed_item_ids(self, user_id: int, now: datetime) -> set[int]:
        """Items the user dismissed on rows that have not expired."""
        ...

    def mark_viewed(self, recommendation_ids: list[int]) -> int:
        """Set the viewed flag on rows."""
        ...

    def mark_clicked(self, recommendation_id: int) -> UserRecommendation:
        """Set the clicked and viewed flags on a row."""
        ...

    def dismiss(self, recommendation_id: int) -> UserRecommendation:
        """Set the dismissed flag on a row."""
        ...
