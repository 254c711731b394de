"""Result types of the ranking snapshot manager."""

from dataclasses import dataclass, field
from datetime import datetime

from bookrank.data_model import (
    ItemType,
    RankingType,
    ReadStatus,
    SnapshotStatus,
    StrictBaseModel,
)
from bookrank.errors import ErrorRecord
from bookrank.store.models import RankingEntry, RankingSnapshot


class PeriodWindow(StrictBaseModel):
    """Resolved window of a ranking period.

    Attributes:
        period_start: First instant of the window (inclusive).
        period_end: Last instant of the window (inclusive).
        expires_at: When the snapshot should be recomputed.
    """

    period_start: datetime
    period_end: datetime
    expires_at: datetime


@dataclass(frozen=True)
class ScoredCandidate:
    """An item proposed for a ranking with its score and display fields."""

    item_id: int
    score: float
    title: str
    item_type: ItemType = ItemType.EBOOK
    author: str | None = None
    cover_url: str | None = None
    reader_count: int = 0
    rating: float | None = None


class SnapshotResult(StrictBaseModel):
    """Outcome of one ranking computation."""

    ranking_type: RankingType
    snapshot_id: int
    item_count: int
    computed_at: datetime
    status: SnapshotStatus = SnapshotStatus.CREATED


class ActiveRanking(StrictBaseModel):
    """Current state of a ranking type.

    ``status`` is NOT_COMPUTED with a retry hint when the type has never
    been computed; that is an expected empty result, not an error.
    """

    ranking_type: RankingType
    status: ReadStatus
    snapshot: RankingSnapshot | None = None
    entries: list[RankingEntry] = []
    hint: str | None = None


@dataclass
class RankingBatchResult:
    """Result of computing several ranking types.

    Attributes:
        results: Successful computations in definition order.
        failures: Error records of failed or timed-out types.
        trending_scores_refreshed: Catalog rows whose trending score was refreshed.
    """

    results: list[SnapshotResult] = field(default_factory=list)
    failures: list[ErrorRecord] = field(default_factory=list)
    trending_scores_refreshed: int = 0

    @property
    def success(self) -> bool:
        """Check if every ranking type succeeded."""
        return not self.failures
