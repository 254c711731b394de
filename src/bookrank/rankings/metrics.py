"""Metrics for ranking snapshot computation."""

from dataclasses import dataclass, field
from typing import ClassVar


@dataclass
class RankingMetrics:
    """Counters for ranking computations.

    Attributes:
        snapshots_created_total: Computations that swapped in a new snapshot.
        snapshots_kept_total: Computations that kept the previous snapshot.
        computations_failed_total: Computations that failed.
        computations_timed_out_total: Computations that ran past their deadline.
        entries_ranked_total: Entries written across all snapshots.
        duration_ms_by_type: Last computation duration per ranking type.
    """

    snapshots_created_total: int = 0
    snapshots_kept_total: int = 0
    computations_failed_total: int = 0
    computations_timed_out_total: int = 0
    entries_ranked_total: int = 0
    duration_ms_by_type: dict[str, float] = field(default_factory=dict)

    _instance: ClassVar["RankingMetrics | None"] = None

    @classmethod
    def get_instance(cls) -> "RankingMetrics":
        """Get singleton metrics instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset metrics (primarily for testing)."""
        cls._instance = None

    def record_created(self, ranking_type: str, entry_count: int, duration_ms: float) -> None:
        """Record a computation that produced a new snapshot."""
        self.snapshots_created_total += 1
        self.entries_ranked_total += entry_count
        self.duration_ms_by_type[ranking_type] = duration_ms

    def record_kept(self, ranking_type: str, duration_ms: float) -> None:
        """Record a computation that kept the previous snapshot."""
        self.snapshots_kept_total += 1
        self.duration_ms_by_type[ranking_type] = duration_ms

    def record_failed(self, timed_out: bool = False) -> None:
        """Record a failed computation."""
        self.computations_failed_total += 1
        if timed_out:
            self.computations_timed_out_total += 1

    def to_dict(self) -> dict[str, object]:
        """Convert metrics to dictionary."""
        return {
            "snapshots_created_total": self.snapshots_created_total,
            "snapshots_kept_total": self.snapshots_kept_total,
            "computations_failed_total": self.computations_failed_total,
            "computations_timed_out_total": self.computations_timed_out_total,
            "entries_ranked_total": self.entries_ranked_total,
            "duration_ms_by_type": dict(self.duration_ms_by_type),
        }
