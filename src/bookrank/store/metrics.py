"""Metrics collection for the engine store."""

from dataclasses import dataclass, field
from typing import ClassVar


@dataclass
class StoreMetrics:
    """Metrics for engine store operations.

    Attributes:
        snapshots_swapped_total: Snapshots swapped in as active.
        entries_written_total: Ranking entries written.
        edges_upserted_total: Related item edges upserted.
        recommendations_written_total: Recommendation rows written.
        recommendations_deleted_total: Recommendation rows replaced or expired.
        db_tx_duration_ms: Cumulative transaction duration in milliseconds.
        db_tx_count: Number of committed transactions.
        db_tx_failed_total: Number of rolled back transactions.
    """

    snapshots_swapped_total: int = 0
    entries_written_total: int = 0
    edges_upserted_total: int = 0
    recommendations_written_total: int = 0
    recommendations_deleted_total: int = 0
    db_tx_duration_ms: float = 0.0
    db_tx_count: int = 0
    db_tx_failed_total: int = 0

    _instance: ClassVar["StoreMetrics | None"] = None

    @classmethod
    def get_instance(cls) -> "StoreMetrics":
        """Get singleton metrics instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset metrics (primarily for testing)."""
        cls._instance = None

    def record_snapshot_swap(self, entry_count: int) -> None:
        """Record a snapshot swap.

        Args:
            entry_count: Number of entries written with the snapshot.
        """
        self.snapshots_swapped_total += 1
        self.entries_written_total += entry_count

    def record_edges_upserted(self, count: int) -> None:
        """Record upserted edges."""
        self.edges_upserted_total += count

    def record_recommendations_replaced(self, deleted: int, written: int) -> None:
        """Record a recommendation replace-set."""
        self.recommendations_deleted_total += deleted
        self.recommendations_written_total += written

    def record_tx_duration(self, duration_ms: float) -> None:
        """Record a committed transaction's duration."""
        self.db_tx_duration_ms += duration_ms
        self.db_tx_count += 1

    def record_tx_failed(self) -> None:
        """Record a rolled back transaction."""
        self.db_tx_failed_total += 1

    def to_dict(self) -> dict[str, float | int]:
        """Convert metrics to dictionary.

        Returns:
            Dictionary of metric name to value.
        """
        return {
            "snapshots_swapped_total": self.snapshots_swapped_total,
            "entries_written_total": self.entries_written_total,
            "edges_upserted_total": self.edges_upserted_total,
            "recommendations_written_total": self.recommendations_written_total,
            "recommendations_deleted_total": self.recommendations_deleted_total,
            "db_tx_duration_ms": self.db_tx_duration_ms,
            "db_tx_count": self.db_tx_count,
            "db_tx_failed_total": self.db_tx_failed_total,
        }

    @property
    def avg_tx_duration_ms(self) -> float:
        """Calculate average transaction duration.

        Returns:
            Average duration in milliseconds.
        """
        if self.db_tx_count == 0:
            return 0.0
        return self.db_tx_duration_ms / self.db_tx_count


@dataclass
class TransactionContext:
    """Context for a single transaction with timing.

    Attributes:
        tx_id: Unique transaction identifier.
        start_time_ns: Start time in nanoseconds.
        operation: The operation being performed.
    """

    tx_id: str
    start_time_ns: int
    operation: str
    affected_rows: int = field(default=0)

    def add_affected_rows(self, rows: int) -> None:
        """Add to the affected row count.

        Args:
            rows: Number of rows affected.
        """
        self.affected_rows += rows
