"""Metrics for the relatedness graph builder."""

from dataclasses import dataclass
from typing import ClassVar


@dataclass
class RelatedMetrics:
    """Counters for relatedness computations.

    Attributes:
        items_processed_total: Items whose edges were computed.
        items_failed_total: Items whose computation failed.
        edges_written_total: Edges upserted.
        duration_ms_total: Cumulative time spent computing items.
    """

    items_processed_total: int = 0
    items_failed_total: int = 0
    edges_written_total: int = 0
    duration_ms_total: float = 0.0

    _instance: ClassVar["RelatedMetrics | None"] = None

    @classmethod
    def get_instance(cls) -> "RelatedMetrics":
        """Get singleton metrics instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset metrics (primarily for testing)."""
        cls._instance = None

    def record_item(self, edge_count: int, duration_ms: float) -> None:
        """Record a computed item."""
        self.items_processed_total += 1
        self.edges_written_total += edge_count
        self.duration_ms_total += duration_ms

    def record_failure(self) -> None:
        """Record a failed item."""
        self.items_failed_total += 1

    def to_dict(self) -> dict[str, float | int]:
        """Convert metrics to dictionary."""
        return {
            "items_processed_total": self.items_processed_total,
            "items_failed_total": self.items_failed_total,
            "edges_written_total": self.edges_written_total,
            "duration_ms_total": self.duration_ms_total,
        }
