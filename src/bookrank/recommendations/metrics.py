"""Metrics for recommendation generation."""

from dataclasses import dataclass, field
from typing import ClassVar


@dataclass
class RecommendationMetrics:
    """Counters for recommendation generation.

    Attributes:
        users_generated_total: Users whose recommendations were replaced.
        users_failed_total: Users whose generation failed.
        users_timed_out_total: Users whose generation ran past the deadline.
        candidates_total: Candidates proposed before filtering.
        recommendations_written_total: Rows persisted.
        source_failures: Failed source runs keyed by source.
        serve_regenerations_total: Reads that triggered regeneration.
    """

    users_generated_total: int = 0
    users_failed_total: int = 0
    users_timed_out_total: int = 0
    candidates_total: int = 0
    recommendations_written_total: int = 0
    source_failures: dict[str, int] = field(default_factory=dict)
    serve_regenerations_total: int = 0

    _instance: ClassVar["RecommendationMetrics | None"] = None

    @classmethod
    def get_instance(cls) -> "RecommendationMetrics":
        """Get singleton metrics instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset metrics (primarily for testing)."""
        cls._instance = None

    def record_generated(self, candidate_count: int, written: int) -> None:
        """Record a completed generation."""
        self.users_generated_total += 1
        self.candidates_total += candidate_count
        self.recommendations_written_total += written

    def record_failed(self, timed_out: bool = False) -> None:
        """Record a failed generation."""
        self.users_failed_total += 1
        if timed_out:
            self.users_timed_out_total += 1

    def record_source_failure(self, source: str) -> None:
        """Record a failed candidate source."""
        self.source_failures[source] = self.source_failures.get(source, 0) + 1

    def record_serve_regeneration(self) -> None:
        """Record a read that regenerated recommendations."""
        self.serve_regenerations_total += 1

    def to_dict(self) -> dict[str, object]:
        """Convert metrics to dictionary."""
        return {
            "users_generated_total": self.users_generated_total,
            "users_failed_total": self.users_failed_total,
            "users_timed_out_total": self.users_timed_out_total,
            "candidates_total": self.candidates_total,
            "recommendations_written_total": self.recommendations_written_total,
            "source_failures": dict(self.source_failures),
            "serve_regenerations_total": self.serve_regenerations_total,
        }
