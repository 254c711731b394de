"""Ranking snapshot computation and serving."""

from bookrank.rankings.candidates import CandidateScorer, rank_candidates
from bookrank.rankings.manager import (
    NOT_COMPUTED_HINT,
    RankingSnapshotManager,
    build_entries,
)
from bookrank.rankings.metrics import RankingMetrics
from bookrank.rankings.models import (
    ActiveRanking,
    PeriodWindow,
    RankingBatchResult,
    ScoredCandidate,
    SnapshotResult,
)
from bookrank.rankings.state_machine import (
    SnapshotState,
    SnapshotStateMachine,
    SnapshotStateTransitionError,
)
from bookrank.rankings.window import ALL_TIME_START, resolve_period_window


__all__ = [
    "ALL_TIME_START",
    "NOT_COMPUTED_HINT",
    "ActiveRanking",
    "CandidateScorer",
    "PeriodWindow",
    "RankingBatchResult",
    "RankingMetrics",
    "RankingSnapshotManager",
    "ScoredCandidate",
    "SnapshotResult",
    "SnapshotState",
    "SnapshotStateMachine",
    "SnapshotStateTransitionError",
    "build_entries",
    "rank_candidates",
    "resolve_period_window",
]
