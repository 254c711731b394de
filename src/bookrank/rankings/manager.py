"""Ranking snapshot orchestration.

One computation runs window -> score -> rank -> diff -> persist for a
single ranking type and atomically swaps the result in as the type's
active snapshot. Batch entry points isolate failures per type.
"""

import time
import uuid
from collections.abc import Callable, Iterable
from datetime import UTC, datetime, timedelta

import structlog

from bookrank.config.schemas.engine import EngineConfig
from bookrank.config.schemas.rankings import RankingDefinition
from bookrank.data_model import RankingType, ReadStatus, SnapshotStatus
from bookrank.errors import UnitTimeoutError
from bookrank.execution import Deadline, run_units
from bookrank.observability import bind_unit_context, clear_unit_context
from bookrank.rankings.candidates import CandidateScorer, rank_candidates
from bookrank.rankings.metrics import RankingMetrics
from bookrank.rankings.models import (
    ActiveRanking,
    PeriodWindow,
    RankingBatchResult,
    ScoredCandidate,
    SnapshotResult,
)
from bookrank.rankings.state_machine import SnapshotStateMachine
from bookrank.rankings.window import resolve_period_window
from bookrank.scoring import evaluation_tag, item_trending_score
from bookrank.signals import SignalReader, TimeWindow, TrendingScoreWriter, guarded_fetch
from bookrank.store.models import RankedEntry, RankingEntry, RankingSnapshot, SnapshotDraft
from bookrank.store.protocols import RankingRepository


logger = structlog.get_logger()

NOT_COMPUTED_HINT = "Ranking has not been computed yet; retry shortly."


def build_entries(
    ranked: list[ScoredCandidate], previous_ranks: dict[int, int]
) -> list[RankedEntry]:
    """Assign 1-based ranks and rank changes to sorted candidates.

    Args:
        ranked: Candidates sorted by score descending.
        previous_ranks: Item id to rank in the prior snapshot of the type.

    Returns:
        Entries with ``rank_change = previous_rank - rank``, or 0 for new items.
    """
    entries = []
    for rank, candidate in enumerate(ranked, start=1):
        previous = previous_ranks.get(candidate.item_id)
        entries.append(
            RankedEntry(
                item_id=candidate.item_id,
                item_type=candidate.item_type,
                rank=rank,
                previous_rank=previous,
                rank_change=previous - rank if previous is not None else 0,
                score=candidate.score,
                reader_count=candidate.reader_count,
                rating=candidate.rating,
                evaluation_tag=evaluation_tag(candidate.rating),
                title=candidate.title,
                author=candidate.author,
                cover_url=candidate.cover_url,
            )
        )
    return entries


class RankingSnapshotManager:
    """Computes, swaps and serves ranking snapshots."""

    def __init__(
        self,
        reader: SignalReader,
        repository: RankingRepository,
        config: EngineConfig | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize the manager.

        Args:
            reader: Signal reader.
            repository: Snapshot repository.
            config: Engine configuration (defaults when omitted).
            clock: Returns the current time; defaults to UTC now.
        """
        self._reader = reader
        self._repository = repository
        self._config = config or EngineConfig()
        self._clock = clock or (lambda: datetime.now(UTC))
        self._scorer = CandidateScorer(
            reader, self._config.ranking_weights, self._config.execution.item_type
        )
        self._metrics = RankingMetrics.get_instance()
        self._log = logger.bind(component="rankings")

    def _definition(self, ranking_type: RankingType) -> RankingDefinition:
        definition = self._config.definition_for(ranking_type)
        if definition is None:
            msg = f"Ranking type not configured: {ranking_type.value}"
            raise ValueError(msg)
        return definition

    # ===== Computation =====

    def compute_ranking(
        self,
        ranking_type: RankingType,
        deadline: Deadline | None = None,
    ) -> SnapshotResult:
        """Compute one ranking type and swap it in as the active snapshot.

        A failure leaves the previous active snapshot untouched. A run with
        zero candidates keeps a prior non-empty snapshot instead of
        replacing it with an empty one.

        Args:
            ranking_type: Ranking type to compute.
            deadline: Budget of the computation.

        Returns:
            Snapshot result with status CREATED or KEPT_PREVIOUS.

        Raises:
            ValueError: If the type has no definition.
            SignalUnavailableError: If a load-bearing signal read fails.
            UnitTimeoutError: If the deadline passes before persisting.
        """
        definition = self._definition(ranking_type)
        machine = SnapshotStateMachine(ranking_type.value, deadline)
        log = self._log.bind(ranking_type=ranking_type.value)
        start = time.perf_counter()
        now = self._clock()

        log.info("ranking_compute_started", period_type=definition.period_type.value)

        try:
            machine.to_computing_window()
            window = resolve_period_window(
                definition.period_type, now, self._config.execution.timezone
            )

            machine.to_scoring()
            candidates = self._scorer.score(definition, window, now)

            machine.to_ranking()
            ranked = rank_candidates(candidates, definition.limit)

            if not ranked:
                kept = self._keep_previous(ranking_type)
                if kept is not None:
                    machine.to_kept_previous()
                    duration_ms = (time.perf_counter() - start) * 1000
                    self._metrics.record_kept(ranking_type.value, duration_ms)
                    log.info(
                        "ranking_kept_previous",
                        snapshot_id=kept.snapshot_id,
                        item_count=kept.item_count,
                    )
                    return kept

            machine.to_diffing()
            previous_ranks = self._previous_ranks(ranking_type)
            entries = build_entries(ranked, previous_ranks)

            machine.to_persisting()
            snapshot = self._repository.swap_active_snapshot(
                self._draft(definition, window, now), entries
            )
            machine.to_active()

        except Exception as e:
            machine.to_failed()
            self._metrics.record_failed(timed_out=isinstance(e, UnitTimeoutError))
            log.error(
                "ranking_compute_failed",
                error=str(e),
                error_type=type(e).__name__,
            )
            raise

        duration_ms = (time.perf_counter() - start) * 1000
        self._metrics.record_created(ranking_type.value, len(entries), duration_ms)
        log.info(
            "ranking_computed",
            snapshot_id=snapshot.id,
            item_count=len(entries),
            candidate_count=len(candidates),
            duration_ms=round(duration_ms, 2),
        )
        return SnapshotResult(
            ranking_type=ranking_type,
            snapshot_id=snapshot.id,
            item_count=len(entries),
            computed_at=now,
        )

    def _keep_previous(self, ranking_type: RankingType) -> SnapshotResult | None:
        """Result pointing at the active snapshot when it has entries."""
        active = self._repository.get_active_snapshot(ranking_type)
        if active is None:
            return None
        count = self._repository.count_snapshot_entries(active.id)
        if count == 0:
            return None
        return SnapshotResult(
            ranking_type=ranking_type,
            snapshot_id=active.id,
            item_count=count,
            computed_at=active.computed_at,
            status=SnapshotStatus.KEPT_PREVIOUS,
        )

    def _previous_ranks(self, ranking_type: RankingType) -> dict[int, int]:
        """Item ranks of the most recent snapshot of the type, active or not."""
        previous = self._repository.get_latest_snapshot(ranking_type)
        if previous is None:
            return {}
        return {
            entry.item_id: entry.rank
            for entry in self._repository.get_snapshot_entries(previous.id)
        }

    @staticmethod
    def _draft(
        definition: RankingDefinition, window: PeriodWindow, now: datetime
    ) -> SnapshotDraft:
        return SnapshotDraft(
            ranking_type=definition.type,
            period_type=definition.period_type,
            period_start=window.period_start,
            period_end=window.period_end,
            display_name=definition.display_name,
            theme_color=definition.theme_color,
            description=definition.description,
            computed_at=now,
            expires_at=window.expires_at,
        )

    def compute_rankings_batch(
        self,
        ranking_types: Iterable[RankingType] | None = None,
        refresh_trending: bool = True,
    ) -> RankingBatchResult:
        """Compute several ranking types with per-type failure isolation.

        Args:
            ranking_types: Types to compute (every configured type when None).
            refresh_trending: Refresh catalog trending scores afterwards.

        Returns:
            Batch result with successes in definition order and failure records.
        """
        wanted = set(ranking_types) if ranking_types is not None else None
        definitions = [
            d for d in self._config.rankings if wanted is None or d.type in wanted
        ]
        execution = self._config.execution

        bind_unit_context(f"rankings-{uuid.uuid4().hex[:12]}")
        try:
            self._log.info("ranking_batch_started", type_count=len(definitions))
            outcomes = run_units(
                definitions,
                lambda d, deadline: self.compute_ranking(d.type, deadline),
                max_workers=execution.max_workers,
                timeout_seconds=execution.unit_timeout_seconds,
                unit_key=lambda d: d.type.value,
            )

            result = RankingBatchResult()
            for outcome in outcomes:
                if outcome.value is not None:
                    result.results.append(outcome.value)
                elif outcome.error is not None:
                    result.failures.append(outcome.error)

            if refresh_trending:
                try:
                    result.trending_scores_refreshed = self.refresh_item_trending_scores()
                except Exception as e:  # noqa: BLE001
                    self._log.error("trending_refresh_failed", error=str(e))

            self._log.info(
                "ranking_batch_complete",
                succeeded=len(result.results),
                failed=len(result.failures),
                trending_scores_refreshed=result.trending_scores_refreshed,
            )
            return result
        finally:
            clear_unit_context()

    def compute_all_rankings(self) -> list[SnapshotResult]:
        """Compute every configured ranking type.

        Failed types are logged and excluded; the remaining types still run.

        Returns:
            Results of the successful types in definition order.
        """
        return self.compute_rankings_batch().results

    def refresh_item_trending_scores(self) -> int:
        """Recompute catalog trending scores from recent reading activity.

        Only readers that can write trending scores back are refreshed.

        Returns:
            Number of catalog rows updated.

        Raises:
            SignalUnavailableError: If reading activity cannot be read.
        """
        if not isinstance(self._reader, TrendingScoreWriter):
            self._log.info("trending_refresh_skipped", reason="reader_is_read_only")
            return 0

        weights = self._config.ranking_weights
        now = self._clock()
        window = TimeWindow(
            start=now - timedelta(days=weights.item_trending_window_days), end=now
        )
        activity = guarded_fetch(
            "reading_activity",
            lambda: self._reader.fetch_reading_activity(
                self._config.execution.item_type, window
            ),
            unit="trending_refresh",
        )
        scores = {
            row.item_id: item_trending_score(
                row.session_count, row.total_duration_seconds, weights
            )
            for row in activity
        }
        updated = self._reader.write_trending_scores(scores)
        self._log.info("trending_scores_refreshed", item_count=updated)
        return updated

    # ===== Reads =====

    def get_active_ranking(
        self,
        ranking_type: RankingType,
        limit: int | None = None,
        offset: int = 0,
    ) -> ActiveRanking:
        """Get the active snapshot of a type with its entries.

        Args:
            ranking_type: Ranking type key.
            limit: Maximum entries returned (all when None).
            offset: Entries skipped.

        Returns:
            READY with snapshot and entries, or NOT_COMPUTED with a retry hint.
        """
        snapshot = self._repository.get_active_snapshot(ranking_type)
        if snapshot is None:
            return ActiveRanking(
                ranking_type=ranking_type,
                status=ReadStatus.NOT_COMPUTED,
                hint=NOT_COMPUTED_HINT,
            )
        entries = self._repository.get_snapshot_entries(snapshot.id, limit, offset)
        return ActiveRanking(
            ranking_type=ranking_type,
            status=ReadStatus.READY,
            snapshot=snapshot,
            entries=entries,
        )

    def get_active_rankings(self, now: datetime | None = None) -> list[RankingSnapshot]:
        """List active, non-expired snapshots ordered by ranking type."""
        return self._repository.list_active_snapshots(now or self._clock())

    def get_ranking_entries(
        self, snapshot_id: int, limit: int = 50, offset: int = 0
    ) -> list[RankingEntry]:
        """Page the entries of a snapshot ordered by rank."""
        return self._repository.get_snapshot_entries(snapshot_id, limit, offset)

    def get_ranking_definitions(self) -> list[RankingDefinition]:
        """List the configured ranking definitions."""
        return list(self._config.rankings)
