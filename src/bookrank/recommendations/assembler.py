"""Per-user recommendation assembly and serving.

Generation runs context -> sources -> filter -> dedup -> rank -> persist
for one user and replaces the user's recommendation set in a single
transaction.
"""

import math
import time
import uuid
from collections.abc import Callable, Iterable
from datetime import UTC, datetime, timedelta

import structlog

from bookrank.config.schemas.engine import EngineConfig
from bookrank.data_model import (
    CandidateSource,
    ReadStatus,
    ReasonType,
    RecommendationType,
)
from bookrank.errors import UnitTimeoutError
from bookrank.execution import Deadline, fan_out, run_units
from bookrank.observability import bind_unit_context, clear_unit_context
from bookrank.recommendations.context import build_user_context
from bookrank.recommendations.metrics import RecommendationMetrics
from bookrank.recommendations.models import (
    Candidate,
    GenerateOptions,
    RecommendationBatchResult,
    RecommendationList,
    UserContext,
)
from bookrank.recommendations.sources import CandidateSources
from bookrank.signals import ItemMetadata, ItemStats, SignalReader, guarded_fetch
from bookrank.store.models import RecommendationDraft, UserRecommendation
from bookrank.store.protocols import RecommendationRepository, RelatedItemRepository


logger = structlog.get_logger()

NOT_COMPUTED_HINT = "Recommendations have not been generated yet; retry shortly."


def recommendation_type_for(reason_type: ReasonType) -> RecommendationType:
    """Map a reason type to the shelf it is displayed under."""
    match reason_type:
        case ReasonType.SIMILAR_BOOK | ReasonType.SAME_AUTHOR:
            return RecommendationType.SIMILAR_TO_READING
        case ReasonType.SAME_CATEGORY | ReasonType.NEW_IN_CATEGORY:
            return RecommendationType.POPULAR_IN_CATEGORY
        case ReasonType.FRIEND_ACTIVITY:
            return RecommendationType.FRIENDS_READING
        case ReasonType.TRENDING:
            return RecommendationType.NEW_RELEASE
        case ReasonType.HIGH_RATING:
            return RecommendationType.FOR_YOU


def deduplicate(candidates: Iterable[Candidate]) -> list[Candidate]:
    """Keep one candidate per item.

    The highest score wins; equal scores go to the higher-priority source,
    then to the first seen. Items keep the position of their first sighting.

    Args:
        candidates: Candidates in discovery order.

    Returns:
        Deduplicated candidates in discovery order.
    """
    best: dict[int, Candidate] = {}
    for candidate in candidates:
        existing = best.get(candidate.item_id)
        if (
            existing is None
            or candidate.score > existing.score
            or (
                candidate.score == existing.score
                and candidate.source.priority < existing.source.priority
            )
        ):
            best[candidate.item_id] = candidate
    return list(best.values())


class RecommendationAssembler:
    """Generates, persists and serves per-user recommendations."""

    def __init__(
        self,
        reader: SignalReader,
        repository: RecommendationRepository,
        related: RelatedItemRepository,
        config: EngineConfig | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize the assembler.

        Args:
            reader: Signal reader.
            repository: Recommendation row repository.
            related: Relatedness edge repository.
            config: Engine configuration (defaults when omitted).
            clock: Returns the current time; defaults to UTC now.
        """
        self._reader = reader
        self._repository = repository
        self._config = config or EngineConfig()
        self._clock = clock or (lambda: datetime.now(UTC))
        self._weights = self._config.recommendation_weights
        self._sources = CandidateSources(
            reader, related, self._weights, self._config.execution.item_type
        )
        self._metrics = RecommendationMetrics.get_instance()
        self._log = logger.bind(component="recommendations")

    def default_options(self) -> GenerateOptions:
        """Generation options built from the configured defaults."""
        return GenerateOptions(
            limit=self._weights.default_limit,
            min_rating=self._weights.default_min_rating,
        )

    # ===== Generation =====

    def _run_source(
        self, source: CandidateSource, context: UserContext, now: datetime
    ) -> list[Candidate]:
        """Run one source; a failed source contributes nothing."""
        try:
            return self._sources.generate(source, context, now)
        except Exception as e:  # noqa: BLE001
            self._metrics.record_source_failure(source.value)
            self._log.warning(
                "candidate_source_failed",
                user_id=context.user_id,
                source=source.value,
                error=str(e),
            )
            return []

    def _generate_candidates(
        self, context: UserContext, now: datetime, deadline: Deadline | None
    ) -> list[Candidate]:
        results = fan_out(
            {
                source.value: (
                    lambda source=source: self._run_source(source, context, now)
                )
                for source in CandidateSource
            },
            max_workers=self._config.execution.fanout_workers,
            deadline=deadline,
        )
        # Concatenate in priority order so discovery order is deterministic.
        return [c for source in CandidateSource for c in results[source.value]]

    def _apply_min_rating(
        self, candidates: list[Candidate], min_rating: float, unit: str
    ) -> list[Candidate]:
        """Drop candidates whose known rating is below the floor."""
        if min_rating <= 0 or not candidates:
            return candidates
        stats: list[ItemStats] = guarded_fetch(
            "candidate_stats",
            lambda: self._reader.fetch_item_stats(
                self._config.execution.item_type, [c.item_id for c in candidates]
            ),
            default=[],
            unit=unit,
        )
        too_low = {
            s.item_id
            for s in stats
            if s.rating_count > 0
            and s.average_rating is not None
            and s.average_rating < min_rating
        }
        return [c for c in candidates if c.item_id not in too_low]

    def generate_user_recommendations(
        self,
        user_id: int,
        options: GenerateOptions | None = None,
        deadline: Deadline | None = None,
    ) -> list[UserRecommendation]:
        """Generate and persist a user's recommendation set.

        Args:
            user_id: User id.
            options: Limit and filters (configured defaults when omitted).
            deadline: Budget of the generation.

        Returns:
            The user's live rows ordered by position.

        Raises:
            SignalUnavailableError: If the read history cannot be read.
            UnitTimeoutError: If the deadline passes before persisting.
        """
        options = options or self.default_options()
        unit = f"user:{user_id}"
        log = self._log.bind(user_id=user_id)
        start = time.perf_counter()
        now = self._clock()

        try:
            context = build_user_context(
                self._reader,
                user_id,
                self._weights,
                max_workers=self._config.execution.fanout_workers,
                deadline=deadline,
            )
            candidates = self._generate_candidates(context, now, deadline)

            excluded = guarded_fetch(
                "dismissed_items",
                lambda: self._repository.get_dismissed_item_ids(user_id, now),
                unit=unit,
            )
            if options.exclude_read:
                excluded = excluded | context.seen_item_ids

            deduped = deduplicate(c for c in candidates if c.item_id not in excluded)
            deduped = self._apply_min_rating(deduped, options.min_rating, unit)
            ranked = sorted(deduped, key=lambda c: c.score, reverse=True)[: options.limit]

            expires_at = now + timedelta(days=self._weights.expiry_days)
            drafts = [
                RecommendationDraft(
                    user_id=user_id,
                    item_id=c.item_id,
                    item_type=self._config.execution.item_type,
                    recommendation_type=recommendation_type_for(c.reason_type),
                    reason_type=c.reason_type,
                    reason=c.reason,
                    source_item_id=c.source_item_id,
                    score=c.score,
                    position=position,
                    created_at=now,
                    expires_at=expires_at,
                )
                for position, c in enumerate(ranked)
            ]

            if deadline is not None:
                deadline.check("persisting")
            written = self._repository.replace_user_recommendations(user_id, drafts, now)

        except Exception as e:
            self._metrics.record_failed(timed_out=isinstance(e, UnitTimeoutError))
            log.error(
                "recommendation_generation_failed",
                error=str(e),
                error_type=type(e).__name__,
            )
            raise

        duration_ms = (time.perf_counter() - start) * 1000
        self._metrics.record_generated(len(candidates), written)
        log.info(
            "recommendations_persisted",
            candidate_count=len(candidates),
            deduplicated_count=len(deduped),
            written=written,
            duration_ms=round(duration_ms, 2),
        )
        return self._repository.get_user_recommendations(user_id, now, limit=options.limit)

    def generate_batch(
        self,
        user_ids: list[int],
        options: GenerateOptions | None = None,
    ) -> RecommendationBatchResult:
        """Generate recommendations for several users with failure isolation.

        Args:
            user_ids: Users to process.
            options: Options applied to every user.

        Returns:
            Rows written per successful user and failure records.
        """
        execution = self._config.execution
        bind_unit_context(f"recommendations-{uuid.uuid4().hex[:12]}")
        try:
            self._log.info("recommendation_batch_started", user_count=len(user_ids))
            outcomes = run_units(
                user_ids,
                lambda user_id, deadline: len(
                    self.generate_user_recommendations(user_id, options, deadline)
                ),
                max_workers=execution.max_workers,
                timeout_seconds=execution.unit_timeout_seconds,
                unit_key=lambda user_id: f"user:{user_id}",
            )

            result = RecommendationBatchResult()
            for user_id, outcome in zip(user_ids, outcomes, strict=True):
                if outcome.error is not None:
                    result.failures.append(outcome.error)
                else:
                    result.generated[user_id] = outcome.value or 0

            self._log.info(
                "recommendation_batch_complete",
                succeeded=len(result.generated),
                failed=len(result.failures),
            )
            return result
        finally:
            clear_unit_context()

    # ===== Reads =====

    def get_user_recommendations(
        self,
        user_id: int,
        recommendation_type: RecommendationType | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> RecommendationList:
        """Page a user's live rows without computing anything.

        Args:
            user_id: User id.
            recommendation_type: Restrict to one shelf.
            limit: Maximum rows returned.
            offset: Rows skipped.

        NOT_COMPUTED means no generation within the expiry horizon left any
        live row. A generation that produced nothing is READY and empty.

        Returns:
            READY with rows, or NOT_COMPUTED with a retry hint.
        """
        now = self._clock()
        rows = self._repository.get_user_recommendations(
            user_id, now, recommendation_type, limit, offset
        )
        if not rows and not self._has_live_generation(user_id, now):
            return RecommendationList(
                user_id=user_id,
                status=ReadStatus.NOT_COMPUTED,
                recommendation_type=recommendation_type,
                hint=NOT_COMPUTED_HINT,
            )
        return RecommendationList(
            user_id=user_id,
            status=ReadStatus.READY,
            recommendations=rows,
            recommendation_type=recommendation_type,
        )

    def _has_live_generation(self, user_id: int, now: datetime) -> bool:
        if self._repository.count_live_recommendations(user_id, now) > 0:
            return True
        generated_at = self._repository.get_last_generated_at(user_id)
        return (
            generated_at is not None
            and now - generated_at < timedelta(days=self._weights.expiry_days)
        )

    def serve_recommendations(self, user_id: int, limit: int = 20) -> list[UserRecommendation]:
        """Serve live rows, regenerating when too few remain.

        Existing rows are served when they cover at least half of ``limit``;
        otherwise the set is regenerated synchronously and re-read, so a
        first request for a user is slower than later ones.

        Args:
            user_id: User id.
            limit: Rows requested.

        Returns:
            Up to ``limit`` live rows ordered by position.
        """
        now = self._clock()
        live = self._repository.count_live_recommendations(user_id, now)
        if live >= math.ceil(limit / 2):
            return self._repository.get_user_recommendations(user_id, now, limit=limit)

        self._metrics.record_serve_regeneration()
        self._log.info("recommendations_regenerating", user_id=user_id, live=live, limit=limit)
        options = GenerateOptions(
            limit=max(limit, self._weights.default_limit),
            min_rating=self._weights.default_min_rating,
        )
        self.generate_user_recommendations(user_id, options)
        return self._repository.get_user_recommendations(user_id, self._clock(), limit=limit)

    def get_category_recommendations(
        self,
        category_id: int,
        exclude_item_ids: list[int] | None = None,
        limit: int = 20,
    ) -> list[ItemMetadata]:
        """Top items of a category by trending score.

        Raises:
            SignalUnavailableError: If the category items cannot be read.
        """
        return guarded_fetch(
            "items_in_category",
            lambda: self._reader.fetch_items_in_category(
                category_id, list(exclude_item_ids or []), limit
            ),
            unit=f"category:{category_id}",
        )

    # ===== Interaction flags =====

    def mark_viewed(self, recommendation_ids: list[int]) -> int:
        """Set the viewed flag on rows; unknown ids are ignored."""
        updated = self._repository.mark_viewed(recommendation_ids)
        self._log.debug("recommendations_viewed", updated=updated)
        return updated

    def mark_clicked(self, recommendation_id: int) -> UserRecommendation:
        """Set the clicked and viewed flags on a row.

        Raises:
            RecommendationNotFoundError: If the id does not exist.
        """
        row = self._repository.mark_clicked(recommendation_id)
        self._log.info("recommendation_clicked", recommendation_id=recommendation_id)
        return row

    def dismiss_recommendation(self, recommendation_id: int) -> UserRecommendation:
        """Dismiss a row; its item stays excluded until the row expires.

        Raises:
            RecommendationNotFoundError: If the id does not exist.
        """
        row = self._repository.dismiss(recommendation_id)
        self._log.info(
            "recommendation_dismissed",
            recommendation_id=recommendation_id,
            user_id=row.user_id,
        )
        return row
