"""Offline computation of pairwise item relationships."""

import time
from collections.abc import Callable
from datetime import UTC, datetime

import structlog

from bookrank.config.schemas.engine import EngineConfig
from bookrank.data_model import ItemType, RelationType
from bookrank.execution import Deadline, run_units
from bookrank.related.metrics import RelatedMetrics
from bookrank.signals import SignalReader, guarded_fetch
from bookrank.store.models import RelatedItemEdge
from bookrank.store.protocols import RelatedItemRepository


logger = structlog.get_logger()


class RelatedItemsBuilder:
    """Builds same-author, same-category and readers-also-read edges.

    The single-item and catalog entry points share one code path, so both
    produce identical edges for the same item given the same signals.
    Edges are upserted with max-merge on similarity, which makes repeated
    and concurrent computation of the same item safe.
    """

    def __init__(
        self,
        reader: SignalReader,
        repository: RelatedItemRepository,
        config: EngineConfig | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize the builder.

        Args:
            reader: Signal reader for catalog and reading history.
            repository: Edge repository.
            config: Engine configuration (defaults when omitted).
            clock: Returns the current time; defaults to UTC now.
        """
        self._reader = reader
        self._repository = repository
        self._config = config or EngineConfig()
        self._clock = clock or (lambda: datetime.now(UTC))
        self._metrics = RelatedMetrics.get_instance()
        self._log = logger.bind(component="related")

    def build_edges(
        self, item_type: ItemType, item_id: int, now: datetime
    ) -> list[RelatedItemEdge]:
        """Compute the outgoing edges of one item without persisting them.

        Args:
            item_type: Source item type.
            item_id: Source item id.
            now: Timestamp stamped on the edges.

        Returns:
            Edges ordered by relation type then discovery order.

        Raises:
            SignalUnavailableError: If a signal read fails.
        """
        cfg = self._config.related
        unit = f"{item_type.value}:{item_id}"

        metadata = guarded_fetch(
            "item_metadata",
            lambda: self._reader.fetch_item_metadata([item_id]),
            unit=unit,
        )
        if not metadata:
            self._log.warning("related_source_missing", item_id=item_id)
            return []
        source = metadata[0]

        edges: list[RelatedItemEdge] = []

        def edge(
            related_id: int, relation: RelationType, similarity: float, confidence: float
        ) -> RelatedItemEdge:
            return RelatedItemEdge(
                source_item_type=item_type,
                source_item_id=item_id,
                related_item_type=item_type,
                related_item_id=related_id,
                relation_type=relation,
                similarity_score=min(1.0, max(0.0, similarity)),
                confidence=min(1.0, max(0.0, confidence)),
                computed_at=now,
            )

        if source.author:
            author = source.author
            same_author = guarded_fetch(
                "items_by_author",
                lambda: self._reader.fetch_items_by_author(
                    author, item_id, cfg.same_author_limit
                ),
                unit=unit,
            )
            edges.extend(
                edge(
                    other.item_id,
                    RelationType.SAME_AUTHOR,
                    cfg.same_author_similarity,
                    cfg.same_author_confidence,
                )
                for other in same_author
                if other.item_id != item_id
            )

        if source.category_id is not None:
            category_id = source.category_id
            same_category = guarded_fetch(
                "items_in_category",
                lambda: self._reader.fetch_items_in_category(
                    category_id, [item_id], cfg.same_category_limit
                ),
                unit=unit,
            )
            for other in same_category:
                if other.item_id == item_id:
                    continue
                trending = other.trending_score
                similarity = cfg.same_category_base_similarity + (
                    cfg.same_category_similarity_span
                    * trending
                    / (trending + cfg.same_category_trending_saturation)
                )
                edges.append(
                    edge(
                        other.item_id,
                        RelationType.SAME_CATEGORY,
                        similarity,
                        cfg.same_category_confidence,
                    )
                )

        readers = guarded_fetch(
            "co_occurring_readers",
            lambda: self._reader.fetch_co_occurring_readers(
                item_type, item_id, cfg.co_reader_sample_limit
            ),
            unit=unit,
        )
        if readers:
            total = len(readers)
            also_read = guarded_fetch(
                "items_read_by_users",
                lambda: self._reader.fetch_items_read_by_users(
                    item_type, readers, item_id, cfg.also_read_limit
                ),
                unit=unit,
            )
            confidence = min(1.0, total / cfg.min_sample_size)
            edges.extend(
                edge(
                    co.item_id,
                    RelationType.READERS_ALSO_READ,
                    min(cfg.also_read_similarity_cap, co.user_count / total),
                    confidence,
                )
                for co in also_read
                if co.item_id != item_id
            )

        return edges

    def compute_related_items(
        self,
        item_type: ItemType,
        item_id: int,
        deadline: Deadline | None = None,
    ) -> list[RelatedItemEdge]:
        """Compute and upsert the outgoing edges of one item.

        Args:
            item_type: Source item type.
            item_id: Source item id.
            deadline: Budget of the enclosing unit.

        Returns:
            The edges written.

        Raises:
            SignalUnavailableError: If a signal read fails.
            UnitTimeoutError: If the deadline passes before persisting.
        """
        start = time.perf_counter()
        log = self._log.bind(item_id=item_id, item_type=item_type.value)

        edges = self.build_edges(item_type, item_id, self._clock())
        if deadline is not None:
            deadline.check("persisting")
        self._repository.upsert_edges(edges)

        duration_ms = (time.perf_counter() - start) * 1000
        self._metrics.record_item(len(edges), duration_ms)
        log.info(
            "related_items_computed",
            edge_count=len(edges),
            duration_ms=round(duration_ms, 2),
        )
        return edges

    def compute_all_related_items(self, item_type: ItemType | None = None) -> dict[str, int]:
        """Compute edges for the catalog, isolating per-item failures.

        Args:
            item_type: Item type to process (configured type when omitted).

        Returns:
            Counts under ``processed`` and ``failed``.
        """
        item_type = item_type or self._config.execution.item_type
        item_ids = guarded_fetch(
            "catalog_item_ids",
            lambda: self._reader.list_item_ids(self._config.related.catalog_batch_limit),
            unit="related_batch",
        )
        self._log.info("related_batch_started", item_count=len(item_ids))

        outcomes = run_units(
            item_ids,
            lambda item_id, deadline: self.compute_related_items(item_type, item_id, deadline),
            max_workers=self._config.execution.max_workers,
            timeout_seconds=self._config.execution.unit_timeout_seconds,
            unit_key=lambda item_id: f"{item_type.value}:{item_id}",
        )

        processed = sum(1 for o in outcomes if o.success)
        failed = len(outcomes) - processed
        for outcome in outcomes:
            if not outcome.success:
                self._metrics.record_failure()

        self._log.info("related_batch_complete", processed=processed, failed=failed)
        return {"processed": processed, "failed": failed}
