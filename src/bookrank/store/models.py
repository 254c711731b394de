"""Persisted entities of the engine store."""

from datetime import datetime
from typing import Annotated

from pydantic import Field

from bookrank.data_model import (
    EvaluationTag,
    ItemType,
    PeriodType,
    RankingType,
    ReasonType,
    RecommendationType,
    RelationType,
    StrictBaseModel,
)


class SnapshotDraft(StrictBaseModel):
    """A ranking snapshot before it is persisted."""

    ranking_type: RankingType
    period_type: PeriodType
    period_start: datetime
    period_end: datetime
    display_name: str
    theme_color: str
    description: str = ""
    computed_at: datetime
    expires_at: datetime


class RankingSnapshot(SnapshotDraft):
    """One computed, versioned instance of a ranking type.

    Never mutated after creation except for ``is_active``.
    """

    id: int
    is_active: bool


class RankedEntry(StrictBaseModel):
    """A ranked item before it is attached to a snapshot."""

    item_id: int
    item_type: ItemType = ItemType.EBOOK
    rank: Annotated[int, Field(ge=1)]
    previous_rank: int | None = None
    rank_change: int = 0
    score: Annotated[float, Field(ge=0.0)]
    reader_count: Annotated[int, Field(ge=0)] = 0
    rating: float | None = None
    evaluation_tag: EvaluationTag | None = None
    title: str
    author: str | None = None
    cover_url: str | None = None


class RankingEntry(RankedEntry):
    """A ranked item of a persisted snapshot."""

    snapshot_id: int


class RelatedItemEdge(StrictBaseModel):
    """Directed, typed, scored link between two catalog items."""

    source_item_type: ItemType = ItemType.EBOOK
    source_item_id: int
    related_item_type: ItemType = ItemType.EBOOK
    related_item_id: int
    relation_type: RelationType
    similarity_score: Annotated[float, Field(ge=0.0, le=1.0)]
    confidence: Annotated[float, Field(ge=0.0, le=1.0)]
    computed_at: datetime


class RecommendationDraft(StrictBaseModel):
    """A positioned recommendation before it is persisted."""

    user_id: int
    item_id: int
    item_type: ItemType = ItemType.EBOOK
    recommendation_type: RecommendationType
    reason_type: ReasonType
    reason: Annotated[str, Field(min_length=1)]
    source_item_id: int | None = None
    score: Annotated[float, Field(ge=0.0)]
    position: Annotated[int, Field(ge=0)]
    created_at: datetime
    expires_at: datetime


class UserRecommendation(RecommendationDraft):
    """A persisted recommendation row with its interaction flags."""

    id: int
    is_viewed: bool = False
    is_clicked: bool = False
    is_dismissed: bool = False

    def is_live(self, now: datetime) -> bool:
        """Check whether the row is neither expired nor dismissed."""
        return not self.is_dismissed and self.expires_at > now
