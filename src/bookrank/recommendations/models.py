"""Types used while assembling user recommendations."""

from dataclasses import dataclass, field
from typing import Annotated

from pydantic import Field

from bookrank.data_model import (
    CandidateSource,
    ReadStatus,
    ReasonType,
    RecommendationType,
    StrictBaseModel,
)
from bookrank.errors import ErrorRecord
from bookrank.store.models import UserRecommendation


@dataclass(frozen=True)
class Candidate:
    """An (item, score, reason) proposed by one source before deduplication."""

    item_id: int
    score: float
    reason_type: ReasonType
    reason: str
    source: CandidateSource
    source_item_id: int | None = None


class GenerateOptions(StrictBaseModel):
    """Options of one recommendation generation.

    Attributes:
        limit: Maximum rows persisted.
        exclude_read: Drop items the user has read or is reading.
        min_rating: Drop items whose known average rating is below this.
    """

    limit: Annotated[int, Field(ge=1, le=500)] = 50
    exclude_read: bool = True
    min_rating: Annotated[float, Field(ge=0.0, le=10.0)] = 7.0


class UserContext(StrictBaseModel):
    """Per-generation view of a user, rebuilt on every run.

    Attributes:
        user_id: User id.
        read_item_ids: Items read, most recent first.
        currently_reading_item_ids: Items on the reading shelf.
        preferred_category_ids: Most frequent categories of read items.
        favorite_authors: Most frequent authors of read items.
        following_user_ids: Users the user follows.
    """

    user_id: int
    read_item_ids: list[int] = Field(default_factory=list)
    currently_reading_item_ids: list[int] = Field(default_factory=list)
    preferred_category_ids: list[int] = Field(default_factory=list)
    favorite_authors: list[str] = Field(default_factory=list)
    following_user_ids: list[int] = Field(default_factory=list)

    @property
    def seen_item_ids(self) -> set[int]:
        """Items read or currently being read."""
        return set(self.read_item_ids) | set(self.currently_reading_item_ids)


class RecommendationList(StrictBaseModel):
    """A page of a user's live recommendations.

    ``status`` is NOT_COMPUTED with a retry hint when the user has no live
    rows and no generation inside the expiry horizon; that is an expected
    empty result, not an error.
    """

    user_id: int
    status: ReadStatus
    recommendations: list[UserRecommendation] = []
    recommendation_type: RecommendationType | None = None
    hint: str | None = None


@dataclass
class RecommendationBatchResult:
    """Result of generating recommendations for several users.

    Attributes:
        generated: Rows written per successful user.
        failures: Error records of failed or timed-out users.
    """

    generated: dict[int, int] = field(default_factory=dict)
    failures: list[ErrorRecord] = field(default_factory=list)

    @property
    def success(self) -> bool:
        """Check if every user succeeded."""
        return not self.failures
