"""Signal records returned by signal readers."""

from datetime import datetime
from typing import Annotated

from pydantic import Field, model_validator

from bookrank.data_model import ItemType, StrictBaseModel


class TimeWindow(StrictBaseModel):
    """Inclusive time window for activity queries."""

    start: datetime
    end: datetime

    @model_validator(mode="after")
    def validate_order(self) -> "TimeWindow":
        """Ensure start does not follow end."""
        if self.start > self.end:
            msg = "window start must not be after window end"
            raise ValueError(msg)
        return self

    def contains(self, moment: datetime) -> bool:
        """Check whether a timestamp falls inside the window."""
        return self.start <= moment <= self.end


class ReadingActivity(StrictBaseModel):
    """Aggregated reading sessions for one item inside a window."""

    item_id: int
    session_count: Annotated[int, Field(ge=0)] = 0
    total_duration_seconds: Annotated[int, Field(ge=0)] = 0


class Category(StrictBaseModel):
    """Catalog category."""

    category_id: int
    name: str
    display_name: str | None = None

    @property
    def label(self) -> str:
        """Name shown in reason text."""
        return self.display_name or self.name


class ItemMetadata(StrictBaseModel):
    """Catalog metadata for one item.

    Counters default to zero so a sparse catalog row never breaks scoring.
    """

    item_id: int
    item_type: ItemType = ItemType.EBOOK
    title: Annotated[str, Field(min_length=1)]
    author: str | None = None
    category_id: int | None = None
    cover_url: str | None = None
    created_at: datetime | None = None
    view_count: Annotated[int, Field(ge=0)] = 0
    search_count: Annotated[int, Field(ge=0)] = 0
    trending_score: Annotated[float, Field(ge=0.0)] = 0.0
    is_film_adaptation: bool = False
    has_audiobook: bool = False


class ItemStats(StrictBaseModel):
    """Aggregated reader statistics for one item."""

    item_id: int
    item_type: ItemType = ItemType.EBOOK
    total_readers: Annotated[int, Field(ge=0)] = 0
    average_rating: Annotated[float | None, Field(ge=0.0, le=10.0)] = None
    rating_count: Annotated[int, Field(ge=0)] = 0
    popularity_score: Annotated[float, Field(ge=0.0)] = 0.0


class UserReadHistory(StrictBaseModel):
    """Items a user has read (most recent first) and is currently reading."""

    read_item_ids: list[int] = Field(default_factory=list)
    currently_reading_item_ids: list[int] = Field(default_factory=list)


class SocialGraph(StrictBaseModel):
    """Users a user follows."""

    following_user_ids: list[int] = Field(default_factory=list)


class ItemUserCount(StrictBaseModel):
    """Number of distinct users associated with an item."""

    item_id: int
    user_count: Annotated[int, Field(ge=0)]


class ReadingSession(StrictBaseModel):
    """Raw reading session row."""

    user_id: int
    item_id: int
    item_type: ItemType = ItemType.EBOOK
    start_time: datetime
    duration_seconds: Annotated[int, Field(ge=0)] = 0


class HistoryEntry(StrictBaseModel):
    """Raw reading-history row."""

    user_id: int
    item_id: int
    item_type: ItemType = ItemType.EBOOK
    last_read_at: datetime


class ShelfEntry(StrictBaseModel):
    """Raw bookshelf row."""

    user_id: int
    item_id: int
    item_type: ItemType = ItemType.EBOOK
    status: str = "reading"
