"""Ranking definitions and ranking scoring weights."""

from typing import Annotated

from pydantic import Field

from bookrank.data_model import PeriodType, RankingType, StrictBaseModel


class RankingDefinition(StrictBaseModel):
    """Static configuration of one ranking type.

    Attributes:
        type: Ranking type key.
        display_name: Human-readable name.
        period_type: Window the snapshot covers.
        limit: Maximum entries kept per snapshot.
        theme_color: Hex colour used by clients.
        description: Short description for clients.
        category: Category name for category charts.
    """

    type: RankingType
    display_name: Annotated[str, Field(min_length=1, max_length=100)]
    period_type: PeriodType
    limit: Annotated[int, Field(ge=1, le=1000)]
    theme_color: Annotated[str, Field(pattern=r"^#[0-9A-Fa-f]{6}$")] = "#FFFFFF"
    description: str = ""
    category: str | None = None


class RankingWeights(StrictBaseModel):
    """Tunable constants for ranking scorers.

    Only the shape of each formula is fixed; these values only need to
    preserve relative ordering.
    """

    trending_session_weight: Annotated[float, Field(ge=0.0)] = 10.0

    hot_search_min_searches: Annotated[int, Field(ge=0)] = 1
    hot_search_candidate_limit: Annotated[int, Field(ge=1)] = 200

    new_books_window_days: Annotated[int, Field(ge=1)] = 30
    new_books_view_weight: Annotated[float, Field(ge=0.0)] = 0.5
    new_books_reader_weight: Annotated[float, Field(ge=0.0)] = 2.0
    new_books_rating_weight: Annotated[float, Field(ge=0.0)] = 10.0
    new_books_candidate_limit: Annotated[int, Field(ge=1)] = 200

    category_popularity_weight: Annotated[float, Field(ge=0.0)] = 100.0
    category_reader_weight: Annotated[float, Field(ge=0.0)] = 0.5
    category_rating_weight: Annotated[float, Field(ge=0.0)] = 2.0
    category_candidate_limit: Annotated[int, Field(ge=1)] = 200

    screen_view_weight: Annotated[float, Field(ge=0.0)] = 1.0
    screen_reader_weight: Annotated[float, Field(ge=0.0)] = 2.0
    screen_candidate_limit: Annotated[int, Field(ge=1)] = 200

    top_chart_candidate_limit: Annotated[int, Field(ge=1)] = 500
    top_chart_popularity_weight: Annotated[float, Field(ge=0.0)] = 100.0
    top_chart_reader_weight: Annotated[float, Field(ge=0.0)] = 10.0
    top_chart_rating_divisor: Annotated[float, Field(gt=0.0)] = 5.0
    top_chart_unrated_weight: Annotated[float, Field(ge=0.0)] = 0.5

    masterpiece_min_rating: Annotated[float, Field(ge=0.0, le=10.0)] = 9.5
    masterpiece_min_rating_count: Annotated[int, Field(ge=0)] = 100
    masterpiece_candidate_limit: Annotated[int, Field(ge=1)] = 100

    potential_min_rating: Annotated[float, Field(ge=0.0, le=10.0)] = 9.0
    potential_max_readers: Annotated[int, Field(ge=0)] = 1000
    potential_min_rating_count: Annotated[int, Field(ge=0)] = 10
    potential_freshness_weight: Annotated[float, Field(ge=0.0)] = 20.0
    potential_candidate_limit: Annotated[int, Field(ge=1)] = 100

    freshness_horizon_days: Annotated[int, Field(ge=1)] = 365

    item_trending_window_days: Annotated[int, Field(ge=1)] = 7
    item_trending_weight: Annotated[float, Field(ge=0.0)] = 100.0


DEFAULT_RANKING_DEFINITIONS: tuple[RankingDefinition, ...] = (
    RankingDefinition(
        type=RankingType.TRENDING,
        display_name="Rising Stars",
        theme_color="#FF6B6B",
        description="Books with the fastest growing readership",
        period_type=PeriodType.WEEKLY,
        limit=100,
    ),
    RankingDefinition(
        type=RankingType.HOT_SEARCH,
        display_name="Hot Searches",
        theme_color="#FFB347",
        description="Most searched books right now",
        period_type=PeriodType.DAILY,
        limit=50,
    ),
    RankingDefinition(
        type=RankingType.NEW_BOOKS,
        display_name="New Releases",
        theme_color="#77DD77",
        description="Popular newly added books",
        period_type=PeriodType.MONTHLY,
        limit=50,
    ),
    RankingDefinition(
        type=RankingType.FICTION,
        display_name="Fiction",
        theme_color="#AEC6CF",
        description="Most popular fiction works",
        period_type=PeriodType.WEEKLY,
        limit=100,
        category="fiction",
    ),
    RankingDefinition(
        type=RankingType.NON_FICTION,
        display_name="Non-Fiction",
        theme_color="#FFDAB9",
        description="Most popular non-fiction works",
        period_type=PeriodType.WEEKLY,
        limit=100,
        category="non_fiction",
    ),
    RankingDefinition(
        type=RankingType.FILM_TV,
        display_name="Screen Adaptations",
        theme_color="#DDA0DD",
        description="Books adapted into movies and TV shows",
        period_type=PeriodType.WEEKLY,
        limit=50,
    ),
    RankingDefinition(
        type=RankingType.AUDIOBOOK,
        display_name="Audiobooks",
        theme_color="#87CEEB",
        description="Most popular audiobooks",
        period_type=PeriodType.WEEKLY,
        limit=50,
    ),
    RankingDefinition(
        type=RankingType.TOP_200,
        display_name="Top 200",
        theme_color="#FFD700",
        description="The 200 highest rated books of all time",
        period_type=PeriodType.ALL_TIME,
        limit=200,
    ),
    RankingDefinition(
        type=RankingType.MASTERPIECE,
        display_name="Masterpieces",
        theme_color="#E6E6FA",
        description="Timeless classics rated 9.5 and above",
        period_type=PeriodType.ALL_TIME,
        limit=50,
    ),
    RankingDefinition(
        type=RankingType.POTENTIAL_MASTERPIECE,
        display_name="Hidden Gems",
        theme_color="#98FB98",
        description="Highly rated books waiting to be discovered",
        period_type=PeriodType.MONTHLY,
        limit=30,
    ),
)
