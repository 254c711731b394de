"""Closed enumerations shared across the engine."""

from enum import Enum


class ItemType(str, Enum):
    """Catalog item type."""

    EBOOK = "ebook"
    MAGAZINE = "magazine"
    BOOK = "book"


class RankingType(str, Enum):
    """Independently scheduled leaderboard types."""

    TRENDING = "trending"
    HOT_SEARCH = "hot_search"
    NEW_BOOKS = "new_books"
    FICTION = "fiction"
    NON_FICTION = "non_fiction"
    FILM_TV = "film_tv"
    AUDIOBOOK = "audiobook"
    TOP_200 = "top_200"
    MASTERPIECE = "masterpiece"
    POTENTIAL_MASTERPIECE = "potential_masterpiece"


class PeriodType(str, Enum):
    """Window a ranking snapshot covers."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    ALL_TIME = "all_time"


class EvaluationTag(str, Enum):
    """Rating-derived badge attached to ranking entries."""

    MASTERPIECE = "masterpiece"
    HIGHLY_PRAISED = "highly_praised"
    WORTH_READING = "worth_reading"


class RelationType(str, Enum):
    """Kind of relatedness edge between two items."""

    SAME_AUTHOR = "same_author"
    SAME_CATEGORY = "same_category"
    READERS_ALSO_READ = "readers_also_read"


class ReasonType(str, Enum):
    """Why a recommendation candidate was proposed."""

    SIMILAR_BOOK = "similar_book"
    SAME_AUTHOR = "same_author"
    SAME_CATEGORY = "same_category"
    FRIEND_ACTIVITY = "friend_activity"
    TRENDING = "trending"
    NEW_IN_CATEGORY = "new_in_category"
    HIGH_RATING = "high_rating"


class RecommendationType(str, Enum):
    """Shelf a recommendation is displayed under."""

    FOR_YOU = "for_you"
    SIMILAR_TO_READING = "similar_to_reading"
    POPULAR_IN_CATEGORY = "popular_in_category"
    FRIENDS_READING = "friends_reading"
    NEW_RELEASE = "new_release"


class CandidateSource(str, Enum):
    """Recommendation candidate sources.

    Declaration order is the dedup tie-break priority: when two sources
    propose the same item with an equal score, the earlier source wins.
    """

    SIMILARITY = "similarity"
    SAME_AUTHOR = "same_author"
    CATEGORY = "category"
    SOCIAL = "social"
    TRENDING = "trending"
    RATING = "rating"

    @property
    def priority(self) -> int:
        """Lower value wins ties."""
        return list(CandidateSource).index(self)


class SnapshotStatus(str, Enum):
    """Outcome of a ranking computation.

    - CREATED: a new snapshot was swapped in as active
    - KEPT_PREVIOUS: no eligible candidates; the prior non-empty snapshot stays active
    """

    CREATED = "created"
    KEPT_PREVIOUS = "kept_previous"


class ReadStatus(str, Enum):
    """Status of a read against computed state."""

    READY = "ready"
    NOT_COMPUTED = "not_computed"
