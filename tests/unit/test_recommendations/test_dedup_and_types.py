"""Tests for candidate deduplication and shelf mapping."""

import pytest

from bookrank.data_model import CandidateSource, ReasonType, RecommendationType
from bookrank.recommendations import Candidate, deduplicate, recommendation_type_for


def candidate(
    item_id: int,
    score: float,
    source: CandidateSource = CandidateSource.TRENDING,
    reason_type: ReasonType = ReasonType.TRENDING,
) -> Candidate:
    return Candidate(
        item_id=item_id,
        score=score,
        reason_type=reason_type,
        reason="test",
        source=source,
    )


class TestDeduplicate:
    """Tests for one-candidate-per-item selection."""

    def test_highest_score_wins(self) -> None:
        """The stronger sighting replaces a weaker one."""
        weak = candidate(1, 10.0, CandidateSource.SIMILARITY, ReasonType.SIMILAR_BOOK)
        strong = candidate(1, 80.0, CandidateSource.SOCIAL, ReasonType.FRIEND_ACTIVITY)

        assert deduplicate([weak, strong]) == [strong]

    def test_equal_scores_go_to_source_priority(self) -> None:
        """Similarity outranks rating on a tie regardless of order."""
        rating = candidate(1, 50.0, CandidateSource.RATING, ReasonType.HIGH_RATING)
        similar = candidate(1, 50.0, CandidateSource.SIMILARITY, ReasonType.SIMILAR_BOOK)

        assert deduplicate([rating, similar]) == [similar]
        assert deduplicate([similar, rating]) == [similar]

    def test_full_tie_keeps_first_seen(self) -> None:
        """Same score and source keeps the first sighting."""
        first = Candidate(1, 5.0, ReasonType.TRENDING, "first", CandidateSource.TRENDING)
        second = Candidate(1, 5.0, ReasonType.TRENDING, "second", CandidateSource.TRENDING)

        assert deduplicate([first, second])[0].reason == "first"

    def test_items_keep_first_position(self) -> None:
        """Output follows the order items were first seen."""
        result = deduplicate(
            [candidate(3, 1.0), candidate(1, 1.0), candidate(3, 9.0), candidate(2, 1.0)]
        )

        assert [c.item_id for c in result] == [3, 1, 2]
        assert result[0].score == 9.0

    def test_empty(self) -> None:
        """No candidates, no output."""
        assert deduplicate([]) == []


class TestSourcePriority:
    """Tests for the tie-break order of sources."""

    def test_declaration_order(self) -> None:
        """Priority follows declaration order."""
        priorities = [source.priority for source in CandidateSource]
        assert priorities == sorted(priorities)
        assert CandidateSource.SIMILARITY.priority == 0


class TestRecommendationTypeFor:
    """Tests for mapping reasons to shelves."""

    @pytest.mark.parametrize(
        ("reason_type", "expected"),
        [
            (ReasonType.SIMILAR_BOOK, RecommendationType.SIMILAR_TO_READING),
            (ReasonType.SAME_AUTHOR, RecommendationType.SIMILAR_TO_READING),
            (ReasonType.SAME_CATEGORY, RecommendationType.POPULAR_IN_CATEGORY),
            (ReasonType.NEW_IN_CATEGORY, RecommendationType.POPULAR_IN_CATEGORY),
            (ReasonType.FRIEND_ACTIVITY, RecommendationType.FRIENDS_READING),
            (ReasonType.TRENDING, RecommendationType.NEW_RELEASE),
            (ReasonType.HIGH_RATING, RecommendationType.FOR_YOU),
        ],
    )
    def test_mapping(self, reason_type: ReasonType, expected: RecommendationType) -> None:
        """Every reason type maps to exactly one shelf."""
        assert recommendation_type_for(reason_type) == expected
