"""Per-user recommendation candidate engine."""

from bookrank.recommendations.assembler import (
    NOT_COMPUTED_HINT,
    RecommendationAssembler,
    deduplicate,
    recommendation_type_for,
)
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


__all__ = [
    "NOT_COMPUTED_HINT",
    "Candidate",
    "CandidateSources",
    "GenerateOptions",
    "RecommendationAssembler",
    "RecommendationBatchResult",
    "RecommendationList",
    "RecommendationMetrics",
    "UserContext",
    "build_user_context",
    "deduplicate",
    "recommendation_type_for",
]
