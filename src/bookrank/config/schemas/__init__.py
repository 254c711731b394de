"""Configuration schemas."""

from bookrank.config.schemas.engine import EngineConfig, ExecutionConfig
from bookrank.config.schemas.rankings import RankingDefinition, RankingWeights
from bookrank.config.schemas.recommendations import (
    RecommendationWeights,
    RelatedConfig,
)


__all__ = [
    "EngineConfig",
    "ExecutionConfig",
    "RankingDefinition",
    "RankingWeights",
    "RecommendationWeights",
    "RelatedConfig",
]
