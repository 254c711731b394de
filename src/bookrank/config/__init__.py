"""Engine configuration: schemas, built-in definitions and YAML loading."""

from bookrank.config.schemas.rankings import DEFAULT_RANKING_DEFINITIONS
from bookrank.config.loader import ConfigLoader, ConfigValidationError
from bookrank.config.schemas import (
    EngineConfig,
    ExecutionConfig,
    RankingDefinition,
    RankingWeights,
    RecommendationWeights,
    RelatedConfig,
)


__all__ = [
    "DEFAULT_RANKING_DEFINITIONS",
    "ConfigLoader",
    "ConfigValidationError",
    "EngineConfig",
    "ExecutionConfig",
    "RankingDefinition",
    "RankingWeights",
    "RecommendationWeights",
    "RelatedConfig",
]
