"""Root engine configuration schema."""

import zoneinfo
from typing import Annotated

from pydantic import Field, field_validator, model_validator

from bookrank.config.schemas.rankings import (
    DEFAULT_RANKING_DEFINITIONS,
    RankingDefinition,
    RankingWeights,
)
from bookrank.config.schemas.recommendations import (
    RecommendationWeights,
    RelatedConfig,
)
from bookrank.data_model import ItemType, RankingType, StrictBaseModel


class ExecutionConfig(StrictBaseModel):
    """Concurrency and scheduling limits.

    Attributes:
        max_workers: Units of work executed in parallel by batch entry points.
        fanout_workers: Parallel signal fetches inside one unit.
        unit_timeout_seconds: Budget for a single unit of work.
        timezone: Reference timezone for period windows.
        item_type: Catalog item type ranked and recommended.
    """

    max_workers: Annotated[int, Field(ge=1, le=64)] = 4
    fanout_workers: Annotated[int, Field(ge=1, le=32)] = 6
    unit_timeout_seconds: Annotated[float, Field(gt=0.0)] = 60.0
    timezone: str = "UTC"
    item_type: ItemType = ItemType.EBOOK

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        """Reject unknown IANA timezone names."""
        try:
            zoneinfo.ZoneInfo(v)
        except (KeyError, ValueError, zoneinfo.ZoneInfoNotFoundError) as e:
            msg = f"Unknown timezone: {v}"
            raise ValueError(msg) from e
        return v


class EngineConfig(StrictBaseModel):
    """Root configuration for engine.yaml.

    Attributes:
        version: Schema version.
        rankings: Ranking definitions, one per ranking type.
        ranking_weights: Ranking scorer constants.
        recommendation_weights: Recommendation source constants.
        related: Relatedness graph constants.
        execution: Concurrency and scheduling limits.
    """

    version: Annotated[str, Field(pattern=r"^\d+\.\d+$")] = "1.0"
    rankings: list[RankingDefinition] = Field(
        default_factory=lambda: list(DEFAULT_RANKING_DEFINITIONS)
    )
    ranking_weights: RankingWeights = Field(default_factory=RankingWeights)
    recommendation_weights: RecommendationWeights = Field(
        default_factory=RecommendationWeights
    )
    related: RelatedConfig = Field(default_factory=RelatedConfig)
    execution: ExecutionConfig = Field(default_factory=ExecutionConfig)

    @model_validator(mode="after")
    def validate_unique_ranking_types(self) -> "EngineConfig":
        """Ensure each ranking type is defined at most once."""
        seen: set[RankingType] = set()
        for definition in self.rankings:
            if definition.type in seen:
                msg = f"Duplicate ranking definition: {definition.type.value}"
                raise ValueError(msg)
            seen.add(definition.type)
        return self

    def definition_for(self, ranking_type: RankingType) -> RankingDefinition | None:
        """Look up the definition for a ranking type.

        Args:
            ranking_type: Ranking type key.

        Returns:
            The definition, or None if the type is not configured.
        """
        for definition in self.rankings:
            if definition.type == ranking_type:
                return definition
        return None
