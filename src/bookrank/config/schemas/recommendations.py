"""Recommendation and relatedness weights."""

from typing import Annotated

from pydantic import Field, model_validator

from bookrank.data_model import StrictBaseModel


class RecommendationWeights(StrictBaseModel):
    """Tunable constants for recommendation candidate sources."""

    preferred_categories: Annotated[int, Field(ge=1)] = 5
    favorite_authors: Annotated[int, Field(ge=1)] = 10

    similar_recent_reads: Annotated[int, Field(ge=0)] = 5
    similar_edges_per_source: Annotated[int, Field(ge=1)] = 10
    similar_score_weight: Annotated[float, Field(ge=0.0)] = 100.0

    category_items_per_category: Annotated[int, Field(ge=1)] = 20
    category_score_weight: Annotated[float, Field(ge=0.0)] = 0.8

    author_sources: Annotated[int, Field(ge=1)] = 5
    author_items_per_author: Annotated[int, Field(ge=1)] = 5
    author_base_score: Annotated[float, Field(ge=0.0)] = 80.0
    author_log_weight: Annotated[float, Field(ge=0.0)] = 5.0

    friends_limit: Annotated[int, Field(ge=1)] = 20
    friends_base_score: Annotated[float, Field(ge=0.0)] = 70.0
    friends_per_follower: Annotated[float, Field(ge=0.0)] = 10.0

    trending_limit: Annotated[int, Field(ge=1)] = 30
    trending_min_score: Annotated[float, Field(ge=0.0)] = 0.1
    trending_score_weight: Annotated[float, Field(ge=0.0)] = 0.5

    new_release_window_days: Annotated[int, Field(ge=1)] = 30
    new_release_limit: Annotated[int, Field(ge=1)] = 20
    new_release_base_score: Annotated[float, Field(ge=0.0)] = 50.0
    new_release_log_weight: Annotated[float, Field(ge=0.0)] = 10.0
    new_release_freshness_weight: Annotated[float, Field(ge=0.0)] = 10.0
    new_release_category_boost: Annotated[float, Field(ge=0.0)] = 20.0
    freshness_horizon_days: Annotated[int, Field(ge=1)] = 365

    high_rating_min_rating: Annotated[float, Field(ge=0.0, le=10.0)] = 8.5
    high_rating_min_count: Annotated[int, Field(ge=0)] = 50
    high_rating_limit: Annotated[int, Field(ge=1)] = 30
    high_rating_weight: Annotated[float, Field(ge=0.0)] = 10.0

    expiry_days: Annotated[int, Field(ge=1)] = 7
    default_limit: Annotated[int, Field(ge=1, le=500)] = 50
    default_min_rating: Annotated[float, Field(ge=0.0, le=10.0)] = 7.0


class RelatedConfig(StrictBaseModel):
    """Tunable constants for the relatedness graph builder."""

    same_author_similarity: Annotated[float, Field(ge=0.0, le=1.0)] = 0.9
    same_author_confidence: Annotated[float, Field(ge=0.0, le=1.0)] = 1.0
    same_author_limit: Annotated[int, Field(ge=1)] = 20

    same_category_base_similarity: Annotated[float, Field(ge=0.0, le=1.0)] = 0.5
    same_category_similarity_span: Annotated[float, Field(ge=0.0, le=1.0)] = 0.3
    same_category_trending_saturation: Annotated[float, Field(gt=0.0)] = 100.0
    same_category_confidence: Annotated[float, Field(ge=0.0, le=1.0)] = 0.8
    same_category_limit: Annotated[int, Field(ge=1)] = 30

    co_reader_sample_limit: Annotated[int, Field(ge=1)] = 100
    also_read_limit: Annotated[int, Field(ge=1)] = 20
    also_read_similarity_cap: Annotated[float, Field(ge=0.0, le=1.0)] = 0.8
    min_sample_size: Annotated[int, Field(ge=1)] = 10

    catalog_batch_limit: Annotated[int, Field(ge=1)] = 1000

    @model_validator(mode="after")
    def validate_category_similarity_bounds(self) -> "RelatedConfig":
        """Keep category similarity bounded to [0, 1]."""
        ceiling = self.same_category_base_similarity + self.same_category_similarity_span
        if ceiling > 1.0:
            msg = "same_category_base_similarity + span must not exceed 1.0"
            raise ValueError(msg)
        return self
