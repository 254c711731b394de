"""Shared data model primitives."""

from bookrank.data_model.base import StrictBaseModel
from bookrank.data_model.enums import (
    CandidateSource,
    EvaluationTag,
    ItemType,
    PeriodType,
    RankingType,
    ReadStatus,
    ReasonType,
    RecommendationType,
    RelationType,
    SnapshotStatus,
)


__all__ = [
    "CandidateSource",
    "EvaluationTag",
    "ItemType",
    "PeriodType",
    "RankingType",
    "ReadStatus",
    "ReasonType",
    "RecommendationType",
    "RelationType",
    "SnapshotStatus",
    "StrictBaseModel",
]
