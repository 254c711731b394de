"""Relatedness graph builder."""

from bookrank.related.builder import RelatedItemsBuilder
from bookrank.related.metrics import RelatedMetrics


__all__ = [
    "RelatedItemsBuilder",
    "RelatedMetrics",
]
