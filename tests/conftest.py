"""Shared fixtures."""

import tempfile
from collections.abc import Generator
from pathlib import Path

import pytest

from bookrank.rankings import RankingMetrics
from bookrank.recommendations import RecommendationMetrics
from bookrank.related import RelatedMetrics
from bookrank.store import EngineStore, StoreMetrics
from tests.helpers.catalog import CatalogBuilder


@pytest.fixture(autouse=True)
def reset_metrics() -> None:
    """Reset metric singletons before each test."""
    StoreMetrics.reset()
    RankingMetrics.reset()
    RelatedMetrics.reset()
    RecommendationMetrics.reset()


@pytest.fixture
def temp_db_path() -> Generator[Path]:
    """Create a temporary database path."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir) / "engine.sqlite"


@pytest.fixture
def store(temp_db_path: Path) -> Generator[EngineStore]:
    """Create a connected engine store."""
    store = EngineStore(temp_db_path, run_id="test-run-001")
    store.connect()
    yield store
    store.close()


@pytest.fixture
def catalog() -> CatalogBuilder:
    """Empty catalog builder anchored at FIXED_NOW."""
    return CatalogBuilder()
