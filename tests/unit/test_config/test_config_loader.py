"""Tests for ConfigLoader."""

import json
from pathlib import Path

import pytest

from bookrank.config import ConfigLoader, ConfigValidationError, EngineConfig
from bookrank.data_model import ItemType, RankingType


REPO_CONFIG = Path(__file__).parents[3] / "config" / "engine.yaml"


def write_config(tmp_path: Path, content: str) -> Path:
    path = tmp_path / "engine.yaml"
    path.write_text(content, encoding="utf-8")
    return path


class TestConfigLoader:
    """Tests for loading engine.yaml."""

    def test_defaults_without_file(self) -> None:
        """No path means built-in defaults."""
        loader = ConfigLoader(run_id="test-run-001")

        config = loader.load(None)

        assert config == EngineConfig()
        assert loader.file_checksum is None

    def test_repository_config_is_valid(self) -> None:
        """The shipped engine.yaml loads cleanly."""
        loader = ConfigLoader(run_id="test-run-002")

        config = loader.load(REPO_CONFIG)

        assert len(config.rankings) == len(RankingType)
        assert config.execution.item_type == ItemType.EBOOK
        assert loader.validation_errors == []

    def test_overrides_merge_over_defaults(self, tmp_path: Path) -> None:
        """Keys left out keep their defaults."""
        path = write_config(
            tmp_path,
            "execution:\n  max_workers: 2\n  timezone: Asia/Taipei\n"
            "ranking_weights:\n  masterpiece_min_rating: 9.0\n",
        )

        config = ConfigLoader(run_id="test-run-003").load(path)

        assert config.execution.max_workers == 2
        assert config.execution.timezone == "Asia/Taipei"
        assert config.execution.fanout_workers == 6
        assert config.ranking_weights.masterpiece_min_rating == 9.0
        assert config.ranking_weights.potential_min_rating == 9.0

    def test_rankings_list_replaces_defaults(self, tmp_path: Path) -> None:
        """A rankings list configures exactly the listed types."""
        path = write_config(
            tmp_path,
            "rankings:\n"
            "  - type: trending\n"
            "    display_name: Weekly Trending\n"
            "    period_type: weekly\n"
            "    limit: 20\n",
        )

        config = ConfigLoader(run_id="test-run-004").load(path)

        assert [d.type for d in config.rankings] == [RankingType.TRENDING]
        assert config.rankings[0].limit == 20

    def test_empty_file_is_defaults(self, tmp_path: Path) -> None:
        """An empty document is an empty mapping."""
        path = write_config(tmp_path, "")
        assert ConfigLoader(run_id="test-run-005").load(path) == EngineConfig()

    def test_checksum(self, tmp_path: Path) -> None:
        """The SHA-256 of the file is recorded."""
        path = write_config(tmp_path, "version: '1.0'\n")
        loader = ConfigLoader(run_id="test-run-006")

        loader.load(path)

        assert loader.file_checksum is not None
        assert len(loader.file_checksum) == 64

    def test_invalid_value(self, tmp_path: Path) -> None:
        """Schema violations are collected with their location."""
        path = write_config(tmp_path, "execution:\n  max_workers: 0\n")
        loader = ConfigLoader(run_id="test-run-007")

        with pytest.raises(ConfigValidationError) as exc_info:
            loader.load(path)

        assert exc_info.value.file_path == str(path)
        assert [e["loc"] for e in loader.validation_errors] == ["execution.max_workers"]

    def test_unknown_key_rejected(self, tmp_path: Path) -> None:
        """Typos in keys are errors, not silently ignored."""
        path = write_config(tmp_path, "ranking_wieghts: {}\n")

        with pytest.raises(ConfigValidationError):
            ConfigLoader(run_id="test-run-008").load(path)

    def test_missing_file(self, tmp_path: Path) -> None:
        """A missing file is reported as a validation error."""
        loader = ConfigLoader(run_id="test-run-009")

        with pytest.raises(ConfigValidationError):
            loader.load(tmp_path / "missing.yaml")

        assert loader.validation_errors[0]["type"] == "file_not_found"

    def test_malformed_yaml(self, tmp_path: Path) -> None:
        """YAML syntax errors are reported as validation errors."""
        path = write_config(tmp_path, "execution: [unclosed\n")
        loader = ConfigLoader(run_id="test-run-010")

        with pytest.raises(ConfigValidationError):
            loader.load(path)

        assert loader.validation_errors[0]["type"] == "yaml_parse_error"

    def test_validation_summary_json(self, tmp_path: Path) -> None:
        """The summary is stable JSON carrying the run id."""
        path = write_config(tmp_path, "execution:\n  timezone: Mars/Olympus\n")
        loader = ConfigLoader(run_id="test-run-011")

        with pytest.raises(ConfigValidationError):
            loader.load(path)

        summary = json.loads(loader.get_validation_summary_json())
        assert summary["run_id"] == "test-run-011"
        assert summary["validation_error_count"] == 1
