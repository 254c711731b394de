"""Engine configuration loader with validation."""

import hashlib
import json
import time
from pathlib import Path

import structlog
import yaml
from pydantic import ValidationError

from bookrank.config.schemas.engine import EngineConfig


logger = structlog.get_logger()


class ConfigValidationError(Exception):
    """Raised when configuration validation fails."""

    def __init__(self, errors: list[dict[str, str]], file_path: str) -> None:
        """Initialize the error.

        Args:
            errors: List of validation error details.
            file_path: Path to the file that failed validation.
        """
        self.errors = errors
        self.file_path = file_path
        super().__init__(f"Validation failed for {file_path}: {len(errors)} errors")


class ConfigLoader:
    """Loads and validates engine.yaml.

    A missing path yields the built-in defaults so the engine can run
    without any configuration file.
    """

    def __init__(self, run_id: str) -> None:
        """Initialize the loader.

        Args:
            run_id: Unique identifier for the current run.
        """
        self._run_id = run_id
        self._file_checksum: str | None = None
        self._validation_errors: list[dict[str, str]] = []
        self._validation_duration_ms: float = 0.0

    @property
    def file_checksum(self) -> str | None:
        """Get SHA-256 checksum of the loaded file."""
        return self._file_checksum

    @property
    def validation_errors(self) -> list[dict[str, str]]:
        """Get validation errors if any."""
        return self._validation_errors.copy()

    def load(self, config_path: Path | None = None) -> EngineConfig:
        """Load and validate the engine configuration.

        Args:
            config_path: Path to engine.yaml, or None for defaults.

        Returns:
            Validated EngineConfig.

        Raises:
            ConfigValidationError: If the file is missing, malformed or invalid.
        """
        log = logger.bind(run_id=self._run_id, component="config")

        if config_path is None:
            log.info("config_defaults_used")
            return EngineConfig()

        start_time = time.perf_counter()
        log.info("loading_config_file", file_path=str(config_path))

        try:
            content_bytes = config_path.read_bytes()
            self._file_checksum = hashlib.sha256(content_bytes).hexdigest()
            parsed: dict[str, object] = (
                yaml.safe_load(content_bytes.decode("utf-8")) or {}
            )
            config = EngineConfig.model_validate(parsed)

        except ValidationError as e:
            for err in e.errors():
                self._validation_errors.append(
                    {
                        "loc": ".".join(str(loc) for loc in err["loc"]),
                        "msg": err["msg"],
                        "type": err["type"],
                    }
                )
            log.error(
                "config_validation_failed",
                validation_error_count=len(self._validation_errors),
                errors=self._validation_errors,
            )
            raise ConfigValidationError(
                self._validation_errors, str(config_path)
            ) from e

        except FileNotFoundError as e:
            self._validation_errors.append(
                {"loc": "file", "msg": str(e), "type": "file_not_found"}
            )
            log.error("config_file_not_found", error=str(e))
            raise ConfigValidationError(
                self._validation_errors, str(config_path)
            ) from e

        except yaml.YAMLError as e:
            self._validation_errors.append(
                {"loc": "yaml", "msg": str(e), "type": "yaml_parse_error"}
            )
            log.error("config_yaml_parse_error", error=str(e))
            raise ConfigValidationError(
                self._validation_errors, str(config_path)
            ) from e

        self._validation_duration_ms = (time.perf_counter() - start_time) * 1000
        log.info(
            "config_file_loaded",
            file_path=str(config_path),
            file_sha256=self._file_checksum,
            ranking_count=len(config.rankings),
            config_validation_duration_ms=round(self._validation_duration_ms, 2),
        )
        return config

    def get_validation_summary_json(self) -> str:
        """Get validation summary as JSON string with stable ordering."""
        return json.dumps(
            {
                "run_id": self._run_id,
                "file_sha256": self._file_checksum,
                "validation_error_count": len(self._validation_errors),
                "validation_errors": self._validation_errors,
                "validation_duration_ms": self._validation_duration_ms,
            },
            sort_keys=True,
            indent=2,
        )
