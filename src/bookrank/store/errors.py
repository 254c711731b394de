"""Exceptions for the engine store.

Infrastructure errors (connection, migration) are kept apart from lookup
errors on computed state.
"""


class StateStoreError(Exception):
    """Base exception for all engine store errors."""


class ConnectionError(StateStoreError):
    """Raised when the database connection is not established."""

    def __init__(self, message: str = "Database not connected") -> None:
        """Initialize the connection error.

        Args:
            message: Human-readable error message.
        """
        super().__init__(message)


class SnapshotNotFoundError(StateStoreError):
    """Raised when a ranking snapshot id does not exist."""

    def __init__(self, snapshot_id: int) -> None:
        """Initialize the error with the missing snapshot id.

        Args:
            snapshot_id: The snapshot id that was not found.
        """
        self.snapshot_id = snapshot_id
        super().__init__(f"Ranking snapshot not found: {snapshot_id}")


class RecommendationNotFoundError(StateStoreError):
    """Raised when a recommendation row id does not exist."""

    def __init__(self, recommendation_id: int) -> None:
        """Initialize the error with the missing row id.

        Args:
            recommendation_id: The recommendation id that was not found.
        """
        self.recommendation_id = recommendation_id
        super().__init__(f"Recommendation not found: {recommendation_id}")


class MigrationError(StateStoreError):
    """Raised when a schema migration fails."""

    def __init__(self, version: int, message: str) -> None:
        """Initialize the migration error.

        Args:
            version: The migration version that failed.
            message: Human-readable error message.
        """
        self.version = version
        super().__init__(f"Migration {version} failed: {message}")
