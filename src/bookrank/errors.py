"""Error taxonomy for engine units of work.

A unit of work is one ranking type, one user's recommendations, or one
item's relatedness edges. Errors carry the unit key so a scheduler can
retry that unit alone.
"""

from enum import Enum
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field


ErrorDetails = dict[str, str | int | float | bool | None]


class ErrorClass(str, Enum):
    """Classification of engine errors.

    - SIGNAL_UNAVAILABLE: an upstream signal read failed or timed out
    - PARTIAL_BATCH_FAILURE: a unit failed inside a batch for an unclassified reason
    - TIMEOUT: a unit exceeded its deadline
    - STORE: the engine store rejected a read or write
    """

    SIGNAL_UNAVAILABLE = "SIGNAL_UNAVAILABLE"
    PARTIAL_BATCH_FAILURE = "PARTIAL_BATCH_FAILURE"
    TIMEOUT = "TIMEOUT"
    STORE = "STORE"


class EngineError(Exception):
    """Base exception for engine unit-of-work failures."""

    def __init__(
        self,
        error_class: ErrorClass,
        message: str,
        unit: str | None = None,
        details: ErrorDetails | None = None,
    ) -> None:
        """Initialize the engine error.

        Args:
            error_class: Classification of the error.
            message: Human-readable error message.
            unit: Key of the unit of work that failed.
            details: Additional structured error details.
        """
        super().__init__(message)
        self.error_class = error_class
        self.message = message
        self.unit = unit
        self.details = details or {}

    def to_dict(self) -> dict[str, object]:
        """Convert error to dictionary for logging/serialization.

        Returns:
            Dictionary representation of the error.
        """
        return {
            "error_class": self.error_class.value,
            "message": self.message,
            "unit": self.unit,
            "details": self.details,
        }


class SignalUnavailableError(EngineError):
    """A load-bearing signal could not be read."""

    def __init__(self, signal: str, cause: str, unit: str | None = None) -> None:
        """Initialize the error.

        Args:
            signal: Name of the signal read that failed.
            cause: Description of the underlying failure.
            unit: Key of the unit of work.
        """
        super().__init__(
            error_class=ErrorClass.SIGNAL_UNAVAILABLE,
            message=f"Signal '{signal}' unavailable: {cause}",
            unit=unit,
            details={"signal": signal},
        )
        self.signal = signal
        self.cause = cause


class UnitTimeoutError(EngineError):
    """A unit of work ran past its deadline."""

    def __init__(self, unit: str, timeout_seconds: float, stage: str) -> None:
        """Initialize the error.

        Args:
            unit: Key of the unit of work.
            timeout_seconds: Configured budget for the unit.
            stage: Stage at which the deadline was detected.
        """
        super().__init__(
            error_class=ErrorClass.TIMEOUT,
            message=f"Unit '{unit}' exceeded {timeout_seconds}s during {stage}",
            unit=unit,
            details={"timeout_seconds": timeout_seconds, "stage": stage},
        )
        self.timeout_seconds = timeout_seconds
        self.stage = stage


class UnitFailedError(EngineError):
    """A unit of work failed with an exception outside the engine taxonomy."""

    def __init__(
        self,
        unit: str,
        cause: BaseException,
        error_class: ErrorClass = ErrorClass.PARTIAL_BATCH_FAILURE,
    ) -> None:
        """Initialize the error.

        Args:
            unit: Key of the unit of work.
            cause: Original exception.
            error_class: STORE for engine store failures.
        """
        super().__init__(
            error_class=error_class,
            message=f"Unit '{unit}' failed: {cause}",
            unit=unit,
            details={"exception_type": type(cause).__name__},
        )
        self.cause = cause


class ErrorRecord(BaseModel):
    """Serializable error record attached to failed unit outcomes."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    error_class: ErrorClass = Field(description="Error classification")
    message: Annotated[str, Field(min_length=1, description="Error message")]
    unit: str | None = Field(default=None, description="Unit of work key")
    details: ErrorDetails = Field(
        default_factory=dict, description="Additional error details"
    )

    @classmethod
    def from_exception(cls, error: BaseException, unit: str | None = None) -> "ErrorRecord":
        """Create an ErrorRecord from any exception.

        Args:
            error: The exception to convert.
            unit: Unit key used when the exception does not carry one.

        Returns:
            ErrorRecord instance.
        """
        if isinstance(error, EngineError):
            return cls(
                error_class=error.error_class,
                message=error.message,
                unit=error.unit or unit,
                details=error.details,
            )
        return cls(
            error_class=ErrorClass.PARTIAL_BATCH_FAILURE,
            message=str(error) or type(error).__name__,
            unit=unit,
            details={"exception_type": type(error).__name__},
        )
