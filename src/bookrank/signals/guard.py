"""Wrapping of signal reads into typed results."""

from collections.abc import Callable
from typing import Any, TypeVar

import structlog

from bookrank.errors import SignalUnavailableError


logger = structlog.get_logger()

T = TypeVar("T")


class _Required:
    """Sentinel marking a load-bearing signal."""

    def __repr__(self) -> str:
        return "REQUIRED"


REQUIRED: Any = _Required()


def guarded_fetch(
    signal: str,
    fetch: Callable[[], T],
    default: T = REQUIRED,
    unit: str | None = None,
) -> T:
    """Run a signal read and convert failures into typed outcomes.

    Optional signals (a ``default`` is given) degrade to the default and
    log a warning. Load-bearing signals raise SignalUnavailableError so
    only the current unit of work aborts.

    Args:
        signal: Name of the signal for logging and error context.
        fetch: Zero-argument callable performing the read.
        default: Value substituted on failure; omit for load-bearing reads.
        unit: Key of the unit of work performing the read.

    Returns:
        The fetched value, or the default on failure.

    Raises:
        SignalUnavailableError: If a load-bearing read fails.
    """
    try:
        return fetch()
    except SignalUnavailableError:
        if default is REQUIRED:
            raise
        logger.warning("signal_default_used", signal=signal, unit=unit)
        return default
    except Exception as e:  # noqa: BLE001
        if default is REQUIRED:
            logger.error(
                "signal_unavailable",
                signal=signal,
                unit=unit,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise SignalUnavailableError(signal, str(e) or type(e).__name__, unit) from e

        logger.warning(
            "signal_default_used",
            signal=signal,
            unit=unit,
            error=str(e),
            error_type=type(e).__name__,
        )
        return default
