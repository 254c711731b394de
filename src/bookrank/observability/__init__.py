"""Observability module for logging."""

from bookrank.observability.logging import (
    bind_unit_context,
    clear_unit_context,
    configure_logging,
    get_logger,
)


__all__ = [
    "bind_unit_context",
    "clear_unit_context",
    "configure_logging",
    "get_logger",
]
