"""Logging configuration and utilities."""

from tripstream.shared.logging.config import (
    StructuredFormatter,
    log_plan_event,
    safe_stringify,
    setup_logging,
    truncate,
)

__all__ = [
    "setup_logging",
    "log_plan_event",
    "StructuredFormatter",
    "truncate",
    "safe_stringify",
]
