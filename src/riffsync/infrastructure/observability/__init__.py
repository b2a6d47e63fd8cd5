"""Observability: logging setup and log message templates."""

from riffsync.infrastructure.observability.log_messages import LogMessages, LogTemplate
from riffsync.infrastructure.observability.logging import (
    configure_logging,
    get_correlation_id,
    set_correlation_id,
)

__all__ = [
    "LogMessages",
    "LogTemplate",
    "configure_logging",
    "get_correlation_id",
    "set_correlation_id",
]
