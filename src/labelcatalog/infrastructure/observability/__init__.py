"""Observability infrastructure for structured logging."""

from labelcatalog.infrastructure.observability.logger_template import (
    log_operation,
    log_slow_operation,
)
from labelcatalog.infrastructure.observability.logging import (
    configure_logging,
    get_correlation_id,
    set_correlation_id,
)

__all__ = [
    "configure_logging",
    "get_correlation_id",
    "log_operation",
    "log_slow_operation",
    "set_correlation_id",
]
