"""Shared logging helpers for timed operations.

USAGE:
    from labelcatalog.infrastructure.observability.logger_template import log_operation

    logger = logging.getLogger(__name__)

    async with log_operation(logger, "catalog_import", label_id="buildit-tech"):
        await importer.run("buildit-tech")
"""

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any


# Yo, log_operation logs "<op>.started", then "<op>.completed" with duration_ms, or
# "<op>.failed" with the error and traceback. It ALWAYS re-raises; logging is all it does.
@asynccontextmanager
async def log_operation(
    logger: logging.Logger,
    operation: str,
    **context: Any,
) -> AsyncIterator[dict[str, Any]]:
    """Log start/end of an operation with timing.

    The yielded dict is merged into the completion log, so callers can attach
    results (counts, ids) discovered while the operation runs.

    Example:
        >>> async with log_operation(logger, "catalog_import", label_id="x") as extra:
        ...     summary = await run()
        ...     extra["releases_imported"] = summary["releases_imported"]
    """
    start = time.perf_counter()
    result_context: dict[str, Any] = {}
    logger.info(f"{operation}.started", extra=context)
    try:
        yield result_context
    except Exception as e:
        logger.error(
            f"{operation}.failed",
            extra={
                **context,
                "duration_ms": int((time.perf_counter() - start) * 1000),
                "error": str(e),
                "error_type": type(e).__name__,
            },
            exc_info=True,
        )
        raise
    logger.info(
        f"{operation}.completed",
        extra={
            **context,
            **result_context,
            "duration_ms": int((time.perf_counter() - start) * 1000),
        },
    )


def log_slow_operation(
    logger: logging.Logger,
    operation: str,
    duration_ms: int,
    threshold_ms: int = 500,
    **context: Any,
) -> None:
    """Warn when an operation took longer than threshold_ms."""
    if duration_ms > threshold_ms:
        logger.warning(
            "operation.slow",
            extra={
                **context,
                "operation": operation,
                "duration_ms": duration_ms,
                "threshold_ms": threshold_ms,
            },
        )
