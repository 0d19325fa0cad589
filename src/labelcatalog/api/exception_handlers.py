"""Custom exception handlers for the FastAPI application.

Converts domain exceptions into JSON responses with a status code that tells the
caller whose fault it was: 4xx for bad input or unknown ids, 502/503 when the
catalog or a read chain let us down, 500 for the database.
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from labelcatalog.domain.exceptions import (
    ConfigurationError,
    DomainException,
    EntityNotFoundException,
    ExternalServiceError,
    InvalidStateException,
    PersistenceError,
    RateLimitExceededError,
    SourceExhausted,
    ValidationError,
)

logger = logging.getLogger(__name__)


# Hey future me, ORDER MATTERS in this table! Starlette looks handlers up by walking the
# exception's MRO, so RateLimitExceededError (subclass of ExternalServiceError) gets its own
# entry and wins over the generic 502. DomainException at the bottom is the catch-all: any
# new subclass nobody mapped yet still comes out as JSON, never as an HTML 500 page.
_STATUS_BY_EXCEPTION: tuple[tuple[type[DomainException], int], ...] = (
    (ValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (EntityNotFoundException, status.HTTP_404_NOT_FOUND),
    (InvalidStateException, status.HTTP_409_CONFLICT),
    (ConfigurationError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (SourceExhausted, status.HTTP_503_SERVICE_UNAVAILABLE),
    (RateLimitExceededError, status.HTTP_429_TOO_MANY_REQUESTS),
    (ExternalServiceError, status.HTTP_502_BAD_GATEWAY),
    (PersistenceError, status.HTTP_500_INTERNAL_SERVER_ERROR),
    (DomainException, status.HTTP_500_INTERNAL_SERVER_ERROR),
)


def status_for(exc: DomainException) -> int:
    """HTTP status for a domain exception (most specific mapping wins)."""
    for exc_type, code in _STATUS_BY_EXCEPTION:
        if isinstance(exc, exc_type):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def _body(exc: DomainException) -> dict[str, object]:
    body: dict[str, object] = {"detail": exc.message, "error_type": type(exc).__name__}
    if isinstance(exc, SourceExhausted):
        body["attempts"] = [
            {"strategy": name, "error": error} for name, error in exc.attempts
        ]
    if isinstance(exc, EntityNotFoundException):
        body["entity_type"] = exc.entity_type
        body["entity_id"] = str(exc.entity_id)
    return body


def register_exception_handlers(app: FastAPI) -> None:
    """Register one handler per mapped domain exception type."""

    async def domain_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        assert isinstance(exc, DomainException)
        code = status_for(exc)
        extra = {
            "path": request.url.path,
            "error_type": type(exc).__name__,
            "status_code": code,
        }
        message = f"{type(exc).__name__} at {request.url.path}: {exc.message}"
        if code >= 500:
            logger.error(message, extra=extra)
        elif code == status.HTTP_404_NOT_FOUND:
            logger.info(message, extra=extra)
        else:
            logger.warning(message, extra=extra)

        headers = None
        if isinstance(exc, RateLimitExceededError) and exc.retry_after is not None:
            headers = {"Retry-After": str(int(exc.retry_after))}
        return JSONResponse(status_code=code, content=_body(exc), headers=headers)

    for exc_type, _ in _STATUS_BY_EXCEPTION:
        app.add_exception_handler(exc_type, domain_exception_handler)
