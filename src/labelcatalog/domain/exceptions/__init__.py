"""Domain exceptions."""

from typing import Any


class DomainException(Exception):
    """Base exception for all domain exceptions."""

    # Hey future me, we store message as an attribute so code can inspect it without parsing str(exception).
    # Don't raise this directly - always pick a specific subclass so callers can catch precisely.
    def __init__(self, message: str, *args: Any) -> None:
        super().__init__(message, *args)
        self.message = message


class EntityNotFoundException(DomainException):
    """Raised when an entity is not found."""

    # Yo, this is for "get by ID" operations that fail - Label "buildit-tech" doesn't exist, Release 123
    # not found after every read strategy came back empty. entity_type/entity_id are stored separately
    # so the API handler can log them structured instead of string parsing.
    def __init__(self, entity_type: str, entity_id: Any) -> None:
        super().__init__(f"{entity_type} with id {entity_id} not found")
        self.entity_type = entity_type
        self.entity_id = entity_id


class ValidationError(DomainException):
    """Input validation failed.

    Raised for a bad label id or entity key, or for catalog payloads that do not
    have the shape we expect at the system boundary.

    HTTP Status: 422

    Example:
        raise ValidationError("label_id must not be empty")
    """

    pass


class InvalidStateException(DomainException):
    """Raised when an entity is in an invalid state for the requested operation.

    Example: completing an ImportRun that never started, or restarting one that
    already failed.
    """

    pass


class ConfigurationError(DomainException):
    """Application misconfiguration.

    Raised when required configuration is missing or invalid. During an import
    this is a run-level error: the run is aborted and marked failed.

    HTTP Status: 503 (Service Unavailable)

    Example:
        raise ConfigurationError("Spotify credentials not configured")
    """

    pass


class ExternalServiceError(DomainException):
    """External catalog service returned an error or a malformed response.

    HTTP Status: 502 (Bad Gateway)

    Example:
        raise ExternalServiceError("Spotify API error: 503 Service Unavailable")
    """

    def __init__(
        self,
        message: str,
        service: str = "catalog",
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.service = service
        self.status_code = status_code


class RateLimitExceededError(ExternalServiceError):
    """External service rate limit was exceeded even after retries.

    HTTP Status: 429
    """

    def __init__(
        self,
        message: str,
        service: str = "catalog",
        retry_after: int | None = None,
    ) -> None:
        super().__init__(message, service=service, status_code=429)
        self.retry_after = retry_after


class PersistenceError(DomainException):
    """A write was rejected by the store (unique/foreign key constraint etc).

    The EntityResolver raises this; the caller decides whether the enclosing
    unit of work is aborted. For the importer that unit is one release.

    HTTP Status: 500
    """

    def __init__(
        self,
        message: str,
        entity_kind: str | None = None,
        external_id: str | None = None,
    ) -> None:
        super().__init__(message)
        self.entity_kind = entity_kind
        self.external_id = external_id


class PartialImportError(DomainException):
    """One release failed during an import run.

    Hey future me - this is NON-FATAL! The importer catches whatever broke a single
    release, wraps it in one of these and appends it to the run's error list.
    The run keeps going with the next candidate. Never raise this out of run().
    """

    def __init__(
        self,
        message: str,
        release_external_id: str | None = None,
        stage: str = "resolve",
        release_title: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.release_external_id = release_external_id
        self.stage = stage
        self.release_title = release_title
        self.error_type = type(cause).__name__ if cause is not None else None

    def to_dict(self) -> dict[str, Any]:
        """Serialize for the import_runs.errors JSON column and API responses."""
        return {
            "release_external_id": self.release_external_id,
            "release_title": self.release_title,
            "stage": self.stage,
            "message": self.message,
            "error_type": self.error_type,
        }


class SourceExhausted(DomainException):
    """Every read strategy in a fallback chain raised.

    HTTP Status: 503

    attempts holds (strategy name, error message) pairs in evaluation order so the
    caller can log what was tried without seeing raw inner exceptions.
    """

    def __init__(
        self,
        entity_type: str,
        key: Any,
        attempts: list[tuple[str, str]] | None = None,
    ) -> None:
        tried = ", ".join(name for name, _ in attempts or []) or "none"
        super().__init__(
            f"All read strategies failed for {entity_type} {key} (tried: {tried})"
        )
        self.entity_type = entity_type
        self.key = key
        self.attempts = attempts or []


# Short alias used by the read path and the importer.
NotFoundError = EntityNotFoundException


__all__ = [
    "DomainException",
    "EntityNotFoundException",
    "NotFoundError",
    "ValidationError",
    "InvalidStateException",
    "ConfigurationError",
    "ExternalServiceError",
    "RateLimitExceededError",
    "PersistenceError",
    "PartialImportError",
    "SourceExhausted",
]
