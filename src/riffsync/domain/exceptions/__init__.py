"""Domain exceptions."""

from typing import Any


class DomainException(Exception):
    """Base exception for all domain exceptions."""

    # Hey future me, message is stored as an attribute so callers can inspect it
    # without parsing str(exception). Never raise this directly - use a subclass.
    def __init__(self, message: str, *args: Any) -> None:
        super().__init__(message, *args)
        self.message = message


class EntityNotFoundException(DomainException):
    """Raised when an entity is not found."""

    def __init__(self, entity_type: str, entity_id: Any) -> None:
        super().__init__(f"{entity_type} with id {entity_id} not found")
        self.entity_type = entity_type
        self.entity_id = entity_id


class PreconditionError(DomainException):
    """A sync run cannot start.

    Raised before any network call when the provider credential is missing or
    the track list is empty. This is the only error that propagates out of an
    album sync run.

    HTTP Status: 400

    Example:
        raise PreconditionError("Content-fetch credential is missing")
    """

    pass


class ConfigurationError(DomainException):
    """Application misconfiguration.

    HTTP Status: 503 (Service Unavailable)

    Example:
        raise ConfigurationError("content_fetch.base_url is not configured")
    """

    pass


class ExternalServiceError(DomainException):
    """External service returned an error.

    HTTP Status: 502 (Bad Gateway)
    """

    pass


class ProviderError(ExternalServiceError):
    """Non-success response or transport failure from a provider.

    Scoped to a single track during a sync run: it is logged and turns that
    track into ``failed`` without aborting the run.
    """

    def __init__(
        self,
        provider: str,
        message: str,
        status_code: int | None = None,
    ) -> None:
        super().__init__(f"{provider}: {message}")
        self.provider = provider
        self.status_code = status_code


class RateLimitExceededError(ProviderError):
    """Provider answered 429 Too Many Requests.

    HTTP Status: 429
    """

    def __init__(self, provider: str, retry_after: float | None = None) -> None:
        super().__init__(provider, "rate limit exceeded", status_code=429)
        self.retry_after = retry_after


class SyncTimeoutError(DomainException):
    """A bounded wait ran out.

    Covers both the absolute poll deadline and zero-progress stall detection.
    Handled exactly like ProviderError.
    """

    def __init__(self, reason: str, elapsed_seconds: float) -> None:
        super().__init__(f"{reason} after {elapsed_seconds:.1f}s")
        self.reason = reason
        self.elapsed_seconds = elapsed_seconds


__all__ = [
    "DomainException",
    "EntityNotFoundException",
    "PreconditionError",
    "ConfigurationError",
    "ExternalServiceError",
    "ProviderError",
    "RateLimitExceededError",
    "SyncTimeoutError",
]
