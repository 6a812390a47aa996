"""Custom exception classes for the vinyl enrichment service."""


class EnrichmentError(Exception):
    """Base exception for all enrichment service errors."""

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ConfigurationError(EnrichmentError):
    """Raised when there's a configuration error."""

    pass


class AuthorizationError(EnrichmentError):
    """Raised when the Discogs OAuth flow cannot be started or completed."""

    pass


class DiscogsError(EnrichmentError):
    """Base class for failures talking to the Discogs API."""

    pass


class RateLimitExceededError(DiscogsError):
    """Raised when 429 retries are exhausted."""

    pass


class InvalidResponseError(DiscogsError):
    """Raised on an unexpected status code or an undecodable body."""

    def __init__(self, message: str, status_code: int | None = None, details: dict | None = None):
        self.status_code = status_code
        super().__init__(message, details)


class DiscogsNetworkError(DiscogsError):
    """Raised on transport-level failures (DNS, TLS, connection, timeout)."""

    def __init__(self, message: str, cause: BaseException | None = None, details: dict | None = None):
        self.cause = cause
        super().__init__(message, details)


class NoResultsError(DiscogsError):
    """Raised when a search succeeds but returns no results."""

    pass


class UnauthorizedError(DiscogsError):
    """Raised when Discogs rejects the credentials (HTTP 401)."""

    pass
