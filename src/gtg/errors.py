"""Domain error taxonomy.

Services raise these; ``gtg.middleware.error_handler`` maps them onto HTTP
status codes so routers never build error responses by hand.
"""

from __future__ import annotations


class DomainError(Exception):
    """Base class for errors with a client-facing message."""

    status_code = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(DomainError, ValueError):
    """Input rejected before any write happened."""

    status_code = 400


class NotFoundError(DomainError):
    status_code = 404


class NotAuthorizedError(DomainError):
    """Caller is not allowed to perform the operation on this resource."""

    status_code = 403


class ConflictError(DomainError):
    status_code = 409


class RateLimitedError(DomainError):
    """Recoverable: the caller should retry after ``retry_after`` seconds."""

    status_code = 429

    def __init__(self, message: str, retry_after: int) -> None:
        super().__init__(message)
        self.retry_after = max(0, int(retry_after))


class UpstreamError(DomainError):
    """External provider failed (HTTP error or undecodable payload).

    ``detail`` keeps the diagnostic context for logs; clients only ever
    see the generic message.
    """

    status_code = 502

    def __init__(self, source: str, detail: str, upstream_status: int | None = None) -> None:
        super().__init__("Failed to fetch events. Please try again later.")
        self.source = source
        self.detail = detail
        self.upstream_status = upstream_status

    def __str__(self) -> str:
        if self.upstream_status is not None:
            return f"{self.source}: HTTP {self.upstream_status}: {self.detail}"
        return f"{self.source}: {self.detail}"
