"""Domain error taxonomy shared by every feature package.

Each error carries a machine-readable ``reason``; the API layer maps the four
families onto HTTP status codes and the socket layer onto ``relay:error`` frames.
"""

from __future__ import annotations


class DomainError(Exception):
    """Base class for domain errors."""

    code: str = "domain"
    reason: str = "unknown"

    def __init__(self, reason: str | None = None) -> None:
        super().__init__(reason or self.reason)
        if reason:
            self.reason = reason


class NotFound(DomainError):
    code = "not_found"
    reason = "not_found"


class Forbidden(DomainError):
    code = "forbidden"
    reason = "forbidden"


class Conflict(DomainError):
    code = "conflict"
    reason = "conflict"


class ValidationFailed(DomainError):
    code = "validation"
    reason = "invalid"


class RateLimited(DomainError):
    code = "rate_limited"
    reason = "rate_limited"
