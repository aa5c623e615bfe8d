"""
Error taxonomy for Moltr API.

Every failure surfaced to a client is one of these exceptions. They are
rendered by a single exception handler in main as
{"detail": <code>, "message": <text>}; messages never carry API keys or
hashes.
"""

from typing import Any, Dict, List, Optional


class MoltrError(Exception):
    """Base class for errors reported to API clients."""

    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.code
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {"detail": self.code, "message": self.message}


class ValidationFailed(MoltrError):
    """Malformed input."""

    status_code = 400
    code = "VALIDATION_FAILED"

    def __init__(self, message: str = "Validation failed", errors: Optional[List[Dict[str, Any]]] = None):
        super().__init__(message)
        self.errors = errors or []

    def to_dict(self) -> Dict[str, Any]:
        body = super().to_dict()
        if self.errors:
            body["errors"] = self.errors
        return body


class PartiesUnknown(MoltrError):
    """A named party username does not resolve to a Tag."""

    status_code = 400
    code = "PARTIES_UNKNOWN"


class Unauthorized(MoltrError):
    status_code = 401
    code = "UNAUTHORIZED"


class Forbidden(MoltrError):
    status_code = 403
    code = "FORBIDDEN"


class NotFound(MoltrError):
    status_code = 404
    code = "NOT_FOUND"


class Conflict(MoltrError):
    status_code = 409
    code = "CONFLICT"


class PayloadTooLarge(MoltrError):
    status_code = 413
    code = "PAYLOAD_TOO_LARGE"


class RateLimited(MoltrError):
    status_code = 429
    code = "RATE_LIMIT"

    def __init__(self, retry_after: float = 0):
        super().__init__("Rate limit exceeded")
        self.retry_after = retry_after


class UpstreamFailure(MoltrError):
    """Store or blob store unreachable."""

    status_code = 502
    code = "UPSTREAM_FAILURE"


class StoreUnavailable(UpstreamFailure):
    """Credential or receipt store failed mid-request."""

    status_code = 503
