"""
Error taxonomy shared by the REST API and the client core.

Every error carries the HTTP status it maps to and the human-readable
message that ends up in the response envelope (or in front of the user).
Only NetworkError and UpstreamError are path-dependent; everything else is
semantic and is never retried on another path.
"""

from typing import Any, List, Optional


class CivicHubError(Exception):
    """Base class for all typed failures."""

    status_code: int = 500
    error: str = "Internal server error"
    retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        error: Optional[str] = None,
        details: Optional[List[Any]] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        if error is not None:
            self.error = error
        if status_code is not None:
            self.status_code = status_code
        self.details = details or []

    def to_envelope(self) -> dict:
        body = {"success": False, "error": self.error, "message": self.message}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(CivicHubError):
    """Missing or malformed input, with field-level details."""

    status_code = 400
    error = "Validation failed"


class AuthError(CivicHubError):
    """Missing, invalid or expired credential."""

    status_code = 401
    error = "Unauthorized"


class ForbiddenError(CivicHubError):
    """Ownership violation."""

    status_code = 403
    error = "Forbidden"


class NotFoundError(CivicHubError):
    status_code = 404
    error = "Not found"


class ConflictError(CivicHubError):
    """Duplicate row or an idempotency key that is still being applied."""

    status_code = 409
    error = "Conflict"


class UpstreamError(CivicHubError):
    """The data store or auth provider failed."""

    status_code = 500
    error = "Database error"
    retryable = True


class NetworkError(CivicHubError):
    """Transport-level failure before any response arrived."""

    status_code = 503
    error = "Network error"
    retryable = True


_STATUS_MAP = {
    400: ValidationError,
    401: AuthError,
    403: ForbiddenError,
    404: NotFoundError,
    409: ConflictError,
    422: ValidationError,
}


def error_for_status(
    status_code: int,
    message: str,
    error: Optional[str] = None,
    details: Optional[List[Any]] = None,
) -> CivicHubError:
    """Build the typed error for a non-2xx HTTP status."""
    cls = _STATUS_MAP.get(status_code)
    if cls is None:
        if 400 <= status_code < 500:
            return CivicHubError(message, error=error, details=details, status_code=status_code)
        cls = UpstreamError
    return cls(message, error=error, details=details, status_code=status_code)


def from_pydantic(exc) -> ValidationError:
    """Convert a pydantic ValidationError into ours, keeping field details."""
    details = []
    for err in exc.errors():
        details.append({
            "field": ".".join(str(part) for part in err.get("loc", ())),
            "message": err.get("msg", "Invalid value"),
        })
    first = details[0]["message"] if details else "Please check your input data"
    return ValidationError(first, details=details)
