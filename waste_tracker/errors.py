"""Error taxonomy shared by the store, the vision client and the HTTP layer.

Every error carries a human-readable message, an optional details mapping, a
machine-readable code and the HTTP status the API layer should answer with.
Vision failures are split into subclasses because the remedy differs: wait
(quota, rate limit), reconfigure (credential, access) or retry later
(upstream unavailable).
"""

from typing import Any, Mapping, Optional


class WasteTrackerError(Exception):
    """Base class for all errors surfaced to API callers."""

    http_status = 500
    default_code = "internal_error"

    def __init__(self, message: str = "Internal error", details: Optional[Mapping[str, Any]] = None, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.details = details
        self.code = code or self.default_code

    def to_dict(self) -> dict:
        payload: dict[str, Any] = {"message": self.message, "code": self.code}
        if self.details:
            payload["details"] = dict(self.details)
        return payload

    def __str__(self) -> str:
        return self.message


class ValidationError(WasteTrackerError):
    """Bad or missing image, oversized upload, unusable query parameters."""

    http_status = 400
    default_code = "validation_error"


class NotFoundError(WasteTrackerError):
    """Raised when a waste entry id does not exist."""

    http_status = 404
    default_code = "not_found"


class PersistenceError(WasteTrackerError):
    """Raised when the durable store cannot be written."""

    http_status = 500
    default_code = "persistence_error"


class CollaboratorError(WasteTrackerError):
    """The vision collaborator failed to produce an analysis."""

    http_status = 502
    default_code = "collaborator_error"
    retryable = False


class MissingCredentialError(CollaboratorError):
    http_status = 401
    default_code = "missing_credential"


class QuotaExceededError(CollaboratorError):
    http_status = 429
    default_code = "quota_exceeded"


class RateLimitedError(CollaboratorError):
    http_status = 429
    default_code = "rate_limited"
    retryable = True


class AccessDeniedError(CollaboratorError):
    http_status = 403
    default_code = "access_denied"


class InvalidInputError(CollaboratorError):
    http_status = 400
    default_code = "invalid_input"


class UpstreamUnavailableError(CollaboratorError):
    http_status = 503
    default_code = "upstream_unavailable"
    retryable = True


class MalformedResponseError(CollaboratorError):
    http_status = 502
    default_code = "malformed_response"
