"""Domain errors surfaced to API callers."""

from typing import Any, Dict, Optional


class PortalError(Exception):
    """Base exception for portal errors."""

    code = "portal_error"
    status_code = 400

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": True,
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class ValidationFailed(PortalError):
    """Input rejected before any mutation (fix your input)."""

    code = "validation_error"
    status_code = 400


class Forbidden(PortalError):
    """Caller lacks the role required for the operation."""

    code = "forbidden"
    status_code = 403


class NotFound(PortalError):
    """Missing, or owned by another user. The two are indistinguishable to callers."""

    code = "not_found"
    status_code = 404


class PreconditionFailed(PortalError):
    """Operation not allowed in the current state; details name the unmet condition."""

    code = "precondition_failed"
    status_code = 409
