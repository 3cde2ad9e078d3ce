from typing import Any, Dict, Optional


class InternHubError(Exception):
    """Base class for every error raised by the lifecycle core."""

    code = "internhub_error"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.code, "message": self.message, "details": self.details}


class NotFoundError(InternHubError):
    """A referenced id does not resolve to a stored record."""

    code = "not_found"


class ConflictError(InternHubError):
    """A natural-key uniqueness rule would be violated."""

    code = "conflict"


class InvalidStateError(InternHubError):
    """The target record is not in a state that permits the operation."""

    code = "invalid_state"


class AuthorizationError(InternHubError):
    """The acting account does not own, supervise or create the target."""

    code = "not_authorized"


class ValidationError(InternHubError):
    """A request payload is missing fields or carries malformed values."""

    code = "validation_error"
