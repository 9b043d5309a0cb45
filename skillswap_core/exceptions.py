"""Error taxonomy shared by the connection, session, messaging and review flows.

Every error carries an HTTP status code so the API layer can render it without
a per-route translation table.
"""

from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

from sqlalchemy.exc import DisconnectionError, OperationalError


class SkillSwapError(Exception):
    """Base class for errors surfaced to callers of the engine."""

    status_code = 500
    code = "error"

    def __init__(
        self,
        message: str = "SkillSwap error",
        details: Optional[Dict[str, Any]] = None,
        code: Optional[str] = None,
    ):
        self.message = message
        self.details = details or {}
        if code is not None:
            self.code = code
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "error": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


class ValidationError(SkillSwapError):
    """Malformed or self-referential input."""

    status_code = 400
    code = "validation_error"


class AuthorizationError(SkillSwapError):
    """The acting user may not perform the requested transition."""

    status_code = 403
    code = "forbidden"


class NotFoundError(SkillSwapError):
    status_code = 404
    code = "not_found"

    def __init__(self, resource_type: str, resource_id: Any):
        super().__init__(
            f"{resource_type} {resource_id} not found",
            details={"resource_type": resource_type, "resource_id": resource_id},
        )


class InvalidStateError(SkillSwapError):
    """The requested transition is illegal from the current status."""

    status_code = 409
    code = "invalid_state"

    def __init__(self, message: str, current_status: Optional[str] = None, requested: Optional[str] = None):
        details = {}
        if current_status is not None:
            details["current_status"] = current_status
        if requested is not None:
            details["requested_status"] = requested
        super().__init__(message, details=details)


class ConflictError(SkillSwapError):
    """A uniqueness rule was violated."""

    status_code = 409
    code = "conflict"


class TransientError(SkillSwapError):
    """The record store or event bus is unavailable; safe to retry."""

    status_code = 503
    code = "transient"
    retryable = True


@contextmanager
def store_round_trip(operation: str) -> Iterator[None]:
    """Re-raise connectivity failures from the record store as ``TransientError``."""
    try:
        yield
    except (OperationalError, DisconnectionError) as exc:
        raise TransientError(
            f"Record store unavailable during {operation}",
            details={"operation": operation},
        ) from exc
