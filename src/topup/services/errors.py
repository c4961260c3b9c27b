"""Service-level error taxonomy.

Every rejection carries a stable ``code`` (the taxonomy entry) and a specific
``reason`` so clients can render precise messaging.
"""

from __future__ import annotations


class ServiceError(Exception):
    """Base class for business rule violations raised by the service layer."""

    code = "error"
    status_code = 400

    def __init__(self, detail: str, reason: str | None = None, status_code: int | None = None) -> None:
        super().__init__(detail)
        self.detail = detail
        self.reason = reason or self.code
        if status_code is not None:
            self.status_code = status_code

    def as_dict(self) -> dict[str, str]:
        return {"code": self.code, "reason": self.reason, "message": self.detail}


class NotFound(ServiceError):
    code = "not_found"
    status_code = 404


class InvalidState(ServiceError):
    code = "invalid_state"
    status_code = 409


class IllegalTransition(InvalidState):
    """Raised when a status change is not an edge of the transaction graph."""

    def __init__(self, current: str, requested: str) -> None:
        super().__init__(
            f"Cannot move transaction from '{current}' to '{requested}'.",
            reason="illegal_transition",
        )
        self.current = current
        self.requested = requested


class QuotaExceeded(ServiceError):
    code = "quota_exceeded"
    status_code = 409


class UserLimitExceeded(ServiceError):
    code = "user_limit_exceeded"
    status_code = 409


class ValidationFailed(ServiceError):
    code = "validation_failed"
    status_code = 422


class DependencyFailure(ServiceError):
    code = "dependency_failure"
    status_code = 502


class ConflictingUpdate(ServiceError):
    code = "conflicting_update"
    status_code = 409
