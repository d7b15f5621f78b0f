"""
Domain error taxonomy for the NPD Tracker core.

Every error raised by the workflow, realization, ledger and locking services
derives from ``DomainError``.  Each class carries the HTTP status code the
API layer maps it to and a stable ``kind`` string that clients can switch on
without parsing the message.

Design notes
------------
- Cross-organization access is reported as ``NotFoundError`` so that the
  existence of another tenant's records is never revealed.
- ``BudgetExceeded`` is a ``ValidationError`` specialisation: a line or SP2D
  amount that breaks a ceiling is invalid input, but the payload also
  carries ``requested`` and ``available`` for display.
- Services roll back the session before re-raising, so a raised error always
  means that no ledger row was written.
"""

from __future__ import annotations

from typing import Any


class DomainError(Exception):
    """Base class for all business-rule failures."""

    status_code: int = 400
    kind: str = "domain_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "detail": self.message}


class NotFoundError(DomainError):
    status_code = 404
    kind = "not_found"


class PermissionDenied(DomainError):
    status_code = 403
    kind = "permission_denied"

    def __init__(self, role: str | None, action: str, resource: str) -> None:
        super().__init__(
            f"Role '{role}' is not allowed to {action} {resource}."
        )
        self.role = role
        self.action = action
        self.resource = resource


class StateTransitionError(DomainError):
    """Raised when a status change is not an edge of the NPD state machine."""

    status_code = 409
    kind = "state_transition"

    def __init__(
        self,
        current: str,
        target: str,
        message: str | None = None,
    ) -> None:
        super().__init__(
            message
            or f"Illegal transition from '{current}' to '{target}'."
        )
        self.current = current
        self.target = target

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.update(current=self.current, target=self.target)
        return data


class ConflictError(DomainError):
    status_code = 409
    kind = "conflict"


class ValidationError(DomainError):
    status_code = 422
    kind = "validation"


class BudgetExceeded(ValidationError):
    """Raised when an amount would break a budget ceiling.

    Attributes:
        requested: The amount the caller tried to commit or disburse.
        available: The amount that was actually available.
    """

    kind = "budget_exceeded"

    def __init__(
        self,
        requested: int,
        available: int,
        message: str | None = None,
    ) -> None:
        super().__init__(
            message
            or (
                f"Requested {requested:,} exceeds available {available:,} "
                f"by {requested - available:,}."
            )
        )
        self.requested = requested
        self.available = available

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.update(requested=self.requested, available=self.available)
        return data
