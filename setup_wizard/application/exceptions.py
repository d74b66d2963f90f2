from __future__ import annotations

from typing import Any, Sequence


class WizardError(RuntimeError):
    """Base class for every error the setup wizard surfaces."""
    pass


class InvalidPlanType(WizardError, ValueError):
    """Raised when a plan type is missing or not one of organization/complex/clinic."""
    pass


class InvalidStepPosition(WizardError, ValueError):
    """Raised when a (step, sub-step) pair is not part of the plan's step graph."""
    pass


class ValidationError(WizardError, ValueError):
    """Field-level, user-correctable problem; surfaced inline."""

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class NetworkError(WizardError):
    """Raised when the backend is unreachable, times out or answers with a 5xx."""
    pass


class AuthError(WizardError):
    """Raised when credentials are missing, expired or rejected (401/403)."""
    pass


class ConstraintError(WizardError):
    """Working-hours nesting or schedule shape violation; blocks the sub-step."""

    def __init__(self, message: str, violations: Sequence[Any] = ()) -> None:
        super().__init__(message)
        self.violations = tuple(violations)


class BackendRejection(WizardError):
    """Backend answered ``success: false``; its message is surfaced verbatim."""

    def __init__(self, message: str, can_proceed: bool = False, errors: Sequence[Any] = ()) -> None:
        super().__init__(message)
        self.can_proceed = can_proceed
        self.errors = list(errors)
