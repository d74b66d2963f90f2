from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class ValidationOutcome:
    is_checking: bool = False
    is_valid: bool = False
    is_available: bool = False
    message: str = ""
    has_checked: bool = False

    @staticmethod
    def checking() -> "ValidationOutcome":
        return ValidationOutcome(is_checking=True)

    @staticmethod
    def valid(message: str = "") -> "ValidationOutcome":
        return ValidationOutcome(is_valid=True, is_available=True, message=message, has_checked=True)

    @staticmethod
    def invalid(message: str, is_available: bool = False) -> "ValidationOutcome":
        return ValidationOutcome(is_valid=False, is_available=is_available, message=message, has_checked=True)


@dataclass(frozen=True)
class HoursViolation:
    day: str
    code: str  # "parent_closed", "opens_before_parent", "closes_after_parent", or a shape code
    message: str


@dataclass(frozen=True)
class HoursValidationResult:
    is_valid: bool
    violations: tuple[HoursViolation, ...] = ()

    @property
    def messages(self) -> list[str]:
        return [v.message for v in self.violations]


@dataclass(frozen=True)
class SaveResult:
    ok: bool
    step_key: str
    skipped: bool = False
    message: str = ""
    data: dict[str, Any] = field(default_factory=dict)
    can_proceed: bool = True
    error: Exception | None = None
    warning: str | None = None
    blocking: bool = False  # server rejection or auth failure: hold the user on the sub-step
