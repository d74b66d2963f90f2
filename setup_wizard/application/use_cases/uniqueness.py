from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Any, Callable

from setup_wizard.application.exceptions import AuthError, BackendRejection, NetworkError, ValidationError
from setup_wizard.application.ports.onboarding_backend import OnboardingBackendPort
from setup_wizard.application.ports.scheduler import ScheduledTask, SchedulerPort
from setup_wizard.core.config import settings
from setup_wizard.domain.entities.validation import ValidationOutcome


NETWORK_FAILURE_MESSAGE = "unable to validate, try again"
SKIPPED_MESSAGE = "Using existing value"

NAME_KINDS = {"organization-name", "complex-name", "clinic-name"}
FIELD_KINDS = NAME_KINDS | {"email", "vat-number", "cr-number", "license-number"}

_FORMAT_RULES: dict[str, tuple[re.Pattern[str], str]] = {
    "email": (re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$"), "Please enter a valid email address"),
    "vat-number": (re.compile(r"^[0-9]{10,15}$"), "VAT number must be 10-15 digits"),
    "cr-number": (re.compile(r"^[0-9]{7,12}$"), "CR number must be 7-12 digits"),
}
MIN_NAME_LENGTH = 2


@dataclass(frozen=True)
class UniqueCheckContext:
    # Value already confirmed as the user's own (edit-in-place): never re-checked.
    confirmed_value: str | None = None
    organization_id: str | None = None
    complex_id: str | None = None

    def params_for(self, field_kind: str) -> dict[str, str]:
        params: dict[str, str] = {}
        if field_kind in ("complex-name", "clinic-name") and self.organization_id:
            params["organizationId"] = self.organization_id
        if field_kind == "clinic-name" and self.complex_id:
            params["complexId"] = self.complex_id
        return params


OutcomeListener = Callable[[str, ValidationOutcome], None]


class UniquenessValidator:
    def __init__(
        self,
        backend: OnboardingBackendPort,
        scheduler: SchedulerPort,
        debounce_ms: int | None = None,
        request_timeout: float | None = None,
        on_outcome: OutcomeListener | None = None,
    ) -> None:
        self._backend = backend
        self._scheduler = scheduler
        self._debounce = (debounce_ms if debounce_ms is not None else settings.UNIQUENESS_DEBOUNCE_MS) / 1000.0
        self._timeout = request_timeout if request_timeout is not None else settings.REQUEST_TIMEOUT_SECONDS
        self._on_outcome = on_outcome
        self._generations: dict[str, int] = {}
        self._timers: dict[str, ScheduledTask] = {}
        self._outcomes: dict[str, ValidationOutcome] = {}
        self._logger = logging.getLogger(__name__)

    def outcome(self, field_key: str) -> ValidationOutcome:
        return self._outcomes.get(field_key, ValidationOutcome())

    def generation(self, field_key: str) -> int:
        return self._generations.get(field_key, 0)

    def request_check(
        self,
        field_key: str,
        field_kind: str,
        value: str,
        context: UniqueCheckContext | None = None,
    ) -> None:
        """Debounced entry point, called on every keystroke.

        Each call supersedes whatever is pending or in flight for ``field_key``.
        """
        if field_kind not in FIELD_KINDS:
            raise ValidationError(f"Unknown field kind: {field_kind}", field=field_key)

        generation = self._generations.get(field_key, 0) + 1
        self._generations[field_key] = generation
        pending = self._timers.pop(field_key, None)
        if pending is not None:
            pending.cancel()

        if not (value or "").strip():
            self._publish(field_key, ValidationOutcome(is_valid=True))
            return

        self._outcomes[field_key] = ValidationOutcome.checking()
        self._timers[field_key] = self._scheduler.call_later(
            self._debounce,
            lambda: self._run(field_key, generation, field_kind, value, context),
        )

    def reset(self, field_key: str | None = None) -> None:
        keys = [field_key] if field_key is not None else list(self._generations)
        for key in keys:
            timer = self._timers.pop(key, None)
            if timer is not None:
                timer.cancel()
            # bumping the generation turns anything still in flight into a stale result
            self._generations[key] = self._generations.get(key, 0) + 1
            self._outcomes.pop(key, None)

    async def check_unique(
        self,
        field_kind: str,
        value: str,
        context: UniqueCheckContext | None = None,
    ) -> ValidationOutcome:
        """One syntactic + availability check. Never raises for backend failures."""
        context = context or UniqueCheckContext()
        candidate = (value or "").strip()
        if not candidate:
            return ValidationOutcome(is_valid=True)

        if context.confirmed_value is not None and candidate == context.confirmed_value.strip():
            return ValidationOutcome.valid(SKIPPED_MESSAGE)

        problem = format_error(field_kind, candidate)
        if problem:
            return ValidationOutcome.invalid(problem)

        try:
            data = await asyncio.wait_for(
                self._backend.check_unique(field_kind, candidate, context.params_for(field_kind)),
                timeout=self._timeout,
            )
        except BackendRejection as e:
            return ValidationOutcome.invalid(str(e))
        except (NetworkError, AuthError, asyncio.TimeoutError) as e:
            self._logger.warning("Uniqueness check failed", extra={"reason": type(e).__name__})
            return ValidationOutcome.invalid(NETWORK_FAILURE_MESSAGE)
        except Exception:
            self._logger.exception("Unexpected error during uniqueness check", extra={"reason": field_kind})
            return ValidationOutcome.invalid(NETWORK_FAILURE_MESSAGE)

        return _outcome_from_response(data)

    async def _run(
        self,
        field_key: str,
        generation: int,
        field_kind: str,
        value: str,
        context: UniqueCheckContext | None,
    ) -> None:
        if generation != self._generations.get(field_key):
            return
        self._timers.pop(field_key, None)
        self._outcomes[field_key] = ValidationOutcome.checking()

        outcome = await self.check_unique(field_kind, value, context)

        if generation != self._generations.get(field_key):
            self._logger.debug(
                "Discarding stale uniqueness result",
                extra={"field_key": field_key, "generation": generation},
            )
            return
        self._publish(field_key, outcome)

    def _publish(self, field_key: str, outcome: ValidationOutcome) -> None:
        self._outcomes[field_key] = outcome
        if self._on_outcome is not None:
            self._on_outcome(field_key, outcome)


def format_error(field_kind: str, value: str) -> str | None:
    """Syntactic problem with ``value`` for ``field_kind``, checked before any request."""
    if field_kind in NAME_KINDS and len(value) < MIN_NAME_LENGTH:
        return f"Name must be at least {MIN_NAME_LENGTH} characters"
    rule = _FORMAT_RULES.get(field_kind)
    if rule and not rule[0].match(value):
        return rule[1]
    return None


def _outcome_from_response(data: Any) -> ValidationOutcome:
    if not isinstance(data, dict):
        return ValidationOutcome.invalid(NETWORK_FAILURE_MESSAGE)
    # older endpoints wrap the answer: {success, message, data: {isAvailable}}
    inner = data.get("data") if isinstance(data.get("data"), dict) else {}
    is_available = data.get("isAvailable", inner.get("isAvailable", data.get("isUnique")))
    is_valid = data.get("isValid", is_available)
    message = str(data.get("message") or "")
    return ValidationOutcome(
        is_checking=False,
        is_valid=bool(is_valid),
        is_available=bool(is_available),
        message=message,
        has_checked=True,
    )
