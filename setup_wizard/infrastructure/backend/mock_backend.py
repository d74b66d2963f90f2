from __future__ import annotations

import copy
import logging
from typing import Any

from setup_wizard.application.ports.onboarding_backend import OnboardingBackendPort


DEFAULT_PLANS: list[dict[str, Any]] = [
    {"name": "Company", "type": "company", "features": ["organization", "complexes", "clinics"]},
    {"name": "Complex", "type": "complex", "features": ["complex", "clinics"]},
    {"name": "Clinic", "type": "clinic", "features": ["clinic"]},
]


class MockOnboardingBackend(OnboardingBackendPort):
    """In-memory stand-in for the onboarding API, used in dev and tests."""

    def __init__(self, taken: dict[str, set[str]] | None = None) -> None:
        self._taken = {kind: {v.strip().lower() for v in values} for kind, values in (taken or {}).items()}
        self.saved: dict[tuple[str, str], dict[str, Any]] = {}
        self.completed: list[str] = []
        self.calls: list[tuple[str, str]] = []
        self.progress: dict[str, Any] = {}
        self._logger = logging.getLogger(__name__)

    async def check_unique(self, field_kind: str, value: str, params: dict[str, str] | None = None) -> dict[str, Any]:
        self.calls.append(("check_unique", f"{field_kind}:{value}"))
        taken = value.strip().lower() in self._taken.get(field_kind, set())
        return {
            "isValid": not taken,
            "isAvailable": not taken,
            "message": f"{value} is already taken" if taken else f"{value} is available",
        }

    async def save_section(self, entity: str, section: str, payload: dict[str, Any]) -> dict[str, Any]:
        self.calls.append(("save_section", f"{entity}/{section}"))
        self.saved[(entity, section)] = copy.deepcopy(payload)
        self._logger.info("Mock section saved", extra={"reason": f"{entity}/{section}"})
        return {"success": True, "message": "Saved", "data": copy.deepcopy(payload), "canProceed": True}

    async def complete_entity(self, entity: str) -> dict[str, Any]:
        self.calls.append(("complete_entity", entity))
        self.completed.append(entity)
        return {"success": True, "message": f"{entity} setup completed", "data": None, "canProceed": True}

    async def get_progress(self) -> dict[str, Any]:
        self.calls.append(("get_progress", ""))
        return copy.deepcopy(self.progress)

    async def get_plans(self) -> list[dict[str, Any]]:
        self.calls.append(("get_plans", ""))
        return copy.deepcopy(DEFAULT_PLANS)

    def calls_to(self, name: str) -> list[str]:
        return [arg for call, arg in self.calls if call == name]
