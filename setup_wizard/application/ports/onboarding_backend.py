from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class OnboardingBackendPort(ABC):
    @abstractmethod
    async def check_unique(self, field_kind: str, value: str, params: dict[str, str] | None = None) -> dict[str, Any]:
        """GET /validation/{field_kind}. Returns {isValid, isAvailable, message}."""
        raise NotImplementedError

    @abstractmethod
    async def save_section(self, entity: str, section: str, payload: dict[str, Any]) -> dict[str, Any]:
        """POST /onboarding/{entity}/{section}. Returns {success, message, data, canProceed}."""
        raise NotImplementedError

    @abstractmethod
    async def complete_entity(self, entity: str) -> dict[str, Any]:
        """POST /onboarding/{entity}/complete."""
        raise NotImplementedError

    @abstractmethod
    async def get_progress(self) -> dict[str, Any]:
        """GET /onboarding/progress. Resume information for an interrupted session."""
        raise NotImplementedError

    @abstractmethod
    async def get_plans(self) -> list[dict[str, Any]]:
        """GET /subscriptions/plans."""
        raise NotImplementedError
