"""
Tests for debounced, deduplicated sub-step saving.
"""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from setup_wizard.application.exceptions import AuthError, BackendRejection, NetworkError
from setup_wizard.application.use_cases.autosave import LOCAL_ONLY_WARNING, ProgressiveSaveCoordinator
from setup_wizard.application.utils.payload import content_hash
from setup_wizard.domain.entities.plan import PlanType
from setup_wizard.domain.entities.session import OnboardingSession
from setup_wizard.infrastructure.backend.mock_backend import MockOnboardingBackend
from setup_wizard.infrastructure.scheduler.manual_scheduler import ManualScheduler
from setup_wizard.infrastructure.store.memory_store import MemorySessionStore


OVERVIEW = {"name": "Smile Dental", "legalName": "Smile Dental LLC"}


class GatedSaveBackend(MockOnboardingBackend):
    def __init__(self) -> None:
        super().__init__()
        self.gate = asyncio.Event()

    async def save_section(self, entity: str, section: str, payload: dict[str, Any]) -> dict[str, Any]:
        self.calls.append(("save_section", f"{entity}/{section}"))
        await self.gate.wait()
        return {"success": True, "message": "Saved", "data": {}, "canProceed": True}


class RaisingBackend(MockOnboardingBackend):
    def __init__(self, error: Exception) -> None:
        super().__init__()
        self.error = error

    async def save_section(self, entity: str, section: str, payload: dict[str, Any]) -> dict[str, Any]:
        self.calls.append(("save_section", f"{entity}/{section}"))
        raise self.error


def _coordinator(backend, store=None):
    session = OnboardingSession(plan_type=PlanType.clinic)
    scheduler = ManualScheduler()
    coordinator = ProgressiveSaveCoordinator(session, backend, scheduler, store=store, debounce_ms=2000)
    return coordinator, session, scheduler


def test_content_hash_ignores_key_order():
    assert content_hash({"a": 1, "b": [1, 2]}) == content_hash({"b": [1, 2], "a": 1})
    assert content_hash({"a": 1}) != content_hash({"a": 2})


@pytest.mark.asyncio
async def test_identical_autosave_hits_network_once():
    """Two autosaves of the same payload produce at most one backend write."""
    backend = MockOnboardingBackend()
    coordinator, session, scheduler = _coordinator(backend)

    coordinator.autosave("1-overview", OVERVIEW)
    await scheduler.advance(2)
    await scheduler.drain()
    coordinator.autosave("1-overview", dict(reversed(list(OVERVIEW.items()))))
    await scheduler.advance(2)
    await scheduler.drain()

    assert backend.calls_to("save_section") == ["clinic/overview"]
    assert coordinator.last_saved_hash("1-overview") == content_hash(OVERVIEW)
    assert coordinator.last_results["1-overview"].ok


@pytest.mark.asyncio
async def test_autosave_is_debounced_per_key():
    """Rapid edits collapse into one write carrying the latest payload."""
    backend = MockOnboardingBackend()
    coordinator, session, scheduler = _coordinator(backend)

    coordinator.autosave("1-overview", {"name": "S"})
    await scheduler.advance(1)
    coordinator.autosave("1-overview", {"name": "Smile"})
    await scheduler.advance(1)
    assert backend.calls == []
    assert session.form_data["1-overview"] == {"name": "Smile"}

    await scheduler.advance(1)
    await scheduler.drain()
    assert backend.saved[("clinic", "overview")] == {"name": "Smile"}
    assert len(backend.calls_to("save_section")) == 1


@pytest.mark.asyncio
async def test_save_now_always_reaches_backend():
    backend = MockOnboardingBackend()
    coordinator, session, scheduler = _coordinator(backend)

    coordinator.autosave("1-overview", OVERVIEW)
    first = await coordinator.save_now("1-overview", OVERVIEW)
    second = await coordinator.save_now("1-overview", OVERVIEW)

    assert first.ok and second.ok
    assert scheduler.pending_timers == 0
    assert len(backend.calls_to("save_section")) == 2


@pytest.mark.asyncio
async def test_autosave_dropped_while_save_in_flight():
    backend = GatedSaveBackend()
    coordinator, session, scheduler = _coordinator(backend)

    task = asyncio.create_task(coordinator.save_now("1-contact", {"phone": "1"}))
    await asyncio.sleep(0)
    await asyncio.sleep(0)
    assert coordinator.is_in_flight("1-contact")

    coordinator.autosave("1-contact", {"phone": "12"})
    assert scheduler.pending_timers == 0
    assert session.form_data["1-contact"] == {"phone": "12"}

    backend.gate.set()
    result = await task
    assert result.ok
    assert not coordinator.is_in_flight("1-contact")
    assert backend.calls_to("save_section") == ["clinic/contact"]


@pytest.mark.asyncio
async def test_services_post_to_services_capacity():
    backend = MockOnboardingBackend()
    coordinator, session, scheduler = _coordinator(backend)

    await coordinator.save_now("1-services", {"services": [], "capacity": {"sessionDuration": 30}})

    assert ("clinic", "services-capacity") in backend.saved


@pytest.mark.asyncio
async def test_network_failure_keeps_local_draft():
    """A failed remote save warns but never blocks and never loses the draft."""
    store = MemorySessionStore()
    backend = RaisingBackend(NetworkError("offline"))
    coordinator, session, scheduler = _coordinator(backend, store=store)

    result = await coordinator.save_now("1-overview", OVERVIEW)

    assert not result.ok
    assert not result.blocking
    assert result.can_proceed
    assert result.warning == LOCAL_ONLY_WARNING
    assert isinstance(result.error, NetworkError)
    assert session.form_data["1-overview"] == OVERVIEW
    assert store.load(session.session_id).form_data["1-overview"] == OVERVIEW
    assert coordinator.last_saved_hash("1-overview") is None
    assert len(backend.calls_to("save_section")) == 1


@pytest.mark.asyncio
async def test_rejection_and_auth_errors_block():
    rejected, _, _ = _coordinator(RaisingBackend(BackendRejection("Clinic name already exists")))
    result = await rejected.save_now("1-overview", OVERVIEW)
    assert result.blocking
    assert result.message == "Clinic name already exists"
    assert not result.can_proceed

    unauthenticated, _, _ = _coordinator(RaisingBackend(AuthError("expired")))
    result = await unauthenticated.save_now("1-overview", OVERVIEW)
    assert result.blocking
    assert isinstance(result.error, AuthError)
