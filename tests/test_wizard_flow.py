"""
End-to-end tests for the onboarding wizard against the in-memory backend.
"""

from __future__ import annotations

from typing import Any

import pytest

from setup_wizard.application.exceptions import (
    BackendRejection,
    ConstraintError,
    InvalidPlanType,
    NetworkError,
    ValidationError,
)
from setup_wizard.application.ports.session_store import USER_DATA_KEY
from setup_wizard.application.use_cases.autosave import LOCAL_ONLY_WARNING
from setup_wizard.application.use_cases.uniqueness import SKIPPED_MESSAGE
from setup_wizard.application.use_cases.wizard import COMPLETION_PENDING_WARNING, OnboardingWizard
from setup_wizard.domain.entities.plan import PlanType, StepPosition, SubStep
from setup_wizard.infrastructure.backend.mock_backend import MockOnboardingBackend
from setup_wizard.infrastructure.scheduler.manual_scheduler import ManualScheduler
from setup_wizard.infrastructure.store.memory_store import MemorySessionStore


class FlakyBackend(MockOnboardingBackend):
    """Fails section saves with the configured error while ``error`` is set."""

    def __init__(self) -> None:
        super().__init__()
        self.error: Exception | None = None

    async def save_section(self, entity: str, section: str, payload: dict[str, Any]) -> dict[str, Any]:
        if self.error is not None:
            self.calls.append(("save_section", f"{entity}/{section}"))
            raise self.error
        return await super().save_section(entity, section, payload)


class UnreachableCompletionBackend(MockOnboardingBackend):
    """Saves sections normally but cannot reach the completion endpoint."""

    async def complete_entity(self, entity: str) -> dict[str, Any]:
        self.calls.append(("complete_entity", entity))
        raise NetworkError("connection reset")


def _wizard(backend=None):
    backend = backend or MockOnboardingBackend()
    scheduler = ManualScheduler()
    store = MemorySessionStore()
    wizard = OnboardingWizard(
        backend, scheduler, store=store, uniqueness_debounce_ms=800, autosave_debounce_ms=2000
    )
    return wizard, backend, scheduler, store


@pytest.mark.asyncio
async def test_clinic_plan_runs_to_completion():
    """overview -> contact -> services -> legal -> schedule, then the session completes."""
    wizard, backend, scheduler, store = _wizard()
    session = wizard.select_plan("clinic", {"userId": "u-1"})
    assert store.load(session.session_id) is not None

    visited = [session.step_key]
    for payload in (
        {"name": "Smile Dental", "headDoctorName": "Dr. Noor"},
        {"email": "hello@smile.example", "phone": "+966511111111"},
        {"services": [{"name": "Cleaning"}], "capacity": {"sessionDuration": 45}},
        {"vatNumber": "300000000000003", "crNumber": "1010101010"},
    ):
        result = await wizard.submit(payload)
        assert result.save.ok
        visited.append(result.position.key)

    assert visited == ["1-overview", "1-contact", "1-services", "1-legal", "1-schedule"]

    final = await wizard.submit()
    assert final.is_complete
    assert final.position is None
    assert session.is_complete
    assert wizard.progress() == 100
    assert backend.completed == ["clinic"]
    assert backend.saved[("clinic", "services-capacity")]["capacity"] == {"sessionDuration": 45}
    assert backend.saved[("clinic", "schedule")]["workingHours"][0]["openTime"] == "09:00"
    assert store.load(session.session_id) is None


@pytest.mark.asyncio
async def test_company_plan_prefills_complex_manager():
    """The CEO entered for the organization shows up as the complex manager."""
    wizard, backend, scheduler, store = _wizard()
    session = wizard.select_plan("company")
    assert session.plan_type is PlanType.organization

    await wizard.submit({"name": "Acme Health", "legalName": "Acme Health LLC", "ceoName": "Dr. Sara Ali"})
    await wizard.submit({"email": "info@acme.example", "city": "Riyadh"})
    result = await wizard.submit({"vatNumber": "123456789012"})

    assert result.position == StepPosition(2, SubStep.overview)
    assert backend.completed == ["organization"]

    draft = wizard.current_draft()
    assert draft["managerName"] == "Dr. Sara Ali"
    assert draft["legalName"] == "Acme Health LLC"
    assert draft["name"] == ""

    await wizard.submit({"name": "North Complex"})
    assert backend.saved[("complex", "overview")]["managerName"] == "Dr. Sara Ali"
    assert backend.saved[("complex", "overview")]["name"] == "North Complex"
    contact = wizard.current_draft()
    assert contact["city"] == "Riyadh"
    assert contact["email"] == ""


@pytest.mark.asyncio
async def test_clinic_hours_must_nest_inside_complex_hours():
    wizard, backend, scheduler, store = _wizard()
    wizard.select_plan(PlanType.complex)
    for payload in ({"name": "North Complex"}, {"phone": "1"}, {"crNumber": "1234567"}, None):
        await wizard.submit(payload)
    for payload in ({"name": "North Clinic"}, {"phone": "2"}, {"services": []}):
        await wizard.submit(payload)
    assert wizard.session.position == StepPosition(2, SubStep.schedule)

    draft = wizard.current_draft()
    assert draft["parentWorkingHours"][0] == {
        "day": "monday",
        "isOpen": True,
        "openTime": "09:00",
        "closeTime": "17:00",
        "breakStart": "12:00",
        "breakEnd": "13:00",
    }

    early = [dict(day) for day in draft["workingHours"]]
    early[0]["openTime"] = "08:00"
    with pytest.raises(ConstraintError) as excinfo:
        await wizard.submit({"workingHours": early})
    assert excinfo.value.violations[0].code == "opens_before_parent"
    assert wizard.session.position == StepPosition(2, SubStep.schedule)
    assert ("clinic", "schedule") not in backend.saved

    inline = wizard.validate_hours(early)
    assert not inline.is_valid

    early[0]["openTime"] = "10:00"
    result = await wizard.submit({"workingHours": early})
    assert result.is_complete
    assert backend.completed == ["complex", "clinic"]


@pytest.mark.asyncio
async def test_rejected_save_blocks_navigation():
    backend = FlakyBackend()
    wizard, _, scheduler, store = _wizard(backend)
    wizard.select_plan("clinic")

    backend.error = BackendRejection("Clinic name already exists")
    with pytest.raises(BackendRejection, match="already exists"):
        await wizard.submit({"name": "Smile Dental"})
    assert wizard.session.step_key == "1-overview"
    assert not wizard.session.completed_sub_steps


@pytest.mark.asyncio
async def test_network_failure_warns_and_proceeds():
    """The draft is kept locally and the user may continue."""
    backend = FlakyBackend()
    wizard, _, scheduler, store = _wizard(backend)
    session = wizard.select_plan("clinic")

    backend.error = NetworkError("offline")
    result = await wizard.submit({"name": "Smile Dental"})

    assert result.warning == LOCAL_ONLY_WARNING
    assert result.position == StepPosition(1, SubStep.contact)
    assert store.load(session.session_id).form_data["1-overview"]["name"] == "Smile Dental"


@pytest.mark.asyncio
async def test_back_keeps_entered_data_and_edits_autosave():
    wizard, backend, scheduler, store = _wizard()
    wizard.select_plan("clinic")
    await wizard.submit({"name": "Smile Dental"})

    assert wizard.back() == StepPosition(1, SubStep.overview)
    assert wizard.back() == StepPosition(1, SubStep.overview)
    assert wizard.current_draft()["name"] == "Smile Dental"

    wizard.update_field("name", "Smile Dental Care")
    await scheduler.advance(2)
    await scheduler.drain()
    assert backend.saved[("clinic", "overview")]["name"] == "Smile Dental Care"
    assert len(backend.calls_to("save_section")) == 2


@pytest.mark.asyncio
async def test_saved_name_is_not_rechecked():
    """Once the clinic name is saved, checking it again uses the existing value."""
    wizard, backend, scheduler, store = _wizard()
    wizard.select_plan("clinic")
    await wizard.submit({"name": "Smile Dental"})

    wizard.check_field("overview.name", "clinic-name", "Smile Dental")
    await scheduler.advance(0.8)
    await scheduler.drain()

    assert wizard.field_outcome("overview.name").message == SKIPPED_MESSAGE
    assert backend.calls_to("check_unique") == []


@pytest.mark.asyncio
async def test_resume_from_store_and_from_server_progress():
    wizard, backend, scheduler, store = _wizard()
    session = wizard.select_plan("clinic")
    await wizard.submit({"name": "Smile Dental"})

    other = OnboardingWizard(backend, scheduler, store=store)
    restored = await other.resume(session.session_id)
    assert restored.step_key == "1-contact"
    assert restored.form_data["1-overview"]["name"] == "Smile Dental"

    backend.progress = {
        "planType": "company",
        "currentStep": 2,
        "completedSteps": ["1-overview", "1-contact", "1-legal", "2-overview", "bogus"],
    }
    fresh = OnboardingWizard(backend, scheduler, store=MemorySessionStore())
    rebuilt = await fresh.resume("from-server")
    assert rebuilt.session_id == "from-server"
    assert rebuilt.plan_type is PlanType.organization
    assert rebuilt.step_key == "2-contact"
    assert "2-schedule" in rebuilt.form_data

    backend.progress = {}
    assert await OnboardingWizard(backend, scheduler, store=MemorySessionStore()).resume("nothing") is None


@pytest.mark.asyncio
async def test_restart_clears_session_and_store():
    wizard, backend, scheduler, store = _wizard()
    session = wizard.select_plan("clinic")
    await wizard.submit({"name": "Smile Dental"})

    wizard.restart()

    assert session.position == StepPosition(1, SubStep.overview)
    assert session.completed_sub_steps == set()
    assert "1-overview" not in session.form_data
    assert store.load(session.session_id) is None


@pytest.mark.asyncio
async def test_plans_and_missing_plan():
    wizard, backend, scheduler, store = _wizard()
    plans = await wizard.available_plans()
    assert {p["type"] for p in plans} == {"company", "complex", "clinic"}

    with pytest.raises(InvalidPlanType):
        wizard.current_draft()
    with pytest.raises(InvalidPlanType):
        wizard.select_plan("hospital")


@pytest.mark.asyncio
async def test_unreachable_completion_warns_and_still_finishes():
    """The last section is saved, so the session completes with a warning."""
    backend = UnreachableCompletionBackend()
    wizard, _, scheduler, store = _wizard(backend)
    session = wizard.select_plan("clinic")
    for payload in ({"name": "Smile Dental"}, {"phone": "1"}, {"services": []}, {"crNumber": "1234567"}):
        result = await wizard.submit(payload)
        assert result.warning is None

    final = await wizard.submit()

    assert final.is_complete
    assert final.warning == COMPLETION_PENDING_WARNING
    assert session.is_complete
    assert session.is_completed(StepPosition(1, SubStep.schedule))
    assert ("clinic", "schedule") in backend.saved
    assert backend.calls_to("complete_entity") == ["clinic"]
    assert store.load(session.session_id) is None


@pytest.mark.asyncio
async def test_unreachable_completion_between_steps_moves_on():
    backend = UnreachableCompletionBackend()
    wizard, _, scheduler, store = _wizard(backend)
    wizard.select_plan("company")
    await wizard.submit({"name": "Acme Health"})
    await wizard.submit({"city": "Riyadh"})

    result = await wizard.submit({"vatNumber": "123456789012"})

    assert result.warning == COMPLETION_PENDING_WARNING
    assert result.position == StepPosition(2, SubStep.overview)
    assert wizard.session.is_completed(StepPosition(1, SubStep.legal))


@pytest.mark.asyncio
async def test_malformed_field_blocks_submit_before_saving():
    wizard, backend, scheduler, store = _wizard()
    wizard.select_plan("clinic")
    await wizard.submit({"name": "Smile Dental"})

    with pytest.raises(ValidationError) as excinfo:
        await wizard.submit({"email": "not-an-email"})

    assert excinfo.value.field == "email"
    assert wizard.session.step_key == "1-contact"
    assert ("clinic", "contact") not in backend.saved


@pytest.mark.asyncio
async def test_restart_forgets_owner_data():
    wizard, backend, scheduler, store = _wizard()
    session = wizard.select_plan("clinic", {"userId": "u-1", "organizationId": "org-1"})

    wizard.restart()
    wizard.update_field("name", "Fresh Start")

    assert session.owner == {}
    assert store.raw(session.session_id)[USER_DATA_KEY] == {}
