"""
Tests for parent -> child draft derivation.
"""

from __future__ import annotations

import copy

import pytest

from setup_wizard.application.use_cases.inheritance import (
    inheritance_draft_for_step,
    map_parent_to_child,
    merge_with_user_edits,
    should_constrain_working_hours,
)
from setup_wizard.domain.entities.plan import EntityKind, PlanType


ORGANIZATION = {
    "overview": {
        "name": "Acme Health",
        "legalName": "Acme Health LLC",
        "ceoName": "Dr. Sara Ali",
        "yearEstablished": 2010,
        "mission": "Care for all",
    },
    "contact": {
        "email": "info@acme.example",
        "website": "https://acme.example",
        "phone": "+966500000000",
        "city": "Riyadh",
    },
    "legal": {"vatNumber": "123456789012", "crNumber": "1234567"},
    "workingHours": [
        {"day": "monday", "isOpen": True, "openTime": "08:00", "closeTime": "18:00"},
        {"day": "sunday", "isOpen": False},
    ],
}


def test_mapping_is_idempotent_and_does_not_mutate_input():
    """Same parent snapshot, same draft; the parent is left untouched."""
    before = copy.deepcopy(ORGANIZATION)
    first = map_parent_to_child(ORGANIZATION, EntityKind.organization, EntityKind.complex)
    second = map_parent_to_child(ORGANIZATION, EntityKind.organization, EntityKind.complex)
    assert first == second
    assert ORGANIZATION == before

    first["overview"]["legalName"] = "changed"
    assert map_parent_to_child(ORGANIZATION, "organization", "complex")["overview"]["legalName"] == "Acme Health LLC"


def test_organization_to_clinic_clears_identity_fields():
    """name, email and website are never inherited; legalName is."""
    draft = map_parent_to_child(ORGANIZATION, EntityKind.organization, EntityKind.clinic)
    assert draft["overview"]["name"] == ""
    assert draft["contact"]["email"] == ""
    assert draft["contact"]["website"] == ""
    assert draft["overview"]["legalName"] == "Acme Health LLC"
    assert draft["overview"]["headDoctorName"] == "Dr. Sara Ali"
    assert draft["parentWorkingHours"] == []
    assert draft["capacity"]["sessionDuration"] == 30
    assert draft["services"] == []


def test_renames_and_provenance():
    """The CEO becomes the complex manager and the provenance markers are set."""
    draft = map_parent_to_child(ORGANIZATION, EntityKind.organization, EntityKind.complex)
    assert draft["overview"]["managerName"] == "Dr. Sara Ali"
    assert draft["contact"]["city"] == "Riyadh"
    assert draft["legal"]["vatNumber"] == "123456789012"
    assert draft["inheritsFromParent"] is True
    assert draft["inheritedFrom"] == "organization"
    assert draft["inheritedGroups"] == ["overview", "contact", "legal"]
    assert "workingHours" not in draft
    assert draft["parentWorkingHours"][0] == {"day": "monday", "isOpen": True, "openTime": "08:00", "closeTime": "18:00"}

    clinic = map_parent_to_child({"overview": {"managerName": "Omar"}}, EntityKind.complex, EntityKind.clinic)
    assert clinic["overview"]["headDoctorName"] == "Omar"
    assert clinic["inheritedGroups"] == ["overview"]


def test_unsupported_pair_raises():
    """Only downward pairs of the hierarchy inherit."""
    with pytest.raises(ValueError, match="no inheritance from clinic to complex"):
        map_parent_to_child({}, EntityKind.clinic, EntityKind.complex)


def test_user_edits_win_over_recomputed_draft():
    """Authored values survive a recomputation of the inherited draft."""
    recomputed = map_parent_to_child(ORGANIZATION, EntityKind.organization, EntityKind.complex)
    merged = merge_with_user_edits(recomputed, {"overview": {"name": "North Complex", "managerName": "Lina"}})
    assert merged["overview"]["name"] == "North Complex"
    assert merged["overview"]["managerName"] == "Lina"
    assert merged["overview"]["legalName"] == "Acme Health LLC"
    assert recomputed["overview"]["managerName"] == "Dr. Sara Ali"


def test_draft_for_step_reads_saved_form_data():
    """Step drafts are assembled from the '{step}-{subStep}' form data keys."""
    form_data = {
        "1-overview": ORGANIZATION["overview"],
        "1-contact": ORGANIZATION["contact"],
        "1-legal": ORGANIZATION["legal"],
    }
    draft = inheritance_draft_for_step(PlanType.organization, form_data, 2)
    assert draft["overview"]["managerName"] == "Dr. Sara Ali"

    # Clinic at step 3 inherits from the complex, not straight from the organization.
    form_data["2-overview"] = {"name": "North", "managerName": "Lina", "legalName": "North LLC"}
    form_data["2-schedule"] = {"workingHours": [{"day": "monday", "isOpen": True, "openTime": "09:00", "closeTime": "17:00"}]}
    clinic = inheritance_draft_for_step(PlanType.organization, form_data, 3)
    assert clinic["inheritedFrom"] == "complex"
    assert clinic["overview"]["headDoctorName"] == "Lina"
    assert clinic["parentWorkingHours"][0]["closeTime"] == "17:00"

    assert inheritance_draft_for_step(PlanType.organization, form_data, 1) == {}
    assert inheritance_draft_for_step(PlanType.clinic, form_data, 1) == {}


def test_working_hours_constraint_applies_only_with_a_parent():
    assert should_constrain_working_hours(PlanType.complex, True)
    assert not should_constrain_working_hours(PlanType.complex, False)
    assert not should_constrain_working_hours(PlanType.clinic, True)
