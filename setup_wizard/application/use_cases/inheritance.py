"""
Parent -> child draft derivation for the Organization -> Complex -> Clinic hierarchy.

Everything here is pure: no I/O, inputs are never mutated and the same
parent snapshot always yields an equal draft, so a draft can be recomputed
whenever the user revisits a step.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import Any, Mapping

from setup_wizard.application.use_cases.step_flow import entity_for, resolve_plan_type, step_definition
from setup_wizard.domain.entities.plan import EntityKind, PlanType, SubStep
from setup_wizard.domain.entities.working_hours import parse_schedule, schedule_to_payload


CONTACT_FIELDS: tuple[str, ...] = (
    "address",
    "city",
    "state",
    "postalCode",
    "country",
    "googleLocation",
    "phone",
    "email",
    "emergencyContactName",
    "emergencyContactPhone",
    "phoneNumbers",
    "socialMediaLinks",
)
LEGAL_FIELDS: tuple[str, ...] = ("vatNumber", "crNumber", "termsConditionsUrl", "privacyPolicyUrl")
SOCIAL_NETWORKS: tuple[str, ...] = ("facebook", "instagram", "twitter", "linkedin", "whatsapp")
BUSINESS_PROFILE_FIELDS: tuple[str, ...] = ("yearEstablished", "mission", "vision", "goals")

DEFAULT_SESSION_DURATION = 30


@dataclass(frozen=True)
class InheritanceRule:
    overview_fields: tuple[str, ...]
    renames: tuple[tuple[str, str], ...]
    business_profile: bool = False
    carries_hours: bool = False
    seeds_services: bool = False


INHERITANCE_RULES: dict[tuple[EntityKind, EntityKind], InheritanceRule] = {
    (EntityKind.organization, EntityKind.complex): InheritanceRule(
        overview_fields=("legalName", "yearEstablished", "overview", "goals", "vision", "mission", "logoUrl"),
        renames=(("ceoName", "managerName"),),
        carries_hours=True,
    ),
    (EntityKind.complex, EntityKind.clinic): InheritanceRule(
        overview_fields=("legalName", "logoUrl"),
        renames=(("managerName", "headDoctorName"),),
        business_profile=True,
        carries_hours=True,
        seeds_services=True,
    ),
    (EntityKind.organization, EntityKind.clinic): InheritanceRule(
        overview_fields=("legalName", "logoUrl"),
        renames=(("ceoName", "headDoctorName"),),
        business_profile=True,
        seeds_services=True,
    ),
}


def map_parent_to_child(
    parent_snapshot: Mapping[str, Any] | None,
    parent_kind: EntityKind | str,
    child_kind: EntityKind | str,
) -> dict[str, Any]:
    parent_kind = EntityKind(parent_kind)
    child_kind = EntityKind(child_kind)
    rule = INHERITANCE_RULES.get((parent_kind, child_kind))
    if rule is None:
        raise ValueError(f"no inheritance from {parent_kind.value} to {child_kind.value}")

    parent = copy.deepcopy(dict(parent_snapshot or {}))
    p_overview = _group(parent, "overview")
    p_contact = _group(parent, "contact")
    p_legal = _group(parent, "legal")

    overview: dict[str, Any] = {}
    for name in rule.overview_fields:
        overview[name] = _field(p_overview, name)
    for source, target in rule.renames:
        overview[target] = _field(p_overview, source)
    if rule.business_profile:
        overview["businessProfile"] = {name: _field(p_overview, name) for name in BUSINESS_PROFILE_FIELDS}

    contact = {name: _field(p_contact, name) for name in CONTACT_FIELDS}
    legal = {name: _field(p_legal, name) for name in LEGAL_FIELDS}

    # Identity-defining fields a child must enter on its own.
    overview["name"] = ""
    contact["email"] = ""
    contact["website"] = ""

    draft: dict[str, Any] = {
        "overview": overview,
        "contact": contact,
        "legal": legal,
        "inheritsFromParent": True,
        "inheritedFrom": parent_kind.value,
        "inheritedGroups": [g for g in ("overview", "contact", "legal") if _group(parent, g)],
        "parentWorkingHours": [],
    }
    if rule.carries_hours:
        draft["parentWorkingHours"] = schedule_to_payload(parse_schedule(parent.get("workingHours")))
    if rule.seeds_services:
        draft["services"] = []
        draft["capacity"] = {
            "maxStaff": None,
            "maxDoctors": None,
            "maxPatients": None,
            "sessionDuration": DEFAULT_SESSION_DURATION,
        }
    return draft


def parent_snapshot_for_step(plan: Any, form_data: Mapping[str, Any], step: int) -> dict[str, Any]:
    """Rebuild a saved entity snapshot from the ``"{step}-{subStep}"`` form data keys."""
    snapshot: dict[str, Any] = {}
    for sub_step in (SubStep.overview, SubStep.contact, SubStep.legal):
        payload = form_data.get(f"{step}-{sub_step.value}")
        if isinstance(payload, Mapping) and payload:
            snapshot[sub_step.value] = copy.deepcopy(dict(payload))
    schedule = form_data.get(f"{step}-{SubStep.schedule.value}")
    if isinstance(schedule, Mapping):
        schedule = schedule.get("workingHours")
    if schedule:
        snapshot["workingHours"] = copy.deepcopy(list(schedule))
    return snapshot


def inheritance_draft_for_step(plan: Any, form_data: Mapping[str, Any], step: int) -> dict[str, Any]:
    """Draft seeding the entity provisioned at ``step``; empty for a plan's first entity."""
    plan = resolve_plan_type(plan)
    if plan is PlanType.clinic or step <= 1:
        return {}

    child_kind = entity_for(plan, step)
    # Walk up the hierarchy until an ancestor step with saved data is found.
    for parent_step in range(step - 1, 0, -1):
        parent_kind = step_definition(plan, parent_step).entity
        if (parent_kind, child_kind) not in INHERITANCE_RULES:
            continue
        snapshot = parent_snapshot_for_step(plan, form_data, parent_step)
        if snapshot:
            return map_parent_to_child(snapshot, parent_kind, child_kind)
    return {}


def merge_with_user_edits(recomputed: Mapping[str, Any], user_edits: Mapping[str, Any] | None) -> dict[str, Any]:
    """Overlay authored values on a freshly recomputed draft; authored values always win."""
    merged = copy.deepcopy(dict(recomputed))
    for key, value in (user_edits or {}).items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), Mapping):
            merged[key] = merge_with_user_edits(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def should_constrain_working_hours(plan: Any, has_parent_hours: bool) -> bool:
    # Standalone clinics have nothing to nest inside.
    return resolve_plan_type(plan) in (PlanType.organization, PlanType.complex) and has_parent_hours


def _group(snapshot: Mapping[str, Any], name: str) -> dict[str, Any]:
    value = snapshot.get(name)
    return dict(value) if isinstance(value, Mapping) else {}


def _field(group: Mapping[str, Any], name: str) -> Any:
    value = group.get(name)
    if name == "yearEstablished":
        return value
    if name == "phoneNumbers":
        return list(value) if isinstance(value, list) else []
    if name == "socialMediaLinks":
        links = value if isinstance(value, Mapping) else {}
        return {network: links.get(network) or "" for network in SOCIAL_NETWORKS}
    return value or ""
