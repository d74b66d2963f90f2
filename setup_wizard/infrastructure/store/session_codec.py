from __future__ import annotations

from typing import Any

from setup_wizard.application.ports.session_store import (
    COMPLETED_STEPS_KEY,
    FORM_DATA_KEY,
    PROGRESS_KEY,
    USER_DATA_KEY,
)
from setup_wizard.application.utils.payload import clean_payload
from setup_wizard.domain.entities.plan import PlanType, StepPosition, SubStep
from setup_wizard.domain.entities.session import OnboardingSession


RECORD_VERSION = 1


def session_to_record(session: OnboardingSession) -> dict[str, Any]:
    """Serialize a session into the four persisted keys."""
    completed = sorted(
        StepPosition(step, SubStep(sub)).key for step, sub in session.completed_sub_steps
    )
    return {
        "session_id": session.session_id,
        "version": RECORD_VERSION,
        FORM_DATA_KEY: {
            "formData": clean_payload(session.form_data),
            "userEdits": clean_payload(session.user_edits),
            "confirmedValues": dict(session.confirmed_values),
        },
        COMPLETED_STEPS_KEY: completed,
        USER_DATA_KEY: clean_payload(session.owner),
        PROGRESS_KEY: {
            "planType": session.plan_type.value,
            "currentStep": session.current_step,
            "currentSubStep": session.current_sub_step.value,
            "isComplete": session.is_complete,
        },
    }


def session_from_record(record: dict[str, Any]) -> OnboardingSession | None:
    """Rebuild a session; ``None`` when the record has no usable progress."""
    progress = record.get(PROGRESS_KEY) or {}
    try:
        plan_type = PlanType(progress.get("planType"))
        sub_step = SubStep(progress.get("currentSubStep", SubStep.overview.value))
        current_step = int(progress.get("currentStep", 1))
    except (TypeError, ValueError):
        return None

    form = record.get(FORM_DATA_KEY) or {}
    completed: set[tuple[int, str]] = set()
    for key in record.get(COMPLETED_STEPS_KEY) or []:
        try:
            position = StepPosition.from_key(key)
        except (TypeError, ValueError):
            continue
        completed.add((position.step, position.sub_step.value))

    return OnboardingSession(
        plan_type=plan_type,
        current_step=current_step,
        current_sub_step=sub_step,
        completed_sub_steps=completed,
        form_data=dict(form.get("formData") or {}),
        user_edits=dict(form.get("userEdits") or {}),
        owner=dict(record.get(USER_DATA_KEY) or {}),
        confirmed_values=dict(form.get("confirmedValues") or {}),
        is_complete=bool(progress.get("isComplete", False)),
        session_id=str(record.get("session_id") or ""),
    )
