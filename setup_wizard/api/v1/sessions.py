from __future__ import annotations

import logging
from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException, Response

from setup_wizard.api.v1.schemas import (
    CreateSessionSchema, SessionSchema,
    SubmitRequestSchema, SubmitResponseSchema,
    WorkingHoursRequestSchema, WorkingHoursResponseSchema, ViolationSchema,
    PlanSchema,
)
from setup_wizard.application.exceptions import (
    AuthError, BackendRejection, ConstraintError, InvalidPlanType, InvalidStepPosition, NetworkError, ValidationError,
    WizardError,
)
from setup_wizard.application.use_cases.wizard import OnboardingWizard
from setup_wizard.domain.entities.plan import StepPosition, SubStep
from setup_wizard.wiring.dependencies import drop_wizard, get_wizard, new_wizard, register_wizard

router = APIRouter()
logger = logging.getLogger(__name__)


async def session_wizard(session_id: str) -> OnboardingWizard:
    wizard = await get_wizard(session_id)
    if wizard is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return wizard


def _http_error(e: WizardError) -> HTTPException:
    if isinstance(e, (InvalidPlanType, InvalidStepPosition)):
        return HTTPException(status_code=400, detail=str(e))
    if isinstance(e, ValidationError):
        return HTTPException(status_code=422, detail={"message": str(e), "field": e.field})
    if isinstance(e, ConstraintError):
        return HTTPException(
            status_code=422,
            detail={"message": str(e), "violations": [asdict(v) for v in e.violations]},
        )
    if isinstance(e, BackendRejection):
        return HTTPException(status_code=409, detail={"message": str(e), "errors": e.errors})
    if isinstance(e, AuthError):
        return HTTPException(status_code=401, detail=str(e))
    if isinstance(e, NetworkError):
        return HTTPException(status_code=503, detail=str(e))
    return HTTPException(status_code=400, detail=str(e))


def _session_view(wizard: OnboardingWizard) -> SessionSchema:
    session = wizard.session
    return SessionSchema(
        session_id=session.session_id,
        plan_type=session.plan_type.value,
        current_step=session.current_step,
        current_sub_step=session.current_sub_step.value,
        step_key=session.step_key,
        completed_steps=sorted(StepPosition(step, SubStep(sub)).key for step, sub in session.completed_sub_steps),
        progress=wizard.progress(),
        is_complete=session.is_complete,
        draft={} if session.is_complete else wizard.current_draft(),
    )


@router.get("/plans", response_model=list[PlanSchema])
async def list_plans(wizard: OnboardingWizard = Depends(new_wizard)):
    try:
        plans = await wizard.available_plans()
    except WizardError as e:
        raise _http_error(e)
    return [PlanSchema.model_validate(p) for p in plans]


@router.post("/sessions", response_model=SessionSchema, status_code=201)
def create_session(req: CreateSessionSchema, wizard: OnboardingWizard = Depends(new_wizard)):
    try:
        wizard.select_plan(req.plan_type, req.owner)
    except WizardError as e:
        raise _http_error(e)
    register_wizard(wizard)
    return _session_view(wizard)


@router.get("/sessions/{session_id}", response_model=SessionSchema)
def get_session(wizard: OnboardingWizard = Depends(session_wizard)):
    return _session_view(wizard)


@router.post("/sessions/{session_id}/submit", response_model=SubmitResponseSchema)
async def submit_step(req: SubmitRequestSchema, wizard: OnboardingWizard = Depends(session_wizard)):
    if wizard.session.is_complete:
        raise HTTPException(status_code=409, detail="Session already complete")
    try:
        result = await wizard.submit(req.payload)
    except WizardError as e:
        logger.info("Submit rejected", extra={"session_id": wizard.session.session_id, "reason": str(e)})
        raise _http_error(e)
    if result.is_complete:
        drop_wizard(wizard.session.session_id)
    return SubmitResponseSchema(
        session=_session_view(wizard),
        saved=result.save.ok,
        message=result.save.message,
        warning=result.warning,
    )


@router.post("/sessions/{session_id}/back", response_model=SessionSchema)
def go_back(wizard: OnboardingWizard = Depends(session_wizard)):
    try:
        wizard.back()
    except WizardError as e:
        raise _http_error(e)
    return _session_view(wizard)


@router.post("/sessions/{session_id}/working-hours/validate", response_model=WorkingHoursResponseSchema)
def validate_working_hours(req: WorkingHoursRequestSchema, wizard: OnboardingWizard = Depends(session_wizard)):
    result = wizard.validate_hours(req.working_hours)
    return WorkingHoursResponseSchema(
        is_valid=result.is_valid,
        violations=[ViolationSchema(day=v.day, code=v.code, message=v.message) for v in result.violations],
    )


@router.delete("/sessions/{session_id}", status_code=204)
def restart_session(wizard: OnboardingWizard = Depends(session_wizard)) -> Response:
    wizard.restart()
    drop_wizard(wizard.session.session_id)
    return Response(status_code=204)
