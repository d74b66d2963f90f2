from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from typing import Any, Mapping

from setup_wizard.application.exceptions import ConstraintError, InvalidPlanType, NetworkError, ValidationError, WizardError
from setup_wizard.application.ports.onboarding_backend import OnboardingBackendPort
from setup_wizard.application.ports.scheduler import SchedulerPort
from setup_wizard.application.ports.session_store import SessionStorePort
from setup_wizard.application.use_cases.autosave import ProgressiveSaveCoordinator
from setup_wizard.application.use_cases.inheritance import (
    inheritance_draft_for_step,
    merge_with_user_edits,
    should_constrain_working_hours,
)
from setup_wizard.application.use_cases.step_flow import (
    SESSION_COMPLETE,
    advance,
    entity_for,
    graph_for,
    initial_position,
    progress_percentage,
    resolve_plan_type,
    steps_for,
)
from setup_wizard.application.use_cases.uniqueness import OutcomeListener, UniqueCheckContext, UniquenessValidator, format_error
from setup_wizard.application.use_cases.working_hours import validate_schedule, validate_working_hours
from setup_wizard.application.utils.payload import clean_payload
from setup_wizard.domain.entities.plan import Direction, EntityKind, StepPosition, SubStep
from setup_wizard.domain.entities.session import OnboardingSession
from setup_wizard.domain.entities.validation import HoursValidationResult, SaveResult, ValidationOutcome
from setup_wizard.domain.entities.working_hours import DEFAULT_WORKING_HOURS, schedule_to_payload


# Fields whose saved value is the user's own; re-checking them would report "taken".
CONFIRMED_FIELDS: dict[SubStep, tuple[tuple[str, str], ...]] = {
    SubStep.overview: (("name", "{entity}-name"),),
    SubStep.contact: (("email", "email"),),
    SubStep.legal: (("vatNumber", "vat-number"), ("crNumber", "cr-number")),
}

READ_ONLY_KEYS = ("parentWorkingHours",)

COMPLETION_PENDING_WARNING = "Saved, but the server could not be reached to mark this setup as finished."


@dataclass(frozen=True)
class SubmitResult:
    save: SaveResult
    position: StepPosition | None
    is_complete: bool = False
    notice: str | None = None

    @property
    def warning(self) -> str | None:
        return self.notice or self.save.warning


class OnboardingWizard:
    """Drives one onboarding session through its plan's step graph.

    Composes the step flow, inheritance, working-hours checks, uniqueness
    validation and progressive saving around an explicit session object.
    """

    def __init__(
        self,
        backend: OnboardingBackendPort,
        scheduler: SchedulerPort,
        store: SessionStorePort | None = None,
        uniqueness_debounce_ms: int | None = None,
        autosave_debounce_ms: int | None = None,
        on_outcome: OutcomeListener | None = None,
    ) -> None:
        self._backend = backend
        self._scheduler = scheduler
        self._store = store
        self._autosave_debounce_ms = autosave_debounce_ms
        self._session: OnboardingSession | None = None
        self._saver: ProgressiveSaveCoordinator | None = None
        self.uniqueness = UniquenessValidator(
            backend, scheduler, debounce_ms=uniqueness_debounce_ms, on_outcome=on_outcome
        )
        self._logger = logging.getLogger(__name__)

    @property
    def session(self) -> OnboardingSession:
        if self._session is None:
            raise InvalidPlanType("A plan must be selected before the wizard can start")
        return self._session

    @property
    def saver(self) -> ProgressiveSaveCoordinator:
        if self._saver is None:
            raise InvalidPlanType("A plan must be selected before the wizard can start")
        return self._saver

    def select_plan(self, plan: Any, owner: Mapping[str, Any] | None = None) -> OnboardingSession:
        plan_type = resolve_plan_type(plan)
        if self._saver is not None:
            self._saver.cancel_all()
        self.uniqueness.reset()

        position = initial_position(plan_type)
        session = OnboardingSession(
            plan_type=plan_type,
            current_step=position.step,
            current_sub_step=position.sub_step,
            owner=clean_payload(owner),
        )
        _seed_default_hours(session)
        self._attach(session)
        self._persist()
        self._logger.info(
            "Onboarding session started",
            extra={"session_id": session.session_id, "plan_type": plan_type.value},
        )
        return session

    async def resume(self, session_id: str) -> OnboardingSession | None:
        """Restore a session from the local store, falling back to server progress."""
        session = self._store.load(session_id) if self._store is not None else None
        if session is None:
            try:
                progress = await self._backend.get_progress()
            except WizardError as e:
                self._logger.warning("Could not fetch server progress", extra={"session_id": session_id, "reason": str(e)})
                return None
            session = session_from_progress(progress, session_id)
            if session is None:
                return None
            _seed_default_hours(session)

        self._attach(session)
        self._persist()
        self._logger.info("Onboarding session resumed", extra={"session_id": session.session_id, "step_key": session.step_key})
        return session

    async def available_plans(self) -> list[dict[str, Any]]:
        return await self._backend.get_plans()

    def current_draft(self) -> dict[str, Any]:
        """Draft for the current sub-step with the user's edits applied on top.

        Inherited sections are recomputed from the parent's current data, so
        only authored edits survive a change made further up the hierarchy.
        """
        session = self.session
        key = session.step_key
        base = self._inherited_section(session.position) or copy.deepcopy(dict(session.form_data.get(key) or {}))
        draft = merge_with_user_edits(base, session.user_edits.get(key))

        if session.current_sub_step is SubStep.schedule:
            draft.setdefault("workingHours", schedule_to_payload(DEFAULT_WORKING_HOURS))
            draft["parentWorkingHours"] = self._parent_hours(session.current_step)
        return draft

    def edit(self, payload: Mapping[str, Any]) -> dict[str, Any]:
        session = self.session
        key = session.step_key
        session.user_edits[key] = merge_with_user_edits(session.user_edits.get(key) or {}, clean_payload(payload))
        draft = self.current_draft()
        self.saver.autosave(key, _section_payload(draft))
        return draft

    def update_field(self, field: str, value: Any) -> dict[str, Any]:
        return self.edit({field: value})

    def check_field(self, field_key: str, field_kind: str, value: str) -> None:
        session = self.session
        context = UniqueCheckContext(
            confirmed_value=session.confirmed_values.get(field_kind),
            organization_id=session.owner.get("organizationId"),
            complex_id=session.owner.get("complexId"),
        )
        self.uniqueness.request_check(field_key, field_kind, value, context)

    def field_outcome(self, field_key: str) -> ValidationOutcome:
        return self.uniqueness.outcome(field_key)

    def validate_hours(self, days: Any) -> HoursValidationResult:
        session = self.session
        shape = validate_schedule(days)
        parent = self._parent_hours(session.current_step)
        if not should_constrain_working_hours(session.plan_type, bool(parent)):
            return shape
        nesting = validate_working_hours(days, parent)
        violations = shape.violations + nesting.violations
        return HoursValidationResult(is_valid=not violations, violations=violations)

    async def submit(self, payload: Mapping[str, Any] | None = None) -> SubmitResult:
        session = self.session
        position = session.position
        key = position.key
        if payload:
            session.user_edits[key] = merge_with_user_edits(session.user_edits.get(key) or {}, clean_payload(payload))
        section = _section_payload(self.current_draft())
        entity = entity_for(session.plan_type, position.step)

        for field, kind in CONFIRMED_FIELDS.get(position.sub_step, ()):
            value = str(section.get(field) or "").strip()
            problem = format_error(kind.format(entity=entity.value), value) if value else None
            if problem:
                raise ValidationError(problem, field=field)

        if position.sub_step is SubStep.schedule:
            result = self.validate_hours(section.get("workingHours"))
            if not result.is_valid:
                self._logger.info("Schedule rejected", extra={"step_key": key, "reason": "; ".join(result.messages)})
                raise ConstraintError("; ".join(result.messages), result.violations)

        save = await self.saver.save_now(key, section)
        if save.blocking and save.error is not None:
            raise save.error

        if save.ok:
            self._remember_saved(entity, position, section, save.data)

        nxt = advance(session, Direction.next)
        leaving_step = nxt is SESSION_COMPLETE or nxt.step != position.step
        notice = None
        if leaving_step:
            notice = await self._complete_entity(entity)

        session.mark_completed(position)
        if nxt is SESSION_COMPLETE:
            self._finish()
            return SubmitResult(save=save, position=None, is_complete=True, notice=notice)

        session.move_to(nxt)
        self._persist()
        return SubmitResult(save=save, position=nxt, notice=notice)

    async def _complete_entity(self, entity: EntityKind) -> str | None:
        """Tell the backend an entity is set up; an unreachable server only warns."""
        session = self.session
        try:
            await self._backend.complete_entity(entity.value)
        except NetworkError as e:
            self._logger.warning(
                "Entity completion not delivered",
                extra={"session_id": session.session_id, "reason": f"{entity.value}: {e}"},
            )
            return COMPLETION_PENDING_WARNING
        self._logger.info("Entity setup completed", extra={"session_id": session.session_id, "reason": entity.value})
        return None

    def back(self) -> StepPosition:
        session = self.session
        previous = advance(session, Direction.previous)
        session.move_to(previous)
        self._persist()
        return previous

    def restart(self) -> None:
        session = self.session
        self.saver.cancel_all()
        self.uniqueness.reset()
        session.reset()
        _seed_default_hours(session)
        if self._store is not None:
            self._store.clear(session.session_id)
        self._logger.info("Onboarding session restarted", extra={"session_id": session.session_id})

    def progress(self) -> int:
        return progress_percentage(self.session)

    def _attach(self, session: OnboardingSession) -> None:
        self._session = session
        self._saver = ProgressiveSaveCoordinator(
            session, self._backend, self._scheduler, store=self._store, debounce_ms=self._autosave_debounce_ms
        )

    def _persist(self) -> None:
        if self._store is not None and self._session is not None:
            self._store.save(self._session)

    def _finish(self) -> None:
        session = self.session
        session.is_complete = True
        self.saver.cancel_all()
        self.uniqueness.reset()
        if self._store is not None:
            self._store.clear(session.session_id)
        self._logger.info("Onboarding session complete", extra={"session_id": session.session_id})

    def _inherited_section(self, position: StepPosition) -> dict[str, Any]:
        draft = inheritance_draft_for_step(self.session.plan_type, self.session.form_data, position.step)
        if not draft:
            return {}
        if position.sub_step is SubStep.services:
            return {"services": draft.get("services", []), "capacity": draft.get("capacity", {})}
        section = draft.get(position.sub_step.value)
        return copy.deepcopy(section) if isinstance(section, dict) else {}

    def _parent_hours(self, step: int) -> list[dict[str, Any]]:
        draft = inheritance_draft_for_step(self.session.plan_type, self.session.form_data, step)
        return list(draft.get("parentWorkingHours") or [])

    def _remember_saved(
        self, entity: EntityKind, position: StepPosition, section: Mapping[str, Any], data: Mapping[str, Any]
    ) -> None:
        session = self.session
        for field, kind in CONFIRMED_FIELDS.get(position.sub_step, ()):
            value = section.get(field)
            if value:
                session.confirmed_values[kind.format(entity=entity.value)] = str(value)
        entity_id = data.get("id") or data.get("_id")
        if entity_id and entity in (EntityKind.organization, EntityKind.complex):
            session.owner[f"{entity.value}Id"] = str(entity_id)


def session_from_progress(progress: Mapping[str, Any] | None, session_id: str) -> OnboardingSession | None:
    """Rebuild a session from ``GET /onboarding/progress``; ``None`` when nothing usable is there."""
    progress = progress or {}
    try:
        plan_type = resolve_plan_type(progress.get("planType"))
    except InvalidPlanType:
        return None

    completed: set[tuple[int, str]] = set()
    for key in progress.get("completedSteps") or []:
        try:
            position = StepPosition.from_key(str(key))
        except ValueError:
            continue
        completed.add((position.step, position.sub_step.value))

    graph = graph_for(plan_type)
    last_step = steps_for(plan_type)[-1].step
    current_step = min(max(int(progress.get("currentStep") or 1), 1), last_step)
    position = next(
        (p for p in graph if p.step >= current_step and (p.step, p.sub_step.value) not in completed),
        next(p for p in graph if p.step == current_step),
    )
    return OnboardingSession(
        plan_type=plan_type,
        current_step=position.step,
        current_sub_step=position.sub_step,
        completed_sub_steps=completed,
        session_id=session_id,
    )


def _seed_default_hours(session: OnboardingSession) -> None:
    for position in graph_for(session.plan_type):
        if position.sub_step is SubStep.schedule:
            session.form_data.setdefault(position.key, {"workingHours": schedule_to_payload(DEFAULT_WORKING_HOURS)})


def _section_payload(draft: Mapping[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in draft.items() if k not in READ_ONLY_KEYS}
