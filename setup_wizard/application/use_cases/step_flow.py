from __future__ import annotations

from enum import Enum
from typing import Any

from setup_wizard.application.exceptions import InvalidPlanType, InvalidStepPosition
from setup_wizard.domain.entities.plan import (
    PLAN_ALIASES,
    PLAN_GRAPHS,
    PLAN_STEPS,
    Direction,
    EntityKind,
    PlanType,
    StepDefinition,
    StepPosition,
    SubStep,
)
from setup_wizard.domain.entities.session import OnboardingSession


class FlowSignal(Enum):
    SESSION_COMPLETE = "session_complete"


SESSION_COMPLETE = FlowSignal.SESSION_COMPLETE


def resolve_plan_type(value: Any) -> PlanType:
    if isinstance(value, PlanType):
        return value
    if isinstance(value, Enum):
        value = value.value
    text = str(value or "").strip().lower()
    if not text:
        raise InvalidPlanType("A plan must be selected before the wizard can start")
    if text in PLAN_ALIASES:
        return PLAN_ALIASES[text]
    try:
        return PlanType(text)
    except ValueError:
        raise InvalidPlanType(f"Unknown plan type: {value!r}") from None


def graph_for(plan: Any) -> tuple[StepPosition, ...]:
    return PLAN_GRAPHS[resolve_plan_type(plan)]


def steps_for(plan: Any) -> tuple[StepDefinition, ...]:
    return PLAN_STEPS[resolve_plan_type(plan)]


def total_steps(plan: Any) -> int:
    return len(steps_for(plan))


def initial_position(plan: Any) -> StepPosition:
    return graph_for(plan)[0]


def step_definition(plan: Any, step: int) -> StepDefinition:
    for definition in steps_for(plan):
        if definition.step == step:
            return definition
    raise InvalidStepPosition(f"Step {step} does not exist for plan {resolve_plan_type(plan).value}")


def entity_for(plan: Any, step: int) -> EntityKind:
    return step_definition(plan, step).entity


def index_of(plan: Any, position: StepPosition) -> int:
    graph = graph_for(plan)
    try:
        return graph.index(position)
    except ValueError:
        raise InvalidStepPosition(
            f"{position.key} is not a valid position for plan {resolve_plan_type(plan).value}"
        ) from None


def advance(session: OnboardingSession, direction: Direction | str) -> StepPosition | FlowSignal:
    """Return the neighbouring position for ``direction``.

    Pure lookup: the caller writes the result into the session. Moving back
    from the first pair stays on it; moving forward from the last pair
    returns ``SESSION_COMPLETE``.
    """
    plan = resolve_plan_type(session.plan_type)
    direction = Direction(direction)
    graph = PLAN_GRAPHS[plan]
    idx = index_of(plan, session.position)

    if direction is Direction.next:
        if idx + 1 >= len(graph):
            return SESSION_COMPLETE
        return graph[idx + 1]
    return graph[max(0, idx - 1)]


def can_proceed_to_step(session: OnboardingSession, step: int) -> bool:
    plan = resolve_plan_type(session.plan_type)
    if step <= session.current_step:
        return True
    for definition in PLAN_STEPS[plan]:
        if definition.step >= step:
            break
        for sub_step in definition.sub_steps:
            if not session.is_completed(StepPosition(definition.step, sub_step)):
                return False
    return True


def go_to(session: OnboardingSession, step: int, sub_step: SubStep | str | None = None) -> StepPosition:
    """Validated jump to ``step`` (first sub-step unless given)."""
    definition = step_definition(session.plan_type, step)
    target = StepPosition(step, SubStep(sub_step) if sub_step else definition.sub_steps[0])
    index_of(session.plan_type, target)
    if not can_proceed_to_step(session, step):
        raise InvalidStepPosition(f"Complete the earlier steps before opening step {step}")
    return target


def progress_percentage(session: OnboardingSession) -> int:
    graph = graph_for(session.plan_type)
    done = sum(1 for position in graph if session.is_completed(position))
    return round(done * 100 / len(graph))
