from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class PlanType(str, Enum):
    organization = "organization"
    complex = "complex"
    clinic = "clinic"


class EntityKind(str, Enum):
    organization = "organization"
    complex = "complex"
    clinic = "clinic"


class SubStep(str, Enum):
    overview = "overview"
    contact = "contact"
    legal = "legal"
    services = "services"
    schedule = "schedule"


class Direction(str, Enum):
    next = "next"
    previous = "previous"


# "company" is what the subscription backend calls the organization plan.
PLAN_ALIASES: dict[str, PlanType] = {
    "company": PlanType.organization,
}


@dataclass(frozen=True)
class StepPosition:
    step: int
    sub_step: SubStep

    @property
    def key(self) -> str:
        return f"{self.step}-{self.sub_step.value}"

    @staticmethod
    def from_key(key: str) -> "StepPosition":
        step, _, sub_step = (key or "").partition("-")
        return StepPosition(step=int(step), sub_step=SubStep(sub_step))


@dataclass(frozen=True)
class StepDefinition:
    step: int
    entity: EntityKind
    sub_steps: tuple[SubStep, ...]


_O, _C, _L, _S, _H = SubStep.overview, SubStep.contact, SubStep.legal, SubStep.services, SubStep.schedule

PLAN_STEPS: dict[PlanType, tuple[StepDefinition, ...]] = {
    PlanType.organization: (
        StepDefinition(1, EntityKind.organization, (_O, _C, _L)),
        StepDefinition(2, EntityKind.complex, (_O, _C, _H)),
        StepDefinition(3, EntityKind.clinic, (_O, _C, _S, _H)),
    ),
    PlanType.complex: (
        StepDefinition(1, EntityKind.complex, (_O, _C, _L, _H)),
        StepDefinition(2, EntityKind.clinic, (_O, _C, _S, _H)),
    ),
    PlanType.clinic: (
        StepDefinition(1, EntityKind.clinic, (_O, _C, _S, _L, _H)),
    ),
}

# Flattened transition graphs: advance() is index arithmetic over these.
PLAN_GRAPHS: dict[PlanType, tuple[StepPosition, ...]] = {
    plan: tuple(StepPosition(d.step, sub) for d in steps for sub in d.sub_steps)
    for plan, steps in PLAN_STEPS.items()
}
