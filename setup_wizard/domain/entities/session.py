from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Any

from setup_wizard.domain.entities.plan import PlanType, StepPosition, SubStep


@dataclass
class OnboardingSession:
    """Mutable wizard session, passed explicitly to every component.

    ``plan_type`` is fixed once the session is created; picking a different
    plan means starting a new session.
    """

    plan_type: PlanType
    current_step: int = 1
    current_sub_step: SubStep = SubStep.overview
    completed_sub_steps: set[tuple[int, str]] = field(default_factory=set)
    form_data: dict[str, dict[str, Any]] = field(default_factory=dict)
    user_edits: dict[str, dict[str, Any]] = field(default_factory=dict)
    owner: dict[str, Any] = field(default_factory=dict)
    confirmed_values: dict[str, str] = field(default_factory=dict)
    is_complete: bool = False
    session_id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def __setattr__(self, name: str, value: Any) -> None:
        if name == "plan_type" and "plan_type" in self.__dict__:
            raise AttributeError("plan_type cannot be reassigned; start a new session instead")
        super().__setattr__(name, value)

    @property
    def position(self) -> StepPosition:
        return StepPosition(self.current_step, self.current_sub_step)

    @property
    def step_key(self) -> str:
        return self.position.key

    def move_to(self, position: StepPosition) -> None:
        self.current_step = position.step
        self.current_sub_step = position.sub_step

    def mark_completed(self, position: StepPosition) -> None:
        self.completed_sub_steps.add((position.step, position.sub_step.value))

    def is_completed(self, position: StepPosition) -> bool:
        return (position.step, position.sub_step.value) in self.completed_sub_steps

    def reset(self) -> None:
        self.current_step = 1
        self.current_sub_step = SubStep.overview
        self.completed_sub_steps = set()
        self.form_data = {}
        self.user_edits = {}
        self.owner = {}
        self.confirmed_values = {}
        self.is_complete = False
