from pydantic import BaseModel, Field
from typing import Any


class CreateSessionSchema(BaseModel):
    plan_type: str
    owner: dict[str, Any] = Field(default_factory=dict)


class SubmitRequestSchema(BaseModel):
    payload: dict[str, Any] = Field(default_factory=dict)


class WorkingHoursRequestSchema(BaseModel):
    working_hours: list[dict[str, Any]] = Field(default_factory=list)


class ViolationSchema(BaseModel):
    day: str
    code: str
    message: str


class WorkingHoursResponseSchema(BaseModel):
    is_valid: bool
    violations: list[ViolationSchema] = Field(default_factory=list)


class SessionSchema(BaseModel):
    session_id: str
    plan_type: str
    current_step: int
    current_sub_step: str
    step_key: str
    completed_steps: list[str] = Field(default_factory=list)
    progress: int = 0
    is_complete: bool = False
    draft: dict[str, Any] = Field(default_factory=dict)


class SubmitResponseSchema(BaseModel):
    session: SessionSchema
    saved: bool
    message: str = ""
    warning: str | None = None


class PlanSchema(BaseModel):
    name: str = ""
    type: str = ""
    features: list[str] = Field(default_factory=list)
