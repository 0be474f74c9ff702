"""Pydantic schemas for the workflows API."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from doula_crm.core.conditions import Criteria

from .models import ReentryMode, StepType, TriggerType, WorkflowObjectType


class Branch(BaseModel):
    condition: str = Field(pattern="^(true|false)$")
    next_step_key: Optional[str] = None


class WorkflowCreate(BaseModel):
    model_config = {"use_enum_values": True}

    name: str = Field(min_length=1)
    description: Optional[str] = None
    object_type: WorkflowObjectType
    trigger_type: TriggerType
    trigger_config: dict[str, Any] = Field(default_factory=dict)
    evaluation_order: int = 0
    entry_criteria: Optional[Criteria] = None
    reentry_mode: ReentryMode = ReentryMode.ALLOW_ALL
    reentry_wait_days: Optional[int] = Field(default=None, ge=1)


class WorkflowUpdate(BaseModel):
    model_config = {"use_enum_values": True}

    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    object_type: Optional[WorkflowObjectType] = None
    trigger_type: Optional[TriggerType] = None
    trigger_config: Optional[dict[str, Any]] = None
    evaluation_order: Optional[int] = None
    entry_criteria: Optional[Criteria] = None
    reentry_mode: Optional[ReentryMode] = None
    reentry_wait_days: Optional[int] = Field(default=None, ge=1)
    canvas_data: Optional[dict[str, Any]] = None


class WorkflowRead(BaseModel):
    id: str
    name: str
    description: Optional[str]
    object_type: str
    trigger_type: str
    trigger_config: dict[str, Any]
    is_active: bool
    evaluation_order: int
    entry_criteria: dict[str, Any]
    reentry_mode: str
    reentry_wait_days: Optional[int]
    canvas_data: dict[str, Any]
    execution_count: int
    last_executed_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class StepCreate(BaseModel):
    model_config = {"use_enum_values": True}

    step_key: str = Field(min_length=1, pattern="^[A-Za-z0-9_-]+$")
    step_type: StepType
    step_order: Optional[int] = None
    step_config: dict[str, Any] = Field(default_factory=dict)
    branches: list[Branch] = Field(default_factory=list)
    next_step_key: Optional[str] = None
    position_x: float = 0
    position_y: float = 0


class StepUpdate(BaseModel):
    model_config = {"use_enum_values": True}

    step_type: Optional[StepType] = None
    step_order: Optional[int] = None
    step_config: Optional[dict[str, Any]] = None
    branches: Optional[list[Branch]] = None
    next_step_key: Optional[str] = None
    position_x: Optional[float] = None
    position_y: Optional[float] = None


class StepRead(BaseModel):
    id: str
    workflow_id: str
    step_key: str
    step_type: str
    step_order: int
    step_config: dict[str, Any]
    branches: list[dict[str, Any]]
    next_step_key: Optional[str]
    position_x: float
    position_y: float

    model_config = {"from_attributes": True}


class WorkflowDetail(WorkflowRead):
    steps: list[StepRead] = Field(default_factory=list)


class CanvasSave(BaseModel):
    """Full step graph from the editor; steps missing from it are deleted."""

    steps: list[StepCreate]
    canvas_data: Optional[dict[str, Any]] = None


class ValidationResult(BaseModel):
    is_valid: bool
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class TemplateRead(BaseModel):
    key: str
    name: str
    description: Optional[str] = None
    category: Optional[str] = None
    object_type: str
    trigger_type: str
    step_count: int


class FromTemplate(BaseModel):
    template_key: str
    name: Optional[str] = None


class ManualTrigger(BaseModel):
    record_id: str
    record_type: Optional[str] = None


class ExecutionRead(BaseModel):
    id: str
    workflow_id: str
    record_type: str
    record_id: str
    status: str
    current_step_key: Optional[str]
    context: dict[str, Any]
    error_message: Optional[str]
    next_run_at: Optional[datetime]
    waiting_for: Optional[str]
    retry_count: int
    started_at: datetime
    completed_at: Optional[datetime]

    model_config = {"from_attributes": True}


class StepExecutionRead(BaseModel):
    id: str
    step_key: str
    step_type: str
    status: str
    input: dict[str, Any]
    output: dict[str, Any]
    error_message: Optional[str]
    created_at: datetime
    completed_at: Optional[datetime]

    model_config = {"from_attributes": True}


class ExecutionDetail(ExecutionRead):
    steps: list[StepExecutionRead] = Field(default_factory=list)


class ProcessDueResult(BaseModel):
    processed: int
