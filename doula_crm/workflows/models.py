"""SQLModel tables for workflow definitions and their executions."""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from sqlalchemy import JSON, Text
from sqlmodel import Field

from doula_crm.core.models import TenantModel, utcnow


class WorkflowObjectType(str, Enum):
    LEAD = "lead"
    MEETING = "meeting"
    PAYMENT = "payment"
    INVOICE = "invoice"
    SERVICE = "service"
    DOCUMENT = "document"
    CONTRACT = "contract"
    INTAKE_FORM = "intake_form"


class TriggerType(str, Enum):
    RECORD_CREATE = "record_create"
    RECORD_UPDATE = "record_update"
    FIELD_CHANGE = "field_change"
    SCHEDULED = "scheduled"
    MANUAL = "manual"
    FORM_SUBMIT = "form_submit"
    PAYMENT_RECEIVED = "payment_received"


class ReentryMode(str, Enum):
    ALLOW_ALL = "allow_all"
    NO_REENTRY = "no_reentry"
    REENTRY_AFTER_EXIT = "reentry_after_exit"
    REENTRY_AFTER_DAYS = "reentry_after_days"


class StepType(str, Enum):
    TRIGGER = "trigger"
    SEND_EMAIL = "send_email"
    SEND_SMS = "send_sms"
    CREATE_TASK = "create_task"
    UPDATE_FIELD = "update_field"
    WAIT = "wait"
    DECISION = "decision"
    WEBHOOK = "webhook"
    END = "end"


class ExecutionStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    WAITING = "waiting"
    CANCELLED = "cancelled"


class StepExecutionStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


class Workflow(TenantModel, table=True):
    __tablename__ = "workflows"

    name: str
    description: Optional[str] = None
    object_type: str = Field(index=True)
    trigger_type: str = Field(index=True)
    trigger_config: dict[str, Any] = Field(default_factory=dict, sa_type=JSON)
    is_active: bool = Field(default=False, index=True)
    evaluation_order: int = 0
    entry_criteria: dict[str, Any] = Field(default_factory=dict, sa_type=JSON)
    reentry_mode: str = ReentryMode.ALLOW_ALL.value
    reentry_wait_days: Optional[int] = None
    canvas_data: dict[str, Any] = Field(default_factory=dict, sa_type=JSON)
    execution_count: int = 0
    last_executed_at: Optional[datetime] = None
    created_by: Optional[str] = Field(default=None, foreign_key="users.id")


class WorkflowStep(TenantModel, table=True):
    """A node of the workflow graph, addressed by ``step_key``."""

    __tablename__ = "workflow_steps"

    workflow_id: str = Field(foreign_key="workflows.id", index=True, ondelete="CASCADE")
    step_key: str
    step_type: str
    step_order: int = 0
    step_config: dict[str, Any] = Field(default_factory=dict, sa_type=JSON)
    branches: list[dict[str, Any]] = Field(default_factory=list, sa_type=JSON)
    next_step_key: Optional[str] = None
    position_x: float = 0
    position_y: float = 0


class WorkflowExecution(TenantModel, table=True):
    __tablename__ = "workflow_executions"

    workflow_id: str = Field(foreign_key="workflows.id", index=True, ondelete="CASCADE")
    record_type: str
    record_id: str = Field(index=True)
    status: str = Field(default=ExecutionStatus.RUNNING.value, index=True)
    current_step_key: Optional[str] = None
    context: dict[str, Any] = Field(default_factory=dict, sa_type=JSON)
    error_message: Optional[str] = Field(default=None, sa_type=Text)
    next_run_at: Optional[datetime] = Field(default=None, index=True)
    waiting_for: Optional[str] = None
    retry_count: int = 0
    started_at: datetime = Field(default_factory=utcnow)
    completed_at: Optional[datetime] = None


class WorkflowStepExecution(TenantModel, table=True):
    __tablename__ = "workflow_step_executions"

    execution_id: str = Field(foreign_key="workflow_executions.id", index=True, ondelete="CASCADE")
    step_id: Optional[str] = Field(default=None, foreign_key="workflow_steps.id", ondelete="SET NULL")
    step_key: str
    step_type: str
    status: str = StepExecutionStatus.RUNNING.value
    input: dict[str, Any] = Field(default_factory=dict, sa_type=JSON)
    output: dict[str, Any] = Field(default_factory=dict, sa_type=JSON)
    error_message: Optional[str] = Field(default=None, sa_type=Text)
    completed_at: Optional[datetime] = None
