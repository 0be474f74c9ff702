"""Workflow definitions, templates and execution management."""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path
from typing import Any, Optional

import yaml
from sqlmodel import Session, col, select

from doula_crm.core.config import get_settings
from doula_crm.core.context import RequestContext
from doula_crm.core.errors import InvalidOperationError, NotFoundError
from doula_crm.core.models import apply_changes, to_dict, utcnow

from .engine import WorkflowEngine, load_record
from .models import (
    ExecutionStatus,
    StepType,
    TriggerType,
    Workflow,
    WorkflowExecution,
    WorkflowStep,
    WorkflowStepExecution,
)
from .schemas import (
    CanvasSave,
    StepCreate,
    StepUpdate,
    TemplateRead,
    ValidationResult,
    WorkflowCreate,
    WorkflowUpdate,
)
from .triggers import start_execution
from .validation import validate_workflow

logger = logging.getLogger(__name__)


# =============================================================================
# Templates
# =============================================================================


@lru_cache
def load_templates(path: Optional[str] = None) -> tuple[dict[str, Any], ...]:
    """Load workflow templates from YAML.

    Args:
        path: Template file; defaults to ``workflow_templates.yaml`` in the seed directory

    Returns:
        Template definitions in file order
    """
    template_path = Path(path) if path else Path(get_settings().seed_metadata_dir) / "workflow_templates.yaml"
    with open(template_path, encoding="utf-8") as f:
        content = yaml.safe_load(f) or {}
    return tuple(content.get("templates", []))


def _template_step(raw: dict[str, Any], order: int) -> StepCreate:
    x, y = raw.get("position") or (250, 50 + 150 * order)
    return StepCreate(
        step_key=raw["step_key"],
        step_type=raw["step_type"],
        step_order=order + 1,
        step_config=raw.get("step_config") or {},
        branches=raw.get("branches") or [],
        next_step_key=raw.get("next_step_key"),
        position_x=x,
        position_y=y,
    )


# =============================================================================
# Service
# =============================================================================


class WorkflowService:
    def __init__(self, session: Session, ctx: RequestContext):
        self.session = session
        self.ctx = ctx

    # =========================================================================
    # Workflows
    # =========================================================================

    def list_workflows(
        self, object_type: Optional[str] = None, active_only: bool = False
    ) -> list[Workflow]:
        statement = select(Workflow).where(Workflow.organization_id == self.ctx.organization_id)
        if object_type:
            statement = statement.where(Workflow.object_type == object_type)
        if active_only:
            statement = statement.where(Workflow.is_active == True)  # noqa: E712
        return list(self.session.exec(statement.order_by(col(Workflow.evaluation_order), col(Workflow.name))).all())

    def get_workflow(self, workflow_id: str) -> Optional[Workflow]:
        workflow = self.session.get(Workflow, workflow_id)
        if not workflow or workflow.organization_id != self.ctx.organization_id:
            return None
        return workflow

    def create_workflow(self, data: WorkflowCreate) -> Workflow:
        """Create an inactive workflow with its trigger node."""
        values = data.model_dump(exclude={"entry_criteria"})
        workflow = Workflow(
            organization_id=self.ctx.organization_id,
            created_by=self.ctx.user_id,
            entry_criteria=data.entry_criteria.model_dump() if data.entry_criteria else {},
            **values,
        )
        self.session.add(workflow)
        self.session.flush()
        self.session.add(
            WorkflowStep(
                organization_id=workflow.organization_id,
                workflow_id=workflow.id,
                step_key="trigger",
                step_type=StepType.TRIGGER.value,
                step_order=1,
                position_x=250,
                position_y=50,
            )
        )
        self.session.commit()
        self.session.refresh(workflow)
        logger.info(
            "Workflow created",
            extra={"organization_id": workflow.organization_id, "workflow_id": workflow.id},
        )
        return workflow

    def update_workflow(self, workflow_id: str, data: WorkflowUpdate) -> Optional[Workflow]:
        workflow = self.get_workflow(workflow_id)
        if not workflow:
            return None
        changes = data.model_dump(exclude_unset=True)
        if "entry_criteria" in changes:
            changes["entry_criteria"] = data.entry_criteria.model_dump() if data.entry_criteria else {}
        apply_changes(workflow, changes)
        self.session.add(workflow)
        self.session.commit()
        self.session.refresh(workflow)
        return workflow

    def delete_workflow(self, workflow_id: str) -> bool:
        workflow = self.get_workflow(workflow_id)
        if not workflow:
            return False
        executions = self.session.exec(
            select(WorkflowExecution).where(WorkflowExecution.workflow_id == workflow.id)
        ).all()
        for execution in executions:
            for step_run in self._step_runs(execution.id):
                self.session.delete(step_run)
            self.session.delete(execution)
        for step in self.list_steps(workflow.id):
            self.session.delete(step)
        self.session.delete(workflow)
        self.session.commit()
        logger.info("Workflow deleted", extra={"workflow_id": workflow_id})
        return True

    def set_active(self, workflow_id: str, is_active: bool) -> Optional[Workflow]:
        """Activate or deactivate. Activation requires a valid step graph."""
        workflow = self.get_workflow(workflow_id)
        if not workflow:
            return None
        if is_active:
            result = self.validate(workflow.id)
            if not result.is_valid:
                raise InvalidOperationError("Cannot activate workflow: " + "; ".join(result.errors))
        apply_changes(workflow, {"is_active": is_active})
        self.session.add(workflow)
        self.session.commit()
        self.session.refresh(workflow)
        logger.info(
            "Workflow toggled",
            extra={"workflow_id": workflow.id, "status": "active" if is_active else "inactive"},
        )
        return workflow

    def toggle(self, workflow_id: str) -> Optional[Workflow]:
        workflow = self.get_workflow(workflow_id)
        if not workflow:
            return None
        return self.set_active(workflow_id, not workflow.is_active)

    def duplicate(self, workflow_id: str) -> Optional[Workflow]:
        source = self.get_workflow(workflow_id)
        if not source:
            return None
        copy = Workflow(
            organization_id=source.organization_id,
            name=f"{source.name} (Copy)",
            description=source.description,
            object_type=source.object_type,
            trigger_type=source.trigger_type,
            trigger_config=dict(source.trigger_config or {}),
            is_active=False,
            evaluation_order=source.evaluation_order,
            entry_criteria=dict(source.entry_criteria or {}),
            reentry_mode=source.reentry_mode,
            reentry_wait_days=source.reentry_wait_days,
            canvas_data=dict(source.canvas_data or {}),
            created_by=self.ctx.user_id,
        )
        self.session.add(copy)
        self.session.flush()
        for step in self.list_steps(source.id):
            self.session.add(
                WorkflowStep(
                    organization_id=copy.organization_id,
                    workflow_id=copy.id,
                    step_key=step.step_key,
                    step_type=step.step_type,
                    step_order=step.step_order,
                    step_config=dict(step.step_config or {}),
                    branches=list(step.branches or []),
                    next_step_key=step.next_step_key,
                    position_x=step.position_x,
                    position_y=step.position_y,
                )
            )
        self.session.commit()
        self.session.refresh(copy)
        return copy

    def validate(self, workflow_id: str) -> ValidationResult:
        return validate_workflow(self.list_steps(workflow_id))

    # =========================================================================
    # Steps
    # =========================================================================

    def list_steps(self, workflow_id: str) -> list[WorkflowStep]:
        statement = (
            select(WorkflowStep)
            .where(WorkflowStep.workflow_id == workflow_id, WorkflowStep.organization_id == self.ctx.organization_id)
            .order_by(col(WorkflowStep.step_order))
        )
        return list(self.session.exec(statement).all())

    def get_step(self, workflow_id: str, step_key: str) -> Optional[WorkflowStep]:
        return self.session.exec(
            select(WorkflowStep).where(
                WorkflowStep.workflow_id == workflow_id,
                WorkflowStep.organization_id == self.ctx.organization_id,
                WorkflowStep.step_key == step_key,
            )
        ).first()

    def add_step(self, workflow_id: str, data: StepCreate) -> WorkflowStep:
        workflow = self._require(workflow_id)
        if self.get_step(workflow.id, data.step_key):
            raise InvalidOperationError(f"Step '{data.step_key}' already exists")
        order = data.step_order if data.step_order is not None else len(self.list_steps(workflow.id)) + 1
        step = WorkflowStep(
            organization_id=workflow.organization_id,
            workflow_id=workflow.id,
            **{**data.model_dump(), "step_order": order},
        )
        self.session.add(step)
        self._touch(workflow)
        self.session.commit()
        self.session.refresh(step)
        return step

    def update_step(self, workflow_id: str, step_key: str, data: StepUpdate) -> Optional[WorkflowStep]:
        step = self.get_step(workflow_id, step_key)
        if not step:
            return None
        apply_changes(step, data.model_dump(exclude_unset=True))
        self.session.add(step)
        self.session.commit()
        self.session.refresh(step)
        return step

    def delete_step(self, workflow_id: str, step_key: str) -> bool:
        step = self.get_step(workflow_id, step_key)
        if not step:
            return False
        if step.step_type == StepType.TRIGGER.value:
            raise InvalidOperationError("The trigger step cannot be deleted")
        self.session.delete(step)
        self.session.commit()
        return True

    def save_canvas(self, workflow_id: str, data: CanvasSave) -> list[WorkflowStep]:
        """Upsert steps by key and delete the ones no longer on the canvas."""
        workflow = self._require(workflow_id)
        existing = {step.step_key: step for step in self.list_steps(workflow.id)}
        incoming = set()

        for order, item in enumerate(data.steps, start=1):
            incoming.add(item.step_key)
            values = item.model_dump()
            if values["step_order"] is None:
                values["step_order"] = order
            step = existing.get(item.step_key)
            if step is None:
                step = WorkflowStep(organization_id=workflow.organization_id, workflow_id=workflow.id, **values)
            else:
                apply_changes(step, values)
            self.session.add(step)

        for key, step in existing.items():
            if key not in incoming:
                self.session.delete(step)

        if data.canvas_data is not None:
            workflow.canvas_data = data.canvas_data
        self._touch(workflow)
        self.session.commit()
        logger.info(
            "Workflow canvas saved",
            extra={"workflow_id": workflow.id, "status": f"{len(incoming)} steps"},
        )
        return self.list_steps(workflow.id)

    # =========================================================================
    # Templates
    # =========================================================================

    def list_templates(self, category: Optional[str] = None) -> list[TemplateRead]:
        return [
            TemplateRead(
                key=t["key"],
                name=t["name"],
                description=t.get("description"),
                category=t.get("category"),
                object_type=t["object_type"],
                trigger_type=t["trigger_type"],
                step_count=len(t.get("steps", [])),
            )
            for t in load_templates()
            if not category or t.get("category") == category
        ]

    def create_from_template(self, template_key: str, name: Optional[str] = None) -> Workflow:
        template = next((t for t in load_templates() if t["key"] == template_key), None)
        if template is None:
            raise NotFoundError(f"Workflow template '{template_key}' not found")

        workflow = Workflow(
            organization_id=self.ctx.organization_id,
            name=name or template["name"],
            description=template.get("description"),
            object_type=template["object_type"],
            trigger_type=template["trigger_type"],
            trigger_config=dict(template.get("trigger_config") or {}),
            is_active=False,
            created_by=self.ctx.user_id,
        )
        self.session.add(workflow)
        self.session.flush()
        for order, raw in enumerate(template.get("steps", [])):
            step = _template_step(raw, order)
            self.session.add(
                WorkflowStep(organization_id=workflow.organization_id, workflow_id=workflow.id, **step.model_dump())
            )
        self.session.commit()
        self.session.refresh(workflow)
        logger.info(
            "Workflow created from template",
            extra={"workflow_id": workflow.id, "event": template_key},
        )
        return workflow

    # =========================================================================
    # Executions
    # =========================================================================

    def list_executions(
        self,
        workflow_id: Optional[str] = None,
        record_id: Optional[str] = None,
        status: Optional[str] = None,
        limit: int = 50,
    ) -> list[WorkflowExecution]:
        statement = select(WorkflowExecution).where(WorkflowExecution.organization_id == self.ctx.organization_id)
        if workflow_id:
            statement = statement.where(WorkflowExecution.workflow_id == workflow_id)
        if record_id:
            statement = statement.where(WorkflowExecution.record_id == record_id)
        if status:
            statement = statement.where(WorkflowExecution.status == status)
        statement = statement.order_by(col(WorkflowExecution.started_at).desc()).limit(limit)
        return list(self.session.exec(statement).all())

    def get_execution(self, execution_id: str) -> Optional[WorkflowExecution]:
        execution = self.session.get(WorkflowExecution, execution_id)
        if not execution or execution.organization_id != self.ctx.organization_id:
            return None
        return execution

    def execution_steps(self, execution_id: str) -> list[WorkflowStepExecution]:
        return self._step_runs(execution_id)

    def cancel_execution(self, execution_id: str) -> Optional[WorkflowExecution]:
        execution = self.get_execution(execution_id)
        if not execution:
            return None
        if execution.status not in (ExecutionStatus.RUNNING.value, ExecutionStatus.WAITING.value):
            raise InvalidOperationError(f"Cannot cancel a {execution.status} execution")
        execution.status = ExecutionStatus.CANCELLED.value
        execution.completed_at = utcnow()
        execution.next_run_at = None
        execution.updated_at = utcnow()
        self.session.add(execution)
        self.session.commit()
        self.session.refresh(execution)
        return execution

    def retry_execution(self, execution_id: str) -> Optional[WorkflowExecution]:
        """Re-run a failed execution from the step that failed."""
        execution = self.get_execution(execution_id)
        if not execution:
            return None
        if execution.status != ExecutionStatus.FAILED.value:
            raise InvalidOperationError("Only failed executions can be retried")
        apply_changes(
            execution,
            {
                "status": ExecutionStatus.RUNNING.value,
                "error_message": None,
                "retry_count": execution.retry_count + 1,
                "completed_at": None,
            },
        )
        WorkflowEngine(self.session).run(execution)
        self.session.commit()
        self.session.refresh(execution)
        return execution

    def trigger_manually(
        self, workflow_id: str, record_id: str, record_type: Optional[str] = None
    ) -> WorkflowExecution:
        workflow = self._require(workflow_id)
        if not workflow.is_active:
            raise InvalidOperationError("Workflow is not active")
        record_type = record_type or workflow.object_type
        record = load_record(self.session, self.ctx.organization_id, record_type, record_id)
        if record is None:
            raise NotFoundError(f"{record_type} '{record_id}' not found")

        execution = start_execution(self.session, workflow, record_type, to_dict(record), TriggerType.MANUAL.value)
        self.session.commit()
        self.session.refresh(execution)
        return execution

    def process_due(self) -> int:
        return process_due_executions(self.session, self.ctx.organization_id)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _require(self, workflow_id: str) -> Workflow:
        workflow = self.get_workflow(workflow_id)
        if not workflow:
            raise NotFoundError(f"Workflow '{workflow_id}' not found")
        return workflow

    def _touch(self, workflow: Workflow) -> None:
        workflow.updated_at = utcnow()
        self.session.add(workflow)

    def _step_runs(self, execution_id: str) -> list[WorkflowStepExecution]:
        statement = (
            select(WorkflowStepExecution)
            .where(WorkflowStepExecution.execution_id == execution_id)
            .order_by(col(WorkflowStepExecution.created_at))
        )
        return list(self.session.exec(statement).all())


def process_due_executions(session: Session, organization_id: Optional[str] = None) -> int:
    """Resume waiting executions whose ``next_run_at`` has passed."""
    statement = select(WorkflowExecution).where(
        WorkflowExecution.status == ExecutionStatus.WAITING.value,
        col(WorkflowExecution.next_run_at) <= utcnow(),
    )
    if organization_id:
        statement = statement.where(WorkflowExecution.organization_id == organization_id)

    engine = WorkflowEngine(session)
    processed = 0
    for execution in session.exec(statement).all():
        engine.run(execution)
        processed += 1
    session.commit()
    if processed:
        logger.info("Processed due workflow executions", extra={"status": f"{processed} resumed"})
    return processed
