"""Match record events to active workflows and start executions."""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, Optional

from sqlmodel import Session, col, select

from doula_crm.core.conditions import evaluate_condition, evaluate_criteria
from doula_crm.core.models import utcnow

from .engine import WorkflowEngine
from .models import ExecutionStatus, ReentryMode, TriggerType, Workflow, WorkflowExecution

logger = logging.getLogger(__name__)

# Record event -> workflow trigger types it can start
EVENT_TRIGGER_TYPES = {
    TriggerType.RECORD_CREATE.value: [TriggerType.RECORD_CREATE.value],
    TriggerType.RECORD_UPDATE.value: [TriggerType.RECORD_UPDATE.value, TriggerType.FIELD_CHANGE.value],
}

_IGNORED_CHANGES = {"updated_at"}


def changed_fields(previous: dict[str, Any], record: dict[str, Any]) -> set[str]:
    keys = set(previous) | set(record)
    return {k for k in keys - _IGNORED_CHANGES if previous.get(k) != record.get(k)}


def field_change_matches(config: dict[str, Any], previous: dict[str, Any], record: dict[str, Any]) -> bool:
    """True when the configured field changed, from/to values permitting.

    A field_change workflow without a configured field never matches.
    """
    field = config.get("field")
    if not field or field not in changed_fields(previous, record):
        return False
    for bound, values in (("from_value", previous), ("to_value", record)):
        expected = config.get(bound)
        if expected not in (None, "") and not evaluate_condition(
            {"field": field, "operator": "equals", "value": expected}, values
        ):
            return False
    return True


def reentry_allowed(session: Session, workflow: Workflow, record_id: str) -> bool:
    mode = workflow.reentry_mode or ReentryMode.ALLOW_ALL.value
    if mode == ReentryMode.ALLOW_ALL.value:
        return True

    statement = select(WorkflowExecution).where(
        WorkflowExecution.workflow_id == workflow.id,
        WorkflowExecution.record_id == record_id,
    )
    if mode == ReentryMode.NO_REENTRY.value:
        return session.exec(statement).first() is None
    if mode == ReentryMode.REENTRY_AFTER_EXIT.value:
        active = statement.where(
            col(WorkflowExecution.status).in_([ExecutionStatus.RUNNING.value, ExecutionStatus.WAITING.value])
        )
        return session.exec(active).first() is None
    if mode == ReentryMode.REENTRY_AFTER_DAYS.value:
        last = session.exec(statement.order_by(col(WorkflowExecution.created_at).desc())).first()
        if last is None:
            return True
        return utcnow() >= last.created_at + timedelta(days=workflow.reentry_wait_days or 0)
    return True


def matching_workflows(
    session: Session, organization_id: str, object_type: str, trigger_types: list[str]
) -> list[Workflow]:
    statement = (
        select(Workflow)
        .where(
            Workflow.organization_id == organization_id,
            Workflow.object_type == object_type,
            Workflow.is_active == True,  # noqa: E712
            col(Workflow.trigger_type).in_(trigger_types),
        )
        .order_by(col(Workflow.evaluation_order), col(Workflow.created_at))
    )
    return list(session.exec(statement).all())


def start_execution(
    session: Session,
    workflow: Workflow,
    record_type: str,
    record: dict[str, Any],
    trigger_type: str,
) -> WorkflowExecution:
    """Create an execution for ``record`` and run it until it stops."""
    now = utcnow()
    execution = WorkflowExecution(
        organization_id=workflow.organization_id,
        workflow_id=workflow.id,
        record_type=record_type,
        record_id=str(record.get("id")),
        context={
            "trigger_type": trigger_type,
            "triggered_at": now.isoformat(),
            "record_data": record,
            "step_results": {},
        },
    )
    workflow.execution_count = (workflow.execution_count or 0) + 1
    workflow.last_executed_at = now
    session.add(workflow)
    session.add(execution)
    session.flush()

    logger.info(
        "Workflow execution started",
        extra={"workflow_id": workflow.id, "execution_id": execution.id, "record_id": execution.record_id},
    )
    return WorkflowEngine(session).run(execution)


def _fire(
    session: Session,
    organization_id: str,
    object_type: str,
    trigger_type: str,
    record: dict[str, Any],
    previous: Optional[dict[str, Any]] = None,
) -> list[WorkflowExecution]:
    trigger_types = EVENT_TRIGGER_TYPES.get(trigger_type, [trigger_type])
    executions = []
    for workflow in matching_workflows(session, organization_id, object_type, trigger_types):
        if workflow.trigger_type == TriggerType.FIELD_CHANGE.value and not field_change_matches(
            workflow.trigger_config or {}, previous or {}, record
        ):
            continue
        if not evaluate_criteria(workflow.entry_criteria or None, record):
            continue
        if not reentry_allowed(session, workflow, str(record.get("id"))):
            logger.debug(
                "Workflow re-entry blocked",
                extra={"workflow_id": workflow.id, "record_id": record.get("id")},
            )
            continue
        executions.append(start_execution(session, workflow, object_type, record, trigger_type))

    if executions:
        session.commit()
    return executions


def fire_trigger(
    session: Session,
    organization_id: str,
    object_type: str,
    trigger_type: str,
    record: dict[str, Any],
) -> list[WorkflowExecution]:
    """Start every active workflow listening for ``trigger_type`` on this record."""
    return _fire(session, organization_id, object_type, trigger_type, record)


def handle_record_created(
    session: Session, organization_id: str, object_type: str, record: dict[str, Any]
) -> list[WorkflowExecution]:
    return _fire(session, organization_id, object_type, TriggerType.RECORD_CREATE.value, record)


def handle_record_updated(
    session: Session,
    organization_id: str,
    object_type: str,
    record: dict[str, Any],
    previous: dict[str, Any],
) -> list[WorkflowExecution]:
    return _fire(session, organization_id, object_type, TriggerType.RECORD_UPDATE.value, record, previous)
