"""Interpreter for stored workflow graphs.

An execution walks the step graph from its ``current_step_key`` (the trigger
node on a fresh run) until it reaches an end node, a wait, or a failing step.
Each step is logged as a ``WorkflowStepExecution`` and its output is kept in
``context["step_results"]``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Optional

import requests
from sqlmodel import Session, SQLModel, select

from doula_crm.client_services.models import ClientService
from doula_crm.contracts.models import ContractSignature
from doula_crm.core.conditions import OPERATORS, evaluate_condition
from doula_crm.core.config import get_settings
from doula_crm.core.errors import InvalidOperationError
from doula_crm.core.models import to_dict, utcnow
from doula_crm.core.text import render_placeholders
from doula_crm.documents.models import Document
from doula_crm.invoices.models import Invoice
from doula_crm.leads.models import ActionItem, Lead
from doula_crm.list_views.query import coerce_value
from doula_crm.meetings.models import Meeting
from doula_crm.notifications.models import NotificationChannel, NotificationStatus
from doula_crm.notifications.schemas import NotificationLogCreate
from doula_crm.notifications.service import log_notification, queue_client_email
from doula_crm.payments.models import Payment

from .models import (
    ExecutionStatus,
    StepExecutionStatus,
    StepType,
    WorkflowExecution,
    WorkflowStep,
    WorkflowStepExecution,
)

logger = logging.getLogger(__name__)

# Workflow object type -> table holding its records
RECORD_MODELS: dict[str, type[SQLModel]] = {
    "lead": Lead,
    "meeting": Meeting,
    "payment": Payment,
    "invoice": Invoice,
    "service": ClientService,
    "document": Document,
    "contract": ContractSignature,
}

# Guard against step graphs that loop back on themselves
MAX_STEPS_PER_RUN = 100

_READ_ONLY_FIELDS = {"id", "organization_id", "created_at"}


class StepError(Exception):
    """A step could not be carried out; the execution fails with this message."""


@dataclass
class StepOutcome:
    output: dict[str, Any]
    next_step_key: Optional[str] = None
    wait_until: Optional[datetime] = None
    follow_default: bool = True


def load_record(session: Session, organization_id: str, record_type: str, record_id: str) -> Optional[SQLModel]:
    model = RECORD_MODELS.get(record_type)
    if model is None:
        return None
    record = session.get(model, record_id)
    if record is None or record.organization_id != organization_id:
        return None
    return record


def _parse_when(value: Any) -> Optional[datetime]:
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.replace(tzinfo=None) - (parsed.utcoffset() or timedelta(0))
    return parsed


def _number(config: dict[str, Any], key: str) -> float:
    try:
        return float(config.get(key) or 0)
    except (TypeError, ValueError) as exc:
        raise StepError(f"'{key}' must be a number, got {config[key]!r}") from exc


class WorkflowEngine:
    """Runs executions synchronously inside the caller's session."""

    def __init__(self, session: Session):
        self.session = session

    # =========================================================================
    # Execution loop
    # =========================================================================

    def run(self, execution: WorkflowExecution) -> WorkflowExecution:
        steps = {
            step.step_key: step
            for step in self.session.exec(
                select(WorkflowStep).where(WorkflowStep.workflow_id == execution.workflow_id)
            ).all()
        }
        context = dict(execution.context or {})
        context["step_results"] = dict(context.get("step_results") or {})

        resuming = execution.status == ExecutionStatus.WAITING.value
        key = execution.current_step_key if resuming else (execution.current_step_key or "trigger")
        execution.status = ExecutionStatus.RUNNING.value
        execution.next_run_at = None
        execution.waiting_for = None

        executed = 0
        while key:
            step = steps.get(key)
            if step is None:
                return self._fail(execution, context, f"Step '{key}' not found")
            executed += 1
            if executed > MAX_STEPS_PER_RUN:
                return self._fail(execution, context, "Step limit exceeded; check the workflow for loops")

            execution.current_step_key = key
            log = WorkflowStepExecution(
                organization_id=execution.organization_id,
                execution_id=execution.id,
                step_id=step.id,
                step_key=step.step_key,
                step_type=step.step_type,
                input=dict(step.step_config or {}),
            )
            self.session.add(log)

            try:
                outcome = self.execute_step(execution, step, context)
            except StepError as exc:
                log.status = StepExecutionStatus.FAILED.value
                log.error_message = str(exc)
                log.completed_at = utcnow()
                return self._fail(execution, context, str(exc))

            log.status = StepExecutionStatus.COMPLETED.value
            log.output = outcome.output
            log.completed_at = utcnow()
            context["step_results"][key] = outcome.output

            if step.step_type == StepType.END.value:
                break
            if outcome.wait_until is not None:
                execution.status = ExecutionStatus.WAITING.value
                execution.current_step_key = step.next_step_key
                execution.next_run_at = outcome.wait_until
                execution.waiting_for = f"Waiting until {outcome.wait_until.isoformat()}"
                execution.context = context
                self.session.add(execution)
                self.session.flush()
                logger.info(
                    "Workflow execution waiting",
                    extra={"execution_id": execution.id, "workflow_id": execution.workflow_id, "step_key": key},
                )
                return execution

            key = step.next_step_key if outcome.follow_default else outcome.next_step_key

        execution.status = ExecutionStatus.COMPLETED.value
        execution.completed_at = utcnow()
        execution.context = context
        self.session.add(execution)
        self.session.flush()
        logger.info(
            "Workflow execution completed",
            extra={"execution_id": execution.id, "workflow_id": execution.workflow_id},
        )
        return execution

    def _fail(self, execution: WorkflowExecution, context: dict[str, Any], message: str) -> WorkflowExecution:
        execution.status = ExecutionStatus.FAILED.value
        execution.error_message = message
        execution.completed_at = utcnow()
        execution.context = context
        self.session.add(execution)
        self.session.flush()
        logger.warning(
            "Workflow execution failed",
            extra={"execution_id": execution.id, "step_key": execution.current_step_key, "error": message},
        )
        return execution

    # =========================================================================
    # Steps
    # =========================================================================

    def execute_step(self, execution: WorkflowExecution, step: WorkflowStep, context: dict[str, Any]) -> StepOutcome:
        config = step.step_config or {}
        record = context.get("record_data") or {}
        handler = {
            StepType.TRIGGER.value: lambda: StepOutcome({"message": "Workflow triggered"}),
            StepType.END.value: lambda: StepOutcome({"message": "Workflow completed"}),
            StepType.SEND_EMAIL.value: lambda: self._send_email(execution, config, record),
            StepType.SEND_SMS.value: lambda: self._send_sms(execution, config, record),
            StepType.CREATE_TASK.value: lambda: self._create_task(execution, config, record),
            StepType.UPDATE_FIELD.value: lambda: self._update_field(execution, config, context),
            StepType.WAIT.value: lambda: self._wait(config, record),
            StepType.DECISION.value: lambda: self._decision(step, config, record),
            StepType.WEBHOOK.value: lambda: self._webhook(execution, config, record),
        }.get(step.step_type)
        if handler is None:
            return StepOutcome({"message": f"Step type '{step.step_type}' is not yet implemented"})
        return handler()

    def _client_id(self, execution: WorkflowExecution, record: dict[str, Any]) -> Optional[str]:
        if execution.record_type == "lead":
            return record.get("id")
        return record.get("client_id")

    def _send_email(self, execution: WorkflowExecution, config: dict[str, Any], record: dict[str, Any]) -> StepOutcome:
        if config.get("to_type") == "custom" and config.get("to_email"):
            recipient = config["to_email"]
        elif config.get("to_field") and record.get(config["to_field"]):
            recipient = record[config["to_field"]]
        else:
            recipient = record.get("email")

        subject = render_placeholders(config.get("subject") or "Message from your doula", record)
        body = render_placeholders(config.get("body") or config.get("content") or "", record)
        metadata = {
            "workflow_id": execution.workflow_id,
            "execution_id": execution.id,
            "template_id": config.get("template_id"),
            "body": body,
        }

        client_id = self._client_id(execution, record)
        entry = None
        if client_id:
            # Falls back to the client's own address when the record has none
            entry = queue_client_email(
                self.session, execution.organization_id, client_id, "workflow_email", subject, recipient, metadata
            )
        if entry is None:
            if not recipient:
                raise StepError("No recipient email found")
            entry = log_notification(
                self.session,
                execution.organization_id,
                NotificationLogCreate(
                    notification_type="workflow_email",
                    channel=NotificationChannel.EMAIL,
                    recipient=recipient,
                    subject=subject,
                    status=NotificationStatus.QUEUED,
                    notification_metadata=metadata,
                ),
            )
        self.session.flush()
        return StepOutcome(
            {"recipient": entry.recipient, "subject": subject, "status": entry.status, "notification_id": entry.id}
        )

    def _send_sms(self, execution: WorkflowExecution, config: dict[str, Any], record: dict[str, Any]) -> StepOutcome:
        phone = config.get("to_phone") or record.get(config.get("to_field") or "phone")
        if not phone:
            raise StepError("No recipient phone number found")
        message = render_placeholders(config.get("message") or "", record)
        entry = log_notification(
            self.session,
            execution.organization_id,
            NotificationLogCreate(
                client_id=self._client_id(execution, record),
                notification_type="workflow_sms",
                channel=NotificationChannel.SMS,
                recipient=phone,
                status=NotificationStatus.QUEUED,
                notification_metadata={"workflow_id": execution.workflow_id, "message": message},
            ),
        )
        self.session.flush()
        return StepOutcome({"recipient": phone, "notification_id": entry.id})

    def _create_task(self, execution: WorkflowExecution, config: dict[str, Any], record: dict[str, Any]) -> StepOutcome:
        client_id = self._client_id(execution, record)
        if not client_id:
            raise StepError("Record has no client to attach the task to")
        due_date = None
        if config.get("due_in_days") is not None:
            due_date = (utcnow() + timedelta(days=int(_number(config, "due_in_days")))).date()
        task = ActionItem(
            organization_id=execution.organization_id,
            client_id=client_id,
            title=render_placeholders(config.get("title") or "Action item from workflow", record),
            description=config.get("description"),
            action_type=config.get("action_type") or "custom",
            due_date=due_date,
            created_by_workflow_id=execution.workflow_id,
        )
        self.session.add(task)
        self.session.flush()
        return StepOutcome({"task_id": task.id, "title": task.title})

    def _update_field(
        self, execution: WorkflowExecution, config: dict[str, Any], context: dict[str, Any]
    ) -> StepOutcome:
        field = config.get("field")
        if not field or "value" not in config:
            raise StepError("update_field requires a field and a value")
        if field in _READ_ONLY_FIELDS:
            raise StepError(f"Field '{field}' cannot be updated")

        record = load_record(self.session, execution.organization_id, execution.record_type, execution.record_id)
        if record is None:
            raise StepError(f"{execution.record_type} '{execution.record_id}' not found")
        if field not in type(record).model_fields:
            raise StepError(f"Unknown field '{field}' on {execution.record_type}")

        try:
            value = coerce_value(type(record).__table__.columns.get(field), config["value"])
        except InvalidOperationError as exc:
            raise StepError(str(exc)) from exc

        previous = to_dict(record).get(field)
        setattr(record, field, value)
        record.updated_at = utcnow()
        self.session.add(record)
        self.session.flush()
        context["record_data"] = to_dict(record)
        return StepOutcome({"field": field, "old_value": previous, "new_value": context["record_data"].get(field)})

    def _wait(self, config: dict[str, Any], record: dict[str, Any]) -> StepOutcome:
        if config.get("wait_days") or config.get("wait_hours"):
            wait_until = utcnow() + timedelta(
                days=_number(config, "wait_days"), hours=_number(config, "wait_hours")
            )
        elif config.get("wait_until_field"):
            wait_until = _parse_when(record.get(config["wait_until_field"]))
            if wait_until is None:
                raise StepError(f"Wait field '{config['wait_until_field']}' is empty")
            if config.get("offset_days"):
                wait_until += timedelta(days=_number(config, "offset_days"))
        else:
            return StepOutcome({"message": "No wait configured"})
        return StepOutcome({"wait_until": wait_until.isoformat()}, wait_until=wait_until)

    def _decision(self, step: WorkflowStep, config: dict[str, Any], record: dict[str, Any]) -> StepOutcome:
        field = config.get("condition_field")
        if not field:
            raise StepError("Decision step requires a condition_field")
        operator = config.get("condition_operator")
        if operator in OPERATORS:
            result = evaluate_condition(
                {"field": field, "operator": operator, "value": config.get("condition_value")}, record
            )
        else:
            result = bool(record.get(field))

        branch_key = "true" if result else "false"
        next_key = next(
            (b.get("next_step_key") for b in step.branches or [] if b.get("condition") == branch_key),
            None,
        )
        return StepOutcome({"result": result, "branch": branch_key}, next_step_key=next_key, follow_default=False)

    def _webhook(self, execution: WorkflowExecution, config: dict[str, Any], record: dict[str, Any]) -> StepOutcome:
        url = config.get("url")
        if not url:
            raise StepError("Webhook step requires a url")
        payload = {
            "event": "workflow.webhook",
            "workflow_id": execution.workflow_id,
            "execution_id": execution.id,
            "record_type": execution.record_type,
            "record": record,
        }
        try:
            response = requests.post(
                url,
                json=payload,
                headers=config.get("headers") or {},
                timeout=get_settings().webhook_timeout_seconds,
            )
            response.raise_for_status()
        except requests.RequestException as exc:
            raise StepError(f"Webhook request failed: {exc}") from exc
        return StepOutcome({"url": url, "status_code": response.status_code})
