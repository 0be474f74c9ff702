"""API routes for workflow automation. All routes require an administrator."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlmodel import Session

from doula_crm.core.context import RequestContext, require_admin
from doula_crm.core.database import get_session

from .schemas import (
    CanvasSave,
    ExecutionDetail,
    ExecutionRead,
    FromTemplate,
    ManualTrigger,
    ProcessDueResult,
    StepCreate,
    StepExecutionRead,
    StepRead,
    StepUpdate,
    TemplateRead,
    ValidationResult,
    WorkflowCreate,
    WorkflowDetail,
    WorkflowRead,
    WorkflowUpdate,
)
from .service import WorkflowService

router = APIRouter(prefix="/workflows", tags=["workflows"])


def get_service(
    session: Session = Depends(get_session),
    ctx: RequestContext = Depends(require_admin),
) -> WorkflowService:
    return WorkflowService(session, ctx)


def _not_found(kind: str, key: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{kind} '{key}' not found")


def _detail(service: WorkflowService, workflow) -> WorkflowDetail:
    detail = WorkflowDetail.model_validate(workflow)
    detail.steps = [StepRead.model_validate(s) for s in service.list_steps(workflow.id)]
    return detail


# =============================================================================
# Templates and executions (declared before /{workflow_id})
# =============================================================================


@router.get("/templates", response_model=list[TemplateRead])
def list_templates(
    category: Optional[str] = None, service: WorkflowService = Depends(get_service)
) -> list[TemplateRead]:
    return service.list_templates(category)


@router.post("/templates", response_model=WorkflowDetail, status_code=status.HTTP_201_CREATED)
def create_from_template(data: FromTemplate, service: WorkflowService = Depends(get_service)) -> WorkflowDetail:
    return _detail(service, service.create_from_template(data.template_key, data.name))


@router.get("/executions", response_model=list[ExecutionRead])
def list_executions(
    workflow_id: Optional[str] = None,
    record_id: Optional[str] = None,
    status_filter: Optional[str] = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=500),
    service: WorkflowService = Depends(get_service),
) -> list[ExecutionRead]:
    executions = service.list_executions(workflow_id, record_id, status_filter, limit)
    return [ExecutionRead.model_validate(e) for e in executions]


@router.post("/executions/process-due", response_model=ProcessDueResult)
def process_due(service: WorkflowService = Depends(get_service)) -> ProcessDueResult:
    return ProcessDueResult(processed=service.process_due())


@router.get("/executions/{execution_id}", response_model=ExecutionDetail)
def get_execution(execution_id: str, service: WorkflowService = Depends(get_service)) -> ExecutionDetail:
    execution = service.get_execution(execution_id)
    if not execution:
        raise _not_found("Execution", execution_id)
    detail = ExecutionDetail.model_validate(execution)
    detail.steps = [StepExecutionRead.model_validate(s) for s in service.execution_steps(execution.id)]
    return detail


@router.post("/executions/{execution_id}/cancel", response_model=ExecutionRead)
def cancel_execution(execution_id: str, service: WorkflowService = Depends(get_service)) -> ExecutionRead:
    execution = service.cancel_execution(execution_id)
    if not execution:
        raise _not_found("Execution", execution_id)
    return ExecutionRead.model_validate(execution)


@router.post("/executions/{execution_id}/retry", response_model=ExecutionRead)
def retry_execution(execution_id: str, service: WorkflowService = Depends(get_service)) -> ExecutionRead:
    execution = service.retry_execution(execution_id)
    if not execution:
        raise _not_found("Execution", execution_id)
    return ExecutionRead.model_validate(execution)


# =============================================================================
# Workflows
# =============================================================================


@router.get("", response_model=list[WorkflowRead])
def list_workflows(
    object_type: Optional[str] = None,
    active_only: bool = False,
    service: WorkflowService = Depends(get_service),
) -> list[WorkflowRead]:
    return [WorkflowRead.model_validate(w) for w in service.list_workflows(object_type, active_only)]


@router.post("", response_model=WorkflowDetail, status_code=status.HTTP_201_CREATED)
def create_workflow(data: WorkflowCreate, service: WorkflowService = Depends(get_service)) -> WorkflowDetail:
    return _detail(service, service.create_workflow(data))


@router.get("/{workflow_id}", response_model=WorkflowDetail)
def get_workflow(workflow_id: str, service: WorkflowService = Depends(get_service)) -> WorkflowDetail:
    workflow = service.get_workflow(workflow_id)
    if not workflow:
        raise _not_found("Workflow", workflow_id)
    return _detail(service, workflow)


@router.patch("/{workflow_id}", response_model=WorkflowRead)
def update_workflow(
    workflow_id: str, data: WorkflowUpdate, service: WorkflowService = Depends(get_service)
) -> WorkflowRead:
    workflow = service.update_workflow(workflow_id, data)
    if not workflow:
        raise _not_found("Workflow", workflow_id)
    return WorkflowRead.model_validate(workflow)


@router.delete("/{workflow_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_workflow(workflow_id: str, service: WorkflowService = Depends(get_service)) -> None:
    if not service.delete_workflow(workflow_id):
        raise _not_found("Workflow", workflow_id)


@router.post("/{workflow_id}/toggle", response_model=WorkflowRead)
def toggle_workflow(workflow_id: str, service: WorkflowService = Depends(get_service)) -> WorkflowRead:
    workflow = service.toggle(workflow_id)
    if not workflow:
        raise _not_found("Workflow", workflow_id)
    return WorkflowRead.model_validate(workflow)


@router.post("/{workflow_id}/duplicate", response_model=WorkflowDetail, status_code=status.HTTP_201_CREATED)
def duplicate_workflow(workflow_id: str, service: WorkflowService = Depends(get_service)) -> WorkflowDetail:
    workflow = service.duplicate(workflow_id)
    if not workflow:
        raise _not_found("Workflow", workflow_id)
    return _detail(service, workflow)


@router.get("/{workflow_id}/validate", response_model=ValidationResult)
def validate_workflow(workflow_id: str, service: WorkflowService = Depends(get_service)) -> ValidationResult:
    if not service.get_workflow(workflow_id):
        raise _not_found("Workflow", workflow_id)
    return service.validate(workflow_id)


@router.post("/{workflow_id}/trigger", response_model=ExecutionRead, status_code=status.HTTP_201_CREATED)
def trigger_workflow(
    workflow_id: str, data: ManualTrigger, service: WorkflowService = Depends(get_service)
) -> ExecutionRead:
    return ExecutionRead.model_validate(service.trigger_manually(workflow_id, data.record_id, data.record_type))


# =============================================================================
# Steps
# =============================================================================


@router.put("/{workflow_id}/canvas", response_model=list[StepRead])
def save_canvas(workflow_id: str, data: CanvasSave, service: WorkflowService = Depends(get_service)) -> list[StepRead]:
    return [StepRead.model_validate(s) for s in service.save_canvas(workflow_id, data)]


@router.post("/{workflow_id}/steps", response_model=StepRead, status_code=status.HTTP_201_CREATED)
def add_step(workflow_id: str, data: StepCreate, service: WorkflowService = Depends(get_service)) -> StepRead:
    return StepRead.model_validate(service.add_step(workflow_id, data))


@router.patch("/{workflow_id}/steps/{step_key}", response_model=StepRead)
def update_step(
    workflow_id: str, step_key: str, data: StepUpdate, service: WorkflowService = Depends(get_service)
) -> StepRead:
    step = service.update_step(workflow_id, step_key, data)
    if not step:
        raise _not_found("Step", step_key)
    return StepRead.model_validate(step)


@router.delete("/{workflow_id}/steps/{step_key}", status_code=status.HTTP_204_NO_CONTENT)
def delete_step(workflow_id: str, step_key: str, service: WorkflowService = Depends(get_service)) -> None:
    if not service.delete_step(workflow_id, step_key):
        raise _not_found("Step", step_key)
