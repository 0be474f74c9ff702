"""API routes for leads and clients."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlmodel import Session

from doula_crm.core.context import RequestContext, get_request_context
from doula_crm.core.database import get_session

from .schemas import (
    ActionItemCreate,
    ActionItemRead,
    ActivityCreate,
    ActivityRead,
    LeadCreate,
    LeadRead,
    LeadStats,
    LeadStatusUpdate,
    LeadUpdate,
)
from .service import LeadService

router = APIRouter(prefix="/leads", tags=["leads"])
clients_router = APIRouter(prefix="/clients", tags=["clients"])


def get_service(
    session: Session = Depends(get_session),
    ctx: RequestContext = Depends(get_request_context),
) -> LeadService:
    return LeadService(session, ctx)


def _not_found(lead_id: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Lead '{lead_id}' not found")


@router.post("", response_model=LeadRead, status_code=status.HTTP_201_CREATED)
def create_lead(data: LeadCreate, service: LeadService = Depends(get_service)) -> LeadRead:
    return LeadRead.model_validate(service.create_lead(data))


@router.get("", response_model=list[LeadRead])
def list_leads(
    status: Optional[str] = None,
    source: Optional[str] = None,
    search: Optional[str] = None,
    skip: int = 0,
    limit: int = 100,
    service: LeadService = Depends(get_service),
) -> list[LeadRead]:
    leads = service.list_leads(status=status, source=source, search=search, skip=skip, limit=limit)
    return [LeadRead.model_validate(lead) for lead in leads]


@router.get("/stats", response_model=LeadStats)
def lead_stats(service: LeadService = Depends(get_service)) -> LeadStats:
    return LeadStats(**service.get_stats())


@router.get("/{lead_id}", response_model=LeadRead)
def get_lead(lead_id: str, service: LeadService = Depends(get_service)) -> LeadRead:
    lead = service.get_lead(lead_id)
    if not lead:
        raise _not_found(lead_id)
    return LeadRead.model_validate(lead)


@router.patch("/{lead_id}", response_model=LeadRead)
def update_lead(lead_id: str, data: LeadUpdate, service: LeadService = Depends(get_service)) -> LeadRead:
    lead = service.update_lead(lead_id, data)
    if not lead:
        raise _not_found(lead_id)
    return LeadRead.model_validate(lead)


@router.post("/{lead_id}/status", response_model=LeadRead)
def update_lead_status(
    lead_id: str, data: LeadStatusUpdate, service: LeadService = Depends(get_service)
) -> LeadRead:
    lead = service.update_status(lead_id, data.status, data.note)
    if not lead:
        raise _not_found(lead_id)
    return LeadRead.model_validate(lead)


@router.post("/{lead_id}/convert", response_model=LeadRead)
def convert_lead(lead_id: str, service: LeadService = Depends(get_service)) -> LeadRead:
    lead = service.convert_to_client(lead_id)
    if not lead:
        raise _not_found(lead_id)
    return LeadRead.model_validate(lead)


@router.delete("/{lead_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_lead(lead_id: str, service: LeadService = Depends(get_service)) -> None:
    if not service.delete_lead(lead_id):
        raise _not_found(lead_id)


@router.get("/{lead_id}/activities", response_model=list[ActivityRead])
def list_activities(lead_id: str, service: LeadService = Depends(get_service)) -> list[ActivityRead]:
    if not service.get_lead(lead_id):
        raise _not_found(lead_id)
    return [ActivityRead.model_validate(a) for a in service.list_activities(lead_id)]


@router.post("/{lead_id}/activities", response_model=ActivityRead, status_code=status.HTTP_201_CREATED)
def add_activity(lead_id: str, data: ActivityCreate, service: LeadService = Depends(get_service)) -> ActivityRead:
    activity = service.add_activity(lead_id, data)
    if not activity:
        raise _not_found(lead_id)
    return ActivityRead.model_validate(activity)


# =============================================================================
# Clients
# =============================================================================


@clients_router.get("", response_model=list[LeadRead])
def list_clients(
    search: Optional[str] = None,
    skip: int = 0,
    limit: int = 100,
    service: LeadService = Depends(get_service),
) -> list[LeadRead]:
    return [LeadRead.model_validate(c) for c in service.list_clients(search=search, skip=skip, limit=limit)]


@clients_router.get("/{client_id}/action-items", response_model=list[ActionItemRead])
def list_action_items(
    client_id: str, status: Optional[str] = None, service: LeadService = Depends(get_service)
) -> list[ActionItemRead]:
    return [ActionItemRead.model_validate(i) for i in service.list_action_items(client_id, status)]


@clients_router.post(
    "/{client_id}/action-items", response_model=ActionItemRead, status_code=status.HTTP_201_CREATED
)
def create_action_item(
    client_id: str, data: ActionItemCreate, service: LeadService = Depends(get_service)
) -> ActionItemRead:
    item = service.create_action_item(client_id, data)
    if not item:
        raise _not_found(client_id)
    return ActionItemRead.model_validate(item)


@clients_router.post("/action-items/{item_id}/complete", response_model=ActionItemRead)
def complete_action_item(item_id: str, service: LeadService = Depends(get_service)) -> ActionItemRead:
    item = service.complete_action_item(item_id)
    if not item:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Action item '{item_id}' not found")
    return ActionItemRead.model_validate(item)
