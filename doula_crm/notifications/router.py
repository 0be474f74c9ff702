"""API routes for notification logs and preferences."""

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlmodel import Session

from doula_crm.core.context import RequestContext, get_request_context
from doula_crm.core.database import get_session
from doula_crm.leads.service import get_org_lead

from .schemas import NotificationLogCreate, NotificationLogRead, PreferencesRead, PreferencesUpdate
from .service import NotificationService

router = APIRouter(prefix="/notifications", tags=["notifications"])


def get_service(
    session: Session = Depends(get_session),
    ctx: RequestContext = Depends(get_request_context),
) -> NotificationService:
    return NotificationService(session, ctx.organization_id)


def _require_client(service: NotificationService, client_id: str) -> None:
    if not get_org_lead(service.session, service.organization_id, client_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Client '{client_id}' not found")


@router.post("/log", response_model=NotificationLogRead, status_code=status.HTTP_201_CREATED)
def log_notification(
    data: NotificationLogCreate, service: NotificationService = Depends(get_service)
) -> NotificationLogRead:
    if data.client_id:
        _require_client(service, data.client_id)
    return NotificationLogRead.model_validate(service.log(data))


@router.get("/clients/{client_id}/log", response_model=list[NotificationLogRead])
def client_notification_log(
    client_id: str,
    limit: int = Query(50, ge=1, le=500),
    service: NotificationService = Depends(get_service),
) -> list[NotificationLogRead]:
    return [NotificationLogRead.model_validate(e) for e in service.client_log(client_id, limit)]


@router.get("/clients/{client_id}/preferences", response_model=PreferencesRead)
def get_preferences(client_id: str, service: NotificationService = Depends(get_service)) -> PreferencesRead:
    _require_client(service, client_id)
    return PreferencesRead.model_validate(service.get_preferences(client_id))


@router.patch("/clients/{client_id}/preferences", response_model=PreferencesRead)
def update_preferences(
    client_id: str, data: PreferencesUpdate, service: NotificationService = Depends(get_service)
) -> PreferencesRead:
    _require_client(service, client_id)
    return PreferencesRead.model_validate(service.update_preferences(client_id, data))
