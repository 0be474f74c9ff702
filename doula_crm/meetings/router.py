"""API routes for meetings."""

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlmodel import Session

from doula_crm.core.context import RequestContext, get_request_context
from doula_crm.core.database import get_session

from .schemas import MeetingCreate, MeetingNotes, MeetingRead, MeetingStatusUpdate, MeetingUpdate
from .service import MeetingService

router = APIRouter(prefix="/meetings", tags=["meetings"])


def get_service(
    session: Session = Depends(get_session),
    ctx: RequestContext = Depends(get_request_context),
) -> MeetingService:
    return MeetingService(session, ctx)


def _found(meeting, meeting_id: str) -> MeetingRead:
    if not meeting:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Meeting '{meeting_id}' not found")
    return MeetingRead.model_validate(meeting)


@router.get("", response_model=list[MeetingRead])
def list_client_meetings(client_id: str, service: MeetingService = Depends(get_service)) -> list[MeetingRead]:
    return [MeetingRead.model_validate(m) for m in service.list_for_client(client_id)]


@router.get("/upcoming", response_model=list[MeetingRead])
def upcoming_meetings(
    limit: int = Query(10, ge=1, le=100), service: MeetingService = Depends(get_service)
) -> list[MeetingRead]:
    return [MeetingRead.model_validate(m) for m in service.upcoming(limit)]


@router.post("", response_model=MeetingRead, status_code=status.HTTP_201_CREATED)
def schedule_meeting(data: MeetingCreate, service: MeetingService = Depends(get_service)) -> MeetingRead:
    return MeetingRead.model_validate(service.schedule(data))


@router.get("/{meeting_id}", response_model=MeetingRead)
def get_meeting(meeting_id: str, service: MeetingService = Depends(get_service)) -> MeetingRead:
    return _found(service.get_meeting(meeting_id), meeting_id)


@router.patch("/{meeting_id}", response_model=MeetingRead)
def update_meeting(meeting_id: str, data: MeetingUpdate, service: MeetingService = Depends(get_service)) -> MeetingRead:
    return _found(service.update(meeting_id, data), meeting_id)


@router.post("/{meeting_id}/status", response_model=MeetingRead)
def update_meeting_status(
    meeting_id: str, data: MeetingStatusUpdate, service: MeetingService = Depends(get_service)
) -> MeetingRead:
    return _found(service.update_status(meeting_id, data.status), meeting_id)


@router.post("/{meeting_id}/notes", response_model=MeetingRead)
def add_meeting_notes(
    meeting_id: str,
    data: MeetingNotes,
    service: MeetingService = Depends(get_service),
) -> MeetingRead:
    return _found(service.add_notes(meeting_id, data.notes), meeting_id)


@router.post("/{meeting_id}/cancel", response_model=MeetingRead)
def cancel_meeting(meeting_id: str, service: MeetingService = Depends(get_service)) -> MeetingRead:
    return _found(service.cancel(meeting_id), meeting_id)


@router.post("/{meeting_id}/complete", response_model=MeetingRead)
def complete_meeting(
    meeting_id: str, data: MeetingNotes | None = None, service: MeetingService = Depends(get_service)
) -> MeetingRead:
    return _found(service.complete(meeting_id, data.notes if data else None), meeting_id)


@router.delete("/{meeting_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_meeting(meeting_id: str, service: MeetingService = Depends(get_service)) -> None:
    if not service.delete(meeting_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Meeting '{meeting_id}' not found")
