"""API routes for the practice team."""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlmodel import Session

from doula_crm.core.context import RequestContext, get_request_context, require_admin
from doula_crm.core.database import get_session

from .schemas import (
    AssignmentCreate,
    AssignmentRead,
    AssignmentUpdate,
    MemberStats,
    OnCallCreate,
    OnCallRead,
    OnCallUpdate,
    TeamMemberCreate,
    TeamMemberRead,
    TeamMemberUpdate,
    TeamOverview,
    TimeEntryCreate,
    TimeEntryRead,
    TimeEntryUpdate,
    TimeSummary,
)
from .service import TeamService

router = APIRouter(prefix="/team", tags=["team"])


def get_service(
    session: Session = Depends(get_session),
    ctx: RequestContext = Depends(get_request_context),
) -> TeamService:
    return TeamService(session, ctx)


def _not_found(kind: str, record_id: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{kind} '{record_id}' not found")


# =============================================================================
# Members
# =============================================================================


@router.get("/members", response_model=list[TeamMemberRead])
def list_members(
    include_inactive: bool = False,
    role: Optional[str] = None,
    service: TeamService = Depends(get_service),
) -> list[TeamMemberRead]:
    return [TeamMemberRead.model_validate(m) for m in service.list_members(include_inactive, role)]


@router.get("/overview", response_model=TeamOverview)
def team_overview(service: TeamService = Depends(get_service)) -> TeamOverview:
    overview = service.overview()
    return TeamOverview(
        members=[TeamMemberRead.model_validate(m) for m in overview["members"]],
        current_on_call=[OnCallRead.model_validate(s) for s in overview["current_on_call"]],
    )


@router.post(
    "/members",
    response_model=TeamMemberRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
)
def create_member(data: TeamMemberCreate, service: TeamService = Depends(get_service)) -> TeamMemberRead:
    return TeamMemberRead.model_validate(service.create_member(data))


@router.get("/members/{member_id}", response_model=TeamMemberRead)
def get_member(member_id: str, service: TeamService = Depends(get_service)) -> TeamMemberRead:
    member = service.get_member(member_id)
    if not member:
        raise _not_found("Team member", member_id)
    return TeamMemberRead.model_validate(member)


@router.patch("/members/{member_id}", response_model=TeamMemberRead, dependencies=[Depends(require_admin)])
def update_member(
    member_id: str,
    data: TeamMemberUpdate,
    service: TeamService = Depends(get_service),
) -> TeamMemberRead:
    member = service.update_member(member_id, data)
    if not member:
        raise _not_found("Team member", member_id)
    return TeamMemberRead.model_validate(member)


@router.post("/members/{member_id}/deactivate", response_model=TeamMemberRead, dependencies=[Depends(require_admin)])
def deactivate_member(member_id: str, service: TeamService = Depends(get_service)) -> TeamMemberRead:
    member = service.set_active(member_id, False)
    if not member:
        raise _not_found("Team member", member_id)
    return TeamMemberRead.model_validate(member)


@router.post("/members/{member_id}/reactivate", response_model=TeamMemberRead, dependencies=[Depends(require_admin)])
def reactivate_member(member_id: str, service: TeamService = Depends(get_service)) -> TeamMemberRead:
    member = service.set_active(member_id, True)
    if not member:
        raise _not_found("Team member", member_id)
    return TeamMemberRead.model_validate(member)


@router.get("/members/{member_id}/stats", response_model=MemberStats)
def member_stats(member_id: str, service: TeamService = Depends(get_service)) -> MemberStats:
    if not service.get_member(member_id):
        raise _not_found("Team member", member_id)
    return MemberStats(**service.member_stats(member_id))


@router.get("/members/{member_id}/assignments", response_model=list[AssignmentRead])
def member_assignments(member_id: str, service: TeamService = Depends(get_service)) -> list[AssignmentRead]:
    return [AssignmentRead.model_validate(a) for a in service.member_assignments(member_id)]


# =============================================================================
# Assignments
# =============================================================================


@router.get("/assignments", response_model=list[AssignmentRead])
def client_assignments(client_id: str, service: TeamService = Depends(get_service)) -> list[AssignmentRead]:
    return [AssignmentRead.model_validate(a) for a in service.client_assignments(client_id)]


@router.post("/assignments", response_model=AssignmentRead, status_code=status.HTTP_201_CREATED)
def assign_client(data: AssignmentCreate, service: TeamService = Depends(get_service)) -> AssignmentRead:
    return AssignmentRead.model_validate(service.assign(data))


@router.patch("/assignments/{assignment_id}", response_model=AssignmentRead)
def update_assignment(
    assignment_id: str, data: AssignmentUpdate, service: TeamService = Depends(get_service)
) -> AssignmentRead:
    assignment = service.update_assignment(assignment_id, data)
    if not assignment:
        raise _not_found("Assignment", assignment_id)
    return AssignmentRead.model_validate(assignment)


@router.delete("/assignments/{assignment_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_assignment(assignment_id: str, service: TeamService = Depends(get_service)) -> None:
    if not service.remove_assignment(assignment_id):
        raise _not_found("Assignment", assignment_id)


# =============================================================================
# Time entries
# =============================================================================


@router.get("/time-entries", response_model=list[TimeEntryRead])
def list_time_entries(
    team_member_id: Optional[str] = None,
    client_id: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    entry_type: Optional[str] = None,
    billable: Optional[bool] = None,
    limit: Optional[int] = None,
    service: TeamService = Depends(get_service),
) -> list[TimeEntryRead]:
    entries = service.list_time_entries(team_member_id, client_id, start_date, end_date, entry_type, billable, limit)
    return [TimeEntryRead.model_validate(e) for e in entries]


@router.get("/time-entries/summary", response_model=TimeSummary)
def time_summary(
    team_member_id: str,
    start_date: date,
    end_date: date,
    service: TeamService = Depends(get_service),
) -> TimeSummary:
    return TimeSummary(**service.time_summary(team_member_id, start_date, end_date))


@router.post("/time-entries", response_model=TimeEntryRead, status_code=status.HTTP_201_CREATED)
def create_time_entry(data: TimeEntryCreate, service: TeamService = Depends(get_service)) -> TimeEntryRead:
    return TimeEntryRead.model_validate(service.create_time_entry(data))


@router.patch("/time-entries/{entry_id}", response_model=TimeEntryRead)
def update_time_entry(
    entry_id: str,
    data: TimeEntryUpdate,
    service: TeamService = Depends(get_service),
) -> TimeEntryRead:
    entry = service.update_time_entry(entry_id, data)
    if not entry:
        raise _not_found("Time entry", entry_id)
    return TimeEntryRead.model_validate(entry)


@router.delete("/time-entries/{entry_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_time_entry(entry_id: str, service: TeamService = Depends(get_service)) -> None:
    if not service.delete_time_entry(entry_id):
        raise _not_found("Time entry", entry_id)


# =============================================================================
# On-call
# =============================================================================


@router.get("/on-call", response_model=list[OnCallRead])
def list_on_call(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    team_member_id: Optional[str] = None,
    current_only: bool = False,
    service: TeamService = Depends(get_service),
) -> list[OnCallRead]:
    schedules = service.list_on_call(start_date, end_date, team_member_id, current_only)
    return [OnCallRead.model_validate(s) for s in schedules]


@router.post("/on-call", response_model=OnCallRead, status_code=status.HTTP_201_CREATED)
def create_on_call(data: OnCallCreate, service: TeamService = Depends(get_service)) -> OnCallRead:
    return OnCallRead.model_validate(service.create_on_call(data))


@router.patch("/on-call/{schedule_id}", response_model=OnCallRead)
def update_on_call(schedule_id: str, data: OnCallUpdate, service: TeamService = Depends(get_service)) -> OnCallRead:
    schedule = service.update_on_call(schedule_id, data)
    if not schedule:
        raise _not_found("On-call schedule", schedule_id)
    return OnCallRead.model_validate(schedule)


@router.delete("/on-call/{schedule_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_on_call(schedule_id: str, service: TeamService = Depends(get_service)) -> None:
    if not service.delete_on_call(schedule_id):
        raise _not_found("On-call schedule", schedule_id)
