"""Team members, client assignments, time entries and on-call schedule."""

from __future__ import annotations

import calendar
import logging
from collections import defaultdict
from datetime import date
from typing import Any, Optional

from sqlalchemy import func
from sqlmodel import Session, col, select

from doula_crm.core.context import RequestContext
from doula_crm.core.errors import ConflictError, InvalidOperationError
from doula_crm.core.models import apply_changes, today
from doula_crm.leads.service import get_org_lead

from .models import ClientAssignment, OnCallSchedule, TeamMember, TimeEntry
from .schemas import (
    AssignmentCreate,
    AssignmentUpdate,
    OnCallCreate,
    OnCallUpdate,
    TeamMemberCreate,
    TeamMemberUpdate,
    TimeEntryCreate,
    TimeEntryUpdate,
)

logger = logging.getLogger(__name__)


def summarize_time(entries: list[TimeEntry]) -> dict[str, Any]:
    by_type: dict[str, float] = defaultdict(float)
    total = billable = 0.0
    for entry in entries:
        total += entry.hours
        if entry.billable:
            billable += entry.hours
        by_type[entry.entry_type] += entry.hours
    return {"total_hours": total, "billable_hours": billable, "by_type": dict(by_type)}


class TeamService:
    def __init__(self, session: Session, ctx: RequestContext):
        self.session = session
        self.ctx = ctx

    def _owned(self, model, record_id: str):
        record = self.session.get(model, record_id)
        if not record or record.organization_id != self.ctx.organization_id:
            return None
        return record

    def _save(self, record):
        self.session.add(record)
        self.session.commit()
        self.session.refresh(record)
        return record

    # =========================================================================
    # Members
    # =========================================================================

    def list_members(self, include_inactive: bool = False, role: Optional[str] = None) -> list[TeamMember]:
        statement = select(TeamMember).where(TeamMember.organization_id == self.ctx.organization_id)
        if not include_inactive:
            statement = statement.where(TeamMember.is_active == True)  # noqa: E712
        if role:
            statement = statement.where(TeamMember.role == role)
        return list(self.session.exec(statement.order_by(col(TeamMember.display_name))).all())

    def get_member(self, member_id: str) -> Optional[TeamMember]:
        return self._owned(TeamMember, member_id)

    def get_member_by_user(self, user_id: str) -> Optional[TeamMember]:
        return self.session.exec(
            select(TeamMember).where(
                TeamMember.organization_id == self.ctx.organization_id, TeamMember.user_id == user_id
            )
        ).first()

    def create_member(self, data: TeamMemberCreate) -> TeamMember:
        values = data.model_dump()
        values["email"] = str(values["email"])
        member = self._save(TeamMember(organization_id=self.ctx.organization_id, **values))
        logger.info("Team member created", extra={"organization_id": member.organization_id, "record_id": member.id})
        return member

    def update_member(self, member_id: str, data: TeamMemberUpdate) -> Optional[TeamMember]:
        member = self.get_member(member_id)
        if not member:
            return None
        changes = data.model_dump(exclude_unset=True)
        if changes.get("email"):
            changes["email"] = str(changes["email"])
        return self._save(apply_changes(member, changes))

    def set_active(self, member_id: str, is_active: bool) -> Optional[TeamMember]:
        member = self.get_member(member_id)
        if not member:
            return None
        return self._save(apply_changes(member, {"is_active": is_active}))

    def member_stats(self, member_id: str) -> dict[str, Any]:
        active_clients = self.session.exec(
            select(func.count()).select_from(ClientAssignment).where(ClientAssignment.team_member_id == member_id)
        ).one()
        now = today()
        start = now.replace(day=1)
        end = now.replace(day=calendar.monthrange(now.year, now.month)[1])
        summary = summarize_time(self.list_time_entries(team_member_id=member_id, start_date=start, end_date=end))
        return {
            "active_client_count": active_clients or 0,
            "hours_this_month": summary["total_hours"],
            "billable_hours_this_month": summary["billable_hours"],
        }

    def overview(self) -> dict[str, Any]:
        return {"members": self.list_members(), "current_on_call": self.list_on_call(current_only=True)}

    # =========================================================================
    # Assignments
    # =========================================================================

    def client_assignments(self, client_id: str) -> list[ClientAssignment]:
        statement = select(ClientAssignment).where(
            ClientAssignment.organization_id == self.ctx.organization_id, ClientAssignment.client_id == client_id
        )
        return list(self.session.exec(statement.order_by(col(ClientAssignment.assignment_role))).all())

    def member_assignments(self, member_id: str) -> list[ClientAssignment]:
        statement = select(ClientAssignment).where(
            ClientAssignment.organization_id == self.ctx.organization_id,
            ClientAssignment.team_member_id == member_id,
        )
        return list(self.session.exec(statement).all())

    def assign(self, data: AssignmentCreate) -> ClientAssignment:
        if not get_org_lead(self.session, self.ctx.organization_id, data.client_id):
            raise InvalidOperationError("Client not found")
        member = self.get_member(data.team_member_id)
        if not member or not member.is_active:
            raise InvalidOperationError("Team member not found or inactive")
        existing = self.session.exec(
            select(ClientAssignment).where(
                ClientAssignment.client_id == data.client_id,
                ClientAssignment.team_member_id == data.team_member_id,
            )
        ).first()
        if existing:
            raise ConflictError("Team member is already assigned to this client")
        return self._save(ClientAssignment(organization_id=self.ctx.organization_id, **data.model_dump()))

    def update_assignment(self, assignment_id: str, data: AssignmentUpdate) -> Optional[ClientAssignment]:
        assignment = self._owned(ClientAssignment, assignment_id)
        if not assignment:
            return None
        return self._save(apply_changes(assignment, data.model_dump(exclude_unset=True)))

    def remove_assignment(self, assignment_id: str) -> Optional[ClientAssignment]:
        assignment = self._owned(ClientAssignment, assignment_id)
        if not assignment:
            return None
        self.session.delete(assignment)
        self.session.commit()
        return assignment

    # =========================================================================
    # Time entries
    # =========================================================================

    def list_time_entries(
        self,
        team_member_id: Optional[str] = None,
        client_id: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        entry_type: Optional[str] = None,
        billable: Optional[bool] = None,
        limit: Optional[int] = None,
    ) -> list[TimeEntry]:
        statement = select(TimeEntry).where(TimeEntry.organization_id == self.ctx.organization_id)
        if team_member_id:
            statement = statement.where(TimeEntry.team_member_id == team_member_id)
        if client_id:
            statement = statement.where(TimeEntry.client_id == client_id)
        if start_date:
            statement = statement.where(TimeEntry.entry_date >= start_date)
        if end_date:
            statement = statement.where(TimeEntry.entry_date <= end_date)
        if entry_type:
            statement = statement.where(TimeEntry.entry_type == entry_type)
        if billable is not None:
            statement = statement.where(TimeEntry.billable == billable)
        statement = statement.order_by(col(TimeEntry.entry_date).desc())
        if limit:
            statement = statement.limit(limit)
        return list(self.session.exec(statement).all())

    def create_time_entry(self, data: TimeEntryCreate) -> TimeEntry:
        if not self.get_member(data.team_member_id):
            raise InvalidOperationError("Team member not found")
        return self._save(TimeEntry(organization_id=self.ctx.organization_id, **data.model_dump()))

    def update_time_entry(self, entry_id: str, data: TimeEntryUpdate) -> Optional[TimeEntry]:
        entry = self._owned(TimeEntry, entry_id)
        if not entry:
            return None
        return self._save(apply_changes(entry, data.model_dump(exclude_unset=True)))

    def delete_time_entry(self, entry_id: str) -> Optional[TimeEntry]:
        entry = self._owned(TimeEntry, entry_id)
        if not entry:
            return None
        self.session.delete(entry)
        self.session.commit()
        return entry

    def time_summary(self, team_member_id: str, start_date: date, end_date: date) -> dict[str, Any]:
        return summarize_time(
            self.list_time_entries(team_member_id=team_member_id, start_date=start_date, end_date=end_date)
        )

    # =========================================================================
    # On-call
    # =========================================================================

    def list_on_call(
        self,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        team_member_id: Optional[str] = None,
        current_only: bool = False,
    ) -> list[OnCallSchedule]:
        statement = select(OnCallSchedule).where(OnCallSchedule.organization_id == self.ctx.organization_id)
        if team_member_id:
            statement = statement.where(OnCallSchedule.team_member_id == team_member_id)
        if current_only:
            now = today()
            statement = statement.where(OnCallSchedule.start_date <= now, OnCallSchedule.end_date >= now)
        else:
            if start_date:
                statement = statement.where(OnCallSchedule.end_date >= start_date)
            if end_date:
                statement = statement.where(OnCallSchedule.start_date <= end_date)
        return list(self.session.exec(statement.order_by(col(OnCallSchedule.start_date))).all())

    def create_on_call(self, data: OnCallCreate) -> OnCallSchedule:
        if not self.get_member(data.team_member_id):
            raise InvalidOperationError("Team member not found")
        return self._save(OnCallSchedule(organization_id=self.ctx.organization_id, **data.model_dump()))

    def update_on_call(self, schedule_id: str, data: OnCallUpdate) -> Optional[OnCallSchedule]:
        schedule = self._owned(OnCallSchedule, schedule_id)
        if not schedule:
            return None
        apply_changes(schedule, data.model_dump(exclude_unset=True))
        if schedule.end_date < schedule.start_date:
            raise InvalidOperationError("end_date must not be before start_date")
        return self._save(schedule)

    def delete_on_call(self, schedule_id: str) -> Optional[OnCallSchedule]:
        schedule = self._owned(OnCallSchedule, schedule_id)
        if not schedule:
            return None
        self.session.delete(schedule)
        self.session.commit()
        return schedule
