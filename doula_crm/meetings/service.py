"""Scheduling and status changes for client meetings."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from sqlmodel import Session, col, select

from doula_crm import events
from doula_crm.core.context import RequestContext
from doula_crm.core.errors import InvalidOperationError
from doula_crm.core.models import apply_changes, to_dict, utcnow
from doula_crm.leads.service import get_org_lead
from doula_crm.notifications.service import queue_client_email

from .models import Meeting, MeetingStatus
from .schemas import MeetingCreate, MeetingUpdate

logger = logging.getLogger(__name__)

STATUS_EVENTS = {
    MeetingStatus.CANCELLED.value: "appointment.cancelled",
    MeetingStatus.COMPLETED.value: "appointment.completed",
}


def _naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class MeetingService:
    def __init__(self, session: Session, ctx: RequestContext):
        self.session = session
        self.ctx = ctx

    def list_for_client(self, client_id: str) -> list[Meeting]:
        statement = (
            select(Meeting)
            .where(Meeting.organization_id == self.ctx.organization_id, Meeting.client_id == client_id)
            .order_by(col(Meeting.scheduled_at).desc())
        )
        return list(self.session.exec(statement).all())

    def upcoming(self, limit: int = 10) -> list[Meeting]:
        statement = (
            select(Meeting)
            .where(
                Meeting.organization_id == self.ctx.organization_id,
                Meeting.status == MeetingStatus.SCHEDULED.value,
                Meeting.scheduled_at >= utcnow(),
            )
            .order_by(col(Meeting.scheduled_at))
            .limit(limit)
        )
        return list(self.session.exec(statement).all())

    def get_meeting(self, meeting_id: str) -> Optional[Meeting]:
        meeting = self.session.get(Meeting, meeting_id)
        if not meeting or meeting.organization_id != self.ctx.organization_id:
            return None
        return meeting

    def schedule(self, data: MeetingCreate) -> Meeting:
        if not get_org_lead(self.session, self.ctx.organization_id, data.client_id):
            raise InvalidOperationError("Client not found")
        values = data.model_dump()
        values["scheduled_at"] = _naive_utc(data.scheduled_at)
        meeting = Meeting(organization_id=self.ctx.organization_id, **values)
        self.session.add(meeting)
        self.session.flush()
        queue_client_email(
            self.session,
            meeting.organization_id,
            meeting.client_id,
            "meeting_scheduled",
            f"Your appointment is confirmed - {meeting.meeting_type.replace('_', ' ').title()}",
            metadata={"meeting_id": meeting.id, "scheduled_at": meeting.scheduled_at.isoformat()},
        )
        self.session.commit()
        self.session.refresh(meeting)

        logger.info(
            "Meeting scheduled",
            extra={"organization_id": meeting.organization_id, "record_id": meeting.id},
        )
        events.record_created(
            self.session, meeting.organization_id, "meeting", to_dict(meeting), "appointment.scheduled"
        )
        self.session.refresh(meeting)
        return meeting

    def update(self, meeting_id: str, data: MeetingUpdate) -> Optional[Meeting]:
        meeting = self.get_meeting(meeting_id)
        if not meeting:
            return None
        changes = data.model_dump(exclude_unset=True)
        if changes.get("scheduled_at"):
            changes["scheduled_at"] = _naive_utc(changes["scheduled_at"])
        return self._save(meeting, changes)

    def update_status(self, meeting_id: str, status: str) -> Optional[Meeting]:
        meeting = self.get_meeting(meeting_id)
        if not meeting:
            return None
        changes: dict[str, Any] = {"status": status}
        if status == MeetingStatus.COMPLETED.value:
            changes["completed_at"] = utcnow()
        return self._save(meeting, changes, STATUS_EVENTS.get(status))

    def add_notes(self, meeting_id: str, notes: Optional[str]) -> Optional[Meeting]:
        meeting = self.get_meeting(meeting_id)
        if not meeting:
            return None
        return self._save(meeting, {"notes": notes})

    def cancel(self, meeting_id: str) -> Optional[Meeting]:
        return self.update_status(meeting_id, MeetingStatus.CANCELLED.value)

    def complete(self, meeting_id: str, notes: Optional[str] = None) -> Optional[Meeting]:
        meeting = self.get_meeting(meeting_id)
        if not meeting:
            return None
        changes: dict[str, Any] = {"status": MeetingStatus.COMPLETED.value, "completed_at": utcnow()}
        if notes:
            changes["notes"] = notes
        return self._save(meeting, changes, "appointment.completed")

    def delete(self, meeting_id: str) -> Optional[Meeting]:
        meeting = self.get_meeting(meeting_id)
        if not meeting:
            return None
        self.session.delete(meeting)
        self.session.commit()
        return meeting

    def _save(self, meeting: Meeting, changes: dict[str, Any], webhook_event: Optional[str] = None) -> Meeting:
        previous = to_dict(meeting)
        apply_changes(meeting, changes)
        self.session.add(meeting)
        self.session.commit()
        self.session.refresh(meeting)
        events.record_updated(
            self.session, meeting.organization_id, "meeting", to_dict(meeting), previous, webhook_event
        )
        self.session.refresh(meeting)
        return meeting
