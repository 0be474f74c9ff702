"""Business logic for leads, clients, activities and action items."""

from __future__ import annotations

import logging
from collections import Counter
from typing import Optional

from sqlmodel import Session, col, or_, select

from doula_crm import events
from doula_crm.core.context import RequestContext
from doula_crm.core.errors import InvalidOperationError
from doula_crm.core.models import apply_changes, to_dict, utcnow
from doula_crm.list_views.query import escape_like
from doula_crm.organizations.models import User
from doula_crm.referrals.models import ReferralPartner

from .models import ActionItem, ActivityType, Lead, LeadActivity, LeadStatus, LifecycleStage
from .schemas import ActionItemCreate, ActivityCreate, LeadCreate, LeadUpdate

logger = logging.getLogger(__name__)


def email_domain(email: str) -> Optional[str]:
    if "@" not in email:
        return None
    return email.rsplit("@", 1)[1].lower()


class LeadService:
    """Lead and client operations scoped to the caller's organization."""

    def __init__(self, session: Session, ctx: RequestContext):
        self.session = session
        self.ctx = ctx

    # =========================================================================
    # Leads
    # =========================================================================

    def create_lead(self, data: LeadCreate) -> Lead:
        lead = Lead(organization_id=self.ctx.organization_id, **data.model_dump())
        lead.email_domain = email_domain(data.email)
        if data.status == LeadStatus.CLIENT:
            lead.lifecycle_stage = LifecycleStage.ACTIVE_CLIENT.value
            lead.converted_at = utcnow()
        if lead.referral_partner_id:
            lead.partner_name = self._partner_name(lead.referral_partner_id)
        if lead.assigned_to_user_id:
            self._check_assignee(lead.assigned_to_user_id)
        self.session.add(lead)
        self.session.commit()
        self.session.refresh(lead)

        logger.info("Lead created", extra={"organization_id": lead.organization_id, "record_id": lead.id})
        record = to_dict(lead)
        events.record_created(self.session, lead.organization_id, "lead", record, "lead.created")
        if lead.status == LeadStatus.CLIENT.value:
            events.emit(self.session, lead.organization_id, "client.created", record)
        self.session.refresh(lead)
        return lead

    def get_lead(self, lead_id: str) -> Optional[Lead]:
        lead = self.session.get(Lead, lead_id)
        if not lead or lead.organization_id != self.ctx.organization_id:
            return None
        return lead

    def list_leads(
        self,
        status: Optional[str] = None,
        source: Optional[str] = None,
        search: Optional[str] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> list[Lead]:
        statement = select(Lead).where(Lead.organization_id == self.ctx.organization_id)
        if status:
            statement = statement.where(Lead.status == status)
        if source:
            statement = statement.where(Lead.source == source)
        if search:
            pattern = f"%{escape_like(search)}%"
            statement = statement.where(
                or_(*(col(column).ilike(pattern, escape="\\") for column in (Lead.name, Lead.email, Lead.phone)))
            )
        statement = statement.order_by(col(Lead.created_at).desc()).offset(skip).limit(limit)
        return list(self.session.exec(statement).all())

    def list_clients(self, search: Optional[str] = None, skip: int = 0, limit: int = 100) -> list[Lead]:
        return self.list_leads(status=LeadStatus.CLIENT.value, search=search, skip=skip, limit=limit)

    def update_lead(self, lead_id: str, data: LeadUpdate) -> Optional[Lead]:
        lead = self.get_lead(lead_id)
        if not lead:
            return None
        previous = to_dict(lead)

        changes = data.model_dump(exclude_unset=True)
        for key in ("source", "lifecycle_stage"):
            if changes.get(key) is not None:
                changes[key] = getattr(changes[key], "value", changes[key])
        if "custom_fields" in changes:
            changes["custom_fields"] = {**(lead.custom_fields or {}), **(changes["custom_fields"] or {})}
        if changes.get("email"):
            changes["email_domain"] = email_domain(changes["email"])
        if changes.get("referral_partner_id"):
            changes["partner_name"] = self._partner_name(changes["referral_partner_id"])
        if changes.get("assigned_to_user_id"):
            self._check_assignee(changes["assigned_to_user_id"])

        apply_changes(lead, changes)
        self.session.add(lead)
        self.session.commit()
        self.session.refresh(lead)

        events.record_updated(self.session, lead.organization_id, "lead", to_dict(lead), previous, "lead.updated")
        self.session.refresh(lead)
        return lead

    def update_status(self, lead_id: str, status: LeadStatus, note: Optional[str] = None) -> Optional[Lead]:
        """Change a lead's status and log a status_change activity."""
        lead = self.get_lead(lead_id)
        if not lead:
            return None
        previous = to_dict(lead)
        old_status = lead.status
        if old_status == status.value:
            return lead

        changes: dict = {"status": status.value}
        if status == LeadStatus.CLIENT:
            changes["lifecycle_stage"] = LifecycleStage.ACTIVE_CLIENT.value
            changes["converted_at"] = lead.converted_at or utcnow()
        elif status == LeadStatus.SCHEDULED:
            changes["lifecycle_stage"] = LifecycleStage.CONSULTATION_SCHEDULED.value
        elif status == LeadStatus.LOST:
            changes["lifecycle_stage"] = LifecycleStage.INACTIVE.value
        apply_changes(lead, changes)
        self.session.add(lead)

        content = f"Status changed from {old_status} to {status.value}"
        if note:
            content = f"{content}: {note}"
        self._log_activity(
            lead.id,
            ActivityType.STATUS_CHANGE,
            content,
            {"from": old_status, "to": status.value},
        )
        self.session.commit()
        self.session.refresh(lead)

        record = to_dict(lead)
        events.record_updated(self.session, lead.organization_id, "lead", record, previous, "lead.status_changed")
        if status == LeadStatus.CLIENT:
            events.emit(self.session, lead.organization_id, "lead.converted", record)
            events.emit(self.session, lead.organization_id, "client.created", record)
        self.session.refresh(lead)
        return lead

    def convert_to_client(self, lead_id: str) -> Optional[Lead]:
        lead = self.get_lead(lead_id)
        if not lead:
            return None
        if lead.status == LeadStatus.CLIENT.value:
            raise InvalidOperationError("Lead has already been converted to a client")
        if lead.status == LeadStatus.LOST.value:
            raise InvalidOperationError("Lost leads must be reopened before conversion")
        return self.update_status(lead_id, LeadStatus.CLIENT, note="Converted to client")

    def delete_lead(self, lead_id: str) -> Optional[Lead]:
        lead = self.get_lead(lead_id)
        if not lead:
            return None
        self.session.delete(lead)
        self.session.commit()
        logger.info("Lead deleted", extra={"organization_id": lead.organization_id, "record_id": lead_id})
        return lead

    def get_stats(self) -> dict:
        rows = self.session.exec(
            select(Lead.status, Lead.source).where(Lead.organization_id == self.ctx.organization_id)
        ).all()
        by_status = Counter(status for status, _ in rows)
        by_source = Counter(source for _, source in rows)
        return {"total": len(rows), "by_status": dict(by_status), "by_source": dict(by_source)}

    # =========================================================================
    # Activities
    # =========================================================================

    def list_activities(self, lead_id: str) -> list[LeadActivity]:
        statement = (
            select(LeadActivity)
            .where(LeadActivity.lead_id == lead_id, LeadActivity.organization_id == self.ctx.organization_id)
            .order_by(col(LeadActivity.created_at).desc())
        )
        return list(self.session.exec(statement).all())

    def add_activity(self, lead_id: str, data: ActivityCreate) -> Optional[LeadActivity]:
        if not self.get_lead(lead_id):
            return None
        activity = self._log_activity(lead_id, data.activity_type, data.content, data.activity_metadata)
        self.session.commit()
        self.session.refresh(activity)
        return activity

    def _log_activity(self, lead_id: str, activity_type: ActivityType, content: str, meta: dict) -> LeadActivity:
        activity = LeadActivity(
            organization_id=self.ctx.organization_id,
            lead_id=lead_id,
            created_by_user_id=self.ctx.user_id,
            activity_type=activity_type.value,
            content=content,
            activity_metadata=meta,
        )
        self.session.add(activity)
        return activity

    # =========================================================================
    # Action items
    # =========================================================================

    def list_action_items(self, client_id: str, status: Optional[str] = None) -> list[ActionItem]:
        statement = select(ActionItem).where(
            ActionItem.client_id == client_id, ActionItem.organization_id == self.ctx.organization_id
        )
        if status:
            statement = statement.where(ActionItem.status == status)
        return list(self.session.exec(statement.order_by(col(ActionItem.created_at))).all())

    def create_action_item(self, client_id: str, data: ActionItemCreate) -> Optional[ActionItem]:
        if not self.get_lead(client_id):
            return None
        item = ActionItem(organization_id=self.ctx.organization_id, client_id=client_id, **data.model_dump())
        self.session.add(item)
        self.session.commit()
        self.session.refresh(item)
        return item

    def complete_action_item(self, item_id: str) -> Optional[ActionItem]:
        item = self.session.get(ActionItem, item_id)
        if not item or item.organization_id != self.ctx.organization_id:
            return None
        apply_changes(item, {"status": "completed", "completed_at": utcnow()})
        self.session.add(item)
        self.session.commit()
        self.session.refresh(item)
        return item

    def _partner_name(self, partner_id: str) -> Optional[str]:
        partner = self.session.get(ReferralPartner, partner_id)
        if not partner or partner.organization_id != self.ctx.organization_id:
            raise InvalidOperationError("Referral partner not found")
        return partner.name

    def _check_assignee(self, user_id: str) -> None:
        user = self.session.get(User, user_id)
        if not user or user.organization_id != self.ctx.organization_id:
            raise InvalidOperationError("Assigned user not found")


def get_org_lead(session: Session, organization_id: str, lead_id: str) -> Optional[Lead]:
    """Fetch a lead/client only if it belongs to the organization."""
    lead = session.get(Lead, lead_id)
    if not lead or lead.organization_id != organization_id:
        return None
    return lead
