"""Business logic for referral partners."""

from __future__ import annotations

import re
import secrets
import string
from typing import Optional

from sqlalchemy import case, func
from sqlmodel import Session, col, or_, select

from doula_crm.core.context import RequestContext
from doula_crm.core.models import apply_changes
from doula_crm.leads.models import Lead, LeadStatus
from doula_crm.list_views.query import escape_like

from .models import ReferralPartner
from .schemas import ReferralPartnerCreate, ReferralPartnerUpdate

_CODE_ALPHABET = string.ascii_uppercase + string.digits


def generate_referral_code(name: str) -> str:
    """First four letters of the name plus four random characters."""
    base = re.sub(r"[^A-Z]", "", name.upper())[:4]
    suffix = "".join(secrets.choice(_CODE_ALPHABET) for _ in range(4))
    return f"{base}{suffix}"


def referral_url(base_url: str, referral_code: str) -> str:
    return f"{base_url}?ref={referral_code}"


class ReferralPartnerService:
    def __init__(self, session: Session, ctx: RequestContext):
        self.session = session
        self.ctx = ctx

    def list_partners(self, active_only: bool = False, search: Optional[str] = None) -> list[ReferralPartner]:
        statement = select(ReferralPartner).where(ReferralPartner.organization_id == self.ctx.organization_id)
        if active_only:
            statement = statement.where(ReferralPartner.is_active == True)  # noqa: E712
        if search:
            pattern = f"%{escape_like(search)}%"
            statement = statement.where(
                or_(
                    col(ReferralPartner.name).ilike(pattern, escape="\\"),
                    col(ReferralPartner.business_name).ilike(pattern, escape="\\"),
                )
            )
        return list(self.session.exec(statement.order_by(ReferralPartner.name)).all())

    def get_partner(self, partner_id: str) -> Optional[ReferralPartner]:
        partner = self.session.get(ReferralPartner, partner_id)
        if not partner or partner.organization_id != self.ctx.organization_id:
            return None
        return partner

    def create_partner(self, data: ReferralPartnerCreate) -> ReferralPartner:
        code = generate_referral_code(data.name)
        while self.session.exec(select(ReferralPartner).where(ReferralPartner.referral_code == code)).first():
            code = generate_referral_code(data.name)
        partner = ReferralPartner(
            organization_id=self.ctx.organization_id,
            referral_code=code,
            **data.model_dump(),
        )
        self.session.add(partner)
        self.session.commit()
        self.session.refresh(partner)
        return partner

    def update_partner(self, partner_id: str, data: ReferralPartnerUpdate) -> Optional[ReferralPartner]:
        partner = self.get_partner(partner_id)
        if not partner:
            return None
        apply_changes(partner, data.model_dump(exclude_unset=True))
        self.session.add(partner)
        self.session.commit()
        self.session.refresh(partner)
        return partner

    def toggle_status(self, partner_id: str) -> Optional[ReferralPartner]:
        partner = self.get_partner(partner_id)
        if not partner:
            return None
        apply_changes(partner, {"is_active": not partner.is_active})
        self.session.add(partner)
        self.session.commit()
        self.session.refresh(partner)
        return partner

    def delete_partner(self, partner_id: str) -> Optional[ReferralPartner]:
        partner = self.get_partner(partner_id)
        if not partner:
            return None
        for lead in self.session.exec(select(Lead).where(Lead.referral_partner_id == partner_id)).all():
            lead.referral_partner_id = None
            self.session.add(lead)
        self.session.delete(partner)
        self.session.commit()
        return partner

    def lead_counts(self) -> dict[str, tuple[int, int]]:
        """Map partner id to (lead count, converted count)."""
        converted = func.sum(case((Lead.status == LeadStatus.CLIENT.value, 1), else_=0))
        rows = self.session.exec(
            select(Lead.referral_partner_id, func.count(Lead.id), converted)
            .where(Lead.organization_id == self.ctx.organization_id, col(Lead.referral_partner_id).is_not(None))
            .group_by(Lead.referral_partner_id)
        ).all()
        return {partner_id: (int(total), int(conv or 0)) for partner_id, total, conv in rows}

    def get_stats(self) -> dict:
        partners = self.list_partners()
        counts = self.lead_counts()
        summaries = [
            {
                "id": p.id,
                "name": p.name,
                "lead_count": counts.get(p.id, (0, 0))[0],
                "converted_count": counts.get(p.id, (0, 0))[1],
                "is_active": p.is_active,
            }
            for p in partners
        ]
        summaries.sort(key=lambda s: s["lead_count"], reverse=True)

        rates = [
            (s["converted_count"] / s["lead_count"]) * 100 if s["lead_count"] > 0 else 0.0 for s in summaries
        ]
        return {
            "total_partners": len(summaries),
            "active_partners": sum(1 for s in summaries if s["is_active"]),
            "total_leads": sum(s["lead_count"] for s in summaries),
            "total_conversions": sum(s["converted_count"] for s in summaries),
            "top_partners": summaries[:5],
            "average_conversion_rate": sum(rates) / len(rates) if rates else 0.0,
        }
