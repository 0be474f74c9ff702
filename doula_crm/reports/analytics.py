"""Practice-level KPIs and the small lists shown on the home dashboard."""

from __future__ import annotations

import math
from datetime import date, datetime, time, timedelta
from typing import Any, Optional

from sqlmodel import Session, col, func, select

from doula_crm.client_services.models import ClientService, ServiceStatus
from doula_crm.core.models import utcnow
from doula_crm.invoices.models import Invoice, InvoiceStatus
from doula_crm.leads.models import Lead, LeadStatus
from doula_crm.meetings.models import Meeting, MeetingStatus
from doula_crm.payments.models import Payment, PaymentRecordStatus

FUNNEL_STATUSES = (
    LeadStatus.NEW.value,
    LeadStatus.CONTACTED.value,
    LeadStatus.SCHEDULED.value,
    LeadStatus.CLIENT.value,
)


def month_start(day: date, months_back: int = 0) -> date:
    """First day of the month ``months_back`` months before ``day``."""
    index = day.year * 12 + day.month - 1 - months_back
    return date(index // 12, index % 12 + 1, 1)


def source_label(source: Optional[str]) -> str:
    return " ".join(word.capitalize() for word in (source or "unknown").split("_"))


def _count(session: Session, model: Any, *where: Any) -> int:
    return session.exec(select(func.count()).select_from(model).where(*where)).one()


def _sum(session: Session, column: Any, *where: Any) -> float:
    return float(session.exec(select(func.coalesce(func.sum(column), 0)).where(*where)).one())


def _completed_payments(organization_id: str, start: date, end: date) -> tuple:
    return (
        Payment.organization_id == organization_id,
        Payment.status == PaymentRecordStatus.COMPLETED.value,
        col(Payment.payment_date) >= start,
        col(Payment.payment_date) < end,
    )


def dashboard_kpis(session: Session, organization_id: str, now: Optional[datetime] = None) -> dict[str, Any]:
    now = now or utcnow()
    this_month = month_start(now.date())
    last_month = month_start(now.date(), 1)
    next_month = month_start(now.date(), -1)
    created_this_month = datetime.combine(this_month, time.min)
    created_last_month = datetime.combine(last_month, time.min)
    leads = Lead.organization_id == organization_id

    total_leads = _count(session, Lead, leads)
    active_clients = _count(session, Lead, leads, Lead.status == LeadStatus.CLIENT.value)
    services = ClientService.organization_id == organization_id

    return {
        "totalLeads": total_leads,
        "newLeadsThisMonth": _count(session, Lead, leads, col(Lead.created_at) >= created_this_month),
        "newLeadsLastMonth": _count(
            session,
            Lead,
            leads,
            col(Lead.created_at) >= created_last_month,
            col(Lead.created_at) < created_this_month,
        ),
        "activeClients": active_clients,
        "conversionRate": (active_clients / total_leads * 100) if total_leads else 0,
        "totalRevenue": _sum(session, ClientService.total_amount, services),
        "pendingRevenue": _sum(
            session,
            ClientService.total_amount,
            services,
            col(ClientService.status).in_([ServiceStatus.PENDING.value, ServiceStatus.ACTIVE.value]),
        ),
        "revenueThisMonth": _sum(
            session, Payment.amount, *_completed_payments(organization_id, this_month, next_month)
        ),
        "revenueLastMonth": _sum(
            session, Payment.amount, *_completed_payments(organization_id, last_month, this_month)
        ),
        "upcomingBirths": _count(
            session,
            Lead,
            leads,
            Lead.status == LeadStatus.CLIENT.value,
            col(Lead.expected_due_date) >= now.date(),
            col(Lead.expected_due_date) <= now.date() + timedelta(days=30),
        ),
        "overdueInvoices": _count(
            session, Invoice, Invoice.organization_id == organization_id, Invoice.status == InvoiceStatus.OVERDUE.value
        ),
        "meetingsThisWeek": _count(
            session,
            Meeting,
            Meeting.organization_id == organization_id,
            Meeting.status == MeetingStatus.SCHEDULED.value,
            col(Meeting.scheduled_at) >= now,
            col(Meeting.scheduled_at) <= now + timedelta(days=7),
        ),
    }


def lead_funnel(session: Session, organization_id: str) -> list[dict[str, Any]]:
    """Lead counts per pipeline stage. Lost leads are not part of the progression."""
    counts = dict(
        session.exec(
            select(Lead.status, func.count())
            .where(Lead.organization_id == organization_id)
            .group_by(Lead.status)
        ).all()
    )
    return [{"stage": status.capitalize(), "count": counts.get(status, 0)} for status in FUNNEL_STATUSES]


def revenue_trend(
    session: Session, organization_id: str, months: int = 6, now: Optional[datetime] = None
) -> list[dict[str, Any]]:
    today = (now or utcnow()).date()
    trend = []
    for back in range(months - 1, -1, -1):
        start, end = month_start(today, back), month_start(today, back - 1)
        trend.append(
            {
                "name": start.strftime("%b"),
                "value": _sum(session, Payment.amount, *_completed_payments(organization_id, start, end)),
            }
        )
    return trend


def lead_source_distribution(session: Session, organization_id: str) -> list[dict[str, Any]]:
    rows = session.exec(
        select(Lead.source, func.count()).where(Lead.organization_id == organization_id).group_by(Lead.source)
    ).all()
    data = [{"name": source_label(source), "value": count} for source, count in rows]
    return sorted(data, key=lambda d: d["value"], reverse=True)


def recent_leads(session: Session, organization_id: str, limit: int = 5) -> list[dict[str, Any]]:
    leads = session.exec(
        select(Lead)
        .where(Lead.organization_id == organization_id)
        .order_by(col(Lead.created_at).desc())
        .limit(limit)
    ).all()
    return [
        {
            "id": lead.id,
            "title": lead.name,
            "subtitle": lead.email,
            "date": lead.created_at.isoformat(),
            "status": lead.status or LeadStatus.NEW.value,
            "href": f"/admin/leads/{lead.id}",
        }
        for lead in leads
    ]


def due_date_badge(days_until: int) -> str:
    if days_until <= 7:
        return "This week"
    if days_until <= 14:
        return "2 weeks"
    return f"{math.ceil(days_until / 7)} weeks"


def upcoming_births(
    session: Session, organization_id: str, limit: int = 5, now: Optional[datetime] = None
) -> list[dict[str, Any]]:
    """Clients due within the next 60 days, soonest first."""
    today = (now or utcnow()).date()
    clients = session.exec(
        select(Lead)
        .where(
            Lead.organization_id == organization_id,
            Lead.status == LeadStatus.CLIENT.value,
            col(Lead.expected_due_date) >= today,
            col(Lead.expected_due_date) <= today + timedelta(days=60),
        )
        .order_by(col(Lead.expected_due_date))
        .limit(limit)
    ).all()
    return [
        {
            "id": client.id,
            "title": client.name,
            "subtitle": f"{client.expected_due_date:%b} {client.expected_due_date.day}",
            "date": client.expected_due_date.isoformat(),
            "badge": due_date_badge((client.expected_due_date - today).days),
            "href": f"/admin/leads/{client.id}",
        }
        for client in clients
    ]


def overdue_invoices(session: Session, organization_id: str, limit: int = 5) -> list[dict[str, Any]]:
    rows = session.exec(
        select(Invoice, Lead.name)
        .join(Lead, col(Lead.id) == Invoice.client_id, isouter=True)
        .where(Invoice.organization_id == organization_id, Invoice.status == InvoiceStatus.OVERDUE.value)
        .order_by(col(Invoice.due_date))
        .limit(limit)
    ).all()
    return [
        {
            "id": invoice.id,
            "title": f"#{invoice.invoice_number}",
            "subtitle": f"{client_name or 'Unknown'} - ${invoice.balance_due or 0:,.2f}",
            "date": invoice.due_date.isoformat() if invoice.due_date else None,
            "status": "Overdue",
            "href": f"/admin/invoices/{invoice.id}",
        }
        for invoice, client_name in rows
    ]
