"""API routes for reports and practice analytics."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlmodel import Session

from doula_crm.core.context import RequestContext, get_request_context
from doula_crm.core.database import get_session
from doula_crm.list_views.models import ObjectType

from . import analytics
from .schemas import (
    ActivityItem,
    ChartPoint,
    FunnelStage,
    ReportCreate,
    ReportDefinition,
    ReportOption,
    ReportRead,
    ReportResult,
    ReportRunOptions,
    ReportUpdate,
)
from .service import ReportService

router = APIRouter(prefix="/reports", tags=["reports"])


def get_service(
    session: Session = Depends(get_session),
    ctx: RequestContext = Depends(get_request_context),
) -> ReportService:
    return ReportService(session, ctx)


def _not_found(report_id: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Report '{report_id}' not found")


# =============================================================================
# Analytics
# =============================================================================


@router.get("/analytics/kpis")
def dashboard_kpis(
    session: Session = Depends(get_session), ctx: RequestContext = Depends(get_request_context)
) -> dict:
    return analytics.dashboard_kpis(session, ctx.organization_id)


@router.get("/analytics/lead-funnel", response_model=list[FunnelStage])
def lead_funnel(
    session: Session = Depends(get_session), ctx: RequestContext = Depends(get_request_context)
) -> list[FunnelStage]:
    return [FunnelStage(**s) for s in analytics.lead_funnel(session, ctx.organization_id)]


@router.get("/analytics/revenue-trend", response_model=list[ChartPoint])
def revenue_trend(
    months: int = Query(default=6, ge=1, le=24),
    session: Session = Depends(get_session),
    ctx: RequestContext = Depends(get_request_context),
) -> list[ChartPoint]:
    return [ChartPoint(**p) for p in analytics.revenue_trend(session, ctx.organization_id, months)]


@router.get("/analytics/lead-sources", response_model=list[ChartPoint])
def lead_sources(
    session: Session = Depends(get_session), ctx: RequestContext = Depends(get_request_context)
) -> list[ChartPoint]:
    return [ChartPoint(**p) for p in analytics.lead_source_distribution(session, ctx.organization_id)]


@router.get("/analytics/recent-leads", response_model=list[ActivityItem])
def recent_leads(
    limit: int = Query(default=5, ge=1, le=50),
    session: Session = Depends(get_session),
    ctx: RequestContext = Depends(get_request_context),
) -> list[ActivityItem]:
    return [ActivityItem(**i) for i in analytics.recent_leads(session, ctx.organization_id, limit)]


@router.get("/analytics/upcoming-births", response_model=list[ActivityItem])
def upcoming_births(
    limit: int = Query(default=5, ge=1, le=50),
    session: Session = Depends(get_session),
    ctx: RequestContext = Depends(get_request_context),
) -> list[ActivityItem]:
    return [ActivityItem(**i) for i in analytics.upcoming_births(session, ctx.organization_id, limit)]


@router.get("/analytics/overdue-invoices", response_model=list[ActivityItem])
def overdue_invoices(
    limit: int = Query(default=5, ge=1, le=50),
    session: Session = Depends(get_session),
    ctx: RequestContext = Depends(get_request_context),
) -> list[ActivityItem]:
    return [ActivityItem(**i) for i in analytics.overdue_invoices(session, ctx.organization_id, limit)]


# =============================================================================
# Reports
# =============================================================================


@router.get("", response_model=list[ReportRead])
def list_reports(
    object_type: Optional[ObjectType] = None, service: ReportService = Depends(get_service)
) -> list[ReportRead]:
    reports = service.list_reports(object_type.value if object_type else None)
    return [ReportRead.model_validate(r) for r in reports]


@router.post("", response_model=ReportRead, status_code=status.HTTP_201_CREATED)
def create_report(data: ReportCreate, service: ReportService = Depends(get_service)) -> ReportRead:
    return ReportRead.model_validate(service.create_report(data))


@router.get("/available", response_model=list[ReportOption])
def available_reports(service: ReportService = Depends(get_service)) -> list[ReportOption]:
    return [ReportOption(**r) for r in service.available_reports()]


@router.post("/preview", response_model=ReportResult)
def preview_report(
    definition: ReportDefinition,
    limit: int = Query(default=50, ge=1, le=200),
    service: ReportService = Depends(get_service),
) -> ReportResult:
    return ReportResult(**service.run(definition, ReportRunOptions(limit=limit)))


@router.post("/describe")
def describe_definition(definition: ReportDefinition, service: ReportService = Depends(get_service)) -> dict:
    return {"description": service.describe(definition)}


@router.get("/{report_id}", response_model=ReportRead)
def get_report(report_id: str, service: ReportService = Depends(get_service)) -> ReportRead:
    report = service.get_report(report_id)
    if not report:
        raise _not_found(report_id)
    return ReportRead.model_validate(report)


@router.patch("/{report_id}", response_model=ReportRead)
def update_report(report_id: str, data: ReportUpdate, service: ReportService = Depends(get_service)) -> ReportRead:
    report = service.update_report(report_id, data)
    if not report:
        raise _not_found(report_id)
    return ReportRead.model_validate(report)


@router.delete("/{report_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_report(report_id: str, service: ReportService = Depends(get_service)) -> None:
    if not service.delete_report(report_id):
        raise _not_found(report_id)


@router.post("/{report_id}/run", response_model=ReportResult)
def run_report(
    report_id: str, options: Optional[ReportRunOptions] = None, service: ReportService = Depends(get_service)
) -> ReportResult:
    result = service.run_report(report_id, options)
    if result is None:
        raise _not_found(report_id)
    return ReportResult(**result)


@router.get("/{report_id}/describe")
def describe_report(report_id: str, service: ReportService = Depends(get_service)) -> dict:
    report = service.get_report(report_id)
    if not report:
        raise _not_found(report_id)
    return {"description": service.describe(report)}
