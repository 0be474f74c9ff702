"""API routes for dashboards and widgets."""

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from sqlmodel import Session

from doula_crm.core.context import RequestContext, get_request_context
from doula_crm.core.database import get_session

from .schemas import (
    DashboardCreate,
    DashboardDetail,
    DashboardRead,
    DashboardSave,
    DashboardSummary,
    DashboardUpdate,
    PaletteEntry,
    WidgetCreate,
    WidgetData,
    WidgetPosition,
    WidgetRead,
    WidgetUpdate,
)
from .service import DashboardService
from .widgets import palette

router = APIRouter(prefix="/dashboards", tags=["dashboards"])


def get_service(
    session: Session = Depends(get_session),
    ctx: RequestContext = Depends(get_request_context),
) -> DashboardService:
    return DashboardService(session, ctx)


def _not_found(kind: str, item_id: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{kind} '{item_id}' not found")


def _detail(data: dict[str, Any]) -> DashboardDetail:
    widgets = [WidgetRead.model_validate(w) for w in data.pop("widgets")]
    return DashboardDetail(**data, widgets=widgets)


@router.get("", response_model=list[DashboardSummary])
def list_dashboards(service: DashboardService = Depends(get_service)) -> list[DashboardSummary]:
    return [DashboardSummary(**d) for d in service.list_dashboards()]


@router.post("", response_model=DashboardRead, status_code=status.HTTP_201_CREATED)
def create_dashboard(data: DashboardCreate, service: DashboardService = Depends(get_service)) -> DashboardRead:
    return DashboardRead.model_validate(service.create_dashboard(data))


@router.post("/save", response_model=DashboardDetail, status_code=status.HTTP_201_CREATED)
def save_dashboard(data: DashboardSave, service: DashboardService = Depends(get_service)) -> DashboardDetail:
    return _detail(service.save_with_widgets(data))


@router.get("/palette", response_model=list[PaletteEntry])
def widget_palette() -> list[PaletteEntry]:
    return [PaletteEntry(**entry) for entry in palette()]


@router.get("/widgets/{widget_id}/data", response_model=WidgetData)
def widget_data(widget_id: str, service: DashboardService = Depends(get_service)) -> WidgetData:
    data = service.widget_data(widget_id)
    if data is None:
        raise _not_found("Widget", widget_id)
    return WidgetData(**data)


@router.patch("/widgets/{widget_id}", response_model=WidgetRead)
def update_widget(widget_id: str, data: WidgetUpdate, service: DashboardService = Depends(get_service)) -> WidgetRead:
    widget = service.update_widget(widget_id, data)
    if not widget:
        raise _not_found("Widget", widget_id)
    return WidgetRead.model_validate(widget)


@router.delete("/widgets/{widget_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_widget(widget_id: str, service: DashboardService = Depends(get_service)) -> None:
    if not service.delete_widget(widget_id):
        raise _not_found("Widget", widget_id)


@router.get("/{dashboard_id}", response_model=DashboardDetail)
def get_dashboard(dashboard_id: str, service: DashboardService = Depends(get_service)) -> DashboardDetail:
    data = service.get_with_widgets(dashboard_id)
    if data is None:
        raise _not_found("Dashboard", dashboard_id)
    return _detail(data)


@router.patch("/{dashboard_id}", response_model=DashboardRead)
def update_dashboard(
    dashboard_id: str, data: DashboardUpdate, service: DashboardService = Depends(get_service)
) -> DashboardRead:
    dashboard = service.update_dashboard(dashboard_id, data)
    if not dashboard:
        raise _not_found("Dashboard", dashboard_id)
    return DashboardRead.model_validate(dashboard)


@router.put("/{dashboard_id}", response_model=DashboardDetail)
def replace_dashboard(
    dashboard_id: str, data: DashboardSave, service: DashboardService = Depends(get_service)
) -> DashboardDetail:
    result = service.replace_with_widgets(dashboard_id, data)
    if result is None:
        raise _not_found("Dashboard", dashboard_id)
    return _detail(result)


@router.delete("/{dashboard_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_dashboard(dashboard_id: str, service: DashboardService = Depends(get_service)) -> None:
    if not service.delete_dashboard(dashboard_id):
        raise _not_found("Dashboard", dashboard_id)


@router.post("/{dashboard_id}/default", response_model=DashboardRead)
def set_default_dashboard(dashboard_id: str, service: DashboardService = Depends(get_service)) -> DashboardRead:
    dashboard = service.set_default(dashboard_id)
    if not dashboard:
        raise _not_found("Dashboard", dashboard_id)
    return DashboardRead.model_validate(dashboard)


@router.post("/{dashboard_id}/widgets", response_model=WidgetRead, status_code=status.HTTP_201_CREATED)
def add_widget(dashboard_id: str, data: WidgetCreate, service: DashboardService = Depends(get_service)) -> WidgetRead:
    return WidgetRead.model_validate(service.add_widget(dashboard_id, data))


@router.put("/{dashboard_id}/widgets/positions", response_model=list[WidgetRead])
def update_positions(
    dashboard_id: str, positions: list[WidgetPosition], service: DashboardService = Depends(get_service)
) -> list[WidgetRead]:
    return [WidgetRead.model_validate(w) for w in service.update_positions(dashboard_id, positions)]
