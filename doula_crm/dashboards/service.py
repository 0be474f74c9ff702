"""Dashboards, their widgets and widget data."""

from __future__ import annotations

import logging
from typing import Any, Optional

from sqlmodel import Session, col, func, or_, select

from doula_crm.core.context import RequestContext
from doula_crm.core.errors import AccessDeniedError, InvalidOperationError, NotFoundError
from doula_crm.core.models import apply_changes
from doula_crm.list_views.models import ViewVisibility
from doula_crm.reports.models import Report
from doula_crm.reports.service import ReportService

from .models import GRID_COLUMNS, Dashboard, DashboardWidget, DataSource
from .schemas import DashboardCreate, DashboardSave, DashboardUpdate, WidgetCreate, WidgetPosition, WidgetUpdate
from .widgets import fits_grid, next_row, widget_defaults

logger = logging.getLogger(__name__)


class DashboardService:
    def __init__(self, session: Session, ctx: RequestContext):
        self.session = session
        self.ctx = ctx

    # =========================================================================
    # Dashboards
    # =========================================================================

    def list_dashboards(self) -> list[dict[str, Any]]:
        """Own, shared and org-wide dashboards with their widget counts, most recently updated first."""
        counts = (
            select(DashboardWidget.dashboard_id, func.count().label("widget_count"))
            .where(DashboardWidget.organization_id == self.ctx.organization_id)
            .group_by(DashboardWidget.dashboard_id)
            .subquery()
        )
        rows = self.session.exec(
            select(Dashboard, func.coalesce(counts.c.widget_count, 0))
            .join(counts, counts.c.dashboard_id == Dashboard.id, isouter=True)
            .where(
                Dashboard.organization_id == self.ctx.organization_id,
                or_(Dashboard.created_by == self.ctx.user_id, Dashboard.visibility != ViewVisibility.PRIVATE.value),
            )
            .order_by(col(Dashboard.updated_at).desc())
        ).all()
        return [{**dashboard.model_dump(), "widget_count": count} for dashboard, count in rows]

    def get_dashboard(self, dashboard_id: str) -> Optional[Dashboard]:
        dashboard = self.session.get(Dashboard, dashboard_id)
        if not dashboard or dashboard.organization_id != self.ctx.organization_id:
            return None
        if dashboard.visibility == ViewVisibility.PRIVATE.value and dashboard.created_by != self.ctx.user_id:
            return None
        return dashboard

    def get_with_widgets(self, dashboard_id: str) -> Optional[dict[str, Any]]:
        dashboard = self.get_dashboard(dashboard_id)
        if not dashboard:
            return None
        return {**dashboard.model_dump(), "widgets": self.list_widgets(dashboard.id)}

    def create_dashboard(self, data: DashboardCreate) -> Dashboard:
        dashboard = Dashboard(
            organization_id=self.ctx.organization_id,
            created_by=self.ctx.user_id,
            **data.model_dump(),
        )
        self.session.add(dashboard)
        self.session.commit()
        self.session.refresh(dashboard)
        logger.info(
            "Dashboard created",
            extra={"organization_id": dashboard.organization_id, "record_id": dashboard.id},
        )
        return dashboard

    def update_dashboard(self, dashboard_id: str, data: DashboardUpdate) -> Optional[Dashboard]:
        dashboard = self._editable(dashboard_id)
        if not dashboard:
            return None
        apply_changes(dashboard, data.model_dump(exclude_unset=True))
        self.session.add(dashboard)
        self.session.commit()
        self.session.refresh(dashboard)
        return dashboard

    def delete_dashboard(self, dashboard_id: str) -> bool:
        dashboard = self._editable(dashboard_id)
        if not dashboard:
            return False
        for widget in self.list_widgets(dashboard.id):
            self.session.delete(widget)
        self.session.delete(dashboard)
        self.session.commit()
        return True

    def save_with_widgets(self, data: DashboardSave) -> dict[str, Any]:
        """Create a dashboard and all its widgets in one transaction."""
        dashboard = Dashboard(
            organization_id=self.ctx.organization_id,
            created_by=self.ctx.user_id,
            **data.model_dump(exclude={"widgets"}),
        )
        self.session.add(dashboard)
        self.session.flush()
        self._add_widgets(dashboard, data.widgets)
        self.session.commit()
        self.session.refresh(dashboard)
        return {**dashboard.model_dump(), "widgets": self.list_widgets(dashboard.id)}

    def replace_with_widgets(self, dashboard_id: str, data: DashboardSave) -> Optional[dict[str, Any]]:
        """Update a dashboard and replace its widgets with ``data.widgets``."""
        dashboard = self._editable(dashboard_id)
        if not dashboard:
            return None
        apply_changes(dashboard, data.model_dump(exclude={"widgets"}))
        self.session.add(dashboard)
        for widget in self.list_widgets(dashboard.id):
            self.session.delete(widget)
        self.session.flush()
        self._add_widgets(dashboard, data.widgets)
        self.session.commit()
        self.session.refresh(dashboard)
        return {**dashboard.model_dump(), "widgets": self.list_widgets(dashboard.id)}

    def set_default(self, dashboard_id: str) -> Optional[Dashboard]:
        """Make a dashboard the caller's default, clearing their previous one."""
        dashboard = self.get_dashboard(dashboard_id)
        if not dashboard:
            return None
        for other in self.session.exec(
            select(Dashboard).where(
                Dashboard.organization_id == self.ctx.organization_id,
                Dashboard.created_by == self.ctx.user_id,
                Dashboard.is_default == True,  # noqa: E712
            )
        ).all():
            other.is_default = False
            self.session.add(other)
        apply_changes(dashboard, {"is_default": True})
        self.session.add(dashboard)
        self.session.commit()
        self.session.refresh(dashboard)
        return dashboard

    def _editable(self, dashboard_id: str) -> Optional[Dashboard]:
        dashboard = self.get_dashboard(dashboard_id)
        if dashboard and dashboard.created_by != self.ctx.user_id and not self.ctx.is_admin:
            raise AccessDeniedError("Only the creator or an administrator can change this dashboard")
        return dashboard

    # =========================================================================
    # Widgets
    # =========================================================================

    def list_widgets(self, dashboard_id: str) -> list[DashboardWidget]:
        return list(
            self.session.exec(
                select(DashboardWidget)
                .where(DashboardWidget.dashboard_id == dashboard_id)
                .order_by(col(DashboardWidget.grid_y), col(DashboardWidget.grid_x))
            ).all()
        )

    def get_widget(self, widget_id: str) -> Optional[DashboardWidget]:
        widget = self.session.get(DashboardWidget, widget_id)
        if not widget or widget.organization_id != self.ctx.organization_id:
            return None
        if not self.get_dashboard(widget.dashboard_id):
            return None
        return widget

    def add_widget(self, dashboard_id: str, data: WidgetCreate) -> DashboardWidget:
        dashboard = self._editable(dashboard_id)
        if not dashboard:
            raise NotFoundError(f"Dashboard '{dashboard_id}' not found")
        widget = self._add_widgets(dashboard, [data])[0]
        self.session.commit()
        self.session.refresh(widget)
        return widget

    def update_widget(self, widget_id: str, data: WidgetUpdate) -> Optional[DashboardWidget]:
        widget = self.get_widget(widget_id)
        if not widget:
            return None
        self._editable(widget.dashboard_id)
        changes = data.model_dump(exclude_unset=True)
        if not fits_grid(changes.get("grid_x", widget.grid_x), changes.get("grid_width", widget.grid_width)):
            raise InvalidOperationError(f"Widget extends past column {GRID_COLUMNS}")
        if changes.get("report_id"):
            self._check_report(changes["report_id"])
        apply_changes(widget, changes)
        self.session.add(widget)
        self.session.commit()
        self.session.refresh(widget)
        return widget

    def delete_widget(self, widget_id: str) -> bool:
        widget = self.get_widget(widget_id)
        if not widget:
            return False
        self._editable(widget.dashboard_id)
        self.session.delete(widget)
        self.session.commit()
        return True

    def update_positions(self, dashboard_id: str, positions: list[WidgetPosition]) -> list[DashboardWidget]:
        dashboard = self._editable(dashboard_id)
        if not dashboard:
            raise NotFoundError(f"Dashboard '{dashboard_id}' not found")
        widgets = {w.id: w for w in self.list_widgets(dashboard.id)}
        for position in positions:
            widget = widgets.get(position.id)
            if widget is None:
                raise InvalidOperationError(f"Widget '{position.id}' is not on this dashboard")
            apply_changes(widget, position.model_dump(exclude={"id"}))
            self.session.add(widget)
        apply_changes(dashboard, {})
        self.session.add(dashboard)
        self.session.commit()
        return self.list_widgets(dashboard.id)

    def _add_widgets(self, dashboard: Dashboard, items: list[WidgetCreate]) -> list[DashboardWidget]:
        """Insert widgets, filling palette defaults and stacking unplaced ones below the rest. Flushes."""
        placed = self.list_widgets(dashboard.id)
        added = []
        for data in items:
            values = data.model_dump()
            defaults = widget_defaults(values["widget_type"])
            for key in ("title", "config", "grid_width", "grid_height"):
                if values[key] is None:
                    values[key] = defaults[key]
            if values["grid_y"] is None:
                values["grid_y"] = next_row(placed + added)
            if not fits_grid(values["grid_x"], values["grid_width"]):
                raise InvalidOperationError(f"Widget extends past column {GRID_COLUMNS}")
            if values["report_id"]:
                self._check_report(values["report_id"])
            widget = DashboardWidget(organization_id=dashboard.organization_id, dashboard_id=dashboard.id, **values)
            self.session.add(widget)
            added.append(widget)
        self.session.flush()
        return added

    def _check_report(self, report_id: str) -> None:
        report = self.session.get(Report, report_id)
        if not report or report.organization_id != self.ctx.organization_id:
            raise InvalidOperationError(f"Report '{report_id}' not found")

    # =========================================================================
    # Widget data
    # =========================================================================

    def widget_data(self, widget_id: str) -> Optional[dict[str, Any]]:
        """Resolve what a widget displays from its data source."""
        widget = self.get_widget(widget_id)
        if not widget:
            return None
        reports = ReportService(self.session, self.ctx)
        data: Any = None
        if widget.data_source == DataSource.REPORT.value:
            if not widget.report_id:
                raise InvalidOperationError("This widget's report has been deleted")
            data = reports.run_report(widget.report_id)
            if data is None:
                raise NotFoundError(f"Report '{widget.report_id}' not found")
        elif widget.data_source == DataSource.QUERY.value:
            query = dict(widget.query_config or {})
            object_type = query.pop("object_type", None)
            if not object_type:
                raise InvalidOperationError("Query widgets need query_config.object_type")
            data = reports.aggregate(object_type, query)
        else:
            data = (widget.config or {}).get("value")
        return {"widget_id": widget.id, "data_source": widget.data_source, "data": data}
