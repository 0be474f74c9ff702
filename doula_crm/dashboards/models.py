"""SQLModel tables for dashboards and their widgets."""

from enum import Enum
from typing import Any, Optional

from sqlalchemy import JSON
from sqlmodel import Field

from doula_crm.core.models import TenantModel

GRID_COLUMNS = 12
MAX_WIDGET_HEIGHT = 8


class WidgetType(str, Enum):
    METRIC = "metric"
    CHART = "chart"
    TABLE = "table"
    REPORT = "report"
    LIST = "list"
    FUNNEL = "funnel"
    GAUGE = "gauge"
    CALENDAR = "calendar"


class DataSource(str, Enum):
    REPORT = "report"
    QUERY = "query"
    STATIC = "static"


class Dashboard(TenantModel, table=True):
    __tablename__ = "dashboards"

    name: str
    description: Optional[str] = None
    visibility: str = "private"
    is_default: bool = False
    auto_refresh_seconds: Optional[int] = None
    created_by: Optional[str] = Field(default=None, foreign_key="users.id", index=True)


class DashboardWidget(TenantModel, table=True):
    __tablename__ = "dashboard_widgets"

    dashboard_id: str = Field(foreign_key="dashboards.id", index=True, ondelete="CASCADE")
    widget_type: str = WidgetType.METRIC.value
    title: str
    config: dict[str, Any] = Field(default_factory=dict, sa_type=JSON)
    grid_x: int = 0
    grid_y: int = 0
    grid_width: int = 4
    grid_height: int = 2
    data_source: str = DataSource.STATIC.value
    report_id: Optional[str] = Field(default=None, foreign_key="reports.id", ondelete="SET NULL")
    query_config: Optional[dict[str, Any]] = Field(default=None, sa_type=JSON)
