"""Pydantic schemas for dashboards and widgets."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field, model_validator

from doula_crm.list_views.models import ViewVisibility

from .models import GRID_COLUMNS, MAX_WIDGET_HEIGHT, DataSource, WidgetType


class WidgetCreate(BaseModel):
    """A new widget. Title, config and size default from the palette; grid_y defaults to below the others."""

    model_config = {"use_enum_values": True}

    widget_type: WidgetType = WidgetType.METRIC.value
    title: Optional[str] = None
    config: Optional[dict[str, Any]] = None
    grid_x: int = Field(default=0, ge=0, lt=GRID_COLUMNS)
    grid_y: Optional[int] = Field(default=None, ge=0)
    grid_width: Optional[int] = Field(default=None, ge=1, le=GRID_COLUMNS)
    grid_height: Optional[int] = Field(default=None, ge=1, le=MAX_WIDGET_HEIGHT)
    data_source: DataSource = DataSource.STATIC.value
    report_id: Optional[str] = None
    query_config: Optional[dict[str, Any]] = None

    @model_validator(mode="after")
    def check_source(self) -> "WidgetCreate":
        if self.data_source == DataSource.REPORT.value and not self.report_id:
            raise ValueError("Report widgets need a report_id")
        if self.data_source == DataSource.QUERY.value and not (self.query_config or {}).get("object_type"):
            raise ValueError("Query widgets need query_config.object_type")
        if self.grid_width and self.grid_x + self.grid_width > GRID_COLUMNS:
            raise ValueError(f"Widget extends past column {GRID_COLUMNS}")
        return self


class WidgetUpdate(BaseModel):
    model_config = {"use_enum_values": True}

    widget_type: Optional[WidgetType] = None
    title: Optional[str] = None
    config: Optional[dict[str, Any]] = None
    grid_x: Optional[int] = Field(default=None, ge=0, lt=GRID_COLUMNS)
    grid_y: Optional[int] = Field(default=None, ge=0)
    grid_width: Optional[int] = Field(default=None, ge=1, le=GRID_COLUMNS)
    grid_height: Optional[int] = Field(default=None, ge=1, le=MAX_WIDGET_HEIGHT)
    data_source: Optional[DataSource] = None
    report_id: Optional[str] = None
    query_config: Optional[dict[str, Any]] = None


class WidgetPosition(BaseModel):
    id: str
    grid_x: int = Field(ge=0, lt=GRID_COLUMNS)
    grid_y: int = Field(ge=0)
    grid_width: int = Field(ge=1, le=GRID_COLUMNS)
    grid_height: int = Field(ge=1, le=MAX_WIDGET_HEIGHT)

    @model_validator(mode="after")
    def check_fits(self) -> "WidgetPosition":
        if self.grid_x + self.grid_width > GRID_COLUMNS:
            raise ValueError(f"Widget extends past column {GRID_COLUMNS}")
        return self


class WidgetRead(BaseModel):
    model_config = {"from_attributes": True}

    id: str
    dashboard_id: str
    widget_type: str
    title: str
    config: dict[str, Any]
    grid_x: int
    grid_y: int
    grid_width: int
    grid_height: int
    data_source: str
    report_id: Optional[str] = None
    query_config: Optional[dict[str, Any]] = None
    created_at: datetime
    updated_at: datetime


class DashboardCreate(BaseModel):
    model_config = {"use_enum_values": True}

    name: str = Field(min_length=1)
    description: Optional[str] = None
    visibility: ViewVisibility = ViewVisibility.PRIVATE.value
    auto_refresh_seconds: Optional[int] = Field(default=None, ge=30)


class DashboardUpdate(BaseModel):
    model_config = {"use_enum_values": True}

    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    visibility: Optional[ViewVisibility] = None
    auto_refresh_seconds: Optional[int] = Field(default=None, ge=30)


class DashboardSave(DashboardCreate):
    """A dashboard together with its full set of widgets."""

    widgets: list[WidgetCreate] = Field(default_factory=list)


class DashboardRead(BaseModel):
    model_config = {"from_attributes": True}

    id: str
    name: str
    description: Optional[str] = None
    visibility: str
    is_default: bool
    auto_refresh_seconds: Optional[int] = None
    created_by: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class DashboardSummary(DashboardRead):
    widget_count: int = 0


class DashboardDetail(DashboardRead):
    widgets: list[WidgetRead] = Field(default_factory=list)


class PaletteEntry(BaseModel):
    widget_type: str
    title: str
    config: dict[str, Any]
    grid_width: int
    grid_height: int


class WidgetData(BaseModel):
    widget_id: str
    data_source: str
    data: Any = None
