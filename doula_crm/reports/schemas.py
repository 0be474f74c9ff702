"""Pydantic schemas for reports and analytics."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from doula_crm.list_views.models import ObjectType, ViewVisibility
from doula_crm.list_views.schemas import FilterCondition, SortConfig

from .models import AggregateType, ReportType


class AggregationConfig(BaseModel):
    model_config = {"use_enum_values": True}

    field: Optional[str] = None
    type: AggregateType = AggregateType.COUNT.value
    label: Optional[str] = None


class ReportDefinition(BaseModel):
    """The runnable part of a report; also used to preview unsaved reports."""

    model_config = {"use_enum_values": True}

    report_type: ReportType = ReportType.TABULAR.value
    object_type: ObjectType
    columns: list[str] = Field(default_factory=list)
    filters: list[FilterCondition] = Field(default_factory=list)
    groupings: list[str] = Field(default_factory=list)
    aggregations: list[AggregationConfig] = Field(default_factory=list)
    chart_config: Optional[dict[str, Any]] = None


class ReportCreate(ReportDefinition):
    name: str = Field(min_length=1)
    description: Optional[str] = None
    visibility: ViewVisibility = ViewVisibility.PRIVATE.value


class ReportUpdate(BaseModel):
    model_config = {"use_enum_values": True}

    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    report_type: Optional[ReportType] = None
    columns: Optional[list[str]] = None
    filters: Optional[list[FilterCondition]] = None
    groupings: Optional[list[str]] = None
    aggregations: Optional[list[AggregationConfig]] = None
    chart_config: Optional[dict[str, Any]] = None
    visibility: Optional[ViewVisibility] = None


class ReportRead(BaseModel):
    model_config = {"from_attributes": True}

    id: str
    name: str
    description: Optional[str] = None
    report_type: str
    object_type: str
    columns: list[str]
    filters: list[dict[str, Any]]
    groupings: list[str]
    aggregations: list[dict[str, Any]]
    chart_config: Optional[dict[str, Any]] = None
    visibility: str
    created_by: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class ReportRunOptions(BaseModel):
    sort: Optional[SortConfig] = None
    limit: int = Field(default=50, ge=1, le=200)
    offset: int = Field(default=0, ge=0)


class ReportResult(BaseModel):
    """Output of a report run. Only the keys of the report's type are set."""

    report_type: str
    object_type: str
    description: str
    rows: list[dict[str, Any]] = Field(default_factory=list)
    total: Optional[int] = None
    summary: Optional[dict[str, Any]] = None
    matrix: Optional[dict[str, Any]] = None
    chart_config: Optional[dict[str, Any]] = None


class ReportOption(BaseModel):
    """A report a dashboard widget can be bound to."""

    id: str
    name: str
    report_type: str
    object_type: str


class ChartPoint(BaseModel):
    name: str
    value: float


class FunnelStage(BaseModel):
    stage: str
    count: int


class ActivityItem(BaseModel):
    id: str
    title: str
    subtitle: str
    date: Optional[str] = None
    status: Optional[str] = None
    badge: Optional[str] = None
    href: str
