"""SQLModel table for saved reports."""

from enum import Enum
from typing import Any, Optional

from sqlalchemy import JSON
from sqlmodel import Field

from doula_crm.core.models import TenantModel


class ReportType(str, Enum):
    TABULAR = "tabular"
    SUMMARY = "summary"
    MATRIX = "matrix"
    CHART = "chart"


class AggregateType(str, Enum):
    COUNT = "count"
    SUM = "sum"
    AVG = "avg"
    MIN = "min"
    MAX = "max"
    COUNT_DISTINCT = "count_distinct"


class Report(TenantModel, table=True):
    __tablename__ = "reports"

    name: str
    description: Optional[str] = None
    report_type: str = ReportType.TABULAR.value
    object_type: str = Field(index=True)
    columns: list[str] = Field(default_factory=list, sa_type=JSON)
    filters: list[dict[str, Any]] = Field(default_factory=list, sa_type=JSON)
    groupings: list[str] = Field(default_factory=list, sa_type=JSON)
    aggregations: list[dict[str, Any]] = Field(default_factory=list, sa_type=JSON)
    chart_config: Optional[dict[str, Any]] = Field(default=None, sa_type=JSON)
    visibility: str = "private"
    created_by: Optional[str] = Field(default=None, foreign_key="users.id", index=True)
