"""Pydantic schemas for the generic record API."""

from typing import Any, Optional

from pydantic import BaseModel, Field

from doula_crm.list_views.schemas import FilterCondition, SortConfig


class RecordQuery(BaseModel):
    filters: list[FilterCondition] = Field(default_factory=list)
    sort: Optional[SortConfig] = None
    search: Optional[str] = None
    search_fields: list[str] = Field(default_factory=list)
    page: int = Field(default=1, ge=1)
    page_size: Optional[int] = Field(default=None, ge=1)


class RecordPage(BaseModel):
    records: list[dict[str, Any]]
    total: int
    page: int
    page_size: int
    total_pages: int


class BulkIds(BaseModel):
    ids: list[str] = Field(min_length=1)


class BulkUpdate(BulkIds):
    values: dict[str, Any] = Field(min_length=1)


class InlineUpdate(BaseModel):
    field: str = Field(min_length=1)
    value: Any = None


class BulkResult(BaseModel):
    succeeded: list[str] = Field(default_factory=list)
    failed: dict[str, str] = Field(default_factory=dict)
