"""Pydantic schemas for list views and ad-hoc list queries."""

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field

from .models import ObjectType, ViewVisibility


class FilterCondition(BaseModel):
    field: str = Field(min_length=1)
    operator: str = "equals"
    value: Any = None
    logic: Literal["AND", "OR"] = "AND"


class SortConfig(BaseModel):
    field: str = Field(min_length=1)
    direction: Literal["asc", "desc"] = "desc"


class ColumnConfig(BaseModel):
    field: str = Field(min_length=1)
    label: str
    visible: bool = True
    sortable: bool = True
    filterable: bool = True
    width: Optional[int] = None


class ListViewCreate(BaseModel):
    model_config = {"use_enum_values": True}

    object_type: ObjectType
    name: str = Field(min_length=1)
    description: Optional[str] = None
    filters: list[FilterCondition] = Field(default_factory=list)
    columns: list[ColumnConfig] = Field(default_factory=list)
    sort_config: Optional[SortConfig] = None
    visibility: ViewVisibility = ViewVisibility.PRIVATE.value
    is_default: bool = False
    is_pinned: bool = False


class ListViewUpdate(BaseModel):
    model_config = {"use_enum_values": True}

    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    filters: Optional[list[FilterCondition]] = None
    columns: Optional[list[ColumnConfig]] = None
    sort_config: Optional[SortConfig] = None
    visibility: Optional[ViewVisibility] = None
    is_pinned: Optional[bool] = None


class ListViewRead(BaseModel):
    id: str
    object_type: str
    name: str
    description: Optional[str]
    filters: list[dict[str, Any]]
    columns: list[dict[str, Any]]
    sort_config: Optional[dict[str, Any]]
    visibility: str
    is_default: bool
    is_pinned: bool
    created_by: Optional[str]
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ListQuery(BaseModel):
    model_config = {"use_enum_values": True}

    object_type: ObjectType
    filters: list[FilterCondition] = Field(default_factory=list)
    sort_config: Optional[SortConfig] = None
    search: Optional[str] = None
    limit: int = Field(default=50, ge=1, le=200)
    offset: int = Field(default=0, ge=0)


class ListResult(BaseModel):
    data: list[dict[str, Any]]
    count: int
    limit: int
    offset: int


class PinUpdate(BaseModel):
    is_pinned: bool


class QuickFilterOption(BaseModel):
    value: str
    label: str


class BulkStatusUpdate(BaseModel):
    ids: list[str] = Field(min_length=1)
    status: str = Field(min_length=1)


class BulkDelete(BaseModel):
    ids: list[str] = Field(min_length=1)


class InlineEdit(BaseModel):
    field: str = Field(min_length=1)
    value: Any = None
