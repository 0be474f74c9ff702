"""API routes for list views."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlmodel import Session

from doula_crm.core.context import RequestContext, get_request_context, require_admin
from doula_crm.core.database import get_session
from doula_crm.records.schemas import BulkResult

from .models import ObjectType
from .schemas import (
    BulkDelete,
    BulkStatusUpdate,
    ColumnConfig,
    InlineEdit,
    ListQuery,
    ListResult,
    ListViewCreate,
    ListViewRead,
    ListViewUpdate,
    PinUpdate,
    QuickFilterOption,
)
from .service import ListViewService, default_columns, quick_filters

router = APIRouter(prefix="/list-views", tags=["list-views"])


def get_service(
    session: Session = Depends(get_session),
    ctx: RequestContext = Depends(get_request_context),
) -> ListViewService:
    return ListViewService(session, ctx)


def _not_found(view_id: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"List view '{view_id}' not found")


@router.get("", response_model=list[ListViewRead])
def list_views(object_type: ObjectType, service: ListViewService = Depends(get_service)) -> list[ListViewRead]:
    return [ListViewRead.model_validate(v) for v in service.list_views(object_type.value)]


@router.post("", response_model=ListViewRead, status_code=status.HTTP_201_CREATED)
def create_view(data: ListViewCreate, service: ListViewService = Depends(get_service)) -> ListViewRead:
    return ListViewRead.model_validate(service.create_view(data))


@router.post("/query", response_model=ListResult)
def run_query(data: ListQuery, service: ListViewService = Depends(get_service)) -> ListResult:
    result = service.execute(
        data.object_type,
        [f.model_dump() for f in data.filters],
        data.sort_config.model_dump() if data.sort_config else None,
        data.limit,
        data.offset,
        data.search,
    )
    return ListResult(**result)


@router.get("/columns/{object_type}", response_model=list[ColumnConfig])
def get_default_columns(object_type: ObjectType) -> list[ColumnConfig]:
    return [ColumnConfig(**c) for c in default_columns(object_type.value)]


@router.get("/quick-filters/{object_type}", response_model=dict[str, list[QuickFilterOption]])
def get_quick_filters(object_type: ObjectType) -> dict[str, list[QuickFilterOption]]:
    return {
        field: [QuickFilterOption(**o) for o in options] for field, options in quick_filters(object_type.value).items()
    }


@router.post("/bulk/{object_type}/status", response_model=BulkResult)
def bulk_update_status(
    object_type: ObjectType, data: BulkStatusUpdate, service: ListViewService = Depends(get_service)
) -> BulkResult:
    return BulkResult(**service.bulk_update_status(object_type.value, data.ids, data.status))


@router.post("/bulk/{object_type}/delete", response_model=BulkResult, dependencies=[Depends(require_admin)])
def bulk_delete(
    object_type: ObjectType,
    data: BulkDelete,
    service: ListViewService = Depends(get_service),
) -> BulkResult:
    return BulkResult(**service.bulk_delete(object_type.value, data.ids))


@router.patch("/records/{object_type}/{record_id}")
def inline_update(
    object_type: ObjectType, record_id: str, data: InlineEdit, service: ListViewService = Depends(get_service)
) -> dict:
    record = service.inline_update(object_type.value, record_id, data.field, data.value)
    if record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Record '{record_id}' not found")
    return record


@router.get("/{view_id}", response_model=ListViewRead)
def get_view(view_id: str, service: ListViewService = Depends(get_service)) -> ListViewRead:
    view = service.get_view(view_id)
    if not view:
        raise _not_found(view_id)
    return ListViewRead.model_validate(view)


@router.patch("/{view_id}", response_model=ListViewRead)
def update_view(view_id: str, data: ListViewUpdate, service: ListViewService = Depends(get_service)) -> ListViewRead:
    view = service.update_view(view_id, data)
    if not view:
        raise _not_found(view_id)
    return ListViewRead.model_validate(view)


@router.delete("/{view_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_view(view_id: str, service: ListViewService = Depends(get_service)) -> None:
    if not service.delete_view(view_id):
        raise _not_found(view_id)


@router.put("/{view_id}/pin", response_model=ListViewRead)
def pin_view(view_id: str, data: PinUpdate, service: ListViewService = Depends(get_service)) -> ListViewRead:
    view = service.pin_view(view_id, data.is_pinned)
    if not view:
        raise _not_found(view_id)
    return ListViewRead.model_validate(view)


@router.post("/{view_id}/default", response_model=ListViewRead)
def set_default_view(view_id: str, service: ListViewService = Depends(get_service)) -> ListViewRead:
    view = service.set_default(view_id)
    if not view:
        raise _not_found(view_id)
    return ListViewRead.model_validate(view)


@router.get("/{view_id}/execute", response_model=ListResult)
def execute_view(
    view_id: str,
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    search: Optional[str] = None,
    service: ListViewService = Depends(get_service),
) -> ListResult:
    result = service.execute_view(view_id, limit, offset, search)
    if result is None:
        raise _not_found(view_id)
    return ListResult(**result)
