"""API routes for generic record access by object api name."""

from typing import Any, Literal, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status
from sqlmodel import Session

from doula_crm.core.context import RequestContext, get_request_context
from doula_crm.core.database import get_session
from doula_crm.list_views.schemas import SortConfig
from doula_crm.sharing.schemas import RecordSecurity

from .schemas import BulkIds, BulkResult, BulkUpdate, InlineUpdate, RecordPage, RecordQuery
from .service import RecordService

router = APIRouter(prefix="/records", tags=["records"])


def get_service(
    session: Session = Depends(get_session),
    ctx: RequestContext = Depends(get_request_context),
) -> RecordService:
    return RecordService(session, ctx)


def _not_found(api_name: str, record_id: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{api_name} record '{record_id}' not found")


@router.get("/{api_name}", response_model=RecordPage)
def list_records(
    api_name: str,
    search: Optional[str] = None,
    sort_field: Optional[str] = None,
    sort_direction: Literal["asc", "desc"] = "desc",
    page: int = Query(default=1, ge=1),
    page_size: Optional[int] = Query(default=None, ge=1),
    service: RecordService = Depends(get_service),
) -> RecordPage:
    params = RecordQuery(
        search=search,
        sort=SortConfig(field=sort_field, direction=sort_direction) if sort_field else None,
        page=page,
        page_size=page_size,
    )
    return RecordPage(**service.query(api_name, params))


@router.post("/{api_name}/query", response_model=RecordPage)
def query_records(api_name: str, params: RecordQuery, service: RecordService = Depends(get_service)) -> RecordPage:
    return RecordPage(**service.query(api_name, params))


@router.post("/{api_name}", status_code=status.HTTP_201_CREATED)
def create_record(
    api_name: str, values: dict[str, Any] = Body(...), service: RecordService = Depends(get_service)
) -> dict[str, Any]:
    return service.create(api_name, values)


@router.post("/{api_name}/bulk-delete", response_model=BulkResult)
def bulk_delete(api_name: str, data: BulkIds, service: RecordService = Depends(get_service)) -> BulkResult:
    return BulkResult(**service.bulk_delete(api_name, data.ids))


@router.post("/{api_name}/bulk-update", response_model=BulkResult)
def bulk_update(api_name: str, data: BulkUpdate, service: RecordService = Depends(get_service)) -> BulkResult:
    return BulkResult(**service.bulk_update(api_name, data.ids, data.values))


@router.get("/{api_name}/related/{parent_field}/{parent_id}", response_model=RecordPage)
def related_records(
    api_name: str,
    parent_field: str,
    parent_id: str,
    page: int = Query(default=1, ge=1),
    page_size: Optional[int] = Query(default=None, ge=1),
    service: RecordService = Depends(get_service),
) -> RecordPage:
    params = RecordQuery(page=page, page_size=page_size)
    return RecordPage(**service.related(api_name, parent_field, parent_id, params))


@router.get("/{api_name}/{record_id}")
def get_record(api_name: str, record_id: str, service: RecordService = Depends(get_service)) -> dict[str, Any]:
    record = service.get(api_name, record_id)
    if record is None:
        raise _not_found(api_name, record_id)
    return record


@router.patch("/{api_name}/{record_id}")
def update_record(
    api_name: str, record_id: str, values: dict[str, Any] = Body(...), service: RecordService = Depends(get_service)
) -> dict[str, Any]:
    record = service.update(api_name, record_id, values)
    if record is None:
        raise _not_found(api_name, record_id)
    return record


@router.patch("/{api_name}/{record_id}/inline")
def inline_update(
    api_name: str, record_id: str, data: InlineUpdate, service: RecordService = Depends(get_service)
) -> dict[str, Any]:
    record = service.inline_update(api_name, record_id, data.field, data.value)
    if record is None:
        raise _not_found(api_name, record_id)
    return record


@router.delete("/{api_name}/{record_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_record(api_name: str, record_id: str, service: RecordService = Depends(get_service)) -> None:
    if not service.delete(api_name, record_id):
        raise _not_found(api_name, record_id)


@router.get("/{api_name}/{record_id}/security", response_model=RecordSecurity)
def record_security(api_name: str, record_id: str, service: RecordService = Depends(get_service)) -> RecordSecurity:
    context = service.security_context(api_name, record_id)
    if context is None:
        raise _not_found(api_name, record_id)
    return RecordSecurity(**context)
