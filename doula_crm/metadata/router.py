"""API routes for object and field metadata.

Reads are open to every member of the organization; changes require an
administrator.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlmodel import Session

from doula_crm.core.context import RequestContext, get_request_context, require_admin
from doula_crm.core.database import get_session
from doula_crm.organizations.models import Role

from .schemas import (
    AccessibleField,
    CustomObjectCreate,
    CustomObjectResult,
    FieldCreate,
    FieldOrder,
    FieldPermissionBulk,
    FieldPermissionCopy,
    FieldPermissionRead,
    FieldPermissionSet,
    FieldRead,
    FieldUpdate,
    FieldWithPicklist,
    LayoutCreate,
    LayoutRead,
    LayoutUpdate,
    ObjectMetadata,
    ObjectRead,
    ObjectUpdate,
    PermissionMatrix,
    PicklistOrder,
    PicklistValueCreate,
    PicklistValueRead,
    PicklistValueUpdate,
    RecordTypeCreate,
    RecordTypeRead,
    RecordTypeUpdate,
    SecurityContext,
)
from .service import MetadataService

router = APIRouter(prefix="/metadata", tags=["metadata"])
admin = [Depends(require_admin)]


def get_service(
    session: Session = Depends(get_session),
    ctx: RequestContext = Depends(get_request_context),
) -> MetadataService:
    return MetadataService(session, ctx)


def _not_found(kind: str, key: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{kind} '{key}' not found")


# =============================================================================
# Objects
# =============================================================================


@router.get("/objects", response_model=list[ObjectRead])
def list_objects(
    include_inactive: bool = False, custom_only: bool = False, service: MetadataService = Depends(get_service)
) -> list[ObjectRead]:
    return [ObjectRead.model_validate(o) for o in service.list_objects(include_inactive, custom_only)]


@router.post("/objects", response_model=CustomObjectResult, status_code=status.HTTP_201_CREATED, dependencies=admin)
def create_custom_object(
    data: CustomObjectCreate,
    service: MetadataService = Depends(get_service),
) -> CustomObjectResult:
    result = service.create_custom_object(data)
    return CustomObjectResult(
        object=ObjectRead.model_validate(result["object"]),
        fields=[FieldRead.model_validate(f) for f in result["fields"]],
        page_layout=LayoutRead.model_validate(result["page_layout"]),
    )


@router.get("/objects/by-name/{api_name}", response_model=ObjectMetadata)
def get_object_metadata(api_name: str, service: MetadataService = Depends(get_service)) -> ObjectMetadata:
    metadata = service.object_metadata(api_name)
    if not metadata:
        raise _not_found("Object", api_name)
    return ObjectMetadata(
        object=ObjectRead.model_validate(metadata["object"]),
        fields=[
            FieldWithPicklist(
                **FieldRead.model_validate(item["field"]).model_dump(),
                picklist_values=[PicklistValueRead.model_validate(v) for v in item["picklist_values"]],
            )
            for item in metadata["fields"]
        ],
        page_layout=LayoutRead.model_validate(metadata["page_layout"]) if metadata["page_layout"] else None,
        record_types=[RecordTypeRead.model_validate(rt) for rt in metadata["record_types"]],
    )


@router.get("/objects/by-name/{api_name}/fields", response_model=list[FieldRead])
def fields_by_object_name(api_name: str, service: MetadataService = Depends(get_service)) -> list[FieldRead]:
    fields = service.fields_for_object(api_name)
    if fields is None:
        raise _not_found("Object", api_name)
    return [FieldRead.model_validate(f) for f in fields]


@router.get("/objects/by-name/{api_name}/accessible-fields", response_model=list[AccessibleField])
def accessible_fields(api_name: str, service: MetadataService = Depends(get_service)) -> list[AccessibleField]:
    fields = service.accessible_fields(api_name)
    if fields is None:
        raise _not_found("Object", api_name)
    return [
        AccessibleField(**FieldRead.model_validate(item["field"]).model_dump(), can_edit=item["can_edit"])
        for item in fields
    ]


@router.get("/objects/{object_id}", response_model=ObjectRead)
def get_object(object_id: str, service: MetadataService = Depends(get_service)) -> ObjectRead:
    obj = service.get_object(object_id)
    if not obj:
        raise _not_found("Object", object_id)
    return ObjectRead.model_validate(obj)


@router.patch("/objects/{object_id}", response_model=ObjectRead, dependencies=admin)
def update_object(object_id: str, data: ObjectUpdate, service: MetadataService = Depends(get_service)) -> ObjectRead:
    obj = service.update_object(object_id, data)
    if not obj:
        raise _not_found("Object", object_id)
    return ObjectRead.model_validate(obj)


@router.post("/objects/{object_id}/deactivate", response_model=ObjectRead, dependencies=admin)
def deactivate_object(object_id: str, service: MetadataService = Depends(get_service)) -> ObjectRead:
    obj = service.deactivate_object(object_id)
    if not obj:
        raise _not_found("Object", object_id)
    return ObjectRead.model_validate(obj)


# =============================================================================
# Fields
# =============================================================================


@router.get("/objects/{object_id}/fields", response_model=list[FieldRead])
def list_fields(
    object_id: str, include_inactive: bool = False, service: MetadataService = Depends(get_service)
) -> list[FieldRead]:
    return [FieldRead.model_validate(f) for f in service.list_fields(object_id, include_inactive)]


@router.post(
    "/objects/{object_id}/fields", response_model=FieldRead, status_code=status.HTTP_201_CREATED, dependencies=admin
)
def create_field(object_id: str, data: FieldCreate, service: MetadataService = Depends(get_service)) -> FieldRead:
    return FieldRead.model_validate(service.create_field(object_id, data))


@router.put("/objects/{object_id}/fields/order", response_model=list[FieldRead], dependencies=admin)
def reorder_fields(
    object_id: str,
    data: FieldOrder,
    service: MetadataService = Depends(get_service),
) -> list[FieldRead]:
    return [FieldRead.model_validate(f) for f in service.reorder_fields(object_id, data.field_ids)]


@router.get("/fields/{field_id}", response_model=FieldWithPicklist)
def get_field(field_id: str, service: MetadataService = Depends(get_service)) -> FieldWithPicklist:
    field = service.get_field(field_id)
    if not field:
        raise _not_found("Field", field_id)
    return FieldWithPicklist(
        **FieldRead.model_validate(field).model_dump(),
        picklist_values=[PicklistValueRead.model_validate(v) for v in service.list_picklist_values(field.id)],
    )


@router.patch("/fields/{field_id}", response_model=FieldRead, dependencies=admin)
def update_field(field_id: str, data: FieldUpdate, service: MetadataService = Depends(get_service)) -> FieldRead:
    field = service.update_field(field_id, data)
    if not field:
        raise _not_found("Field", field_id)
    return FieldRead.model_validate(field)


@router.post("/fields/{field_id}/deactivate", response_model=FieldRead, dependencies=admin)
def deactivate_field(field_id: str, service: MetadataService = Depends(get_service)) -> FieldRead:
    field = service.deactivate_field(field_id)
    if not field:
        raise _not_found("Field", field_id)
    return FieldRead.model_validate(field)


@router.delete("/fields/{field_id}", status_code=status.HTTP_204_NO_CONTENT, dependencies=admin)
def delete_field(field_id: str, service: MetadataService = Depends(get_service)) -> None:
    if not service.delete_field(field_id):
        raise _not_found("Field", field_id)


# =============================================================================
# Picklist values
# =============================================================================


@router.get("/fields/{field_id}/picklist-values", response_model=list[PicklistValueRead])
def list_picklist_values(field_id: str, service: MetadataService = Depends(get_service)) -> list[PicklistValueRead]:
    return [PicklistValueRead.model_validate(v) for v in service.list_picklist_values(field_id)]


@router.post(
    "/fields/{field_id}/picklist-values",
    response_model=PicklistValueRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=admin,
)
def create_picklist_value(
    field_id: str, data: PicklistValueCreate, service: MetadataService = Depends(get_service)
) -> PicklistValueRead:
    return PicklistValueRead.model_validate(service.create_picklist_value(field_id, data))


@router.put("/fields/{field_id}/picklist-values/order", response_model=list[PicklistValueRead], dependencies=admin)
def reorder_picklist_values(
    field_id: str, data: PicklistOrder, service: MetadataService = Depends(get_service)
) -> list[PicklistValueRead]:
    return [PicklistValueRead.model_validate(v) for v in service.reorder_picklist_values(field_id, data.value_ids)]


@router.patch("/picklist-values/{value_id}", response_model=PicklistValueRead, dependencies=admin)
def update_picklist_value(
    value_id: str, data: PicklistValueUpdate, service: MetadataService = Depends(get_service)
) -> PicklistValueRead:
    value = service.update_picklist_value(value_id, data)
    if not value:
        raise _not_found("Picklist value", value_id)
    return PicklistValueRead.model_validate(value)


@router.delete("/picklist-values/{value_id}", status_code=status.HTTP_204_NO_CONTENT, dependencies=admin)
def delete_picklist_value(value_id: str, service: MetadataService = Depends(get_service)) -> None:
    if not service.delete_picklist_value(value_id):
        raise _not_found("Picklist value", value_id)


# =============================================================================
# Page layouts and record types
# =============================================================================


@router.get("/objects/{object_id}/layouts", response_model=list[LayoutRead])
def list_layouts(object_id: str, service: MetadataService = Depends(get_service)) -> list[LayoutRead]:
    return [LayoutRead.model_validate(layout) for layout in service.list_layouts(object_id)]


@router.get("/objects/{object_id}/layouts/default", response_model=LayoutRead)
def default_layout(object_id: str, service: MetadataService = Depends(get_service)) -> LayoutRead:
    layout = service.default_layout(object_id)
    if not layout:
        raise _not_found("Default layout for object", object_id)
    return LayoutRead.model_validate(layout)


@router.post(
    "/objects/{object_id}/layouts", response_model=LayoutRead, status_code=status.HTTP_201_CREATED, dependencies=admin
)
def create_layout(object_id: str, data: LayoutCreate, service: MetadataService = Depends(get_service)) -> LayoutRead:
    return LayoutRead.model_validate(service.create_layout(object_id, data))


@router.patch("/layouts/{layout_id}", response_model=LayoutRead, dependencies=admin)
def update_layout(layout_id: str, data: LayoutUpdate, service: MetadataService = Depends(get_service)) -> LayoutRead:
    layout = service.update_layout(layout_id, data)
    if not layout:
        raise _not_found("Layout", layout_id)
    return LayoutRead.model_validate(layout)


@router.post("/layouts/{layout_id}/default", response_model=LayoutRead, dependencies=admin)
def set_default_layout(layout_id: str, service: MetadataService = Depends(get_service)) -> LayoutRead:
    layout = service.set_default_layout(layout_id)
    if not layout:
        raise _not_found("Layout", layout_id)
    return LayoutRead.model_validate(layout)


@router.delete("/layouts/{layout_id}", status_code=status.HTTP_204_NO_CONTENT, dependencies=admin)
def delete_layout(layout_id: str, service: MetadataService = Depends(get_service)) -> None:
    if not service.delete_layout(layout_id):
        raise _not_found("Layout", layout_id)


@router.get("/objects/{object_id}/record-types", response_model=list[RecordTypeRead])
def list_record_types(object_id: str, service: MetadataService = Depends(get_service)) -> list[RecordTypeRead]:
    return [RecordTypeRead.model_validate(rt) for rt in service.list_record_types(object_id)]


@router.post(
    "/objects/{object_id}/record-types",
    response_model=RecordTypeRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=admin,
)
def create_record_type(
    object_id: str, data: RecordTypeCreate, service: MetadataService = Depends(get_service)
) -> RecordTypeRead:
    return RecordTypeRead.model_validate(service.create_record_type(object_id, data))


@router.patch("/record-types/{record_type_id}", response_model=RecordTypeRead, dependencies=admin)
def update_record_type(
    record_type_id: str, data: RecordTypeUpdate, service: MetadataService = Depends(get_service)
) -> RecordTypeRead:
    record_type = service.update_record_type(record_type_id, data)
    if not record_type:
        raise _not_found("Record type", record_type_id)
    return RecordTypeRead.model_validate(record_type)


# =============================================================================
# Field permissions
# =============================================================================


@router.get("/field-permissions", response_model=list[FieldPermissionRead], dependencies=admin)
def permissions_for_role(
    role: Role, object_id: Optional[str] = None, service: MetadataService = Depends(get_service)
) -> list[FieldPermissionRead]:
    return [FieldPermissionRead.model_validate(p) for p in service.permissions_for_role(role.value, object_id)]


@router.put("/field-permissions", response_model=FieldPermissionRead, dependencies=admin)
def set_field_permission(
    data: FieldPermissionSet, service: MetadataService = Depends(get_service)
) -> FieldPermissionRead:
    permission = service.set_permission(data.role, data.field_definition_id, data.is_visible, data.is_editable)
    return FieldPermissionRead.model_validate(permission)


@router.put("/field-permissions/bulk", response_model=list[FieldPermissionRead], dependencies=admin)
def bulk_set_field_permissions(
    data: FieldPermissionBulk, service: MetadataService = Depends(get_service)
) -> list[FieldPermissionRead]:
    return [FieldPermissionRead.model_validate(p) for p in service.bulk_set_permissions(data)]


@router.post("/field-permissions/reset", dependencies=admin)
def reset_field_permissions(
    role: Role, object_id: Optional[str] = None, service: MetadataService = Depends(get_service)
) -> dict[str, int]:
    return {"removed": service.reset_permissions(role.value, object_id)}


@router.post("/field-permissions/copy", response_model=list[FieldPermissionRead], dependencies=admin)
def copy_field_permissions(
    data: FieldPermissionCopy, service: MetadataService = Depends(get_service)
) -> list[FieldPermissionRead]:
    return [FieldPermissionRead.model_validate(p) for p in service.copy_permissions(data.from_role, data.to_role)]


@router.get("/field-permissions/matrix/{api_name}", response_model=PermissionMatrix, dependencies=admin)
def permission_matrix(api_name: str, role: Role, service: MetadataService = Depends(get_service)) -> PermissionMatrix:
    matrix = service.permission_matrix(api_name, role.value)
    if matrix is None:
        raise _not_found("Object", api_name)
    return PermissionMatrix(**matrix)


@router.get("/security-context", response_model=SecurityContext)
def security_context(ctx: RequestContext = Depends(get_request_context)) -> SecurityContext:
    return SecurityContext(
        user_id=ctx.user_id, role=ctx.role, hierarchy_level=ctx.hierarchy_level, is_admin=ctx.is_admin
    )
