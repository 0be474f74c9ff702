"""API routes for navigation configuration."""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlmodel import Session

from doula_crm.core.context import RequestContext, get_request_context, require_admin
from doula_crm.core.database import get_session

from .schemas import (
    BulkVisibilityUpdate,
    DisplayUpdate,
    NavigationConfig,
    NavItemAdmin,
    NavItemCreate,
    NavItemRead,
    NavReorder,
    VisibilityUpdate,
)
from .service import NavigationService

router = APIRouter(prefix="/navigation", tags=["navigation"])
admin = [Depends(require_admin)]


def get_service(
    session: Session = Depends(get_session),
    ctx: RequestContext = Depends(get_request_context),
) -> NavigationService:
    return NavigationService(session, ctx)


@router.get("", response_model=NavigationConfig)
def navigation_config(service: NavigationService = Depends(get_service)) -> NavigationConfig:
    config = service.config_for_caller()
    return NavigationConfig(
        role=config["role"],
        **{
            key: [NavItemRead.model_validate(i) for i in config[key]]
            for key in ("primary_tabs", "tools_menu", "admin_menu", "available")
        },
    )


@router.get("/items", response_model=list[NavItemAdmin], dependencies=admin)
def admin_list(service: NavigationService = Depends(get_service)) -> list[NavItemAdmin]:
    return [
        NavItemAdmin(**NavItemRead.model_validate(row["item"]).model_dump(), role_visibility=row["role_visibility"])
        for row in service.admin_list()
    ]


@router.post("/items", response_model=NavItemRead, status_code=status.HTTP_201_CREATED, dependencies=admin)
def add_item(data: NavItemCreate, service: NavigationService = Depends(get_service)) -> NavItemRead:
    return NavItemRead.model_validate(service.add_item(data))


@router.put("/items/order", response_model=list[NavItemRead], dependencies=admin)
def reorder_items(data: NavReorder, service: NavigationService = Depends(get_service)) -> list[NavItemRead]:
    return [NavItemRead.model_validate(i) for i in service.reorder(data.nav_type, data.item_ids)]


@router.put("/visibility", dependencies=admin)
def bulk_update_visibility(data: BulkVisibilityUpdate, service: NavigationService = Depends(get_service)) -> dict:
    return {"updated": service.bulk_set_visibility(data.updates)}


@router.post("/reset", response_model=list[NavItemRead], dependencies=admin)
def reset_navigation(service: NavigationService = Depends(get_service)) -> list[NavItemRead]:
    return [NavItemRead.model_validate(i) for i in service.reset_to_defaults()]


@router.patch("/items/{item_id}", response_model=NavItemRead, dependencies=admin)
def update_display(item_id: str, data: DisplayUpdate, service: NavigationService = Depends(get_service)) -> NavItemRead:
    item = service.update_display(item_id, data)
    if not item:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Navigation item '{item_id}' not found")
    return NavItemRead.model_validate(item)


@router.put("/items/{item_id}/visibility", dependencies=admin)
def update_visibility(item_id: str, data: VisibilityUpdate, service: NavigationService = Depends(get_service)) -> dict:
    row = service.set_visibility(item_id, data.role, data.visibility_state)
    return {"navigation_item_id": row.navigation_item_id, "role": row.role, "visibility_state": row.visibility_state}


@router.delete("/items/{item_id}", status_code=status.HTTP_204_NO_CONTENT, dependencies=admin)
def delete_item(item_id: str, service: NavigationService = Depends(get_service)) -> None:
    if not service.delete_item(item_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Navigation item '{item_id}' not found")
