"""API routes for sharing rules, manual shares and record access."""

from dataclasses import asdict
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, status
from sqlmodel import Session

from doula_crm.core.context import RequestContext, get_request_context, require_admin
from doula_crm.core.database import get_session
from doula_crm.metadata.schemas import ObjectRead

from .access import validate_criteria
from .schemas import (
    AccessCheck,
    CriteriaValidation,
    ManualShareCreate,
    ManualShareRead,
    ManualShareUpdate,
    ObjectSharingSettings,
    RecordShareInfo,
    SharingModelUpdate,
    SharingRuleCreate,
    SharingRuleRead,
    SharingRuleUpdate,
    ShareTargets,
    ShareTargetUser,
)
from .service import SharingService

router = APIRouter(prefix="/sharing", tags=["sharing"])
admin = [Depends(require_admin)]


def get_service(
    session: Session = Depends(get_session),
    ctx: RequestContext = Depends(get_request_context),
) -> SharingService:
    return SharingService(session, ctx)


def _not_found(kind: str, key: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{kind} '{key}' not found")


# =============================================================================
# Rules
# =============================================================================


@router.get("/rules", response_model=list[SharingRuleRead], dependencies=admin)
def list_rules(
    object_api_name: Optional[str] = None, service: SharingService = Depends(get_service)
) -> list[SharingRuleRead]:
    return [SharingRuleRead.model_validate(r) for r in service.list_rules(object_api_name)]


@router.post("/rules", response_model=SharingRuleRead, status_code=status.HTTP_201_CREATED, dependencies=admin)
def create_rule(data: SharingRuleCreate, service: SharingService = Depends(get_service)) -> SharingRuleRead:
    return SharingRuleRead.model_validate(service.create_rule(data))


@router.post("/rules/validate-criteria", response_model=CriteriaValidation, dependencies=admin)
def validate_rule_criteria(criteria: Any = Body(...)) -> CriteriaValidation:
    error = validate_criteria(criteria)
    return CriteriaValidation(valid=error is None, error=error)


@router.get("/rules/for-user/{object_api_name}", response_model=list[SharingRuleRead], dependencies=admin)
def rules_for_user(
    object_api_name: str, user_id: Optional[str] = None, service: SharingService = Depends(get_service)
) -> list[SharingRuleRead]:
    return [SharingRuleRead.model_validate(r) for r in service.rules_for_user(object_api_name, user_id)]


@router.get("/rules/{rule_id}", response_model=SharingRuleRead, dependencies=admin)
def get_rule(rule_id: str, service: SharingService = Depends(get_service)) -> SharingRuleRead:
    rule = service.get_rule(rule_id)
    if not rule:
        raise _not_found("Sharing rule", rule_id)
    return SharingRuleRead.model_validate(rule)


@router.patch("/rules/{rule_id}", response_model=SharingRuleRead, dependencies=admin)
def update_rule(
    rule_id: str,
    data: SharingRuleUpdate,
    service: SharingService = Depends(get_service),
) -> SharingRuleRead:
    rule = service.update_rule(rule_id, data)
    if not rule:
        raise _not_found("Sharing rule", rule_id)
    return SharingRuleRead.model_validate(rule)


@router.post("/rules/{rule_id}/toggle", response_model=SharingRuleRead, dependencies=admin)
def toggle_rule(
    rule_id: str, is_active: bool = Body(..., embed=True), service: SharingService = Depends(get_service)
) -> SharingRuleRead:
    rule = service.toggle_rule(rule_id, is_active)
    if not rule:
        raise _not_found("Sharing rule", rule_id)
    return SharingRuleRead.model_validate(rule)


@router.delete("/rules/{rule_id}", status_code=status.HTTP_204_NO_CONTENT, dependencies=admin)
def delete_rule(rule_id: str, service: SharingService = Depends(get_service)) -> None:
    if not service.delete_rule(rule_id):
        raise _not_found("Sharing rule", rule_id)


# =============================================================================
# Manual shares
# =============================================================================


@router.get("/records/{object_api_name}/{record_id}/shares", response_model=list[ManualShareRead], dependencies=admin)
def list_manual_shares(
    object_api_name: str, record_id: str, service: SharingService = Depends(get_service)
) -> list[ManualShareRead]:
    return [ManualShareRead.model_validate(s) for s in service.list_manual_shares(object_api_name, record_id)]


@router.post("/shares", response_model=ManualShareRead, status_code=status.HTTP_201_CREATED, dependencies=admin)
def create_manual_share(data: ManualShareCreate, service: SharingService = Depends(get_service)) -> ManualShareRead:
    return ManualShareRead.model_validate(service.create_manual_share(data))


@router.patch("/shares/{share_id}", response_model=ManualShareRead, dependencies=admin)
def update_manual_share(
    share_id: str, data: ManualShareUpdate, service: SharingService = Depends(get_service)
) -> ManualShareRead:
    share = service.update_manual_share(share_id, data)
    if not share:
        raise _not_found("Manual share", share_id)
    return ManualShareRead.model_validate(share)


@router.delete("/shares/{share_id}", status_code=status.HTTP_204_NO_CONTENT, dependencies=admin)
def delete_manual_share(share_id: str, service: SharingService = Depends(get_service)) -> None:
    if not service.delete_manual_share(share_id):
        raise _not_found("Manual share", share_id)


# =============================================================================
# Record access
# =============================================================================


@router.get("/records/{object_api_name}/{record_id}", response_model=list[RecordShareInfo], dependencies=admin)
def record_sharing_info(
    object_api_name: str,
    record_id: str,
    owner_id: Optional[str] = None,
    service: SharingService = Depends(get_service),
) -> list[RecordShareInfo]:
    return [RecordShareInfo(**row) for row in service.record_sharing_info(object_api_name, record_id, owner_id)]


@router.get("/records/{object_api_name}/{record_id}/access", response_model=AccessCheck)
def check_record_access(
    object_api_name: str,
    record_id: str,
    owner_id: Optional[str] = None,
    service: SharingService = Depends(get_service),
) -> AccessCheck:
    result = service.check_access(object_api_name, record_id, owner_id)
    return AccessCheck(
        has_access=result.has_access,
        access_level=result.access_level,
        access_source=result.access_source,
        grants=[asdict(g) for g in result.grants],
    )


# =============================================================================
# Object settings
# =============================================================================


@router.get("/objects/{object_api_name}", response_model=ObjectSharingSettings, dependencies=admin)
def object_sharing_settings(
    object_api_name: str,
    service: SharingService = Depends(get_service),
) -> ObjectSharingSettings:
    settings = service.object_sharing_settings(object_api_name)
    return ObjectSharingSettings(
        **{**settings, "sharing_rules": [SharingRuleRead.model_validate(r) for r in settings["sharing_rules"]]}
    )


@router.put("/objects/{object_api_name}/sharing-model", response_model=ObjectRead, dependencies=admin)
def update_sharing_model(
    object_api_name: str, data: SharingModelUpdate, service: SharingService = Depends(get_service)
) -> ObjectRead:
    return ObjectRead.model_validate(service.update_sharing_model(object_api_name, data.sharing_model))


@router.get("/targets", response_model=ShareTargets, dependencies=admin)
def share_targets(service: SharingService = Depends(get_service)) -> ShareTargets:
    targets = service.share_targets()
    return ShareTargets(
        users=[ShareTargetUser(id=u.id, full_name=u.full_name, email=u.email) for u in targets["users"]],
        roles=targets["roles"],
    )
