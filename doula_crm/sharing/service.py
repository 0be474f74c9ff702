"""Sharing rule and manual share administration."""

from __future__ import annotations

import logging
from typing import Any, Optional

from sqlmodel import Session, col, select

from doula_crm.core.context import RequestContext
from doula_crm.core.errors import InvalidOperationError, NotFoundError
from doula_crm.core.models import apply_changes, utcnow
from doula_crm.metadata.models import ObjectDefinition
from doula_crm.metadata.security import FieldAccess
from doula_crm.metadata.service import get_object_by_api_name
from doula_crm.organizations.models import ROLE_HIERARCHY, User

from .access import AccessResult, check_record_access, validate_criteria
from .models import ManualShare, RuleType, SharingRule, ShareWithType
from .schemas import ManualShareCreate, ManualShareUpdate, SharingRuleCreate, SharingRuleUpdate

logger = logging.getLogger(__name__)


def record_security_context(
    ctx: RequestContext,
    owner_id: Optional[str],
    access: AccessResult,
    field_access: Optional[dict[str, FieldAccess]] = None,
) -> dict[str, Any]:
    """What the caller can see and do with one record."""
    is_owner = owner_id is not None and owner_id == ctx.user_id
    field_access = field_access or {}
    return {
        "user_id": ctx.user_id,
        "is_owner": is_owner,
        "access_level": access.access_level,
        "access_source": access.access_source,
        "can_edit": ctx.is_admin or is_owner or access.can_write,
        "can_delete": ctx.is_admin or is_owner,
        "can_manage_sharing": ctx.is_admin or is_owner,
        "visible_field_ids": [fid for fid, a in field_access.items() if a.can_read],
        "editable_field_ids": [fid for fid, a in field_access.items() if a.can_edit],
    }


class SharingService:
    def __init__(self, session: Session, ctx: RequestContext):
        self.session = session
        self.ctx = ctx

    # =========================================================================
    # Sharing rules
    # =========================================================================

    def list_rules(self, object_api_name: Optional[str] = None) -> list[SharingRule]:
        statement = select(SharingRule).where(SharingRule.organization_id == self.ctx.organization_id)
        if object_api_name:
            statement = statement.where(SharingRule.object_api_name == object_api_name)
        statement = statement.order_by(col(SharingRule.object_api_name), col(SharingRule.name))
        return list(self.session.exec(statement).all())

    def get_rule(self, rule_id: str) -> Optional[SharingRule]:
        rule = self.session.get(SharingRule, rule_id)
        if not rule or rule.organization_id != self.ctx.organization_id:
            return None
        return rule

    def rules_for_user(self, object_api_name: str, user_id: Optional[str] = None) -> list[SharingRule]:
        """Active rules of an object that target the user directly or through their role."""
        user = self.session.get(User, user_id or self.ctx.user_id)
        if not user or user.organization_id != self.ctx.organization_id:
            raise NotFoundError("User not found")
        return [
            rule
            for rule in self.list_rules(object_api_name)
            if rule.is_active
            and (
                (rule.share_with_type == ShareWithType.USER.value and rule.share_with_id == user.id)
                or (rule.share_with_type == ShareWithType.ROLE.value and rule.share_with_id == user.role)
            )
        ]

    def create_rule(self, data: SharingRuleCreate) -> SharingRule:
        self._require_object(data.object_api_name)
        self._check_rule(data.rule_type, data.criteria, data.share_with_type, data.share_with_id)
        rule = SharingRule(
            organization_id=self.ctx.organization_id, created_by=self.ctx.user_id, **data.model_dump()
        )
        self.session.add(rule)
        self.session.commit()
        self.session.refresh(rule)
        logger.info(
            "Sharing rule created",
            extra={"organization_id": rule.organization_id, "record_id": rule.id, "object_type": rule.object_api_name},
        )
        return rule

    def update_rule(self, rule_id: str, data: SharingRuleUpdate) -> Optional[SharingRule]:
        rule = self.get_rule(rule_id)
        if not rule:
            return None
        changes = data.model_dump(exclude_unset=True)
        self._check_rule(
            rule.rule_type,
            changes.get("criteria", rule.criteria),
            changes.get("share_with_type") or rule.share_with_type,
            changes.get("share_with_id") or rule.share_with_id,
        )
        apply_changes(rule, changes)
        self.session.add(rule)
        self.session.commit()
        self.session.refresh(rule)
        return rule

    def toggle_rule(self, rule_id: str, is_active: bool) -> Optional[SharingRule]:
        return self.update_rule(rule_id, SharingRuleUpdate(is_active=is_active))

    def delete_rule(self, rule_id: str) -> bool:
        rule = self.get_rule(rule_id)
        if not rule:
            return False
        self.session.delete(rule)
        self.session.commit()
        logger.info("Sharing rule deleted", extra={"organization_id": rule.organization_id, "record_id": rule_id})
        return True

    def _check_rule(self, rule_type: str, criteria: Any, share_with_type: str, share_with_id: str) -> None:
        if rule_type == RuleType.CRITERIA_BASED.value:
            error = validate_criteria(criteria)
            if error:
                raise InvalidOperationError(f"Invalid criteria: {error}")
        self._check_target(share_with_type, share_with_id)

    def _check_target(self, share_with_type: str, share_with_id: str) -> None:
        if share_with_type == ShareWithType.ROLE.value and share_with_id not in ROLE_HIERARCHY:
            raise InvalidOperationError(f"Unknown role '{share_with_id}'")
        if share_with_type == ShareWithType.USER.value:
            user = self.session.get(User, share_with_id)
            if not user or user.organization_id != self.ctx.organization_id:
                raise InvalidOperationError(f"Unknown user '{share_with_id}'")

    # =========================================================================
    # Manual shares
    # =========================================================================

    def list_manual_shares(self, object_api_name: str, record_id: str) -> list[ManualShare]:
        statement = (
            select(ManualShare)
            .where(
                ManualShare.organization_id == self.ctx.organization_id,
                ManualShare.object_api_name == object_api_name,
                ManualShare.record_id == record_id,
            )
            .order_by(col(ManualShare.created_at))
        )
        return list(self.session.exec(statement).all())

    def get_manual_share(self, share_id: str) -> Optional[ManualShare]:
        share = self.session.get(ManualShare, share_id)
        if not share or share.organization_id != self.ctx.organization_id:
            return None
        return share

    def create_manual_share(self, data: ManualShareCreate) -> ManualShare:
        self._require_object(data.object_api_name)
        if data.share_with_type == ShareWithType.PUBLIC_GROUP.value:
            raise InvalidOperationError("Records can only be shared manually with users or roles")
        self._check_target(data.share_with_type, data.share_with_id)
        share = ManualShare(organization_id=self.ctx.organization_id, shared_by=self.ctx.user_id, **data.model_dump())
        self.session.add(share)
        self.session.commit()
        self.session.refresh(share)
        logger.info(
            "Record shared",
            extra={"organization_id": share.organization_id, "record_id": share.record_id, "user_id": self.ctx.user_id},
        )
        return share

    def update_manual_share(self, share_id: str, data: ManualShareUpdate) -> Optional[ManualShare]:
        share = self.get_manual_share(share_id)
        if not share:
            return None
        apply_changes(share, data.model_dump(exclude_unset=True))
        self.session.add(share)
        self.session.commit()
        self.session.refresh(share)
        return share

    def delete_manual_share(self, share_id: str) -> bool:
        share = self.get_manual_share(share_id)
        if not share:
            return False
        self.session.delete(share)
        self.session.commit()
        return True

    # =========================================================================
    # Record access
    # =========================================================================

    def record_sharing_info(self, object_api_name: str, record_id: str, owner_id: Optional[str]) -> list[dict]:
        """Owner, applicable rules and unexpired manual shares of a record."""
        users = {u.id: u for u in self._active_users()}

        def display(share_with_type: str, share_with_id: str) -> str:
            if share_with_type == ShareWithType.USER.value and share_with_id in users:
                user = users[share_with_id]
                return user.full_name or user.email
            return share_with_id

        info = []
        if owner_id:
            info.append(
                {
                    "share_with_type": ShareWithType.USER.value,
                    "share_with_id": owner_id,
                    "display_name": display(ShareWithType.USER.value, owner_id),
                    "access_level": "full_access",
                    "source": "owner",
                }
            )
        for rule in self.list_rules(object_api_name):
            if rule.is_active:
                info.append(
                    {
                        "share_with_type": rule.share_with_type,
                        "share_with_id": rule.share_with_id,
                        "display_name": display(rule.share_with_type, rule.share_with_id),
                        "access_level": rule.access_level,
                        "source": "sharing_rule",
                        "source_id": rule.id,
                    }
                )
        now = utcnow()
        for share in self.list_manual_shares(object_api_name, record_id):
            if share.expires_at and share.expires_at < now:
                continue
            info.append(
                {
                    "share_with_type": share.share_with_type,
                    "share_with_id": share.share_with_id,
                    "display_name": display(share.share_with_type, share.share_with_id),
                    "access_level": share.access_level,
                    "source": "manual_share",
                    "source_id": share.id,
                }
            )
        return info

    def check_access(
        self,
        object_api_name: str,
        record_id: str,
        owner_id: Optional[str],
        record: Optional[dict[str, Any]] = None,
    ) -> AccessResult:
        return check_record_access(self.session, self.ctx, object_api_name, record_id, owner_id, record)

    # =========================================================================
    # Object settings
    # =========================================================================

    def object_sharing_settings(self, object_api_name: str) -> dict[str, Any]:
        obj = self._require_object(object_api_name)
        return {
            "object_api_name": obj.api_name,
            "label": obj.label,
            "sharing_model": obj.sharing_model,
            "sharing_rules": [r for r in self.list_rules(object_api_name) if r.is_active],
        }

    def update_sharing_model(self, object_api_name: str, sharing_model: str) -> ObjectDefinition:
        obj = self._require_object(object_api_name)
        previous = obj.sharing_model
        apply_changes(obj, {"sharing_model": sharing_model})
        self.session.add(obj)
        self.session.commit()
        self.session.refresh(obj)
        logger.info(
            "Sharing model changed",
            extra={
                "organization_id": obj.organization_id,
                "object_type": obj.api_name,
                "status": f"{previous} -> {sharing_model}",
            },
        )
        return obj

    def share_targets(self) -> dict[str, Any]:
        return {"users": self._active_users(), "roles": list(ROLE_HIERARCHY)}

    def _active_users(self) -> list[User]:
        statement = (
            select(User)
            .where(User.organization_id == self.ctx.organization_id, User.is_active == True)  # noqa: E712
            .order_by(col(User.full_name))
        )
        return list(self.session.exec(statement).all())

    def _require_object(self, object_api_name: str) -> ObjectDefinition:
        obj = get_object_by_api_name(self.session, self.ctx.organization_id, object_api_name)
        if not obj:
            raise NotFoundError(f"Object '{object_api_name}' not found")
        return obj
