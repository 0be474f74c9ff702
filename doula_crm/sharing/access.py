"""Record access evaluation.

Access is additive: every source that grants something contributes a grant and
the highest level wins (full_access > read_write > read). Sources, in order:

1. Record owner (full access)
2. Organization-wide default, from the object's sharing model
3. Role hierarchy: callers more senior than the owner get read/write
4. Active sharing rules that apply to the caller
5. Unexpired manual shares for the record
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable, Mapping, Optional

from sqlmodel import Session, select

from doula_crm.core.conditions import evaluate_condition
from doula_crm.core.context import RequestContext
from doula_crm.core.models import utcnow
from doula_crm.metadata.models import SharingModel
from doula_crm.metadata.service import get_object_by_api_name
from doula_crm.organizations.models import User, hierarchy_level

from .models import AccessLevel, AccessSource, ManualShare, RuleType, SharingRule, ShareWithType

logger = logging.getLogger(__name__)

LEVEL_ORDER = {
    AccessLevel.READ.value: 1,
    AccessLevel.READ_WRITE.value: 2,
    AccessLevel.FULL_ACCESS.value: 3,
}

SHARING_OPERATORS = (
    "equals",
    "not_equals",
    "contains",
    "not_contains",
    "starts_with",
    "greater_than",
    "less_than",
    "is_null",
    "is_not_null",
    "in",
)


@dataclass
class AccessGrant:
    source: str
    level: str
    source_id: Optional[str] = None
    source_name: Optional[str] = None


@dataclass
class AccessResult:
    access_level: Optional[str] = None
    access_source: Optional[str] = None
    grants: list[AccessGrant] = field(default_factory=list)

    @property
    def has_access(self) -> bool:
        return self.access_level is not None

    @property
    def can_read(self) -> bool:
        return satisfies_access(self.access_level, "read")

    @property
    def can_write(self) -> bool:
        return satisfies_access(self.access_level, "write")


# =============================================================================
# Levels
# =============================================================================


def higher_level(a: Optional[str], b: Optional[str]) -> Optional[str]:
    """The more privileged of two access levels; ties keep ``a``."""
    return a if LEVEL_ORDER.get(a or "", 0) >= LEVEL_ORDER.get(b or "", 0) else b


def satisfies_access(granted: Optional[str], required: str) -> bool:
    if not granted:
        return False
    if required == "read":
        return granted in LEVEL_ORDER
    return granted in (AccessLevel.READ_WRITE.value, AccessLevel.FULL_ACCESS.value)


def sharing_model_access(sharing_model: str) -> Optional[str]:
    if sharing_model == SharingModel.PRIVATE.value:
        return None
    return sharing_model if sharing_model in LEVEL_ORDER else None


def has_hierarchy_access(user_level: Optional[int], owner_level: Optional[int]) -> bool:
    if user_level is None or owner_level is None:
        return False
    return user_level < owner_level


# =============================================================================
# Criteria
# =============================================================================


def criteria_matches(criteria: Mapping[str, Any] | None, record: Mapping[str, Any]) -> bool:
    """Evaluate sharing criteria. Operators outside SHARING_OPERATORS never match."""
    conditions = (criteria or {}).get("conditions") or []
    if not conditions:
        return True
    results = [
        c.get("operator") in SHARING_OPERATORS and evaluate_condition(c, record)
        for c in conditions
    ]
    if (criteria or {}).get("match_type", "all") == "any":
        return any(results)
    return all(results)


def validate_criteria(criteria: Any) -> Optional[str]:
    """Return an error message, or None when the criteria are well formed."""
    if not isinstance(criteria, Mapping):
        return "Criteria must be an object"
    conditions = criteria.get("conditions")
    if not isinstance(conditions, list):
        return "Criteria must have conditions array"
    if criteria.get("match_type") not in ("all", "any"):
        return 'match_type must be "all" or "any"'
    for i, condition in enumerate(conditions):
        if not isinstance(condition, Mapping):
            return f"Condition {i} must be an object"
        if not isinstance(condition.get("field"), str) or not condition.get("field"):
            return f"Condition {i} must have a field"
        if condition.get("operator") not in SHARING_OPERATORS:
            return f"Condition {i} has invalid operator"
    return None


# =============================================================================
# Rules and manual shares
# =============================================================================


def _targets_caller(share_with_type: str, share_with_id: str, user_id: str, role: str) -> bool:
    if share_with_type == ShareWithType.USER.value:
        return share_with_id == user_id
    if share_with_type == ShareWithType.ROLE.value:
        return share_with_id == role
    # Public groups have no membership model yet.
    return False


def evaluate_sharing_rule(
    rule: SharingRule,
    record: Mapping[str, Any],
    user_id: str,
    role: str,
    owner_role: Optional[str] = None,
) -> Optional[str]:
    if not rule.is_active:
        return None
    if not _targets_caller(rule.share_with_type, rule.share_with_id, user_id, role):
        return None
    if rule.rule_type == RuleType.CRITERIA_BASED.value:
        if not criteria_matches(rule.criteria, record):
            return None
    elif rule.owner_role and rule.owner_role != owner_role:
        return None
    return rule.access_level


def evaluate_manual_share(
    share: ManualShare, user_id: str, role: str, now: Optional[datetime] = None
) -> Optional[str]:
    if share.expires_at and share.expires_at < (now or utcnow()):
        return None
    if not _targets_caller(share.share_with_type, share.share_with_id, user_id, role):
        return None
    return share.access_level


# =============================================================================
# Evaluation
# =============================================================================


def evaluate_record_access(
    *,
    user_id: str,
    role: str,
    user_organization_id: str,
    record_organization_id: str,
    owner_id: Optional[str],
    sharing_model: str,
    record: Optional[Mapping[str, Any]] = None,
    rules: Iterable[SharingRule] = (),
    manual_shares: Iterable[ManualShare] = (),
    owner_role: Optional[str] = None,
    now: Optional[datetime] = None,
) -> AccessResult:
    """Combine every access source into the caller's effective access."""
    if user_organization_id != record_organization_id:
        return AccessResult()

    grants: list[AccessGrant] = []
    if owner_id and owner_id == user_id:
        grants.append(AccessGrant(AccessSource.OWNER.value, AccessLevel.FULL_ACCESS.value, source_name="Record Owner"))

    default = sharing_model_access(sharing_model)
    if default:
        grants.append(
            AccessGrant(
                AccessSource.ORG_WIDE_DEFAULT.value, default, source_name=f"Organization Default: {sharing_model}"
            )
        )

    owner_level = hierarchy_level(owner_role) if owner_role else None
    if has_hierarchy_access(hierarchy_level(role), owner_level):
        grants.append(
            AccessGrant(AccessSource.ROLE_HIERARCHY.value, AccessLevel.READ_WRITE.value, source_name="Role Hierarchy")
        )

    for rule in rules:
        level = evaluate_sharing_rule(rule, record or {}, user_id, role, owner_role)
        if level:
            grants.append(
                AccessGrant(AccessSource.SHARING_RULE.value, level, rule.id, f"Sharing Rule: {rule.name}")
            )

    for share in manual_shares:
        level = evaluate_manual_share(share, user_id, role, now)
        if level:
            grants.append(
                AccessGrant(AccessSource.MANUAL_SHARE.value, level, share.id, share.reason or "Manual Share")
            )

    result = AccessResult(grants=grants)
    for grant in grants:
        best = higher_level(result.access_level, grant.level)
        if best != result.access_level:
            result.access_level = best
            result.access_source = grant.source
    return result


def _owner_role(session: Session, owner_id: Optional[str]) -> Optional[str]:
    if not owner_id:
        return None
    owner = session.get(User, owner_id)
    return owner.role if owner else None


def active_rules(session: Session, organization_id: str, object_api_name: str) -> list[SharingRule]:
    return list(
        session.exec(
            select(SharingRule).where(
                SharingRule.organization_id == organization_id,
                SharingRule.object_api_name == object_api_name,
                SharingRule.is_active == True,  # noqa: E712
            )
        ).all()
    )


def record_shares(
    session: Session, organization_id: str, object_api_name: str, record_id: str
) -> list[ManualShare]:
    return list(
        session.exec(
            select(ManualShare).where(
                ManualShare.organization_id == organization_id,
                ManualShare.object_api_name == object_api_name,
                ManualShare.record_id == record_id,
            )
        ).all()
    )


def check_record_access(
    session: Session,
    ctx: RequestContext,
    object_api_name: str,
    record_id: str,
    owner_id: Optional[str],
    record: Optional[Mapping[str, Any]] = None,
    record_organization_id: Optional[str] = None,
    rules: Optional[list[SharingRule]] = None,
) -> AccessResult:
    """Effective access of the caller to one record.

    Administrators get full access to every record of their organization.
    Pass ``rules`` when checking many records of the same object.
    """
    org_id = record_organization_id or ctx.organization_id
    if org_id != ctx.organization_id:
        return AccessResult()
    if ctx.is_admin:
        grant = AccessGrant(AccessSource.ADMIN.value, AccessLevel.FULL_ACCESS.value, source_name="Administrator")
        return AccessResult(AccessLevel.FULL_ACCESS.value, AccessSource.ADMIN.value, [grant])

    obj = get_object_by_api_name(session, ctx.organization_id, object_api_name)
    sharing_model = obj.sharing_model if obj else SharingModel.PRIVATE.value
    result = evaluate_record_access(
        user_id=ctx.user_id,
        role=ctx.role,
        user_organization_id=ctx.organization_id,
        record_organization_id=org_id,
        owner_id=owner_id,
        sharing_model=sharing_model,
        record=record,
        rules=rules if rules is not None else active_rules(session, ctx.organization_id, object_api_name),
        manual_shares=record_shares(session, ctx.organization_id, object_api_name, record_id),
        owner_role=_owner_role(session, owner_id),
    )
    logger.debug(
        "Record access evaluated",
        extra={"record_id": record_id, "object_type": object_api_name, "status": result.access_level},
    )
    return result
