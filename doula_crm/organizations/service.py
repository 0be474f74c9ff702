"""Organization bootstrap and user management."""

from __future__ import annotations

import logging
import re
from typing import Optional

from sqlmodel import Session, col, select

from doula_crm.core.context import RequestContext
from doula_crm.core.errors import AccessDeniedError, ConflictError, InvalidOperationError
from doula_crm.core.models import apply_changes
from doula_crm.metadata.seed import seed_standard_metadata
from doula_crm.navigation.service import seed_default_navigation

from .models import Organization, Role, User, hierarchy_level
from .schemas import OrganizationBootstrap, UserCreate, UserUpdate

logger = logging.getLogger(__name__)


def slugify(name: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")
    return slug or "org"


def bootstrap_organization(session: Session, data: OrganizationBootstrap) -> tuple[Organization, User]:
    """Create an organization, its owner and the default metadata.

    Seeds the standard object and field definitions, default page layouts
    and the default navigation config in the same transaction.
    """
    slug = data.slug or slugify(data.name)
    if session.exec(select(Organization).where(Organization.slug == slug)).first():
        raise ConflictError(f"Organization slug '{slug}' is already taken")

    org = Organization(name=data.name, slug=slug)
    session.add(org)
    session.flush()

    owner = User(
        organization_id=org.id,
        email=str(data.owner_email).lower(),
        full_name=data.owner_name,
        role=Role.OWNER.value,
    )
    session.add(owner)
    session.flush()

    objects = seed_standard_metadata(session, org.id)
    seed_default_navigation(session, org.id, objects)
    session.commit()
    session.refresh(org)
    session.refresh(owner)

    logger.info(
        "Organization bootstrapped",
        extra={"organization_id": org.id, "objects": len(objects)},
    )
    return org, owner


class OrganizationService:
    """Organization and member operations for the caller's organization."""

    def __init__(self, session: Session, ctx: RequestContext):
        self.session = session
        self.ctx = ctx

    def get_organization(self) -> Optional[Organization]:
        return self.session.get(Organization, self.ctx.organization_id)

    def get_current_user(self) -> Optional[User]:
        return self.session.get(User, self.ctx.user_id)

    def list_users(self, active_only: bool = False) -> list[User]:
        statement = select(User).where(User.organization_id == self.ctx.organization_id)
        if active_only:
            statement = statement.where(User.is_active == True)  # noqa: E712
        return list(self.session.exec(statement.order_by(col(User.email))).all())

    def get_user(self, user_id: str) -> Optional[User]:
        user = self.session.get(User, user_id)
        if not user or user.organization_id != self.ctx.organization_id:
            return None
        return user

    def create_user(self, data: UserCreate) -> User:
        email = str(data.email).lower()
        existing = self.session.exec(
            select(User).where(User.organization_id == self.ctx.organization_id, User.email == email)
        ).first()
        if existing:
            raise ConflictError(f"User '{email}' already exists")
        self._check_can_grant(data.role)

        user = User(organization_id=self.ctx.organization_id, email=email, full_name=data.full_name, role=data.role)
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        logger.info("User created", extra={"organization_id": user.organization_id, "record_id": user.id})
        return user

    def update_user(self, user_id: str, data: UserUpdate) -> Optional[User]:
        user = self.get_user(user_id)
        if not user:
            return None
        changes = data.model_dump(exclude_unset=True)
        if "role" in changes and changes["role"] is not None:
            self._check_can_grant(changes["role"])
            if user.role == Role.OWNER.value and changes["role"] != Role.OWNER.value:
                self._ensure_other_owner(user)
        if changes.get("is_active") is False:
            if user.id == self.ctx.user_id:
                raise InvalidOperationError("You cannot deactivate yourself")
            if user.role == Role.OWNER.value:
                self._ensure_other_owner(user)

        apply_changes(user, {k: v for k, v in changes.items() if v is not None})
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        return user

    def _check_can_grant(self, role: str) -> None:
        # Callers may only grant roles at or below their own seniority.
        if hierarchy_level(role) < self.ctx.hierarchy_level:
            raise AccessDeniedError(f"Cannot grant role '{role}'")

    def _ensure_other_owner(self, user: User) -> None:
        owners = self.session.exec(
            select(User).where(
                User.organization_id == user.organization_id,
                User.role == Role.OWNER.value,
                User.is_active == True,  # noqa: E712
                User.id != user.id,
            )
        ).first()
        if not owners:
            raise InvalidOperationError("An organization must keep at least one active owner")
