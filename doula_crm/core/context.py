"""Caller identity for request handlers.

Authentication happens upstream: the auth gateway forwards the authenticated
user id in the ``X-User-Id`` header. The id is resolved to an active user of an
organization, which scopes every query the request makes.
"""

from __future__ import annotations

from fastapi import Depends, Header, HTTPException, status
from pydantic import BaseModel
from sqlmodel import Session

from doula_crm.organizations.models import ADMIN_ROLES, User, hierarchy_level

from .database import get_session


class RequestContext(BaseModel):
    """The authenticated caller and their organization."""

    user_id: str
    organization_id: str
    role: str
    email: str | None = None

    @property
    def hierarchy_level(self) -> int:
        return hierarchy_level(self.role)

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES

    @classmethod
    def for_user(cls, user: User) -> "RequestContext":
        return cls(
            user_id=user.id,
            organization_id=user.organization_id,
            role=user.role,
            email=user.email,
        )


def get_request_context(
    x_user_id: str | None = Header(default=None),
    session: Session = Depends(get_session),
) -> RequestContext:
    if not x_user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    user = session.get(User, x_user_id)
    if not user or not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unknown or inactive user")
    return RequestContext.for_user(user)


def require_admin(ctx: RequestContext = Depends(get_request_context)) -> RequestContext:
    if not ctx.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return ctx
