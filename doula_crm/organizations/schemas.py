"""Pydantic schemas for organizations and users."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field

from .models import Role


class OrganizationBootstrap(BaseModel):
    """Create an organization together with its owner."""

    name: str = Field(min_length=1)
    slug: Optional[str] = Field(default=None, pattern=r"^[a-z0-9][a-z0-9-]*$")
    owner_email: EmailStr
    owner_name: Optional[str] = None


class OrganizationRead(BaseModel):
    id: str
    name: str
    slug: str
    created_at: datetime

    model_config = {"from_attributes": True}


class UserCreate(BaseModel):
    model_config = {"use_enum_values": True}

    email: EmailStr
    full_name: Optional[str] = None
    role: Role = Role.STAFF


class UserUpdate(BaseModel):
    model_config = {"use_enum_values": True}

    full_name: Optional[str] = None
    role: Optional[Role] = None
    is_active: Optional[bool] = None


class UserRead(BaseModel):
    id: str
    organization_id: str
    email: str
    full_name: Optional[str]
    role: str
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class BootstrapResponse(BaseModel):
    organization: OrganizationRead
    owner: UserRead
