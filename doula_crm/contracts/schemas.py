"""Pydantic schemas for the contracts API."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field


class TemplateCreate(BaseModel):
    name: str = Field(min_length=1)
    description: Optional[str] = None
    content: str = Field(min_length=1)
    service_type: Optional[str] = None
    is_default: bool = False


class TemplateUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    content: Optional[str] = Field(default=None, min_length=1)
    is_default: Optional[bool] = None
    is_active: Optional[bool] = None


class TemplateRead(BaseModel):
    id: str
    name: str
    description: Optional[str]
    content: str
    version: int
    service_type: Optional[str]
    is_default: bool
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class SignContractRequest(BaseModel):
    client_id: str
    service_id: Optional[str] = None
    template_id: str
    signer_name: str = Field(min_length=1)
    signer_email: EmailStr


class VoidRequest(BaseModel):
    reason: str = Field(min_length=1)


class SignatureRead(BaseModel):
    id: str
    client_id: str
    service_id: Optional[str]
    template_id: Optional[str]
    template_version: int
    content_snapshot: str
    signer_name: str
    signer_email: str
    signed_at: datetime
    ip_address: Optional[str]
    user_agent: Optional[str]
    status: str
    voided_at: Optional[datetime]
    void_reason: Optional[str]

    model_config = {"from_attributes": True}


class ContractRequirement(BaseModel):
    required: bool
    signed: bool
    signature: Optional[SignatureRead] = None
