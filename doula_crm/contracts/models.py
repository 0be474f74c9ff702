"""SQLModel tables for contract templates and signatures."""

from datetime import datetime
from enum import Enum
from typing import Optional

from sqlmodel import Field

from doula_crm.core.models import TenantModel


class SignatureStatus(str, Enum):
    SIGNED = "signed"
    VOIDED = "voided"


class ContractTemplate(TenantModel, table=True):
    __tablename__ = "contract_templates"

    name: str
    description: Optional[str] = None
    content: str
    version: int = 1
    service_type: Optional[str] = Field(default=None, index=True)
    is_default: bool = False
    is_active: bool = True


class ContractSignature(TenantModel, table=True):
    """An immutable snapshot of the contract text a client signed."""

    __tablename__ = "contract_signatures"

    client_id: str = Field(foreign_key="leads.id", index=True, ondelete="CASCADE")
    service_id: Optional[str] = Field(default=None, foreign_key="client_services.id", index=True, ondelete="SET NULL")
    template_id: Optional[str] = Field(default=None, foreign_key="contract_templates.id", ondelete="SET NULL")
    template_version: int = 1
    content_snapshot: str
    signer_name: str
    signer_email: str
    signed_at: datetime
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    status: str = Field(default=SignatureStatus.SIGNED.value, index=True)
    voided_at: Optional[datetime] = None
    void_reason: Optional[str] = None
