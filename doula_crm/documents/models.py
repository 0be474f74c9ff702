"""SQLModel table for client document metadata (files are stored elsewhere)."""

from enum import Enum
from typing import Optional

from sqlmodel import Field

from doula_crm.core.models import TenantModel


class DocumentType(str, Enum):
    CONTRACT = "contract"
    BIRTH_PLAN = "birth_plan"
    RESOURCE = "resource"
    PHOTO = "photo"
    INVOICE = "invoice"
    OTHER = "other"


class Document(TenantModel, table=True):
    __tablename__ = "documents"

    client_id: str = Field(foreign_key="leads.id", index=True, ondelete="CASCADE")
    title: str
    document_type: str = Field(default=DocumentType.OTHER.value, index=True)
    file_url: str
    file_size_bytes: Optional[int] = None
    mime_type: Optional[str] = None
    description: Optional[str] = None
    is_visible_to_client: bool = False
    uploaded_by: Optional[str] = Field(default=None, foreign_key="users.id")
