"""Pydantic schemas for the documents API."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from .models import DocumentType


class DocumentCreate(BaseModel):
    model_config = {"use_enum_values": True}

    client_id: str
    title: str = Field(min_length=1)
    document_type: DocumentType = DocumentType.OTHER
    file_url: str = Field(min_length=1)
    file_size_bytes: Optional[int] = Field(default=None, ge=0)
    mime_type: Optional[str] = None
    description: Optional[str] = None
    is_visible_to_client: bool = False


class DocumentUpdate(BaseModel):
    model_config = {"use_enum_values": True}

    title: Optional[str] = Field(default=None, min_length=1)
    document_type: Optional[DocumentType] = None
    description: Optional[str] = None
    is_visible_to_client: Optional[bool] = None


class DocumentRead(BaseModel):
    id: str
    client_id: str
    title: str
    document_type: str
    file_url: str
    file_size_bytes: Optional[int]
    mime_type: Optional[str]
    description: Optional[str]
    is_visible_to_client: bool
    uploaded_by: Optional[str]
    created_at: datetime

    model_config = {"from_attributes": True}
