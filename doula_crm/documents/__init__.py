"""Client document metadata."""

from .models import Document, DocumentType

__all__ = ["Document", "DocumentType"]
