"""Business logic for client documents."""

from __future__ import annotations

import logging
from typing import Optional

from sqlmodel import Session, col, select

from doula_crm import events
from doula_crm.core.context import RequestContext
from doula_crm.core.errors import InvalidOperationError
from doula_crm.core.models import apply_changes, to_dict
from doula_crm.leads.service import get_org_lead
from doula_crm.notifications.service import queue_client_email

from .models import Document
from .schemas import DocumentCreate, DocumentUpdate

logger = logging.getLogger(__name__)


class DocumentService:
    def __init__(self, session: Session, ctx: RequestContext):
        self.session = session
        self.ctx = ctx

    def _base(self):
        return select(Document).where(Document.organization_id == self.ctx.organization_id)

    def list_for_client(self, client_id: str) -> list[Document]:
        statement = self._base().where(Document.client_id == client_id)
        return list(self.session.exec(statement.order_by(col(Document.created_at).desc())).all())

    def list_by_type(self, client_id: str, document_type: str) -> list[Document]:
        statement = self._base().where(Document.client_id == client_id, Document.document_type == document_type)
        return list(self.session.exec(statement.order_by(col(Document.created_at).desc())).all())

    def client_visible(self, client_id: str) -> list[Document]:
        statement = self._base().where(
            Document.client_id == client_id,
            Document.is_visible_to_client == True,  # noqa: E712
        )
        return list(self.session.exec(statement.order_by(col(Document.created_at).desc())).all())

    def get_document(self, document_id: str) -> Optional[Document]:
        document = self.session.get(Document, document_id)
        if not document or document.organization_id != self.ctx.organization_id:
            return None
        return document

    def add(self, data: DocumentCreate) -> Document:
        if not get_org_lead(self.session, self.ctx.organization_id, data.client_id):
            raise InvalidOperationError("Client not found")
        document = Document(
            organization_id=self.ctx.organization_id,
            uploaded_by=self.ctx.user_id,
            **data.model_dump(),
        )
        self.session.add(document)
        self.session.commit()
        self.session.refresh(document)
        logger.info(
            "Document added",
            extra={"organization_id": document.organization_id, "record_id": document.id},
        )
        events.record_created(
            self.session, document.organization_id, "document", to_dict(document), "document.uploaded"
        )
        self.session.refresh(document)
        return document

    def update(self, document_id: str, data: DocumentUpdate) -> Optional[Document]:
        document = self.get_document(document_id)
        if not document:
            return None
        previous = to_dict(document)
        apply_changes(document, data.model_dump(exclude_unset=True))
        self.session.add(document)
        self.session.commit()
        self.session.refresh(document)
        events.record_updated(self.session, document.organization_id, "document", to_dict(document), previous)
        self.session.refresh(document)
        return document

    def toggle_visibility(self, document_id: str) -> Optional[Document]:
        document = self.get_document(document_id)
        if not document:
            return None
        previous = to_dict(document)
        apply_changes(document, {"is_visible_to_client": not document.is_visible_to_client})
        self.session.add(document)
        if document.is_visible_to_client:
            queue_client_email(
                self.session,
                document.organization_id,
                document.client_id,
                "document_shared",
                f"A new document has been shared with you: {document.title}",
                metadata={"document_id": document.id, "document_type": document.document_type},
            )
        self.session.commit()
        self.session.refresh(document)
        events.record_updated(self.session, document.organization_id, "document", to_dict(document), previous)
        self.session.refresh(document)
        return document

    def delete(self, document_id: str) -> Optional[Document]:
        document = self.get_document(document_id)
        if not document:
            return None
        self.session.delete(document)
        self.session.commit()
        return document
