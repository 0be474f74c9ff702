"""API routes for client documents."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlmodel import Session

from doula_crm.core.context import RequestContext, get_request_context
from doula_crm.core.database import get_session

from .schemas import DocumentCreate, DocumentRead, DocumentUpdate
from .service import DocumentService

router = APIRouter(prefix="/documents", tags=["documents"])


def get_service(
    session: Session = Depends(get_session),
    ctx: RequestContext = Depends(get_request_context),
) -> DocumentService:
    return DocumentService(session, ctx)


def _not_found(document_id: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Document '{document_id}' not found")


@router.get("", response_model=list[DocumentRead])
def list_documents(
    client_id: str,
    document_type: Optional[str] = None,
    visible_only: bool = False,
    service: DocumentService = Depends(get_service),
) -> list[DocumentRead]:
    if visible_only:
        documents = service.client_visible(client_id)
    elif document_type:
        documents = service.list_by_type(client_id, document_type)
    else:
        documents = service.list_for_client(client_id)
    return [DocumentRead.model_validate(d) for d in documents]


@router.post("", response_model=DocumentRead, status_code=status.HTTP_201_CREATED)
def add_document(data: DocumentCreate, service: DocumentService = Depends(get_service)) -> DocumentRead:
    return DocumentRead.model_validate(service.add(data))


@router.get("/{document_id}", response_model=DocumentRead)
def get_document(document_id: str, service: DocumentService = Depends(get_service)) -> DocumentRead:
    document = service.get_document(document_id)
    if not document:
        raise _not_found(document_id)
    return DocumentRead.model_validate(document)


@router.patch("/{document_id}", response_model=DocumentRead)
def update_document(
    document_id: str, data: DocumentUpdate, service: DocumentService = Depends(get_service)
) -> DocumentRead:
    document = service.update(document_id, data)
    if not document:
        raise _not_found(document_id)
    return DocumentRead.model_validate(document)


@router.post("/{document_id}/toggle-visibility", response_model=DocumentRead)
def toggle_document_visibility(document_id: str, service: DocumentService = Depends(get_service)) -> DocumentRead:
    document = service.toggle_visibility(document_id)
    if not document:
        raise _not_found(document_id)
    return DocumentRead.model_validate(document)


@router.delete("/{document_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_document(document_id: str, service: DocumentService = Depends(get_service)) -> None:
    if not service.delete(document_id):
        raise _not_found(document_id)
