"""API routes for contract templates and signatures."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlmodel import Session

from doula_crm.core.context import RequestContext, get_request_context, require_admin
from doula_crm.core.database import get_session

from .schemas import (
    ContractRequirement,
    SignatureRead,
    SignContractRequest,
    TemplateCreate,
    TemplateRead,
    TemplateUpdate,
    VoidRequest,
)
from .service import ContractService

router = APIRouter(prefix="/contracts", tags=["contracts"])


def get_service(
    session: Session = Depends(get_session),
    ctx: RequestContext = Depends(get_request_context),
) -> ContractService:
    return ContractService(session, ctx)


def _template_not_found(template_id: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Contract template '{template_id}' not found")


def _signature_not_found(signature_id: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Signature '{signature_id}' not found")


# =============================================================================
# Templates
# =============================================================================


@router.get("/templates", response_model=list[TemplateRead])
def list_templates(active_only: bool = False, service: ContractService = Depends(get_service)) -> list[TemplateRead]:
    return [TemplateRead.model_validate(t) for t in service.list_templates(active_only)]


@router.get("/templates/default", response_model=TemplateRead)
def default_template(
    service_type: Optional[str] = None, service: ContractService = Depends(get_service)
) -> TemplateRead:
    template = service.default_template(service_type)
    if not template:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No contract template found")
    return TemplateRead.model_validate(template)


@router.get("/templates/{template_id}", response_model=TemplateRead)
def get_template(template_id: str, service: ContractService = Depends(get_service)) -> TemplateRead:
    template = service.get_template(template_id)
    if not template:
        raise _template_not_found(template_id)
    return TemplateRead.model_validate(template)


@router.post(
    "/templates",
    response_model=TemplateRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
)
def create_template(data: TemplateCreate, service: ContractService = Depends(get_service)) -> TemplateRead:
    return TemplateRead.model_validate(service.create_template(data))


@router.patch("/templates/{template_id}", response_model=TemplateRead, dependencies=[Depends(require_admin)])
def update_template(
    template_id: str, data: TemplateUpdate, service: ContractService = Depends(get_service)
) -> TemplateRead:
    template = service.update_template(template_id, data)
    if not template:
        raise _template_not_found(template_id)
    return TemplateRead.model_validate(template)


# =============================================================================
# Signatures
# =============================================================================


@router.post("/sign", response_model=SignatureRead, status_code=status.HTTP_201_CREATED)
def sign_contract(
    data: SignContractRequest, request: Request, service: ContractService = Depends(get_service)
) -> SignatureRead:
    forwarded = request.headers.get("x-forwarded-for")
    ip_address = forwarded.split(",")[0].strip() if forwarded else (request.client.host if request.client else None)
    signature = service.sign(data, ip_address=ip_address, user_agent=request.headers.get("user-agent"))
    return SignatureRead.model_validate(signature)


@router.get("/signatures", response_model=list[SignatureRead])
def client_signatures(client_id: str, service: ContractService = Depends(get_service)) -> list[SignatureRead]:
    return [SignatureRead.model_validate(s) for s in service.client_signatures(client_id)]


@router.get("/signatures/{signature_id}", response_model=SignatureRead)
def get_signature(signature_id: str, service: ContractService = Depends(get_service)) -> SignatureRead:
    signature = service.get_signature(signature_id)
    if not signature:
        raise _signature_not_found(signature_id)
    return SignatureRead.model_validate(signature)


@router.post("/signatures/{signature_id}/void", response_model=SignatureRead, dependencies=[Depends(require_admin)])
def void_signature(
    signature_id: str, data: VoidRequest, service: ContractService = Depends(get_service)
) -> SignatureRead:
    signature = service.void(signature_id, data.reason)
    if not signature:
        raise _signature_not_found(signature_id)
    return SignatureRead.model_validate(signature)


@router.get("/services/{service_id}/signature", response_model=SignatureRead)
def service_signature(service_id: str, service: ContractService = Depends(get_service)) -> SignatureRead:
    signature = service.service_signature(service_id)
    if not signature:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No signed contract for this service")
    return SignatureRead.model_validate(signature)


@router.get("/services/{service_id}/requirement", response_model=ContractRequirement)
def contract_requirement(service_id: str, service: ContractService = Depends(get_service)) -> ContractRequirement:
    result = service.contract_requirement(service_id)
    signature = result["signature"]
    return ContractRequirement(
        required=result["required"],
        signed=result["signed"],
        signature=SignatureRead.model_validate(signature) if signature else None,
    )
