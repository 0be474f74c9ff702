"""Contract templates, signing and voiding."""

from __future__ import annotations

import logging
from typing import Any, Optional

from sqlmodel import Session, col, select

from doula_crm import events
from doula_crm.client_services.models import ClientService
from doula_crm.client_services.service import mark_contract_signed
from doula_crm.core.context import RequestContext
from doula_crm.core.errors import InvalidOperationError
from doula_crm.core.models import apply_changes, to_dict, utcnow
from doula_crm.core.text import render_placeholders
from doula_crm.leads.service import get_org_lead

from .models import ContractSignature, ContractTemplate, SignatureStatus
from .schemas import SignContractRequest, TemplateCreate, TemplateUpdate

logger = logging.getLogger(__name__)


def render_contract(content: str, values: dict[str, Any]) -> str:
    return render_placeholders(content, values)


class ContractService:
    def __init__(self, session: Session, ctx: RequestContext):
        self.session = session
        self.ctx = ctx

    # =========================================================================
    # Templates
    # =========================================================================

    def list_templates(self, active_only: bool = False) -> list[ContractTemplate]:
        statement = select(ContractTemplate).where(ContractTemplate.organization_id == self.ctx.organization_id)
        if active_only:
            statement = statement.where(ContractTemplate.is_active == True)  # noqa: E712
        return list(self.session.exec(statement.order_by(col(ContractTemplate.name))).all())

    def get_template(self, template_id: str) -> Optional[ContractTemplate]:
        template = self.session.get(ContractTemplate, template_id)
        if not template or template.organization_id != self.ctx.organization_id:
            return None
        return template

    def default_template(self, service_type: Optional[str] = None) -> Optional[ContractTemplate]:
        """Default for the service type, then any active one for it, then any general template."""
        base = select(ContractTemplate).where(
            ContractTemplate.organization_id == self.ctx.organization_id,
            ContractTemplate.is_active == True,  # noqa: E712
        )
        candidates = []
        if service_type:
            typed = base.where(ContractTemplate.service_type == service_type)
            candidates.append(typed.where(ContractTemplate.is_default == True))  # noqa: E712
            candidates.append(typed)
        candidates.append(base.where(ContractTemplate.is_default == True))  # noqa: E712
        candidates.append(base.where(col(ContractTemplate.service_type).is_(None)))

        for statement in candidates:
            template = self.session.exec(statement.order_by(col(ContractTemplate.created_at))).first()
            if template:
                return template
        return None

    def create_template(self, data: TemplateCreate) -> ContractTemplate:
        if data.is_default:
            self._clear_defaults(data.service_type)
        template = ContractTemplate(organization_id=self.ctx.organization_id, version=1, **data.model_dump())
        self.session.add(template)
        self.session.commit()
        self.session.refresh(template)
        return template

    def update_template(self, template_id: str, data: TemplateUpdate) -> Optional[ContractTemplate]:
        template = self.get_template(template_id)
        if not template:
            return None
        changes = data.model_dump(exclude_unset=True)
        if changes.get("content") and changes["content"] != template.content:
            changes["version"] = template.version + 1
        if changes.get("is_default"):
            self._clear_defaults(template.service_type, exclude_id=template.id)
        apply_changes(template, changes)
        self.session.add(template)
        self.session.commit()
        self.session.refresh(template)
        return template

    def _clear_defaults(self, service_type: Optional[str], exclude_id: Optional[str] = None) -> None:
        statement = select(ContractTemplate).where(
            ContractTemplate.organization_id == self.ctx.organization_id,
            ContractTemplate.is_default == True,  # noqa: E712
        )
        if service_type:
            statement = statement.where(ContractTemplate.service_type == service_type)
        else:
            statement = statement.where(col(ContractTemplate.service_type).is_(None))
        for other in self.session.exec(statement).all():
            if other.id != exclude_id:
                other.is_default = False
                self.session.add(other)

    # =========================================================================
    # Signatures
    # =========================================================================

    def sign(
        self,
        data: SignContractRequest,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> ContractSignature:
        client = get_org_lead(self.session, self.ctx.organization_id, data.client_id)
        if not client:
            raise InvalidOperationError("Client not found")
        template = self.get_template(data.template_id)
        if not template:
            raise InvalidOperationError("Contract template not found")
        service = self._get_service(data.service_id) if data.service_id else None

        signed_at = utcnow()
        content = render_contract(
            template.content,
            {
                "client_name": client.name,
                "service_name": (service.package_name or service.service_type) if service else None,
                "date": signed_at.date().isoformat(),
            },
        )
        signature = ContractSignature(
            organization_id=self.ctx.organization_id,
            client_id=client.id,
            service_id=data.service_id,
            template_id=template.id,
            template_version=template.version,
            content_snapshot=content,
            signer_name=data.signer_name,
            signer_email=str(data.signer_email),
            signed_at=signed_at,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        self.session.add(signature)
        self.session.flush()
        if service:
            mark_contract_signed(service, signature.id)
            self.session.add(service)
        self.session.commit()
        self.session.refresh(signature)

        logger.info(
            "Contract signed",
            extra={"organization_id": signature.organization_id, "record_id": signature.id},
        )
        events.record_created(
            self.session, signature.organization_id, "contract", to_dict(signature), "contract.signed"
        )
        self.session.refresh(signature)
        return signature

    def get_signature(self, signature_id: str) -> Optional[ContractSignature]:
        signature = self.session.get(ContractSignature, signature_id)
        if not signature or signature.organization_id != self.ctx.organization_id:
            return None
        return signature

    def client_signatures(self, client_id: str) -> list[ContractSignature]:
        statement = (
            select(ContractSignature)
            .where(
                ContractSignature.organization_id == self.ctx.organization_id,
                ContractSignature.client_id == client_id,
            )
            .order_by(col(ContractSignature.signed_at).desc())
        )
        return list(self.session.exec(statement).all())

    def service_signature(self, service_id: str) -> Optional[ContractSignature]:
        statement = (
            select(ContractSignature)
            .where(
                ContractSignature.organization_id == self.ctx.organization_id,
                ContractSignature.service_id == service_id,
                ContractSignature.status == SignatureStatus.SIGNED.value,
            )
            .order_by(col(ContractSignature.signed_at).desc())
        )
        return self.session.exec(statement).first()

    def void(self, signature_id: str, reason: str) -> Optional[ContractSignature]:
        signature = self.get_signature(signature_id)
        if not signature:
            return None
        if signature.status == SignatureStatus.VOIDED.value:
            raise InvalidOperationError("Signature is already voided")
        apply_changes(
            signature,
            {"status": SignatureStatus.VOIDED.value, "voided_at": utcnow(), "void_reason": reason},
        )
        self.session.add(signature)
        if signature.service_id:
            service = self.session.get(ClientService, signature.service_id)
            if service and service.contract_signature_id == signature.id:
                apply_changes(
                    service,
                    {"contract_signed": False, "contract_signed_at": None, "contract_signature_id": None},
                )
                self.session.add(service)
        self.session.commit()
        self.session.refresh(signature)
        logger.info("Contract signature voided", extra={"record_id": signature.id})
        return signature

    def contract_requirement(self, service_id: str) -> dict[str, Any]:
        service = self.session.get(ClientService, service_id)
        if not service or service.organization_id != self.ctx.organization_id:
            return {"required": False, "signed": False, "signature": None}
        signature = self.get_signature(service.contract_signature_id) if service.contract_signature_id else None
        return {"required": service.contract_required, "signed": service.contract_signed, "signature": signature}

    def _get_service(self, service_id: str) -> ClientService:
        service = self.session.get(ClientService, service_id)
        if not service or service.organization_id != self.ctx.organization_id:
            raise InvalidOperationError("Service not found")
        return service
