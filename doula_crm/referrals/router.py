"""API routes for referral partners."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlmodel import Session

from doula_crm.core.config import get_settings
from doula_crm.core.context import RequestContext, get_request_context
from doula_crm.core.database import get_session

from .models import ReferralPartner
from .schemas import ReferralPartnerCreate, ReferralPartnerRead, ReferralPartnerUpdate, ReferralStats
from .service import ReferralPartnerService, referral_url

router = APIRouter(prefix="/referral-partners", tags=["referrals"])


def get_service(
    session: Session = Depends(get_session),
    ctx: RequestContext = Depends(get_request_context),
) -> ReferralPartnerService:
    return ReferralPartnerService(session, ctx)


def _read(partner: ReferralPartner, counts: dict[str, tuple[int, int]] | None = None) -> ReferralPartnerRead:
    read = ReferralPartnerRead.model_validate(partner)
    read.referral_url = referral_url(get_settings().public_site_url, partner.referral_code)
    if counts:
        read.lead_count, read.converted_count = counts.get(partner.id, (0, 0))
    return read


def _get_or_404(service: ReferralPartnerService, partner_id: str) -> ReferralPartner:
    partner = service.get_partner(partner_id)
    if not partner:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Referral partner '{partner_id}' not found")
    return partner


@router.get("", response_model=list[ReferralPartnerRead])
def list_partners(
    active_only: bool = False,
    search: Optional[str] = None,
    service: ReferralPartnerService = Depends(get_service),
) -> list[ReferralPartnerRead]:
    counts = service.lead_counts()
    return [_read(p, counts) for p in service.list_partners(active_only=active_only, search=search)]


@router.get("/stats", response_model=ReferralStats)
def partner_stats(service: ReferralPartnerService = Depends(get_service)) -> ReferralStats:
    return ReferralStats(**service.get_stats())


@router.post("", response_model=ReferralPartnerRead, status_code=status.HTTP_201_CREATED)
def create_partner(
    data: ReferralPartnerCreate, service: ReferralPartnerService = Depends(get_service)
) -> ReferralPartnerRead:
    return _read(service.create_partner(data))


@router.get("/{partner_id}", response_model=ReferralPartnerRead)
def get_partner(partner_id: str, service: ReferralPartnerService = Depends(get_service)) -> ReferralPartnerRead:
    return _read(_get_or_404(service, partner_id), service.lead_counts())


@router.patch("/{partner_id}", response_model=ReferralPartnerRead)
def update_partner(
    partner_id: str, data: ReferralPartnerUpdate, service: ReferralPartnerService = Depends(get_service)
) -> ReferralPartnerRead:
    _get_or_404(service, partner_id)
    return _read(service.update_partner(partner_id, data))


@router.post("/{partner_id}/toggle", response_model=ReferralPartnerRead)
def toggle_partner(partner_id: str, service: ReferralPartnerService = Depends(get_service)) -> ReferralPartnerRead:
    _get_or_404(service, partner_id)
    return _read(service.toggle_status(partner_id))


@router.delete("/{partner_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_partner(partner_id: str, service: ReferralPartnerService = Depends(get_service)) -> None:
    _get_or_404(service, partner_id)
    service.delete_partner(partner_id)
