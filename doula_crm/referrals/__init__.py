"""Referral partners domain."""

from .models import PartnerType, ReferralPartner

__all__ = ["PartnerType", "ReferralPartner"]
