"""Record-level sharing: organization-wide defaults, rules and manual shares."""

from .models import AccessLevel, AccessSource, ManualShare, RuleType, SharingRule, ShareWithType

__all__ = ["AccessLevel", "AccessSource", "ManualShare", "RuleType", "SharingRule", "ShareWithType"]
