"""Leads domain - leads, clients, activities and action items.

Routes live in ``doula_crm.leads.router``; business logic in
``doula_crm.leads.service``.
"""

from .models import ActionItem, ActivityType, Lead, LeadActivity, LeadSource, LeadStatus, LifecycleStage

__all__ = [
    "ActionItem",
    "ActivityType",
    "Lead",
    "LeadActivity",
    "LeadSource",
    "LeadStatus",
    "LifecycleStage",
]
