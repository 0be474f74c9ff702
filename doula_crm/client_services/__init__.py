"""Client services domain - packages sold to clients."""

from .models import ClientService, PaymentStatus, ServiceStatus, ServiceType

__all__ = ["ClientService", "PaymentStatus", "ServiceStatus", "ServiceType"]
