"""Payments received from clients."""

from .models import Payment, PaymentMethod, PaymentRecordStatus, PaymentType

__all__ = ["Payment", "PaymentMethod", "PaymentRecordStatus", "PaymentType"]
