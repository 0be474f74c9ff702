"""Invoices and invoice payments."""

from .models import CLIENT_VISIBLE_STATUSES, Invoice, InvoicePayment, InvoiceStatus

__all__ = ["CLIENT_VISIBLE_STATUSES", "Invoice", "InvoicePayment", "InvoiceStatus"]
