"""Contract templates and client signatures."""

from .models import ContractSignature, ContractTemplate, SignatureStatus

__all__ = ["ContractSignature", "ContractTemplate", "SignatureStatus"]
