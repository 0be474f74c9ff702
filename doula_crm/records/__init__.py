"""Generic metadata-driven record API over standard and custom objects."""

from .models import CrmRecord

__all__ = ["CrmRecord"]
