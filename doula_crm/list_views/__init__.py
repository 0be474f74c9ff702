"""Saved list views and the filter query executor shared with records and reports."""

from .models import ListView, ObjectType, ViewVisibility

__all__ = ["ListView", "ObjectType", "ViewVisibility"]
