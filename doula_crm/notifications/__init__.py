"""Notification log and client notification preferences."""

from .models import NotificationChannel, NotificationLog, NotificationPreference, NotificationStatus

__all__ = ["NotificationChannel", "NotificationLog", "NotificationPreference", "NotificationStatus"]
