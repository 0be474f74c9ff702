"""Client meetings and appointments."""

from .models import Meeting, MeetingStatus, MeetingType

__all__ = ["Meeting", "MeetingStatus", "MeetingType"]
