"""Practice team: members, client assignments, time tracking and on-call."""

from .models import AssignmentRole, ClientAssignment, OnCallSchedule, TeamMember, TeamRole, TimeEntry, TimeEntryType

__all__ = [
    "AssignmentRole",
    "ClientAssignment",
    "OnCallSchedule",
    "TeamMember",
    "TeamRole",
    "TimeEntry",
    "TimeEntryType",
]
