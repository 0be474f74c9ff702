"""SQLModel tables for team members, assignments, time tracking and on-call."""

from datetime import date
from enum import Enum
from typing import Optional

from sqlalchemy import JSON, UniqueConstraint
from sqlmodel import Field

from doula_crm.core.models import TenantModel


class TeamRole(str, Enum):
    OWNER = "owner"
    ADMIN = "admin"
    PROVIDER = "provider"
    ASSISTANT = "assistant"


class AssignmentRole(str, Enum):
    PRIMARY = "primary"
    BACKUP = "backup"
    SUPPORT = "support"


class TimeEntryType(str, Enum):
    CLIENT_VISIT = "client_visit"
    BIRTH_SUPPORT = "birth_support"
    POSTPARTUM_VISIT = "postpartum_visit"
    PHONE_CALL = "phone_call"
    ADMIN = "admin"
    TRAVEL = "travel"
    TRAINING = "training"
    OTHER = "other"


class TeamMember(TenantModel, table=True):
    __tablename__ = "team_members"

    user_id: Optional[str] = Field(default=None, foreign_key="users.id", index=True)
    display_name: str = Field(index=True)
    email: str
    phone: Optional[str] = None
    role: str = Field(default=TeamRole.PROVIDER.value)
    title: Optional[str] = None
    bio: Optional[str] = None
    certifications: list[str] = Field(default_factory=list, sa_type=JSON)
    specialties: list[str] = Field(default_factory=list, sa_type=JSON)
    is_active: bool = True
    is_accepting_clients: bool = True
    max_clients: Optional[int] = None
    oncall_phone: Optional[str] = None


class ClientAssignment(TenantModel, table=True):
    __tablename__ = "client_assignments"
    __table_args__ = (UniqueConstraint("client_id", "team_member_id"),)

    client_id: str = Field(foreign_key="leads.id", index=True, ondelete="CASCADE")
    team_member_id: str = Field(foreign_key="team_members.id", index=True, ondelete="CASCADE")
    assignment_role: str = Field(default=AssignmentRole.PRIMARY.value)
    notes: Optional[str] = None


class TimeEntry(TenantModel, table=True):
    __tablename__ = "time_entries"

    team_member_id: str = Field(foreign_key="team_members.id", index=True, ondelete="CASCADE")
    client_id: Optional[str] = Field(default=None, foreign_key="leads.id", index=True, ondelete="SET NULL")
    service_id: Optional[str] = Field(default=None, foreign_key="client_services.id", ondelete="SET NULL")
    entry_date: date = Field(index=True)
    hours: float
    entry_type: str = Field(default=TimeEntryType.OTHER.value)
    description: Optional[str] = None
    billable: bool = True
    invoiced: bool = False


class OnCallSchedule(TenantModel, table=True):
    __tablename__ = "oncall_schedule"

    team_member_id: str = Field(foreign_key="team_members.id", index=True, ondelete="CASCADE")
    start_date: date = Field(index=True)
    end_date: date
    notes: Optional[str] = None
