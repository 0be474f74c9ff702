"""Pydantic schemas for the team API."""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, model_validator

from .models import AssignmentRole, TeamRole, TimeEntryType


# =============================================================================
# Team members
# =============================================================================


class TeamMemberCreate(BaseModel):
    model_config = {"use_enum_values": True}

    user_id: Optional[str] = None
    display_name: str = Field(min_length=1)
    email: EmailStr
    phone: Optional[str] = None
    role: TeamRole = TeamRole.PROVIDER
    title: Optional[str] = None
    bio: Optional[str] = None
    certifications: list[str] = Field(default_factory=list)
    specialties: list[str] = Field(default_factory=list)
    is_accepting_clients: bool = True
    max_clients: Optional[int] = Field(default=None, ge=0)
    oncall_phone: Optional[str] = None


class TeamMemberUpdate(BaseModel):
    model_config = {"use_enum_values": True}

    display_name: Optional[str] = Field(default=None, min_length=1)
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    role: Optional[TeamRole] = None
    title: Optional[str] = None
    bio: Optional[str] = None
    certifications: Optional[list[str]] = None
    specialties: Optional[list[str]] = None
    is_accepting_clients: Optional[bool] = None
    max_clients: Optional[int] = Field(default=None, ge=0)
    oncall_phone: Optional[str] = None


class TeamMemberRead(BaseModel):
    id: str
    user_id: Optional[str]
    display_name: str
    email: str
    phone: Optional[str]
    role: str
    title: Optional[str]
    bio: Optional[str]
    certifications: list[str]
    specialties: list[str]
    is_active: bool
    is_accepting_clients: bool
    max_clients: Optional[int]
    oncall_phone: Optional[str]
    created_at: datetime

    model_config = {"from_attributes": True}


# =============================================================================
# Assignments
# =============================================================================


class AssignmentCreate(BaseModel):
    model_config = {"use_enum_values": True}

    client_id: str
    team_member_id: str
    assignment_role: AssignmentRole = AssignmentRole.PRIMARY
    notes: Optional[str] = None


class AssignmentUpdate(BaseModel):
    model_config = {"use_enum_values": True}

    assignment_role: Optional[AssignmentRole] = None
    notes: Optional[str] = None


class AssignmentRead(BaseModel):
    id: str
    client_id: str
    team_member_id: str
    assignment_role: str
    notes: Optional[str]
    created_at: datetime

    model_config = {"from_attributes": True}


# =============================================================================
# Time entries
# =============================================================================


class TimeEntryCreate(BaseModel):
    model_config = {"use_enum_values": True}

    team_member_id: str
    client_id: Optional[str] = None
    service_id: Optional[str] = None
    entry_date: date
    hours: float = Field(gt=0, le=24)
    entry_type: TimeEntryType = TimeEntryType.OTHER
    description: Optional[str] = None
    billable: bool = True


class TimeEntryUpdate(BaseModel):
    model_config = {"use_enum_values": True}

    entry_date: Optional[date] = None
    hours: Optional[float] = Field(default=None, gt=0, le=24)
    entry_type: Optional[TimeEntryType] = None
    description: Optional[str] = None
    billable: Optional[bool] = None
    invoiced: Optional[bool] = None


class TimeEntryRead(BaseModel):
    id: str
    team_member_id: str
    client_id: Optional[str]
    service_id: Optional[str]
    entry_date: date
    hours: float
    entry_type: str
    description: Optional[str]
    billable: bool
    invoiced: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class TimeSummary(BaseModel):
    total_hours: float
    billable_hours: float
    by_type: dict[str, float]


# =============================================================================
# On-call
# =============================================================================


class OnCallCreate(BaseModel):
    team_member_id: str
    start_date: date
    end_date: date
    notes: Optional[str] = None

    @model_validator(mode="after")
    def check_range(self) -> "OnCallCreate":
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class OnCallUpdate(BaseModel):
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    notes: Optional[str] = None


class OnCallRead(BaseModel):
    id: str
    team_member_id: str
    start_date: date
    end_date: date
    notes: Optional[str]

    model_config = {"from_attributes": True}


class MemberStats(BaseModel):
    active_client_count: int
    hours_this_month: float
    billable_hours_this_month: float


class TeamOverview(BaseModel):
    members: list[TeamMemberRead]
    current_on_call: list[OnCallRead]
