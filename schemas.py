"""Pydantic schemas for the Reminder Scheduler service.

This module defines request and response schemas for API validation.
Every datetime passing through these schemas is normalized to aware UTC:
naive input is taken as UTC, and naive values read back from SQLite get
their UTC tzinfo restored before serialization.
"""

import enum
from datetime import datetime
from typing import Annotated, List, Optional

from pydantic import AfterValidator, BaseModel, Field, field_validator, model_validator

from time_utils import as_utc

UTCDateTime = Annotated[datetime, AfterValidator(as_utc)]

PHONE_PATTERN = r'^\+?[1-9]\d{1,14}$'
EMAIL_PATTERN = r'^[^@\s]+@[^@\s]+\.[^@\s]+$'
METHOD_PATTERN = "^(email|sms|app_notification)$"


def _enum_value(value):
    """ORM enum members are exposed as their plain string value."""
    if isinstance(value, enum.Enum):
        return value.value
    return value


# ---------------------------------------------------------------- reminders

class ReminderIn(BaseModel):
    """Reminder supplied by the entity owner.

    Sent-state is owned by the scheduler and cannot be set here.
    """

    time: UTCDateTime = Field(
        ...,
        description="When the notification is due (ISO 8601)",
        examples=["2025-10-26T15:00:00Z"]
    )
    method: str = Field(
        default="app_notification",
        pattern=METHOD_PATTERN,
        description="Delivery method: email, sms or app_notification"
    )
    message: Optional[str] = Field(
        None,
        max_length=500,
        description="Optional note appended to the notification"
    )


class ReminderResponse(BaseModel):
    id: str
    time: UTCDateTime
    method: str
    message: Optional[str] = None
    is_sent: bool
    sent_at: Optional[UTCDateTime] = None
    skip_reason: Optional[str] = None

    @field_validator("method", mode="before")
    @classmethod
    def method_value(cls, value):
        return _enum_value(value)

    class Config:
        from_attributes = True


class RemindersReplace(BaseModel):
    """Replace the full reminder list of an entity."""

    reminders: List[ReminderIn] = Field(default_factory=list)


# -------------------------------------------------------------------- users

class UserCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: Optional[str] = Field(
        None,
        pattern=EMAIL_PATTERN,
        description="Address for email reminders"
    )
    phone_number: Optional[str] = Field(
        None,
        pattern=PHONE_PATTERN,
        description="Phone number for SMS reminders (E.164 format, e.g., +15551234567)",
        examples=["+15551234567"]
    )


class UserResponse(BaseModel):
    id: str
    name: str
    email: Optional[str] = None
    phone_number: Optional[str] = None
    created_at: UTCDateTime

    class Config:
        from_attributes = True


# -------------------------------------------------------------------- tasks

class TaskCreate(BaseModel):
    owner_id: str = Field(..., description="ID of the owning user")
    title: str = Field(..., min_length=3, max_length=200, examples=["File report"])
    description: Optional[str] = Field(default="", max_length=1000)
    due_date: Optional[UTCDateTime] = Field(None, description="Planned due date and time")
    status: str = Field(
        default="pending",
        pattern="^(pending|in-progress|completed|deferred|cancelled)$"
    )
    priority: str = Field(default="medium", pattern="^(low|medium|high|urgent)$")
    reminders: List[ReminderIn] = Field(default_factory=list)


class TaskUpdate(BaseModel):
    """Schema for updating an existing task.

    All fields are optional - only provided fields will be updated.
    Existing reminders are kept unless a new reminders list is given.
    """

    title: Optional[str] = Field(None, min_length=3, max_length=200)
    description: Optional[str] = Field(None, max_length=1000)
    due_date: Optional[UTCDateTime] = Field(None, description="Updated due date and time")
    status: Optional[str] = Field(None, pattern="^(pending|in-progress|completed|deferred|cancelled)$")
    priority: Optional[str] = Field(None, pattern="^(low|medium|high|urgent)$")
    reminders: Optional[List[ReminderIn]] = None


class TaskResponse(BaseModel):
    id: str
    owner_id: str
    title: str
    description: Optional[str] = ""
    due_date: Optional[UTCDateTime] = None
    status: str
    priority: str
    reminders: List[ReminderResponse]
    created_at: UTCDateTime
    updated_at: UTCDateTime

    @field_validator("status", "priority", mode="before")
    @classmethod
    def enum_values(cls, value):
        return _enum_value(value)

    class Config:
        from_attributes = True


# ------------------------------------------------------------------- events

class EventCreate(BaseModel):
    owner_id: str = Field(..., description="ID of the owning user")
    title: str = Field(..., min_length=3, max_length=200, examples=["Team Sync Meeting"])
    description: Optional[str] = Field(default="", max_length=1000)
    location: Optional[str] = Field(None, max_length=200)
    start_time: UTCDateTime = Field(..., description="Start date and time of the event")
    end_time: Optional[UTCDateTime] = Field(None, description="End date and time of the event")
    all_day: bool = False
    reminders: List[ReminderIn] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_end_after_start(self):
        if self.end_time is not None and self.end_time < self.start_time:
            raise ValueError("end_time must not be before start_time")
        return self


class EventUpdate(BaseModel):
    """Schema for updating an existing event.

    All fields are optional - only provided fields will be updated.
    """

    title: Optional[str] = Field(None, min_length=3, max_length=200)
    description: Optional[str] = Field(None, max_length=1000)
    location: Optional[str] = Field(None, max_length=200)
    start_time: Optional[UTCDateTime] = None
    end_time: Optional[UTCDateTime] = None
    all_day: Optional[bool] = None
    reminders: Optional[List[ReminderIn]] = None

    @model_validator(mode="after")
    def check_end_after_start(self):
        if self.start_time is not None and self.end_time is not None and self.end_time < self.start_time:
            raise ValueError("end_time must not be before start_time")
        return self


class EventResponse(BaseModel):
    id: str
    owner_id: str
    title: str
    description: Optional[str] = ""
    location: Optional[str] = None
    start_time: UTCDateTime
    end_time: Optional[UTCDateTime] = None
    all_day: bool
    reminders: List[ReminderResponse]
    created_at: UTCDateTime
    updated_at: UTCDateTime

    class Config:
        from_attributes = True


# -------------------------------------------------------------------- goals

class GoalCreate(BaseModel):
    owner_id: str = Field(..., description="ID of the owning user")
    title: str = Field(..., min_length=5, max_length=200, examples=["Learn backend development"])
    description: Optional[str] = Field(default="", max_length=1000)
    target_date: UTCDateTime = Field(..., description="Target completion date")
    progress: float = Field(default=0.0, ge=0, le=100)
    status: str = Field(
        default="active",
        pattern="^(active|completed|overdue|cancelled|on_hold)$"
    )
    reminders: List[ReminderIn] = Field(default_factory=list)


class GoalUpdate(BaseModel):
    """Schema for updating an existing goal.

    All fields are optional - only provided fields will be updated.
    """

    title: Optional[str] = Field(None, min_length=5, max_length=200)
    description: Optional[str] = Field(None, max_length=1000)
    target_date: Optional[UTCDateTime] = None
    progress: Optional[float] = Field(None, ge=0, le=100)
    status: Optional[str] = Field(None, pattern="^(active|completed|overdue|cancelled|on_hold)$")
    reminders: Optional[List[ReminderIn]] = None


class GoalResponse(BaseModel):
    id: str
    owner_id: str
    title: str
    description: Optional[str] = ""
    target_date: UTCDateTime
    progress: float
    status: str
    reminders: List[ReminderResponse]
    created_at: UTCDateTime
    updated_at: UTCDateTime

    @field_validator("status", mode="before")
    @classmethod
    def status_value(cls, value):
        return _enum_value(value)

    class Config:
        from_attributes = True


# ---------------------------------------------------------------- scheduler

class ScanSummaryResponse(BaseModel):
    """Outcome counters of one scan cycle."""

    window_start: UTCDateTime
    window_end: UTCDateTime
    candidates: int
    sent: int
    skipped: int
    failed: int
    vanished: int
    unresolved_owners: int
    failed_kinds: List[str]

    class Config:
        from_attributes = True
