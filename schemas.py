"""Pydantic schemas for Context Reminders.

This module defines request and response schemas for API validation.
Reminder details are validated as a tagged union: the sub-structure named
by trigger_type must be present and the others absent.
"""

from pydantic import BaseModel, Field, field_validator, model_validator
from datetime import datetime, timezone
from typing import Optional, Dict, List, Literal


class LocationDetails(BaseModel):
    """Geofence center and radius."""

    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    radius_meters: float = Field(
        default=500,
        gt=0,
        description="Geofence radius in meters (default: 500)"
    )


class ConditionDetails(BaseModel):
    """Weather condition to match, compared case-insensitively."""

    kind: Literal["weather"] = "weather"
    label: str = Field(..., min_length=1, examples=["rain", "Clear"])


class ReminderDetails(BaseModel):
    """Trigger payload. Exactly one field is set, matching trigger_type."""

    time: Optional[datetime] = Field(
        None,
        description="When the reminder is due (ISO 8601). Naive values are taken as UTC",
        examples=["2024-01-01T10:00:00Z"]
    )
    location: Optional[LocationDetails] = None
    condition: Optional[ConditionDetails] = None

    @field_validator('time')
    @classmethod
    def _assume_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is not None and value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc) if value is not None else None


class ReminderBase(BaseModel):
    """Fields shared by create and update requests."""

    title: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Reminder title",
        examples=["Buy milk", "Take an umbrella"]
    )

    category: str = Field(default="", max_length=100, description="Free-text category")

    trigger_type: str = Field(
        ...,
        pattern="^(time|location|condition)$",
        description="Trigger kind: time, location or condition"
    )

    details: ReminderDetails

    is_recurring: bool = False

    recurring_interval: Optional[str] = Field(
        None,
        pattern="^(daily|weekly|monthly)$",
        description="Recurrence interval, required when is_recurring is true"
    )

    @field_validator('title')
    @classmethod
    def _title_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("title must not be blank")
        return value

    @model_validator(mode='after')
    def _check_variant(self):
        present = {
            name for name in ('time', 'location', 'condition')
            if getattr(self.details, name) is not None
        }
        if present != {self.trigger_type}:
            raise ValueError(
                f"details must contain exactly '{self.trigger_type}' "
                f"for trigger_type '{self.trigger_type}', got {sorted(present)}"
            )

        if self.is_recurring and not self.recurring_interval:
            raise ValueError("recurring_interval is required when is_recurring is true")
        if not self.is_recurring:
            self.recurring_interval = None
        return self

    def to_record(self) -> dict:
        """Flatten to the dict shape expected by crud (details as JSON)."""
        data = self.model_dump(exclude={'details'})
        data['details'] = self.details.model_dump(mode='json', exclude_none=True)
        return data


class ReminderCreate(ReminderBase):
    """Schema for creating a new reminder."""


class ReminderUpdate(ReminderBase):
    """Schema for editing a reminder.

    An edit replaces title, category, trigger and recurrence fields.
    The reminder ID is preserved.
    """


class ReminderResponse(BaseModel):
    """Schema for reminder responses."""

    id: str
    user_id: str
    title: str
    category: str
    trigger_type: str
    details: Dict
    is_recurring: bool
    recurring_interval: Optional[str] = None
    notified: bool
    shared_by: Optional[str] = None
    shared_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        """Pydantic configuration"""
        from_attributes = True

        json_schema_extra = {
            "example": {
                "id": "abc-123-def-456",
                "user_id": "user-1",
                "title": "Take an umbrella",
                "category": "errands",
                "trigger_type": "condition",
                "details": {"condition": {"kind": "weather", "label": "rain"}},
                "is_recurring": False,
                "recurring_interval": None,
                "notified": False,
                "shared_by": None,
                "shared_at": None,
                "created_at": "2024-01-01T09:00:00+00:00",
                "updated_at": "2024-01-01T09:00:00+00:00"
            }
        }


class ShareRequest(BaseModel):
    """Share a reminder with another registered user."""

    recipient_email: str = Field(
        ...,
        pattern=r'^[^@\s]+@[^@\s]+\.[^@\s]+$',
        description="Email of the recipient account"
    )


class UserCreate(BaseModel):
    """Register an authenticated account with the reminder service."""

    id: str = Field(..., min_length=1)
    email: str = Field(..., pattern=r'^[^@\s]+@[^@\s]+\.[^@\s]+$')


class UserResponse(BaseModel):
    id: str
    email: str
    created_at: datetime

    class Config:
        from_attributes = True


class PositionReport(BaseModel):
    """Current device coordinate."""

    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class CheckRequest(BaseModel):
    """On-device sweep request.

    position is null when the device has no location permission.
    """

    position: Optional[PositionReport] = None


class SweepResponse(BaseModel):
    user_id: str
    evaluated: int
    fired: List[str]
    failed: List[str]
    mark_errors: List[str]
    position_available: bool
    weather: Optional[str] = None
