# backend/slotengine/schemas/slots.py
"""
Pydantic schemas for slots API.
"""

from datetime import date
from typing import Optional
from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

from .rules import TimeRange

_CAMEL = {"alias_generator": to_camel, "populate_by_name": True}


class SlotRead(BaseModel):
    """One slot of a month preview or date view."""
    date: date
    start: str  # "HH:MM"
    end: str
    status: str  # available / booked / cancelled
    custom_duration: Optional[int] = None
    is_past: bool = False

    model_config = _CAMEL


class MonthSlotsResponse(BaseModel):
    slots: list[SlotRead]

    model_config = _CAMEL


class DaySlotsResponse(BaseModel):
    success: bool = True
    slots: list[SlotRead]
    message: str = ""

    model_config = _CAMEL


class CustomSlotUpdate(BaseModel):
    """Add a slot with its own duration, or resize the one starting at `start`."""
    date: date
    start: str
    duration: int = Field(description="Minutes")

    model_config = _CAMEL


class CustomSlotCancel(BaseModel):
    date: date
    start: str

    model_config = _CAMEL


class LeaveCreate(BaseModel):
    date: date
    leave_type: str = Field(description="full / break")
    slots: list[TimeRange] = Field(default=[], description="Extra break windows (break leave)")
    reason: Optional[str] = None

    model_config = _CAMEL


class SlotLockRequest(BaseModel):
    """Booking-flow collaborator request for lock / release."""
    provider_id: int
    date: date
    start: str
    appointment_id: str

    model_config = _CAMEL


class SlotState(BaseModel):
    """Ledger row as returned by write operations."""
    date: date
    start: str
    end: str
    status: str
    custom_duration: Optional[int] = None
    appointment_id: Optional[str] = None

    model_config = {**_CAMEL, "from_attributes": True}


class SlotActionResponse(BaseModel):
    success: bool = True
    message: str = ""
    slot: Optional[SlotState] = None

    model_config = _CAMEL


class LeaveResponse(BaseModel):
    success: bool = True
    message: str = ""
    slots: list[SlotState]

    model_config = _CAMEL
