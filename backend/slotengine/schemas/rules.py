# backend/slotengine/schemas/rules.py
"""
Pydantic schemas for the availability rule API.

JSON uses camelCase (daysOfWeek, startTime, ...); snake_case names
are accepted too.
"""

from datetime import date
from typing import Optional
from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

from ..services.slots import AvailabilityRule, build_rule, rule_to_dict


class TimeRange(BaseModel):
    start: str = Field(description="HH:MM")
    end: str = Field(description="HH:MM")

    model_config = {"alias_generator": to_camel, "populate_by_name": True}


class CustomDayIn(BaseModel):
    date: date
    leave_type: str = Field(description="full / break")
    breaks: list[TimeRange] = []
    reason: Optional[str] = None

    model_config = {"alias_generator": to_camel, "populate_by_name": True}


class SlotRuleIn(BaseModel):
    """Recurring availability rule as sent by the management UI."""
    days_of_week: list[int] = Field(description="0 = Sunday ... 6 = Saturday")
    start_time: str
    end_time: str
    slot_duration: int
    breaks: list[TimeRange] = []
    custom_days: list[CustomDayIn] = []
    effective_from: Optional[date] = None
    effective_to: Optional[date] = None

    model_config = {"alias_generator": to_camel, "populate_by_name": True}

    def to_rule(self) -> AvailabilityRule:
        """Build and validate (raises ValidationError)."""
        return build_rule(**self.model_dump())


class SlotRuleRead(SlotRuleIn):
    @classmethod
    def from_rule(cls, rule: AvailabilityRule) -> "SlotRuleRead":
        return cls(**rule_to_dict(rule))


class SlotRuleResponse(BaseModel):
    success: bool = True
    rule: Optional[SlotRuleRead] = None
    message: str = ""

    model_config = {"alias_generator": to_camel, "populate_by_name": True}
