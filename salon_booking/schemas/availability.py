from datetime import date, datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator, model_validator

from salon_booking.utils.time_of_day import is_valid_hhmm
from salon_booking.utils.validation import validate_rule_window


class AvailabilityRuleBase(BaseModel):
    day_of_week: int = Field(..., ge=0, le=6, description="0 = Sunday ... 6 = Saturday")
    start_time: str = Field(..., description="Zero padded 24h HH:MM")
    end_time: str = Field(..., description="Zero padded 24h HH:MM")
    is_exception: bool = False
    exception_date: Optional[date] = None

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_hhmm(cls, v):
        if not is_valid_hhmm(v):
            raise ValueError("Time must be a zero padded 24h time (HH:MM)")
        return v

    @model_validator(mode="after")
    def validate_rule(self):
        errors = validate_rule_window(self.start_time, self.end_time)
        if errors:
            raise ValueError("; ".join(errors))
        if self.is_exception and self.exception_date is None:
            raise ValueError("exception_date is required for exception rules")
        if not self.is_exception and self.exception_date is not None:
            raise ValueError("exception_date is only allowed on exception rules")
        return self


class AvailabilityRuleCreate(AvailabilityRuleBase):
    employee_id: int


class AvailabilityRuleUpdate(BaseModel):
    day_of_week: Optional[int] = Field(None, ge=0, le=6)
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    is_exception: Optional[bool] = None
    exception_date: Optional[date] = None

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_hhmm(cls, v):
        if v is not None and not is_valid_hhmm(v):
            raise ValueError("Time must be a zero padded 24h time (HH:MM)")
        return v


class AvailabilityRule(AvailabilityRuleBase):
    id: int
    uuid: UUID
    employee_id: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
