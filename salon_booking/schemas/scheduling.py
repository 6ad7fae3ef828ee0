from datetime import date, datetime
from typing import Optional
from pydantic import BaseModel, Field


class TimeSlot(BaseModel):
    start: datetime
    end: datetime
    is_next_available: bool = False


class SlotQuery(BaseModel):
    employee_id: int
    date: date
    slot_duration_minutes: int = Field(15, gt=0)
    # Accepted for API compatibility; slots are always computed in the
    # business timezone
    timezone: Optional[str] = None


class SlotList(BaseModel):
    employee_id: int
    date: date
    slot_duration_minutes: int
    slots: list[TimeSlot] = Field(default_factory=list)


class WorkingHours(BaseModel):
    start_time: str
    end_time: str
    is_exception: bool = False
