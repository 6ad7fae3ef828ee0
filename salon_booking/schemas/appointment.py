from datetime import datetime
from decimal import Decimal
from typing import Optional, List
from uuid import UUID
from pydantic import BaseModel, Field, field_validator, model_validator

# Import enums from the model to avoid duplication
from salon_booking.models.appointment import (
    ADMIN_ENTERED_SOURCES,
    AppointmentStatus,
    BookingSource,
)
from salon_booking.utils.time_of_day import to_business_time
from salon_booking.utils.validation import validate_email_format, validate_phone_number


class ClientContact(BaseModel):
    """Contact details typed in by a guest or by staff for a walk-in."""

    first_name: str = ""
    last_name: str = ""
    email: Optional[str] = None
    phone: Optional[str] = None

    @field_validator("email")
    @classmethod
    def validate_email(cls, v):
        if v is not None:
            v = v.strip().lower() or None
        if v and not validate_email_format(v):
            raise ValueError("Invalid email format")
        return v

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v):
        if v and not validate_phone_number(v):
            raise ValueError("Invalid phone number format")
        return v


class AppointmentCreate(BaseModel):
    # Client attribution, see ClientService.resolve_or_create_client
    user_id: Optional[int] = None
    client_id: Optional[int] = None
    contact: Optional[ClientContact] = None

    # None means "no preference"
    employee_id: Optional[int] = None
    start_time: datetime
    end_time: datetime
    service_ids: List[int] = Field(default_factory=list)
    notes: Optional[str] = None
    client_timezone: Optional[str] = None
    booking_source: Optional[BookingSource] = None

    @model_validator(mode="after")
    def validate_window(self):
        # Naive values are business-local; compare as instants
        if to_business_time(self.end_time) <= to_business_time(self.start_time):
            raise ValueError("end_time must be after start_time")
        return self

    @property
    def is_guest(self) -> bool:
        return self.booking_source == BookingSource.WEB_GUEST

    @property
    def is_admin_entry(self) -> bool:
        return self.booking_source in ADMIN_ENTERED_SOURCES


class AppointmentUpdate(BaseModel):
    employee_id: Optional[int] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    notes: Optional[str] = None
    client_timezone: Optional[str] = None


class AppointmentReschedule(BaseModel):
    new_start_time: datetime
    new_end_time: datetime

    @model_validator(mode="after")
    def validate_window(self):
        if to_business_time(self.new_end_time) <= to_business_time(self.new_start_time):
            raise ValueError("new_end_time must be after new_start_time")
        return self


class AppointmentFilters(BaseModel):
    client_id: Optional[int] = None
    employee_id: Optional[int] = None
    status: Optional[AppointmentStatus] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


# Response schemas
class AppointmentLineItem(BaseModel):
    id: int
    service_id: int
    duration: int
    price: Decimal

    class Config:
        from_attributes = True


class Appointment(BaseModel):
    id: int
    uuid: UUID
    client_id: int
    employee_id: int
    start_time: datetime
    end_time: datetime
    status: AppointmentStatus
    previous_status: Optional[AppointmentStatus] = None
    notes: Optional[str] = None
    client_timezone: str
    booking_source: str
    services: List[AppointmentLineItem] = Field(default_factory=list)

    # Computed properties
    is_active: bool
    duration_minutes: int
    total_price: Decimal

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AppointmentList(BaseModel):
    appointments: List[Appointment]
    total_count: int
