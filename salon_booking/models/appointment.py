from sqlalchemy import (
    Column,
    Integer,
    String,
    DateTime,
    Text,
    ForeignKey,
    Numeric,
    CheckConstraint,
    Index,
    Uuid,
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from salon_booking.core.database import Base
from salon_booking.models.types import UTCDateTime
import enum
import uuid
from datetime import datetime, timezone
from decimal import Decimal


class AppointmentStatus(enum.Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    NO_SHOW = "NO_SHOW"


# Statuses that occupy the employee's time and take part in conflict checks
BLOCKING_STATUSES = (
    AppointmentStatus.PENDING,
    AppointmentStatus.CONFIRMED,
    AppointmentStatus.IN_PROGRESS,
)

TERMINAL_STATUSES = (
    AppointmentStatus.COMPLETED,
    AppointmentStatus.CANCELLED,
    AppointmentStatus.NO_SHOW,
)


class BookingSource(enum.Enum):
    WEB = "WEB"
    WEB_GUEST = "WEB_GUEST"
    ADMIN = "ADMIN"
    PHONE = "PHONE"
    AI = "AI"


# Sources where staff type in the client's details on their behalf
ADMIN_ENTERED_SOURCES = (BookingSource.ADMIN, BookingSource.PHONE, BookingSource.AI)


class Appointment(Base):
    """Booked time of one employee for one client, with captured line items."""

    __tablename__ = "appointments"

    # Core identity
    id = Column(Integer, primary_key=True, index=True)
    uuid = Column(Uuid, unique=True, nullable=False, default=uuid.uuid4, index=True)

    # Appointment participants
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), nullable=False)

    # Scheduling details
    start_time = Column(UTCDateTime, nullable=False, index=True)
    end_time = Column(UTCDateTime, nullable=False)

    # Status management
    status = Column(
        String(20), nullable=False, default=AppointmentStatus.PENDING.value, index=True
    )
    previous_status = Column(String(20), nullable=True)
    status_changed_at = Column(UTCDateTime, nullable=True)

    # Booking details
    notes = Column(Text, nullable=True)
    client_timezone = Column(String(64), nullable=False, default="UTC")
    booking_source = Column(String(20), nullable=False, default=BookingSource.WEB.value)

    # Audit timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    # Constraints
    __table_args__ = (
        CheckConstraint("end_time > start_time", name="check_end_after_start"),
        Index("ix_appointments_employee_window", "employee_id", "start_time", "end_time"),
    )

    # Relationships
    client = relationship("Client", back_populates="appointments")
    employee = relationship("Employee", back_populates="appointments")
    services = relationship(
        "AppointmentLineItem",
        back_populates="appointment",
        cascade="all, delete-orphan",
        order_by="AppointmentLineItem.id",
    )

    # Status transition methods
    def can_transition_to(
        self, new_status: AppointmentStatus, strict: bool = False
    ) -> bool:
        """Check if appointment can transition to the new status.

        Every transition is allowed unless ``strict`` is set, in which case an
        appointment in a terminal status can no longer change.
        """
        if not strict:
            return True
        return AppointmentStatus(self.status) not in TERMINAL_STATUSES

    def transition_to(
        self, new_status: AppointmentStatus, strict: bool = False
    ) -> bool:
        """Move to ``new_status``; returns False if the transition is refused."""
        if not self.can_transition_to(new_status, strict=strict):
            return False

        self.previous_status = self.status
        self.status = new_status.value
        self.status_changed_at = datetime.now(timezone.utc)
        return True

    def overlaps(self, start_time: datetime, end_time: datetime) -> bool:
        """Half-open interval overlap; touching endpoints do not overlap."""
        return self.start_time < end_time and start_time < self.end_time

    @property
    def is_active(self) -> bool:
        """Check if appointment still blocks the employee's time."""
        return AppointmentStatus(self.status) in BLOCKING_STATUSES

    @property
    def duration_minutes(self) -> int:
        return int((self.end_time - self.start_time).total_seconds() // 60)

    @property
    def total_price(self) -> Decimal:
        return sum((item.price for item in self.services), Decimal("0"))

    def __repr__(self):
        return (
            f"<Appointment(id={self.id}, status='{self.status}', "
            f"start='{self.start_time}', "
            f"client_id={self.client_id}, employee_id={self.employee_id})>"
        )


class AppointmentLineItem(Base):
    """Service booked on an appointment with duration and price captured at
    booking time."""

    __tablename__ = "appointment_services"

    id = Column(Integer, primary_key=True, index=True)
    appointment_id = Column(
        Integer, ForeignKey("appointments.id"), nullable=False, index=True
    )
    service_id = Column(Integer, ForeignKey("services.id"), nullable=False)

    # Snapshot of the service at booking time
    duration = Column(Integer, nullable=False)  # minutes
    price = Column(Numeric(10, 2), nullable=False)

    __table_args__ = (
        CheckConstraint("duration > 0", name="check_line_item_positive_duration"),
        CheckConstraint("price >= 0", name="check_line_item_non_negative_price"),
    )

    # Relationships
    appointment = relationship("Appointment", back_populates="services")
    service = relationship("Service")

    def __repr__(self):
        return (
            f"<AppointmentLineItem(appointment_id={self.appointment_id}, "
            f"service_id={self.service_id}, duration={self.duration}, "
            f"price={self.price})>"
        )
