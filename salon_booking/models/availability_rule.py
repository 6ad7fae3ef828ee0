import uuid

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Uuid,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from salon_booking.core.database import Base
from salon_booking.utils.time_of_day import TimeOfDay


class AvailabilityRule(Base):
    """Weekly working hours of an employee, or a dated exception to them.

    ``day_of_week`` counts from Sunday (0) to Saturday (6). An exception rule
    replaces every weekly rule on its ``exception_date``; ``00:00-00:00``
    marks a full day off.
    """

    __tablename__ = "availability_rules"

    # Core identity
    id = Column(Integer, primary_key=True, index=True)
    uuid = Column(Uuid, unique=True, nullable=False, default=uuid.uuid4, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), nullable=False)

    # Schedule details
    day_of_week = Column(Integer, nullable=False)
    start_time = Column(String(5), nullable=False)  # HH:MM
    end_time = Column(String(5), nullable=False)  # HH:MM

    # Exceptions
    is_exception = Column(Boolean, default=False, nullable=False)
    exception_date = Column(Date, nullable=True)

    # Audit timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    # Relationships
    employee = relationship("Employee", back_populates="availability_rules")

    # Database constraints
    __table_args__ = (
        CheckConstraint(
            "day_of_week >= 0 AND day_of_week <= 6", name="check_day_of_week_range"
        ),
        CheckConstraint(
            "(is_exception AND exception_date IS NOT NULL) OR "
            "(NOT is_exception AND exception_date IS NULL)",
            name="check_exception_date_pairing",
        ),
        Index("ix_availability_rules_employee_day", "employee_id", "day_of_week"),
        Index("ix_availability_rules_employee_date", "employee_id", "exception_date"),
    )

    @property
    def window(self) -> tuple[TimeOfDay, TimeOfDay]:
        """Start and end of the working window as minutes since midnight."""
        return TimeOfDay.parse(self.start_time), TimeOfDay.parse(self.end_time)

    @property
    def is_day_off(self) -> bool:
        start, end = self.window
        return start == end

    def contains(self, start: TimeOfDay, end: TimeOfDay) -> bool:
        """Whether the wall-clock range ``[start, end]`` fits in this rule."""
        rule_start, rule_end = self.window
        return start >= rule_start and end <= rule_end

    def __repr__(self):
        kind = f"exception={self.exception_date}" if self.is_exception else f"day={self.day_of_week}"
        return (
            f"<AvailabilityRule(id={self.id}, employee_id={self.employee_id}, "
            f"{kind}, {self.start_time}-{self.end_time})>"
        )
