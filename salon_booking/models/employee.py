import uuid

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Table,
    Text,
    Uuid,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from salon_booking.core.database import Base


employee_services = Table(
    "employee_services",
    Base.metadata,
    Column("employee_id", Integer, ForeignKey("employees.id"), primary_key=True),
    Column("service_id", Integer, ForeignKey("services.id"), primary_key=True),
)


class Employee(Base):
    """Bookable employee with offered services and availability rules."""

    __tablename__ = "employees"

    # Core identity
    id = Column(Integer, primary_key=True, index=True)
    uuid = Column(Uuid, unique=True, nullable=False, default=uuid.uuid4, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)

    # Profile
    bio = Column(Text, nullable=True)

    # Only active employees are offered slots or auto-assigned
    is_active = Column(Boolean, default=True, nullable=False)

    # Audit timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    # Relationships
    user = relationship("User", back_populates="employee")
    services = relationship("Service", secondary=employee_services, back_populates="employees")
    availability_rules = relationship(
        "AvailabilityRule",
        back_populates="employee",
        cascade="all, delete-orphan",
        order_by="AvailabilityRule.id",
    )
    appointments = relationship("Appointment", back_populates="employee")

    def __repr__(self):
        return f"<Employee(id={self.id}, user_id={self.user_id}, active={self.is_active})>"
