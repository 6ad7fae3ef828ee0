from sqlalchemy import (
    Column,
    Integer,
    String,
    DateTime,
    Text,
    Boolean,
    Numeric,
    CheckConstraint,
    Uuid,
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from salon_booking.core.database import Base
import uuid


class Service(Base):
    """Bookable service with its current duration and price."""

    __tablename__ = "services"

    # Core identity
    id = Column(Integer, primary_key=True, index=True)
    uuid = Column(Uuid, unique=True, nullable=False, default=uuid.uuid4, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)

    # Current values; appointments snapshot them at booking time
    base_duration = Column(Integer, nullable=False)  # minutes
    price = Column(Numeric(10, 2), nullable=False)

    is_active = Column(Boolean, default=True, nullable=False)

    # Audit timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        CheckConstraint("base_duration > 0", name="check_service_positive_duration"),
        CheckConstraint("price >= 0", name="check_service_non_negative_price"),
    )

    # Relationships
    employees = relationship(
        "Employee", secondary="employee_services", back_populates="services"
    )

    def __repr__(self):
        return (
            f"<Service(id={self.id}, name='{self.name}', "
            f"duration={self.base_duration}min, price=${self.price})>"
        )
