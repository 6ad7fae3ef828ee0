from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from salon_booking.schemas.client import UserSummary


class ServiceSummary(BaseModel):
    id: int
    name: str
    base_duration: int

    class Config:
        from_attributes = True


class Employee(BaseModel):
    id: int
    uuid: UUID
    user: Optional[UserSummary] = None
    bio: Optional[str] = None
    is_active: bool
    services: List[ServiceSummary] = Field(default_factory=list)

    class Config:
        from_attributes = True
