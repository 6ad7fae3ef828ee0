from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel


class UserSummary(BaseModel):
    id: int
    email: str
    first_name: str
    last_name: str
    phone: Optional[str] = None
    is_placeholder: bool = False

    class Config:
        from_attributes = True


class Client(BaseModel):
    id: int
    uuid: UUID
    user_id: Optional[int] = None
    user: Optional[UserSummary] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
