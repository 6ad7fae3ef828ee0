# Import all models to ensure they are registered with SQLAlchemy
from . import (
    appointment,
    availability_rule,
    client,
    employee,
    service,
    user,
)

__all__ = [
    "appointment",
    "availability_rule",
    "client",
    "employee",
    "service",
    "user",
]
