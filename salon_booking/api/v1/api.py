from fastapi import APIRouter

from salon_booking.api.v1.endpoints import (
    appointments,
    availability,
    clients,
    employees,
)

api_router = APIRouter()

# Booking and appointment lifecycle
api_router.include_router(
    appointments.router, prefix="/appointments", tags=["appointments"]
)

# Availability rules, slots and working hours
api_router.include_router(
    availability.router, prefix="/availability", tags=["availability"]
)

# Employee and client lookups
api_router.include_router(employees.router, prefix="/employees", tags=["employees"])
api_router.include_router(clients.router, prefix="/clients", tags=["clients"])
