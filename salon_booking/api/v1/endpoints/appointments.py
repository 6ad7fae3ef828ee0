from datetime import datetime
from typing import List, Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from salon_booking.api.deps.database import get_db
from salon_booking.core.exceptions import BookingLockTimeout, NotFoundError
from salon_booking.schemas.appointment import (
    Appointment,
    AppointmentCreate,
    AppointmentFilters,
    AppointmentList,
    AppointmentReschedule,
    AppointmentStatus,
    AppointmentUpdate,
)
from salon_booking.services.appointment import AppointmentService

logger = structlog.get_logger(__name__)

router = APIRouter()


def get_appointment_service(db: AsyncSession = Depends(get_db)) -> AppointmentService:
    return AppointmentService(db)


@router.post("/", response_model=Appointment, status_code=status.HTTP_201_CREATED)
async def create_appointment(
    appointment_data: AppointmentCreate,
    service: AppointmentService = Depends(get_appointment_service),
):
    """Book an appointment.

    Omitting ``employee_id`` assigns the first available employee. The client
    is resolved from ``user_id``, guest or walk-in contact details, or
    ``client_id``.
    """
    try:
        return await service.create_appointment(appointment_data)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except BookingLockTimeout as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except Exception as e:
        await service.db.rollback()
        logger.error("Failed to create appointment", exc_info=e)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create appointment",
        )


@router.get("/", response_model=AppointmentList)
async def get_appointments(
    client_id: Optional[int] = Query(None),
    employee_id: Optional[int] = Query(None),
    status_filter: Optional[AppointmentStatus] = Query(None, alias="status"),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    service: AppointmentService = Depends(get_appointment_service),
):
    """List appointments, optionally filtered by client, employee, status and
    start date range."""
    filters = AppointmentFilters(
        client_id=client_id,
        employee_id=employee_id,
        status=status_filter,
        start_date=start_date,
        end_date=end_date,
    )
    appointments, total_count = await service.get_appointments(filters)
    return AppointmentList(appointments=appointments, total_count=total_count)


@router.get("/client/{client_id}", response_model=List[Appointment])
async def get_client_appointments(
    client_id: int,
    service: AppointmentService = Depends(get_appointment_service),
):
    """Appointments of a client, newest first."""
    return await service.get_appointments_by_client(client_id)


@router.get("/employee/{employee_id}", response_model=List[Appointment])
async def get_employee_appointments(
    employee_id: int,
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    service: AppointmentService = Depends(get_appointment_service),
):
    """Appointments of an employee, oldest first."""
    return await service.get_appointments_by_employee(employee_id, start_date, end_date)


@router.get("/{appointment_id}", response_model=Appointment)
async def get_appointment(
    appointment_id: int,
    service: AppointmentService = Depends(get_appointment_service),
):
    try:
        return await service.get_appointment(appointment_id)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.patch("/{appointment_id}", response_model=Appointment)
async def update_appointment(
    appointment_id: int,
    update_data: AppointmentUpdate,
    service: AppointmentService = Depends(get_appointment_service),
):
    """Update appointment; a new time or employee is validated first."""
    try:
        return await service.update_appointment(appointment_id, update_data)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except BookingLockTimeout as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


@router.put("/{appointment_id}/reschedule", response_model=Appointment)
async def reschedule_appointment(
    appointment_id: int,
    reschedule_data: AppointmentReschedule,
    service: AppointmentService = Depends(get_appointment_service),
):
    """Move appointment to a new time; status goes back to PENDING."""
    try:
        return await service.reschedule_appointment(appointment_id, reschedule_data)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except BookingLockTimeout as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


async def _change_status(action, appointment_id: int):
    try:
        return await action(appointment_id)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.post("/{appointment_id}/confirm", response_model=Appointment)
async def confirm_appointment(
    appointment_id: int,
    service: AppointmentService = Depends(get_appointment_service),
):
    return await _change_status(service.confirm_appointment, appointment_id)


@router.post("/{appointment_id}/start", response_model=Appointment)
async def start_appointment(
    appointment_id: int,
    service: AppointmentService = Depends(get_appointment_service),
):
    return await _change_status(service.start_appointment, appointment_id)


@router.post("/{appointment_id}/complete", response_model=Appointment)
async def complete_appointment(
    appointment_id: int,
    service: AppointmentService = Depends(get_appointment_service),
):
    return await _change_status(service.complete_appointment, appointment_id)


@router.post("/{appointment_id}/no-show", response_model=Appointment)
async def mark_no_show(
    appointment_id: int,
    service: AppointmentService = Depends(get_appointment_service),
):
    return await _change_status(service.mark_no_show, appointment_id)


@router.delete("/{appointment_id}", response_model=Appointment)
async def cancel_appointment(
    appointment_id: int,
    service: AppointmentService = Depends(get_appointment_service),
):
    """Cancel appointment; the row is kept for history."""
    return await _change_status(service.cancel_appointment, appointment_id)
