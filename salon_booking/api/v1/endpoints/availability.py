from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from salon_booking.api.deps.database import get_db
from salon_booking.core.exceptions import NotFoundError
from salon_booking.schemas.availability import (
    AvailabilityRule,
    AvailabilityRuleCreate,
    AvailabilityRuleUpdate,
)
from salon_booking.schemas.scheduling import SlotList, SlotQuery, WorkingHours
from salon_booking.services.availability import AvailabilityRuleService
from salon_booking.services.scheduling import SchedulingEngineService

router = APIRouter()


@router.get("/rules/employee/{employee_id}", response_model=List[AvailabilityRule])
async def get_employee_rules(employee_id: int, db: AsyncSession = Depends(get_db)):
    """Weekly rules and dated exceptions of an employee."""
    return await AvailabilityRuleService(db).get_rules(employee_id)


@router.post(
    "/rules", response_model=AvailabilityRule, status_code=status.HTTP_201_CREATED
)
async def create_rule(
    rule_data: AvailabilityRuleCreate, db: AsyncSession = Depends(get_db)
):
    try:
        return await AvailabilityRuleService(db).create_rule(rule_data)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.put("/rules/{rule_id}", response_model=AvailabilityRule)
async def update_rule(
    rule_id: int,
    update_data: AvailabilityRuleUpdate,
    db: AsyncSession = Depends(get_db),
):
    try:
        return await AvailabilityRuleService(db).update_rule(rule_id, update_data)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ValueError as e:
        await db.rollback()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.delete("/rules/{rule_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_rule(rule_id: int, db: AsyncSession = Depends(get_db)):
    try:
        await AvailabilityRuleService(db).delete_rule(rule_id)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.get("/slots/employee/{employee_id}", response_model=SlotList)
async def get_available_slots(
    employee_id: int,
    day: date = Query(..., alias="date", description="Day to list slots for"),
    duration: int = Query(15, gt=0, description="Slot length in minutes"),
    timezone: Optional[str] = Query(None, description="Client timezone"),
    db: AsyncSession = Depends(get_db),
):
    """Free slots of an employee on a day.

    Slots tile the effective working window and exclude times taken by
    pending, confirmed or in-progress appointments.
    """
    query = SlotQuery(
        employee_id=employee_id,
        date=day,
        slot_duration_minutes=duration,
        timezone=timezone,
    )
    try:
        slots = await SchedulingEngineService(db).get_available_slots(
            query.employee_id, query.date, query.slot_duration_minutes
        )
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    return SlotList(
        employee_id=query.employee_id,
        date=query.date,
        slot_duration_minutes=query.slot_duration_minutes,
        slots=slots,
    )


@router.get(
    "/working-hours/employee/{employee_id}", response_model=Optional[WorkingHours]
)
async def get_working_hours(
    employee_id: int,
    day: date = Query(..., alias="date"),
    db: AsyncSession = Depends(get_db),
):
    """Effective working window of a day; null when the employee is off or
    inactive."""
    try:
        return await SchedulingEngineService(db).get_working_hours(employee_id, day)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
