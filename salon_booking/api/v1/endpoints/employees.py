from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from salon_booking.api.deps.database import get_db
from salon_booking.core.exceptions import NotFoundError
from salon_booking.schemas.employee import Employee
from salon_booking.services.employee import EmployeeService

router = APIRouter()


@router.get("/", response_model=List[Employee])
async def list_employees(
    include_inactive: bool = Query(False),
    db: AsyncSession = Depends(get_db),
):
    return await EmployeeService(db).list_employees(include_inactive=include_inactive)


@router.get("/{employee_id}", response_model=Employee)
async def get_employee(employee_id: int, db: AsyncSession = Depends(get_db)):
    try:
        return await EmployeeService(db).get_employee(employee_id)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
