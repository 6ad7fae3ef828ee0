from typing import List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from salon_booking.core.exceptions import NotFoundError
from salon_booking.models.employee import Employee


class EmployeeService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_active_employees(self) -> List[Employee]:
        """Active employees in ascending id order.

        Auto-assignment walks this list and books the first employee that is
        free, so the order decides ties and must stay stable.
        """
        result = await self.db.execute(
            select(Employee)
            .where(Employee.is_active.is_(True))
            .order_by(Employee.id)
        )
        return list(result.scalars().all())

    async def list_employees(self, include_inactive: bool = False) -> List[Employee]:
        """Employees with user and services loaded, for display."""
        query = select(Employee).options(
            selectinload(Employee.user),
            selectinload(Employee.services),
        )
        if not include_inactive:
            query = query.where(Employee.is_active.is_(True))

        result = await self.db.execute(query.order_by(Employee.id))
        return list(result.scalars().all())

    async def get_employee(self, employee_id: int) -> Employee:
        """Get employee by ID with user and services loaded."""
        result = await self.db.execute(
            select(Employee)
            .options(
                selectinload(Employee.user),
                selectinload(Employee.services),
            )
            .where(Employee.id == employee_id)
        )
        employee = result.scalar_one_or_none()
        if not employee:
            raise NotFoundError("Employee", employee_id)
        return employee
