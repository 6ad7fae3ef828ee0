from typing import List

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from salon_booking.core.exceptions import NotFoundError
from salon_booking.models.availability_rule import AvailabilityRule
from salon_booking.models.employee import Employee
from salon_booking.schemas.availability import (
    AvailabilityRuleCreate,
    AvailabilityRuleUpdate,
)
from salon_booking.utils.validation import validate_and_raise

logger = structlog.get_logger(__name__)


class AvailabilityRuleService:
    """CRUD over employee availability rules.

    Slots are derived on demand, so rule changes need no recomputation.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_rules(self, employee_id: int) -> List[AvailabilityRule]:
        """All rules of an employee, weekly and exceptions, oldest first."""
        result = await self.db.execute(
            select(AvailabilityRule)
            .where(AvailabilityRule.employee_id == employee_id)
            .order_by(AvailabilityRule.id)
        )
        return list(result.scalars().all())

    async def get_rule(self, rule_id: int) -> AvailabilityRule:
        rule = await self.db.get(AvailabilityRule, rule_id)
        if not rule:
            raise NotFoundError("Availability rule", rule_id)
        return rule

    async def create_rule(self, rule_data: AvailabilityRuleCreate) -> AvailabilityRule:
        employee = await self.db.get(Employee, rule_data.employee_id)
        if not employee:
            raise NotFoundError("Employee", rule_data.employee_id)

        rule = AvailabilityRule(**rule_data.model_dump())
        self.db.add(rule)
        await self.db.commit()
        await self.db.refresh(rule)

        logger.info(
            "Availability rule created",
            rule_id=rule.id,
            employee_id=rule.employee_id,
            day_of_week=rule.day_of_week,
            exception_date=rule.exception_date,
            window=f"{rule.start_time}-{rule.end_time}",
        )
        return rule

    async def update_rule(
        self, rule_id: int, update_data: AvailabilityRuleUpdate
    ) -> AvailabilityRule:
        rule = await self.get_rule(rule_id)
        changes = update_data.model_dump(exclude_unset=True)

        merged = {
            "day_of_week": rule.day_of_week,
            "start_time": rule.start_time,
            "end_time": rule.end_time,
            "is_exception": rule.is_exception,
            "exception_date": rule.exception_date,
        }
        merged.update(changes)
        # Turning an exception back into a weekly rule drops its date
        if changes.get("is_exception") is False and "exception_date" not in changes:
            merged["exception_date"] = None
        validate_and_raise(merged)

        for field, value in merged.items():
            setattr(rule, field, value)

        await self.db.commit()
        await self.db.refresh(rule)

        logger.info("Availability rule updated", rule_id=rule.id, changes=list(changes))
        return rule

    async def delete_rule(self, rule_id: int) -> None:
        rule = await self.get_rule(rule_id)
        await self.db.delete(rule)
        await self.db.commit()
        logger.info("Availability rule deleted", rule_id=rule_id)
