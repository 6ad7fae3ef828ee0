"""Test availability rule CRUD."""

from datetime import date

import pytest
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from salon_booking.core.exceptions import BookingValidationError, NotFoundError
from salon_booking.schemas.availability import AvailabilityRuleCreate, AvailabilityRuleUpdate
from salon_booking.services.availability import AvailabilityRuleService
from salon_booking.services.scheduling import SchedulingEngineService
from tests.fixtures.booking_fixtures import MONDAY, create_employee


@pytest.fixture
async def employee(db: AsyncSession):
    return await create_employee(db, "rules@salon.test")


class TestAvailabilityRuleService:
    @pytest.mark.asyncio
    async def test_create_and_list_rules(self, db: AsyncSession, employee):
        service = AvailabilityRuleService(db)

        weekly = await service.create_rule(
            AvailabilityRuleCreate(
                employee_id=employee.id, day_of_week=1, start_time="09:00", end_time="17:00"
            )
        )
        exception = await service.create_rule(
            AvailabilityRuleCreate(
                employee_id=employee.id,
                day_of_week=1,
                start_time="00:00",
                end_time="00:00",
                is_exception=True,
                exception_date=MONDAY,
            )
        )

        rules = await service.get_rules(employee.id)
        assert [rule.id for rule in rules] == [weekly.id, exception.id]
        assert exception.is_day_off
        assert not weekly.is_day_off

    @pytest.mark.asyncio
    async def test_create_for_unknown_employee(self, db: AsyncSession):
        with pytest.raises(NotFoundError):
            await AvailabilityRuleService(db).create_rule(
                AvailabilityRuleCreate(
                    employee_id=77, day_of_week=1, start_time="09:00", end_time="17:00"
                )
            )

    @pytest.mark.asyncio
    async def test_rule_changes_apply_to_next_slot_query(self, db: AsyncSession, employee):
        service = AvailabilityRuleService(db)
        rule = await service.create_rule(
            AvailabilityRuleCreate(
                employee_id=employee.id, day_of_week=1, start_time="09:00", end_time="17:00"
            )
        )

        await service.update_rule(rule.id, AvailabilityRuleUpdate(end_time="12:00"))

        slots = await SchedulingEngineService(db).generate_slots(employee.id, MONDAY, 60)
        assert len(slots) == 3

    @pytest.mark.asyncio
    async def test_update_validates_merged_rule(self, db: AsyncSession, employee):
        service = AvailabilityRuleService(db)
        rule = await service.create_rule(
            AvailabilityRuleCreate(
                employee_id=employee.id, day_of_week=1, start_time="09:00", end_time="17:00"
            )
        )

        with pytest.raises(BookingValidationError):
            await service.update_rule(rule.id, AvailabilityRuleUpdate(start_time="18:00"))
        with pytest.raises(BookingValidationError):
            await service.update_rule(rule.id, AvailabilityRuleUpdate(is_exception=True))

        unchanged = await service.get_rule(rule.id)
        assert (unchanged.start_time, unchanged.is_exception) == ("09:00", False)

    @pytest.mark.asyncio
    async def test_exception_turned_weekly_drops_its_date(self, db: AsyncSession, employee):
        service = AvailabilityRuleService(db)
        rule = await service.create_rule(
            AvailabilityRuleCreate(
                employee_id=employee.id,
                day_of_week=1,
                start_time="10:00",
                end_time="12:00",
                is_exception=True,
                exception_date=date(2025, 3, 10),
            )
        )

        updated = await service.update_rule(rule.id, AvailabilityRuleUpdate(is_exception=False))

        assert updated.exception_date is None

    @pytest.mark.asyncio
    async def test_delete_rule(self, db: AsyncSession, employee):
        service = AvailabilityRuleService(db)
        rule = await service.create_rule(
            AvailabilityRuleCreate(
                employee_id=employee.id, day_of_week=2, start_time="09:00", end_time="17:00"
            )
        )
        rule_id = rule.id

        await service.delete_rule(rule_id)

        with pytest.raises(NotFoundError):
            await service.get_rule(rule_id)
        with pytest.raises(NotFoundError):
            await service.delete_rule(rule_id)


class TestAvailabilityRuleSchemas:
    def test_unpadded_time_is_rejected(self):
        with pytest.raises(ValidationError):
            AvailabilityRuleCreate(
                employee_id=1, day_of_week=1, start_time="9:00", end_time="17:00"
            )

    def test_weekly_rule_cannot_carry_a_date(self):
        with pytest.raises(ValidationError):
            AvailabilityRuleCreate(
                employee_id=1,
                day_of_week=1,
                start_time="09:00",
                end_time="17:00",
                exception_date=MONDAY,
            )

    def test_day_of_week_range(self):
        with pytest.raises(ValidationError):
            AvailabilityRuleCreate(
                employee_id=1, day_of_week=7, start_time="09:00", end_time="17:00"
            )
