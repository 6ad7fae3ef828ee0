"""Test slot generation, working-hours checks and conflict detection."""

from datetime import datetime, timedelta

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from salon_booking.core.exceptions import BookingValidationError, NotFoundError
from salon_booking.models.appointment import AppointmentStatus
from salon_booking.services.scheduling import SchedulingEngineService
from tests.fixtures.booking_fixtures import (
    BEFORE_TEST_DAYS,
    MONDAY,
    PREVIOUS_MONDAY,
    add_rule,
    at,
    create_appointment,
    create_employee,
)


class TestSlotGeneration:
    @pytest.mark.asyncio
    async def test_weekly_rule_produces_back_to_back_slots(self, db: AsyncSession, stylist):
        engine = SchedulingEngineService(db)

        slots = await engine.generate_slots(stylist.id, MONDAY, 30)

        assert len(slots) == 16
        assert slots[0].start == at(MONDAY, "09:00")
        assert slots[0].end == at(MONDAY, "09:30")
        assert slots[-1].start == at(MONDAY, "16:30")
        assert slots[-1].end == at(MONDAY, "17:00")
        for previous, current in zip(slots, slots[1:]):
            assert previous.end == current.start

    @pytest.mark.asyncio
    async def test_partial_trailing_slot_is_dropped(self, db: AsyncSession, stylist):
        engine = SchedulingEngineService(db)

        slots = await engine.generate_slots(stylist.id, MONDAY, 45)

        # 8 hours = 10 full 45-minute slots + 30 minutes left over
        assert len(slots) == 10
        assert slots[-1].end == at(MONDAY, "16:30")
        assert all(slot.end <= at(MONDAY, "17:00") for slot in slots)

    @pytest.mark.asyncio
    async def test_no_rule_means_no_slots(self, db: AsyncSession, stylist):
        engine = SchedulingEngineService(db)
        tuesday = MONDAY + timedelta(days=1)

        assert await engine.generate_slots(stylist.id, tuesday, 30) == []

    @pytest.mark.asyncio
    async def test_default_duration_comes_from_settings(self, db: AsyncSession, stylist):
        engine = SchedulingEngineService(db)

        slots = await engine.generate_slots(stylist.id, MONDAY)

        assert len(slots) == 32  # 15-minute default

    @pytest.mark.asyncio
    @pytest.mark.parametrize("duration", [0, -15])
    async def test_non_positive_duration_is_rejected(self, db: AsyncSession, stylist, duration):
        engine = SchedulingEngineService(db)

        with pytest.raises(BookingValidationError):
            await engine.generate_slots(stylist.id, MONDAY, duration)

    @pytest.mark.asyncio
    async def test_inactive_employee_has_no_slots(self, db: AsyncSession):
        inactive = await create_employee(db, "away@salon.test", is_active=False)
        await add_rule(db, inactive, 1, "09:00", "17:00")
        engine = SchedulingEngineService(db)

        assert await engine.generate_slots(inactive.id, MONDAY, 30) == []
        assert await engine.get_available_slots(
            inactive.id, MONDAY, 30, now=BEFORE_TEST_DAYS
        ) == []
        assert await engine.get_working_hours(inactive.id, MONDAY) is None
        assert not await engine.is_available(
            inactive.id, at(MONDAY, "10:00"), at(MONDAY, "10:30")
        )

    @pytest.mark.asyncio
    async def test_unknown_employee(self, db: AsyncSession):
        engine = SchedulingEngineService(db)

        with pytest.raises(NotFoundError):
            await engine.generate_slots(999, MONDAY, 30)
        with pytest.raises(NotFoundError):
            await engine.get_working_hours(999, MONDAY)


class TestExceptionRules:
    @pytest.mark.asyncio
    async def test_day_off_exception_overrides_weekly_rule(self, db: AsyncSession, stylist):
        await add_rule(db, stylist, 1, "00:00", "00:00", exception_date=MONDAY)
        engine = SchedulingEngineService(db)

        assert await engine.generate_slots(stylist.id, MONDAY, 30) == []
        assert not await engine.is_available(
            stylist.id, at(MONDAY, "10:00"), at(MONDAY, "10:30")
        )
        assert await engine.get_working_hours(stylist.id, MONDAY) is None

        # Other Mondays keep the weekly rule
        assert len(await engine.generate_slots(stylist.id, PREVIOUS_MONDAY, 30)) == 16
        assert await engine.is_available(
            stylist.id, at(PREVIOUS_MONDAY, "10:00"), at(PREVIOUS_MONDAY, "10:30")
        )

    @pytest.mark.asyncio
    async def test_exception_hours_replace_weekly_hours(self, db: AsyncSession, stylist):
        await add_rule(db, stylist, 1, "12:00", "14:00", exception_date=MONDAY)
        engine = SchedulingEngineService(db)

        slots = await engine.generate_slots(stylist.id, MONDAY, 60)

        assert [slot.start for slot in slots] == [at(MONDAY, "12:00"), at(MONDAY, "13:00")]
        assert not await engine.is_available(
            stylist.id, at(MONDAY, "09:00"), at(MONDAY, "10:00")
        )
        hours = await engine.get_working_hours(stylist.id, MONDAY)
        assert (hours.start_time, hours.end_time, hours.is_exception) == (
            "12:00",
            "14:00",
            True,
        )

    @pytest.mark.asyncio
    async def test_exception_applies_on_a_day_without_weekly_rule(self, db: AsyncSession, stylist):
        sunday = MONDAY - timedelta(days=1)
        await add_rule(db, stylist, 0, "10:00", "12:00", exception_date=sunday)
        engine = SchedulingEngineService(db)

        assert len(await engine.generate_slots(stylist.id, sunday, 30)) == 4


class TestAvailabilityCheck:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "start, end, expected",
        [
            ("09:00", "09:30", True),
            ("16:30", "17:00", True),
            ("08:45", "09:15", False),
            ("16:45", "17:15", False),
        ],
    )
    async def test_request_must_fit_working_hours(
        self, db: AsyncSession, stylist, start, end, expected
    ):
        engine = SchedulingEngineService(db)

        assert (
            await engine.is_available(stylist.id, at(MONDAY, start), at(MONDAY, end))
            is expected
        )

    @pytest.mark.asyncio
    async def test_naive_request_is_read_as_business_time(self, db: AsyncSession, stylist):
        engine = SchedulingEngineService(db)

        assert await engine.is_available(
            stylist.id, datetime(2025, 3, 10, 10, 0), datetime(2025, 3, 10, 10, 30)
        )

    @pytest.mark.asyncio
    async def test_business_timezone_shifts_the_window(self, db: AsyncSession, stylist):
        engine = SchedulingEngineService(db, tz_name="Europe/Paris")

        # 09:00 in Paris is 08:00 UTC in March before DST
        assert await engine.is_available(
            stylist.id, at(MONDAY, "08:00"), at(MONDAY, "08:30")
        )
        assert not await engine.is_available(
            stylist.id, at(MONDAY, "16:30"), at(MONDAY, "17:00")
        )


class TestConflicts:
    @pytest.mark.asyncio
    async def test_overlap_is_half_open(self, db: AsyncSession, stylist, existing_client):
        existing = await create_appointment(
            db, stylist, existing_client, at(MONDAY, "10:00"), at(MONDAY, "10:30")
        )
        engine = SchedulingEngineService(db)

        assert await engine.has_conflict(stylist.id, at(MONDAY, "10:15"), at(MONDAY, "10:45"))
        assert await engine.has_conflict(stylist.id, at(MONDAY, "09:00"), at(MONDAY, "12:00"))
        assert not await engine.has_conflict(
            stylist.id, at(MONDAY, "10:30"), at(MONDAY, "11:00")
        )
        assert not await engine.has_conflict(
            stylist.id, at(MONDAY, "09:30"), at(MONDAY, "10:00")
        )
        assert not await engine.has_conflict(
            stylist.id,
            at(MONDAY, "10:00"),
            at(MONDAY, "10:30"),
            exclude_appointment_id=existing.id,
        )

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status, blocks",
        [
            (AppointmentStatus.PENDING, True),
            (AppointmentStatus.CONFIRMED, True),
            (AppointmentStatus.IN_PROGRESS, True),
            (AppointmentStatus.COMPLETED, False),
            (AppointmentStatus.CANCELLED, False),
            (AppointmentStatus.NO_SHOW, False),
        ],
    )
    async def test_only_active_statuses_block(
        self, db: AsyncSession, stylist, existing_client, status, blocks
    ):
        await create_appointment(
            db, stylist, existing_client, at(MONDAY, "10:00"), at(MONDAY, "10:30"), status
        )
        engine = SchedulingEngineService(db)

        assert (
            await engine.has_conflict(stylist.id, at(MONDAY, "10:00"), at(MONDAY, "10:30"))
            is blocks
        )

    @pytest.mark.asyncio
    async def test_other_employees_do_not_conflict(self, db: AsyncSession, stylist, existing_client):
        other = await create_employee(db, "ben@salon.test", first_name="Ben")
        await create_appointment(
            db, other, existing_client, at(MONDAY, "10:00"), at(MONDAY, "10:30")
        )
        engine = SchedulingEngineService(db)

        assert not await engine.has_conflict(
            stylist.id, at(MONDAY, "10:00"), at(MONDAY, "10:30")
        )


class TestAvailableSlots:
    @pytest.mark.asyncio
    async def test_booked_slots_are_removed(self, db: AsyncSession, stylist, existing_client):
        await create_appointment(
            db, stylist, existing_client, at(MONDAY, "10:00"), at(MONDAY, "10:30")
        )
        await create_appointment(
            db,
            stylist,
            existing_client,
            at(MONDAY, "11:00"),
            at(MONDAY, "11:30"),
            AppointmentStatus.CANCELLED,
        )
        engine = SchedulingEngineService(db)

        slots = await engine.get_available_slots(
            stylist.id, MONDAY, 30, now=BEFORE_TEST_DAYS
        )
        starts = [slot.start for slot in slots]

        assert len(slots) == 15
        assert at(MONDAY, "10:00") not in starts
        assert at(MONDAY, "11:00") in starts

    @pytest.mark.asyncio
    async def test_first_upcoming_slot_is_flagged(self, db: AsyncSession, stylist):
        engine = SchedulingEngineService(db)

        slots = await engine.get_available_slots(
            stylist.id, MONDAY, 30, now=at(MONDAY, "12:10")
        )
        flagged = [slot for slot in slots if slot.is_next_available]

        assert len(flagged) == 1
        assert flagged[0].start == at(MONDAY, "12:00")

    @pytest.mark.asyncio
    async def test_past_day_has_no_next_available(self, db: AsyncSession, stylist):
        engine = SchedulingEngineService(db)

        slots = await engine.get_available_slots(
            stylist.id, MONDAY, 30, now=at(MONDAY + timedelta(days=1), "08:00")
        )

        assert len(slots) == 16
        assert not any(slot.is_next_available for slot in slots)
