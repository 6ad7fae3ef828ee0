from datetime import date as date_type, datetime, timedelta, timezone
from typing import Optional

import structlog
from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from salon_booking.core.config import settings
from salon_booking.core.exceptions import BookingValidationError, NotFoundError
from salon_booking.models.appointment import Appointment, BLOCKING_STATUSES
from salon_booking.models.availability_rule import AvailabilityRule
from salon_booking.models.employee import Employee
from salon_booking.schemas.scheduling import TimeSlot, WorkingHours
from salon_booking.utils.time_of_day import (
    TimeOfDay,
    business_timezone,
    day_of_week,
    to_business_time,
)


logger = structlog.get_logger(__name__)


class SchedulingEngineService:
    """Slot generation, working-hours checks and conflict detection.

    Wall-clock evaluation happens in ``BUSINESS_TIMEZONE``. Nothing here
    writes to the database.
    """

    def __init__(self, db: AsyncSession, tz_name: Optional[str] = None):
        self.db = db
        self.tz = business_timezone(tz_name)

    async def resolve_effective_rule(
        self, employee_id: int, day: date_type
    ) -> Optional[AvailabilityRule]:
        """Rule governing ``day``: a dated exception if any, else the weekly rule.

        Inactive employees have no effective rule.
        """
        exception_rule = await self._first_rule(
            and_(
                AvailabilityRule.employee_id == employee_id,
                AvailabilityRule.is_exception.is_(True),
                AvailabilityRule.exception_date == day,
            )
        )
        if exception_rule:
            logger.debug(
                "Using exception rule",
                employee_id=employee_id,
                date=day.isoformat(),
                rule_id=exception_rule.id,
            )
            return exception_rule

        weekly_rule = await self._first_rule(
            and_(
                AvailabilityRule.employee_id == employee_id,
                AvailabilityRule.is_exception.is_(False),
                AvailabilityRule.day_of_week == day_of_week(day),
            )
        )
        if not weekly_rule:
            logger.debug(
                "No availability rule for day",
                employee_id=employee_id,
                date=day.isoformat(),
            )
        return weekly_rule

    async def generate_slots(
        self,
        employee_id: int,
        day: date_type,
        slot_duration_minutes: Optional[int] = None,
    ) -> list[TimeSlot]:
        """Back-to-back slots covering the effective working window of ``day``.

        A slot that would run past the end of the window is dropped.
        """
        if slot_duration_minutes is None:
            slot_duration_minutes = settings.DEFAULT_SLOT_DURATION_MINUTES
        if (
            isinstance(slot_duration_minutes, bool)
            or not isinstance(slot_duration_minutes, int)
            or slot_duration_minutes <= 0
        ):
            raise BookingValidationError(
                "Slot duration must be a positive number of minutes"
            )

        await self._require_employee(employee_id)
        rule = await self.resolve_effective_rule(employee_id, day)
        if not rule:
            return []

        rule_start, rule_end = rule.window
        window_start = rule_start.anchor(day, self.tz)
        window_end = rule_end.anchor(day, self.tz)
        step = timedelta(minutes=slot_duration_minutes)

        slots = []
        current = window_start
        while current + step <= window_end:
            slots.append(TimeSlot(start=current, end=current + step))
            current += step

        logger.info(
            "Generated slots",
            employee_id=employee_id,
            date=day.isoformat(),
            slot_duration_minutes=slot_duration_minutes,
            window=f"{rule.start_time}-{rule.end_time}",
            slot_count=len(slots),
        )
        return slots

    async def get_available_slots(
        self,
        employee_id: int,
        day: date_type,
        slot_duration_minutes: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> list[TimeSlot]:
        """Generated slots minus those overlapping a blocking appointment.

        The first returned slot ending after ``now`` is flagged
        ``is_next_available``.
        """
        slots = await self.generate_slots(employee_id, day, slot_duration_minutes)
        if not slots:
            return []

        booked = await self._blocking_appointments(
            employee_id, slots[0].start, slots[-1].end
        )
        now = now or datetime.now(timezone.utc)

        available = []
        next_flagged = False
        for slot in slots:
            if any(apt.overlaps(slot.start, slot.end) for apt in booked):
                continue
            if not next_flagged and slot.end > now:
                slot.is_next_available = True
                next_flagged = True
            available.append(slot)

        logger.info(
            "Computed available slots",
            employee_id=employee_id,
            date=day.isoformat(),
            generated=len(slots),
            available=len(available),
            booked_appointments=len(booked),
        )
        return available

    async def get_working_hours(
        self, employee_id: int, day: date_type
    ) -> Optional[WorkingHours]:
        """Effective working window of ``day``, or None when not working."""
        await self._require_employee(employee_id)
        rule = await self.resolve_effective_rule(employee_id, day)
        if not rule or rule.is_day_off:
            return None
        return WorkingHours(
            start_time=rule.start_time,
            end_time=rule.end_time,
            is_exception=rule.is_exception,
        )

    async def is_available(
        self, employee_id: int, start_time: datetime, end_time: datetime
    ) -> bool:
        """Whether ``[start_time, end_time]`` lies within the employee's
        working hours for the day of ``start_time``.

        Existing appointments are not consulted, see ``has_conflict``.
        """
        local_start = to_business_time(start_time, self.tz)
        local_end = to_business_time(end_time, self.tz)

        rule = await self.resolve_effective_rule(employee_id, local_start.date())
        if not rule:
            logger.debug(
                "Employee has no working hours on requested day",
                employee_id=employee_id,
                date=local_start.date().isoformat(),
            )
            return False

        available = rule.contains(
            TimeOfDay.from_datetime(local_start), TimeOfDay.from_datetime(local_end)
        )
        logger.debug(
            "Working hours check",
            employee_id=employee_id,
            requested=f"{local_start:%H:%M}-{local_end:%H:%M}",
            window=f"{rule.start_time}-{rule.end_time}",
            is_exception=rule.is_exception,
            available=available,
        )
        return available

    async def has_conflict(
        self,
        employee_id: int,
        start_time: datetime,
        end_time: datetime,
        exclude_appointment_id: Optional[int] = None,
    ) -> bool:
        """Whether a blocking appointment of the employee overlaps the
        half-open interval ``[start_time, end_time)``."""
        start_time = to_business_time(start_time, self.tz)
        end_time = to_business_time(end_time, self.tz)

        query = select(Appointment.id).where(
            and_(
                Appointment.employee_id == employee_id,
                Appointment.status.in_([s.value for s in BLOCKING_STATUSES]),
                Appointment.start_time < end_time,
                Appointment.end_time > start_time,
            )
        )
        if exclude_appointment_id is not None:
            query = query.where(Appointment.id != exclude_appointment_id)

        result = await self.db.execute(query.limit(1))
        conflicting_id = result.scalar_one_or_none()

        if conflicting_id is not None:
            logger.debug(
                "Found conflicting appointment",
                employee_id=employee_id,
                appointment_id=conflicting_id,
            )
            return True
        return False

    async def _require_employee(self, employee_id: int) -> None:
        if not await self.db.get(Employee, employee_id):
            raise NotFoundError("Employee", employee_id)

    async def _first_rule(self, condition) -> Optional[AvailabilityRule]:
        result = await self.db.execute(
            select(AvailabilityRule)
            .join(Employee, Employee.id == AvailabilityRule.employee_id)
            .where(condition, Employee.is_active.is_(True))
            .order_by(AvailabilityRule.id)
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def _blocking_appointments(
        self, employee_id: int, window_start: datetime, window_end: datetime
    ) -> list[Appointment]:
        result = await self.db.execute(
            select(Appointment).where(
                and_(
                    Appointment.employee_id == employee_id,
                    Appointment.status.in_([s.value for s in BLOCKING_STATUSES]),
                    Appointment.start_time < window_end,
                    Appointment.end_time > window_start,
                )
            )
        )
        return list(result.scalars().all())
