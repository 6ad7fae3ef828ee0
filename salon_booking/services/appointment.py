from datetime import datetime
from typing import List, Optional

import structlog
from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from salon_booking.core.config import settings
from salon_booking.core.exceptions import BookingValidationError, NotFoundError
from salon_booking.core.locks import get_employee_locks
from salon_booking.models.appointment import (
    Appointment,
    AppointmentLineItem,
    AppointmentStatus,
    BookingSource,
)
from salon_booking.models.client import Client
from salon_booking.models.employee import Employee
from salon_booking.models.service import Service
from salon_booking.schemas.appointment import (
    AppointmentCreate,
    AppointmentFilters,
    AppointmentReschedule,
    AppointmentUpdate,
)
from salon_booking.services.client import ClientService
from salon_booking.services.employee import EmployeeService
from salon_booking.services.notification_service import get_booking_notifier
from salon_booking.services.scheduling import SchedulingEngineService
from salon_booking.utils.time_of_day import to_business_time

logger = structlog.get_logger(__name__)


class AppointmentService:
    """Booking creation, modification and lifecycle of appointments.

    Every check-then-write sequence for an employee runs under that employee's
    lock, and each operation commits once. Any error rolls the session back,
    so a rejected booking leaves nothing behind (including clients created
    while resolving it).
    """

    def __init__(
        self,
        db: AsyncSession,
        notifier=None,
        locks=None,
        strict_transitions: Optional[bool] = None,
    ):
        self.db = db
        self.scheduling_engine = SchedulingEngineService(db)
        self.client_service = ClientService(db)
        self.employee_service = EmployeeService(db)
        self.notifier = notifier or get_booking_notifier()
        self.locks = locks or get_employee_locks()
        self.strict_transitions = (
            settings.STRICT_STATUS_TRANSITIONS
            if strict_transitions is None
            else strict_transitions
        )

    async def create_appointment(self, appointment_data: AppointmentCreate) -> Appointment:
        """Create a PENDING appointment for the resolved client.

        Without ``employee_id`` the first active employee (ascending id) who
        works at that time and has no overlapping booking is assigned.
        """
        if not appointment_data.service_ids:
            raise BookingValidationError("At least one service must be selected")

        start_time = to_business_time(appointment_data.start_time, self.scheduling_engine.tz)
        end_time = to_business_time(appointment_data.end_time, self.scheduling_engine.tz)
        if end_time <= start_time:
            raise BookingValidationError("end_time must be after start_time")

        try:
            services = await self._get_services(appointment_data.service_ids)
            resolution = await self.client_service.resolve_or_create_client(appointment_data)

            fields = {
                "client_id": resolution.client.id,
                "start_time": start_time,
                "end_time": end_time,
                "notes": appointment_data.notes,
                "client_timezone": appointment_data.client_timezone
                or settings.DEFAULT_CLIENT_TIMEZONE,
                "booking_source": (
                    appointment_data.booking_source
                    or BookingSource(settings.DEFAULT_BOOKING_SOURCE)
                ).value,
            }

            if appointment_data.employee_id is not None:
                await self._require_employee(appointment_data.employee_id)
                async with self.locks.hold(appointment_data.employee_id):
                    await self._ensure_bookable(
                        appointment_data.employee_id, start_time, end_time
                    )
                    appointment_id = await self._insert(
                        appointment_data.employee_id, services, fields
                    )
            else:
                appointment_id = await self._book_first_available(
                    services, fields, start_time, end_time
                )
        except Exception:
            await self.db.rollback()
            raise

        appointment = await self.get_appointment(appointment_id)
        logger.info(
            "Appointment created",
            appointment_id=appointment.id,
            client_id=appointment.client_id,
            employee_id=appointment.employee_id,
            client_resolution=resolution.kind.value,
            start_time=appointment.start_time.isoformat(),
            end_time=appointment.end_time.isoformat(),
            booking_source=appointment.booking_source,
        )

        await self._notify("notify_booking_created", appointment.id)
        return appointment

    async def get_appointment(self, appointment_id: int) -> Appointment:
        """Get appointment by ID with line items, client and employee loaded."""
        result = await self.db.execute(
            select(Appointment)
            .options(*self._load_options())
            .where(Appointment.id == appointment_id)
            .execution_options(populate_existing=True)
        )
        appointment = result.scalar_one_or_none()
        if not appointment:
            raise NotFoundError("Appointment", appointment_id)
        return appointment

    async def get_appointments_by_client(self, client_id: int) -> List[Appointment]:
        """Appointments of a client, newest first."""
        result = await self.db.execute(
            select(Appointment)
            .options(*self._load_options())
            .where(Appointment.client_id == client_id)
            .order_by(Appointment.start_time.desc())
        )
        return list(result.scalars().all())

    async def get_appointments_by_employee(
        self,
        employee_id: int,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> List[Appointment]:
        """Appointments of an employee starting within the optional range,
        oldest first."""
        query = select(Appointment).where(Appointment.employee_id == employee_id)
        if start_date is not None:
            query = query.where(
                Appointment.start_time >= to_business_time(start_date, self.scheduling_engine.tz)
            )
        if end_date is not None:
            query = query.where(
                Appointment.start_time <= to_business_time(end_date, self.scheduling_engine.tz)
            )

        result = await self.db.execute(
            query.options(*self._load_options()).order_by(Appointment.start_time)
        )
        return list(result.scalars().all())

    async def get_appointments(
        self, filters: Optional[AppointmentFilters] = None
    ) -> tuple[List[Appointment], int]:
        """All appointments matching ``filters`` with the total count."""
        query = select(Appointment)
        if filters:
            query = self._apply_filters(query, filters)

        count_query = select(func.count()).select_from(query.subquery())
        total_count = (await self.db.execute(count_query)).scalar()

        result = await self.db.execute(
            query.options(*self._load_options()).order_by(
                Appointment.start_time, Appointment.id
            )
        )
        return list(result.scalars().all()), total_count

    async def update_appointment(
        self, appointment_id: int, update_data: AppointmentUpdate
    ) -> Appointment:
        """Apply changes; time or employee changes are re-validated first."""
        appointment = await self._get_plain(appointment_id)
        changes = update_data.model_dump(exclude_unset=True)

        tz = self.scheduling_engine.tz
        new_start = to_business_time(changes.get("start_time") or appointment.start_time, tz)
        new_end = to_business_time(changes.get("end_time") or appointment.end_time, tz)
        new_employee_id = changes.get("employee_id") or appointment.employee_id

        slot_changed = (
            new_start != appointment.start_time
            or new_end != appointment.end_time
            or new_employee_id != appointment.employee_id
        )

        try:
            if slot_changed:
                if new_end <= new_start:
                    raise BookingValidationError("end_time must be after start_time")
                if new_employee_id != appointment.employee_id:
                    await self._require_employee(new_employee_id)

                async with self.locks.hold(new_employee_id):
                    await self._ensure_bookable(
                        new_employee_id, new_start, new_end, exclude_appointment_id=appointment.id
                    )
                    appointment.employee_id = new_employee_id
                    appointment.start_time = new_start
                    appointment.end_time = new_end
                    self._apply_details(appointment, changes)
                    await self.db.commit()
            else:
                self._apply_details(appointment, changes)
                await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(
            "Appointment updated",
            appointment_id=appointment_id,
            changes=sorted(changes),
            revalidated=slot_changed,
        )
        return await self.get_appointment(appointment_id)

    async def reschedule_appointment(
        self, appointment_id: int, reschedule_data: AppointmentReschedule
    ) -> Appointment:
        """Move the appointment to a new window with the same employee.

        The new window is validated like a fresh booking, ignoring the
        appointment itself, and the status goes back to PENDING.
        """
        appointment = await self._get_plain(appointment_id)
        self._check_not_terminal(appointment, AppointmentStatus.PENDING)

        tz = self.scheduling_engine.tz
        new_start = to_business_time(reschedule_data.new_start_time, tz)
        new_end = to_business_time(reschedule_data.new_end_time, tz)
        if new_end <= new_start:
            raise BookingValidationError("new_end_time must be after new_start_time")

        previous_start = appointment.start_time
        try:
            async with self.locks.hold(appointment.employee_id):
                await self._ensure_bookable(
                    appointment.employee_id,
                    new_start,
                    new_end,
                    exclude_appointment_id=appointment.id,
                )
                appointment.start_time = new_start
                appointment.end_time = new_end
                appointment.transition_to(AppointmentStatus.PENDING)
                await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(
            "Appointment rescheduled",
            appointment_id=appointment_id,
            employee_id=appointment.employee_id,
            previous_start=previous_start.isoformat(),
            new_start=new_start.isoformat(),
        )

        await self._notify("notify_booking_rescheduled", appointment_id)
        return await self.get_appointment(appointment_id)

    async def confirm_appointment(self, appointment_id: int) -> Appointment:
        return await self._transition(appointment_id, AppointmentStatus.CONFIRMED)

    async def start_appointment(self, appointment_id: int) -> Appointment:
        return await self._transition(appointment_id, AppointmentStatus.IN_PROGRESS)

    async def complete_appointment(self, appointment_id: int) -> Appointment:
        return await self._transition(appointment_id, AppointmentStatus.COMPLETED)

    async def mark_no_show(self, appointment_id: int) -> Appointment:
        return await self._transition(appointment_id, AppointmentStatus.NO_SHOW)

    async def cancel_appointment(self, appointment_id: int) -> Appointment:
        """Cancel the appointment, freeing its time for other bookings."""
        appointment = await self._transition(appointment_id, AppointmentStatus.CANCELLED)
        await self._notify("notify_booking_cancelled", appointment_id)
        return appointment

    async def _transition(
        self, appointment_id: int, new_status: AppointmentStatus
    ) -> Appointment:
        appointment = await self._get_plain(appointment_id)
        self._check_not_terminal(appointment, new_status)

        previous_status = appointment.status
        appointment.transition_to(new_status)
        try:
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(
            "Appointment status changed",
            appointment_id=appointment_id,
            from_status=previous_status,
            to_status=new_status.value,
        )
        return await self.get_appointment(appointment_id)

    def _check_not_terminal(
        self, appointment: Appointment, new_status: AppointmentStatus
    ) -> None:
        if not appointment.can_transition_to(new_status, strict=self.strict_transitions):
            raise BookingValidationError(
                f"Cannot change appointment from {appointment.status} "
                f"to {new_status.value}"
            )

    async def _book_first_available(
        self,
        services: List[Service],
        fields: dict,
        start_time: datetime,
        end_time: datetime,
    ) -> int:
        for employee in await self.employee_service.list_active_employees():
            async with self.locks.hold(employee.id):
                if not await self.scheduling_engine.is_available(
                    employee.id, start_time, end_time
                ):
                    continue
                if await self.scheduling_engine.has_conflict(
                    employee.id, start_time, end_time
                ):
                    continue

                logger.info(
                    "Auto-assigned employee",
                    employee_id=employee.id,
                    start_time=start_time.isoformat(),
                )
                return await self._insert(employee.id, services, fields)

        raise BookingValidationError("No employees available for the selected time slot")

    async def _ensure_bookable(
        self,
        employee_id: int,
        start_time: datetime,
        end_time: datetime,
        exclude_appointment_id: Optional[int] = None,
    ) -> None:
        if not await self.scheduling_engine.is_available(employee_id, start_time, end_time):
            raise BookingValidationError("Selected time slot is not available")
        if await self.scheduling_engine.has_conflict(
            employee_id, start_time, end_time, exclude_appointment_id=exclude_appointment_id
        ):
            raise BookingValidationError("Time slot conflicts with existing appointment")

    async def _insert(self, employee_id: int, services: List[Service], fields: dict) -> int:
        appointment = Appointment(
            employee_id=employee_id,
            status=AppointmentStatus.PENDING.value,
            **fields,
        )
        # Price and duration are captured now; later catalogue edits do not
        # change existing bookings
        appointment.services = [
            AppointmentLineItem(
                service_id=service.id,
                duration=service.base_duration,
                price=service.price,
            )
            for service in services
        ]
        self.db.add(appointment)
        await self.db.commit()
        return appointment.id

    async def _get_services(self, service_ids: List[int]) -> List[Service]:
        """Services in request order; an unknown id rejects the booking."""
        result = await self.db.execute(
            select(Service).where(Service.id.in_(set(service_ids)))
        )
        by_id = {service.id: service for service in result.scalars().all()}

        missing = [service_id for service_id in service_ids if service_id not in by_id]
        if missing:
            raise BookingValidationError(f"Service {missing[0]} not found")
        return [by_id[service_id] for service_id in service_ids]

    async def _require_employee(self, employee_id: int) -> None:
        if not await self.db.get(Employee, employee_id):
            raise NotFoundError("Employee", employee_id)

    async def _get_plain(self, appointment_id: int) -> Appointment:
        appointment = await self.db.get(Appointment, appointment_id)
        if not appointment:
            raise NotFoundError("Appointment", appointment_id)
        return appointment

    async def _notify(self, event: str, appointment_id: int) -> None:
        try:
            await getattr(self.notifier, event)(appointment_id)
        except Exception as e:
            # Booking already succeeded; delivery problems stay in the logs
            logger.warning(
                "Booking notification failed",
                notification=event,
                appointment_id=appointment_id,
                error=str(e),
            )

    @staticmethod
    def _apply_details(appointment: Appointment, changes: dict) -> None:
        for field in ("notes", "client_timezone"):
            if field in changes:
                setattr(appointment, field, changes[field])

    @staticmethod
    def _load_options():
        return (
            selectinload(Appointment.services).selectinload(AppointmentLineItem.service),
            selectinload(Appointment.client).selectinload(Client.user),
            selectinload(Appointment.employee).selectinload(Employee.user),
        )

    def _apply_filters(self, query, filters: AppointmentFilters):
        conditions = []
        tz = self.scheduling_engine.tz

        if filters.client_id is not None:
            conditions.append(Appointment.client_id == filters.client_id)
        if filters.employee_id is not None:
            conditions.append(Appointment.employee_id == filters.employee_id)
        if filters.status is not None:
            conditions.append(Appointment.status == filters.status.value)
        if filters.start_date is not None:
            conditions.append(
                Appointment.start_time >= to_business_time(filters.start_date, tz)
            )
        if filters.end_date is not None:
            conditions.append(
                Appointment.start_time <= to_business_time(filters.end_date, tz)
            )

        if conditions:
            query = query.where(and_(*conditions))
        return query
