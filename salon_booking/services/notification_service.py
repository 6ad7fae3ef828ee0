"""
Booking notifications sent by email through Celery workers.

The booking path only enqueues tasks; workers load the appointment, render the
message and deliver it over SMTP. Delivery failures never reach the client
that made the booking.
"""

import asyncio
import smtplib
import ssl
from datetime import datetime, timedelta, timezone
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape
from typing import Optional, Protocol
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import structlog
from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from salon_booking.core.celery import celery_app
from salon_booking.core.config import settings
from salon_booking.core.database import worker_session
from salon_booking.models.appointment import Appointment, AppointmentLineItem, BLOCKING_STATUSES
from salon_booking.models.client import Client
from salon_booking.models.employee import Employee
from salon_booking.utils.time_of_day import business_timezone

logger = structlog.get_logger(__name__)


class BookingNotifier(Protocol):
    async def notify_booking_created(self, appointment_id: int) -> None: ...

    async def notify_booking_rescheduled(self, appointment_id: int) -> None: ...

    async def notify_booking_cancelled(self, appointment_id: int) -> None: ...


class CeleryBookingNotifier:
    """Enqueues the email tasks below; does nothing when notifications are off."""

    def __init__(self, enabled: Optional[bool] = None):
        self.enabled = settings.NOTIFICATIONS_ENABLED if enabled is None else enabled

    async def notify_booking_created(self, appointment_id: int) -> None:
        await self._enqueue(send_booking_confirmation, appointment_id)

    async def notify_booking_rescheduled(self, appointment_id: int) -> None:
        await self._enqueue(send_booking_rescheduled, appointment_id)

    async def notify_booking_cancelled(self, appointment_id: int) -> None:
        await self._enqueue(send_booking_cancellation, appointment_id)

    async def _enqueue(self, task, appointment_id: int) -> None:
        if not self.enabled:
            logger.debug("Notifications disabled", task=task.name, appointment_id=appointment_id)
            return
        # Publishing talks to the broker synchronously
        await asyncio.to_thread(task.delay, appointment_id)
        logger.info("Notification queued", task=task.name, appointment_id=appointment_id)


def get_booking_notifier() -> BookingNotifier:
    return CeleryBookingNotifier()


# Rendering

def _display_timezone(name: Optional[str]) -> ZoneInfo:
    if name:
        try:
            return ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning("Unknown client timezone, using business timezone", timezone=name)
    return business_timezone()


def build_email_context(appointment: Appointment) -> dict:
    """Plain values needed to render any booking email.

    Expects client.user, employee.user and services.service to be loaded.
    """
    tz = _display_timezone(appointment.client_timezone)
    start = appointment.start_time.astimezone(tz)
    end = appointment.end_time.astimezone(tz)
    client_user = appointment.client.user
    employee_user = appointment.employee.user if appointment.employee else None

    return {
        "appointment_id": appointment.id,
        "to": client_user.email if client_user else None,
        "is_placeholder": bool(client_user and client_user.is_placeholder),
        "client_first_name": client_user.first_name if client_user else "",
        "employee_name": employee_user.full_name if employee_user else "",
        "date": start.strftime("%A, %d %B %Y"),
        "start": start.strftime("%H:%M"),
        "end": end.strftime("%H:%M"),
        "services": [item.service.name for item in appointment.services if item.service],
    }


def render_email(kind: str, context: dict) -> tuple[str, str]:
    """Subject and HTML body for a notification ``kind``."""
    name = escape(context["client_first_name"] or "there")
    when = f"{escape(context['date'])}, {escape(context['start'])} - {escape(context['end'])}"
    services = escape(", ".join(context["services"])) or "-"
    details = (
        "<ul>"
        f"<li><strong>When:</strong> {when}</li>"
        f"<li><strong>Stylist:</strong> {escape(context['employee_name']) or '-'}</li>"
        f"<li><strong>Services:</strong> {services}</li>"
        "</ul>"
    )

    if kind == "confirmation":
        subject = "Booking Confirmation"
        body = (
            "<h2>Booking received</h2>"
            f"<p>Hi {name},</p><p>Thanks for booking with us.</p>"
            f"<h3>Appointment details</h3>{details}"
        )
    elif kind == "rescheduled":
        subject = "Booking Rescheduled"
        body = (
            "<h2>Your booking has been rescheduled</h2>"
            f"<p>Hi {name},</p><p>Your appointment now takes place:</p>{details}"
        )
    elif kind == "cancelled":
        subject = "Booking Cancelled"
        body = (
            "<h2>Your booking has been cancelled</h2>"
            f"<p>Hi {name},</p><p>Your appointment on {when} has been cancelled.</p>"
            "<p>If you have any questions, please contact us.</p>"
        )
    elif kind == "reminder":
        subject = "Appointment Reminder"
        body = (
            "<h2>See you soon</h2>"
            f"<p>Hi {name},</p><p>This is a reminder of your upcoming appointment.</p>"
            f"{details}"
        )
    else:
        raise ValueError(f"Unknown notification kind: {kind}")

    return subject, body


# Delivery

def send_email(to: str, subject: str, html_content: str) -> None:
    """Send one HTML email through the configured SMTP server."""
    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = settings.SMTP_FROM
    msg["To"] = to
    msg.attach(MIMEText(html_content, "html"))

    if settings.SMTP_PORT == 465:
        context = ssl.create_default_context()
        server = smtplib.SMTP_SSL(settings.SMTP_HOST, settings.SMTP_PORT, context=context, timeout=30)
    else:
        server = smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=30)
        if settings.SMTP_USE_TLS:
            server.starttls(context=ssl.create_default_context())

    try:
        if settings.SMTP_USER and settings.SMTP_PASSWORD:
            server.login(settings.SMTP_USER, settings.SMTP_PASSWORD)
        server.sendmail(settings.SMTP_FROM, [to], msg.as_string())
    finally:
        server.quit()

    logger.info("Email sent", to=to, subject=subject, smtp_host=settings.SMTP_HOST)


async def _with_session(work):
    async with worker_session() as session:
        return await work(session)


async def load_email_context(session: AsyncSession, appointment_id: int) -> Optional[dict]:
    result = await session.execute(
        select(Appointment)
        .options(
            selectinload(Appointment.client).selectinload(Client.user),
            selectinload(Appointment.employee).selectinload(Employee.user),
            selectinload(Appointment.services).selectinload(AppointmentLineItem.service),
        )
        .where(Appointment.id == appointment_id)
    )
    appointment = result.scalar_one_or_none()
    if not appointment:
        return None
    return build_email_context(appointment)


def deliver(kind: str, appointment_id: int) -> bool:
    """Load, render and send one notification. Returns whether a mail went out."""
    context = asyncio.run(
        _with_session(lambda session: load_email_context(session, appointment_id))
    )
    if context is None:
        logger.warning("Appointment not found for notification", kind=kind, appointment_id=appointment_id)
        return False
    if not context["to"] or context["is_placeholder"]:
        logger.info("Client has no reachable email, skipping", kind=kind, appointment_id=appointment_id)
        return False

    subject, html_content = render_email(kind, context)
    send_email(context["to"], subject, html_content)
    return True


# Tasks

@celery_app.task(bind=True, max_retries=3, default_retry_delay=60)
def send_booking_confirmation(self, appointment_id: int):
    try:
        return deliver("confirmation", appointment_id)
    except (smtplib.SMTPException, OSError) as e:
        logger.error("Confirmation email failed", appointment_id=appointment_id, error=str(e))
        raise self.retry(exc=e)


@celery_app.task(bind=True, max_retries=3, default_retry_delay=60)
def send_booking_rescheduled(self, appointment_id: int):
    try:
        return deliver("rescheduled", appointment_id)
    except (smtplib.SMTPException, OSError) as e:
        logger.error("Reschedule email failed", appointment_id=appointment_id, error=str(e))
        raise self.retry(exc=e)


@celery_app.task(bind=True, max_retries=3, default_retry_delay=60)
def send_booking_cancellation(self, appointment_id: int):
    try:
        return deliver("cancelled", appointment_id)
    except (smtplib.SMTPException, OSError) as e:
        logger.error("Cancellation email failed", appointment_id=appointment_id, error=str(e))
        raise self.retry(exc=e)


@celery_app.task(bind=True, max_retries=3, default_retry_delay=300)
def send_booking_reminder(self, appointment_id: int):
    try:
        return deliver("reminder", appointment_id)
    except (smtplib.SMTPException, OSError) as e:
        logger.error("Reminder email failed", appointment_id=appointment_id, error=str(e))
        raise self.retry(exc=e)


async def find_upcoming_appointment_ids(
    session: AsyncSession, window_start: datetime, window_end: datetime
) -> list[int]:
    """Ids of blocking appointments starting in ``[window_start, window_end)``."""
    result = await session.execute(
        select(Appointment.id)
        .where(
            and_(
                Appointment.status.in_([s.value for s in BLOCKING_STATUSES]),
                Appointment.start_time >= window_start,
                Appointment.start_time < window_end,
            )
        )
        .order_by(Appointment.start_time)
    )
    return list(result.scalars().all())


@celery_app.task
def queue_upcoming_reminders(hours_ahead: int = 24):
    """Queue reminders for appointments starting one hour-wide slice
    ``hours_ahead`` from now. Run hourly so each appointment is picked once."""
    window_start = datetime.now(timezone.utc) + timedelta(hours=hours_ahead)
    window_end = window_start + timedelta(hours=1)

    appointment_ids = asyncio.run(
        _with_session(
            lambda session: find_upcoming_appointment_ids(session, window_start, window_end)
        )
    )
    for appointment_id in appointment_ids:
        send_booking_reminder.delay(appointment_id)

    logger.info("Reminders queued", count=len(appointment_ids), window_start=window_start.isoformat())
    return len(appointment_ids)
