"""Celery app for booking notifications.

Run a worker with ``celery -A salon_booking.core.celery worker -Q notifications``
and the reminder schedule with ``celery -A salon_booking.core.celery beat``.
"""

import structlog
from celery import Celery
from celery.signals import setup_logging

from salon_booking.core.config import settings
from salon_booking.core.logging import configure_logging

logger = structlog.get_logger(__name__)

NOTIFICATIONS_QUEUE = "notifications"

celery_app = Celery(
    "salon_booking",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=["salon_booking.services.notification_service"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    # Beat schedules in salon local time; timestamps stay UTC
    timezone=settings.BUSINESS_TIMEZONE,
    enable_utc=True,
    result_expires=3600,
    task_routes={
        "salon_booking.services.notification_service.*": {"queue": NOTIFICATIONS_QUEUE},
    },
    task_default_queue=NOTIFICATIONS_QUEUE,
    worker_prefetch_multiplier=1,
    task_acks_late=True,
    worker_max_tasks_per_child=1000,
    beat_schedule={
        "queue-upcoming-reminders": {
            "task": "salon_booking.services.notification_service.queue_upcoming_reminders",
            "schedule": 3600.0,
            "kwargs": {"hours_ahead": 24},
        },
    },
)


@setup_logging.connect
def configure_worker_logging(**kwargs):
    # Connecting here stops Celery from installing its own root handlers
    configure_logging()
    logger.info("Celery logging configured", queue=NOTIFICATIONS_QUEUE)
