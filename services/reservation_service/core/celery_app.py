"""
Reservation Service — Celery application

Uses Redis as both broker and result backend.
Beat schedules the outbox relay; workers run in a separate container
(reservation-worker).
"""
from celery import Celery
from reservation_service.core.config import get_settings

settings = get_settings()

celery_app = Celery(
    "reservation_service",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=["reservation_service.tasks.outbox_tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    task_acks_late=True,           # Only ack after task completes (fault-tolerant)
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,  # One relay batch at a time per worker
    beat_schedule={
        "relay-reservation-events": {
            "task": "relay_reservation_events",
            "schedule": settings.OUTBOX_RELAY_INTERVAL_SECONDS,
        },
    },
)
