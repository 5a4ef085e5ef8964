from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any

from celery import Celery, Task
from celery.signals import setup_logging
from kombu import Queue

from .core.settings import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()

# -----------------------------------------------------------------------------
# Celery App
# -----------------------------------------------------------------------------
celery_app = Celery(
    "tix",
    broker=settings.scalability.CELERY_BROKER_URL,
    backend=settings.scalability.CELERY_RESULT_BACKEND,
    include=["tix.tasks"],
)

celery_app.conf.update(
    task_serializer=settings.scalability.CELERY_TASK_SERIALIZER,
    result_serializer=settings.scalability.CELERY_RESULT_SERIALIZER,
    accept_content=settings.scalability.CELERY_ACCEPT_CONTENT,
    timezone=settings.scalability.CELERY_TIMEZONE,
    enable_utc=settings.scalability.CELERY_ENABLE_UTC,
    task_routes={
        "tix.tasks.release_expired_holds": {"queue": "maintenance"},
    },
    task_default_queue="default",
    task_queues={
        "default": Queue("default"),
        "maintenance": Queue("maintenance"),
    },
    beat_schedule={
        "release-expired-holds": {
            "task": "tix.tasks.release_expired_holds",
            "schedule": timedelta(seconds=settings.booking.BOOKING_HOLD_SWEEP_SECONDS),
        },
    },
    worker_send_task_events=True,
    worker_prefetch_multiplier=1,
    worker_max_tasks_per_child=1000,
    task_acks_late=True,
    task_track_started=True,
    task_reject_on_worker_lost=True,
    broker_connection_retry_on_startup=True,
    result_expires=3600,
    task_soft_time_limit=120,
    task_time_limit=300,
)

# -----------------------------------------------------------------------------
# Logging
# -----------------------------------------------------------------------------


@setup_logging.connect  # type: ignore[misc]
def config_loggers(*args: Any, **kwargs: Any) -> None:
    """Configure logging for Celery workers."""
    from logging.config import dictConfig

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "json": {
                    "()": "pythonjsonlogger.json.JsonFormatter",
                    "fmt": "%(asctime)s %(levelname)s %(processName)s %(name)s %(message)s",
                },
            },
            "handlers": {
                "console": {
                    "level": settings.monitoring.LOG_LEVEL,
                    "class": "logging.StreamHandler",
                    "formatter": "json",
                },
            },
            "root": {"level": settings.monitoring.LOG_LEVEL, "handlers": ["console"]},
            "loggers": {
                "celery": {
                    "level": "INFO",
                    "handlers": ["console"],
                    "propagate": False,
                },
            },
        }
    )


# -----------------------------------------------------------------------------
# Custom Base Task
# -----------------------------------------------------------------------------


class CallbackTask(Task):
    """Base task class with structured logging for lifecycle events."""

    abstract = True

    def on_failure(
        self,
        exc: Exception,
        task_id: str,
        args: tuple[Any, ...],
        kwargs: dict[str, Any],
        einfo: Any,
    ) -> None:
        logger.error(
            "Task %s [%s] failed: %s",
            self.name,
            task_id,
            exc,
            extra={"task_id": task_id, "task_name": self.name},
        )

    def on_success(
        self,
        retval: Any,
        task_id: str,
        args: tuple[Any, ...],
        kwargs: dict[str, Any],
    ) -> None:
        logger.info(
            "Task %s [%s] succeeded",
            self.name,
            task_id,
            extra={"task_id": task_id, "task_name": self.name, "retval": retval},
        )


celery_app.Task = CallbackTask
