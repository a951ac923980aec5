"""Celery application configuration and task metrics."""

import time

from celery import Celery
from celery.signals import task_failure, task_postrun, task_prerun, task_retry

from followups.config import get_settings
from followups.metrics import celery_task_duration_seconds, celery_task_total

settings = get_settings()

celery_app = Celery(
    "followups",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
)


def build_beat_schedule(enabled: bool, interval_seconds: int) -> dict:
    """Server-side due-soon scan, off unless explicitly enabled."""
    if not enabled:
        return {}
    return {
        "check-due-soon-follow-ups": {
            "task": "followups.tasks.reminder_tasks.check_due_soon_follow_ups",
            "schedule": interval_seconds,
        },
    }


celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,
    task_default_queue="default",
    task_routes={
        "followups.tasks.reminder_tasks.*": {"queue": "reminders"},
    },
    beat_schedule=build_beat_schedule(settings.server_reminders_enabled, settings.due_soon_poll_seconds),
)

# task_id -> monotonic start time
_task_start_times: dict[str, float] = {}


def _on_prerun(task_id=None, task=None, **kwargs):
    _task_start_times[task_id] = time.monotonic()


def _on_postrun(task_id=None, task=None, state=None, **kwargs):
    started = _task_start_times.pop(task_id, None)
    if started is not None:
        celery_task_duration_seconds.labels(task_name=task.name).observe(time.monotonic() - started)
    if state == "SUCCESS":
        celery_task_total.labels(task_name=task.name, status="success").inc()


def _on_failure(task_id=None, sender=None, **kwargs):
    celery_task_total.labels(task_name=sender.name, status="failure").inc()


def _on_retry(request=None, sender=None, **kwargs):
    celery_task_total.labels(task_name=sender.name, status="retry").inc()


def _setup_task_signals() -> None:
    task_prerun.connect(_on_prerun, weak=False)
    task_postrun.connect(_on_postrun, weak=False)
    task_failure.connect(_on_failure, weak=False)
    task_retry.connect(_on_retry, weak=False)


_setup_task_signals()
celery_app.autodiscover_tasks(["followups.tasks"], related_name="reminder_tasks")
