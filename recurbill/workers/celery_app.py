from __future__ import annotations

from celery import Celery
from celery.schedules import crontab
from celery.signals import setup_logging

from recurbill.core.config import settings
from recurbill.core.logger import init_logging
from recurbill.core.redis_utils import get_ssl_options, prepare_redis_url


def build_beat_schedule(cutoff_hour: int) -> dict[str, dict]:
    """Daily sweep at the cutoff, then hourly retries at :30 until midnight.

    Retries also pick up charges whose reminder failed on an earlier day.
    """
    return {
        "daily-billing-sweep": {
            "task": "billing.run_daily_sweep",
            "schedule": crontab(minute=0, hour=cutoff_hour),
        },
        "retry-failed-reminders": {
            "task": "billing.retry_failed_reminders",
            "schedule": crontab(minute=30, hour=f"{cutoff_hour}-23"),
        },
    }


def _create_celery() -> Celery:
    redis_url = prepare_redis_url(settings.REDIS_URL)
    ssl_options = get_ssl_options()
    celery = Celery(
        "recurbill",
        broker=redis_url,
        backend=redis_url,
        include=["recurbill.workers.tasks"],
    )
    celery.conf.update(
        task_default_queue="default",
        task_serializer="json",
        result_serializer="json",
        accept_content=["json"],
        # Crontab entries are read in the billing timezone.
        timezone=settings.BILLING_TIMEZONE,
        enable_utc=True,
        task_always_eager=settings.ENV.lower() in {"test"},
    )
    if ssl_options:
        celery.conf.update(
            broker_use_ssl=ssl_options,
            redis_backend_use_ssl=ssl_options,
        )
    # Beat schedule (only active outside test env)
    if settings.ENV.lower() not in {"test"}:
        celery.conf.beat_schedule = build_beat_schedule(settings.BILLING_CUTOFF_HOUR)
    return celery


@setup_logging.connect
def _configure_logging(**_kwargs) -> None:
    """Use the app log format in workers instead of Celery's default."""
    init_logging()


celery_app = _create_celery()
