"""
Billing Tasks.

Celery entry points for the daily sweep and the manual billing triggers.
"""
from __future__ import annotations

import datetime as dt
import logging
from typing import Any

from celery import Task

from recurbill.db.session import session_scope
from recurbill.services.billing import build_billing_engine
from recurbill.workers.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(
    bind=True,
    name="billing.run_daily_sweep",
    autoretry_for=(Exception,),
    retry_backoff=60,
    retry_jitter=True,
    retry_kwargs={"max_retries": 3},
)
def run_daily_sweep(self: Task, day: str | None = None) -> dict[str, Any]:
    """Remind every client whose charge is due today and queue their next charge.

    Per-charge failures are counted in the report; only infrastructure errors
    (database unreachable and the like) bubble up and trigger a retry.
    """
    target = dt.date.fromisoformat(day) if day else None
    with session_scope() as db:
        report = build_billing_engine(db).run_sweep(day=target, trigger="schedule")
    if report.failed:
        logger.warning(
            "[billing.run_daily_sweep] %d of %d charge(s) failed: %s",
            report.failed,
            report.due,
            report.failed_charge_ids,
        )
    return report.as_dict()


@celery_app.task(
    name="billing.retry_failed_reminders",
    autoretry_for=(Exception,),
    retry_backoff=30,
    retry_jitter=True,
    retry_kwargs={"max_retries": 3},
)
def retry_failed_reminders(day: str | None = None) -> dict[str, Any]:
    """Send reminders still owed on or before today, including charges stalled on earlier days."""
    target = dt.date.fromisoformat(day) if day else None
    with session_scope() as db:
        report = build_billing_engine(db).retry_failed_reminders(day=target)
    if report.failed:
        logger.warning(
            "[billing.retry_failed_reminders] %d charge(s) still failing: %s",
            report.failed,
            report.failed_charge_ids,
        )
    return report.as_dict()


@celery_app.task(name="billing.process_client")
def process_client(client_id: int, day: str | None = None) -> str:
    """Process one client's charge due today (or ``day``). Domain errors propagate to the caller."""
    target = dt.date.fromisoformat(day) if day else None
    with session_scope() as db:
        outcome = build_billing_engine(db).process_client_today(client_id, day=target)
    logger.info("[billing.process_client] client=%s outcome=%s", client_id, outcome.value)
    return outcome.value
