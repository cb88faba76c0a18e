"""
Celery Tasks Module.

All tasks are registered with the Celery app on import.

Sub-modules:
- billing_tasks: daily billing sweep, reminder retry and per-client processing
"""
from __future__ import annotations

from .billing_tasks import (
    process_client,
    retry_failed_reminders,
    run_daily_sweep,
)

__all__ = [
    "process_client",
    "retry_failed_reminders",
    "run_daily_sweep",
]
