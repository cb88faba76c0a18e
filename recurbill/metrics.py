"""Metrics facade.

Service code should ONLY call the semantic helpers here so we can change backend freely.

Metrics:
- billing_sweeps_total                  Completed sweeps by trigger (schedule/manual/retry)
- billing_sweep_duration_seconds        Wall time of one sweep
- billing_reminders_sent_total          Reminder notifications delivered
- billing_charges_created_total         Charges inserted, by source (onboarding/advance/manual)
- billing_charges_paid_total            Charges confirmed as paid
- billing_charge_failures_total         Per-charge processing failures, by error code
- billing_clients_onboarded_total       Successful onboardings
"""

from __future__ import annotations

import logging

from prometheus_client import Counter, Histogram

logger = logging.getLogger("metrics")

_SWEEPS = Counter("billing_sweeps_total", "Completed billing sweeps", ["trigger"])
_SWEEP_DURATION = Histogram(
    "billing_sweep_duration_seconds",
    "Duration of a billing sweep",
    buckets=(0.1, 0.5, 1, 2.5, 5, 10, 30, 60, 120, 300),
)
_REMINDERS_SENT = Counter("billing_reminders_sent_total", "Charge reminders delivered")
_CHARGES_CREATED = Counter("billing_charges_created_total", "Charges created", ["source"])
_CHARGES_PAID = Counter("billing_charges_paid_total", "Charges marked paid")
_CHARGE_FAILURES = Counter(
    "billing_charge_failures_total", "Per-charge processing failures", ["reason"]
)
_CLIENTS_ONBOARDED = Counter("billing_clients_onboarded_total", "Clients onboarded")


def sweep_completed(trigger: str, duration_seconds: float) -> None:
    _SWEEPS.labels(trigger=trigger).inc()
    _SWEEP_DURATION.observe(duration_seconds)


def reminder_sent() -> None:
    _REMINDERS_SENT.inc()


def charge_created(source: str) -> None:
    _CHARGES_CREATED.labels(source=source).inc()


def charge_paid() -> None:
    _CHARGES_PAID.inc()


def charge_failed(reason: str) -> None:
    _CHARGE_FAILURES.labels(reason=reason).inc()
    logger.debug("metric billing_charge_failures_total{reason=%s} += 1", reason)


def client_onboarded() -> None:
    _CLIENTS_ONBOARDED.inc()
