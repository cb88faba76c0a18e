"""
Billing Service Module.

Usage:
    from recurbill.services.billing import build_billing_engine

    engine = build_billing_engine(db)
    report = engine.run_sweep()              # today's due charges
    engine.process_charge(charge_id)         # one charge (immediate path)

    ledger = ChargeLedger(db)
    ledger.mark_paid(charge_id)
"""
from __future__ import annotations

from sqlalchemy.orm import Session

from recurbill.services.billing.engine import BillingEngine, ChargeOutcome, SweepReport
from recurbill.services.billing.ledger import ChargeLedger
from recurbill.services.billing.recurrence import add_periods, next_due_date
from recurbill.services.notification.service import NotificationService
from recurbill.utils.clock import Clock


def build_billing_engine(
    db: Session,
    notifier: NotificationService | None = None,
    clock: Clock | None = None,
) -> BillingEngine:
    """Factory function to construct BillingEngine with default collaborators."""
    return BillingEngine(db, notifier=notifier or NotificationService(), clock=clock or Clock())


__all__ = [
    "BillingEngine",
    "ChargeLedger",
    "ChargeOutcome",
    "SweepReport",
    "add_periods",
    "build_billing_engine",
    "next_due_date",
]
