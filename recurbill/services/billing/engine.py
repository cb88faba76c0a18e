"""Recurring billing engine.

One routine, ``process_charge``, sends the due-day reminder for a charge and
spawns the client's next charge. Both the daily sweep and the post-signup path
go through it, so duplicate prevention and reminder bookkeeping cannot drift
apart.

Per charge, inside one transaction:

1. lock the charge row and re-check it is still PENDING and un-reminded;
2. skip canceled clients;
3. require the configured payment key;
4. send the reminder (failure raises ``NotificationDeliveryError``);
5. set ``reminder_sent`` and create the next charge unless one already exists
   for that day;
6. commit.

If step 6 fails after a successful send, the next sweep sends again (the flag
was never persisted). That is the only path to a duplicate reminder.
"""
from __future__ import annotations

import datetime as dt
import enum
import logging
import time
from dataclasses import asdict, dataclass, field
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from recurbill import metrics
from recurbill.core.exceptions import (
    BillingException,
    ChargeNotFoundError,
    ClientCanceledError,
    ClientNotFoundError,
    DuplicateChargeError,
    NotificationDeliveryError,
)
from recurbill.models import models
from recurbill.services.billing.ledger import ChargeLedger
from recurbill.services.billing.recurrence import next_due_date
from recurbill.services.notification.service import NotificationService
from recurbill.services.system_config_service import SystemConfigService
from recurbill.utils.clock import Clock

logger = logging.getLogger(__name__)


class ChargeOutcome(str, enum.Enum):
    ADVANCED = "advanced"
    NEXT_ALREADY_EXISTS = "next_already_exists"
    SKIPPED_CANCELED = "skipped_canceled"
    ALREADY_PROCESSED = "already_processed"

    @property
    def reminded(self) -> bool:
        return self in (ChargeOutcome.ADVANCED, ChargeOutcome.NEXT_ALREADY_EXISTS)


@dataclass
class SweepReport:
    day: dt.date
    trigger: str
    due: int = 0
    reminded: int = 0
    next_created: int = 0
    skipped_canceled: int = 0
    skipped_already_processed: int = 0
    failed: int = 0
    failed_charge_ids: list[int] = field(default_factory=list)

    def record(self, outcome: ChargeOutcome) -> None:
        if outcome.reminded:
            self.reminded += 1
        if outcome is ChargeOutcome.ADVANCED:
            self.next_created += 1
        elif outcome is ChargeOutcome.SKIPPED_CANCELED:
            self.skipped_canceled += 1
        elif outcome is ChargeOutcome.ALREADY_PROCESSED:
            self.skipped_already_processed += 1

    def as_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["day"] = self.day.isoformat()
        return data


class BillingEngine:
    def __init__(
        self,
        db: Session,
        notifier: NotificationService | None = None,
        clock: Clock | None = None,
    ):
        self.db = db
        self.ledger = ChargeLedger(db)
        self.config = SystemConfigService(db)
        self.notifier = notifier or NotificationService()
        self.clock = clock or Clock()

    # --- sweep ---

    def run_sweep(self, day: dt.date | None = None, trigger: str = "schedule") -> SweepReport:
        """Process every PENDING, un-reminded charge due on ``day`` (default: today).

        Errors are isolated per charge; the sweep always runs to completion.
        """
        target = day or self.clock.today()
        window_start, window_end = self.clock.day_bounds(target)
        charge_ids = [c.id for c in self.ledger.find_due_on(target)]
        logger.info(
            "Billing sweep (%s) for %s [%s, %s): %d charge(s) due",
            trigger,
            target.isoformat(),
            window_start.isoformat(),
            window_end.isoformat(),
            len(charge_ids),
        )
        return self._process_batch(charge_ids, SweepReport(day=target, trigger=trigger))

    def retry_failed_reminders(self, day: dt.date | None = None) -> SweepReport:
        """Send every reminder still owed on or before ``day`` (default: today).

        Failed items keep ``reminder_sent = False``, so this picks up today's
        failures and charges stalled on earlier days alike, oldest first. Canceled
        clients are left out.
        """
        target = day or self.clock.today()
        charge_ids = [
            c.id for c in self.ledger.find_pending_reminders(until=target) if not c.client.is_canceled
        ]
        logger.info("Reminder retry up to %s: %d charge(s) pending", target.isoformat(), len(charge_ids))
        return self._process_batch(charge_ids, SweepReport(day=target, trigger="retry"))

    def _process_batch(self, charge_ids: list[int], report: SweepReport) -> SweepReport:
        started = time.monotonic()
        # End the read transaction; each charge gets its own.
        self.db.rollback()
        report.due = len(charge_ids)

        for charge_id in charge_ids:
            try:
                outcome = self.process_charge(charge_id)
            except BillingException as exc:
                self.db.rollback()
                report.failed += 1
                report.failed_charge_ids.append(charge_id)
                metrics.charge_failed(exc.code)
                logger.warning("Charge %s skipped this cycle: [%s] %s", charge_id, exc.code, exc.message)
            except Exception as exc:  # noqa: BLE001 - one bad charge must not stop the sweep
                self.db.rollback()
                report.failed += 1
                report.failed_charge_ids.append(charge_id)
                metrics.charge_failed("unexpected")
                logger.exception("Unexpected error processing charge %s: %s", charge_id, exc)
            else:
                report.record(outcome)

        metrics.sweep_completed(report.trigger, time.monotonic() - started)
        logger.info("Billing sweep finished: %s", report.as_dict())
        return report

    # --- per charge ---

    def process_charge(self, charge_id: int) -> ChargeOutcome:
        """Remind and advance one charge, committing on success.

        Raises:
            ChargeNotFoundError: charge vanished
            PaymentKeyNotConfiguredError: payment key unset
            NotificationDeliveryError: reminder could not be delivered
        """
        try:
            charge = self.ledger.lock(charge_id)
            client = charge.client

            if client.is_canceled:
                logger.info("Skipping charge %s - client %s is canceled", charge.id, client.id)
                self.db.rollback()
                return ChargeOutcome.SKIPPED_CANCELED

            if charge.reminder_sent or charge.status != models.ChargeStatus.PENDING:
                logger.info(
                    "Charge %s already processed (status=%s, reminder_sent=%s)",
                    charge.id,
                    charge.status.value,
                    charge.reminder_sent,
                )
                self.db.rollback()
                return ChargeOutcome.ALREADY_PROCESSED

            payment_key = self.config.require_payment_key()
            plan = client.plan
            template_data = {
                "to": client.email,
                "client_name": client.name,
                "plan_name": plan.name,
                "amount": charge.amount,
                "due_date": charge.due_date,
                "payment_key": payment_key,
                "charge_id": charge.id,
                "charge_reference": charge.reference,
            }
            if not self.notifier.send("reminder", template_data):
                raise NotificationDeliveryError("reminder", client.email)

            self.ledger.mark_reminder_sent(charge.id)
            next_charge = self._create_next_charge(charge, client, plan)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        metrics.reminder_sent()
        logger.info(
            "Reminder sent to %s for charge %s due %s",
            client.name,
            charge.reference,
            charge.due_date.isoformat(),
        )
        return ChargeOutcome.ADVANCED if next_charge else ChargeOutcome.NEXT_ALREADY_EXISTS

    def _create_next_charge(
        self,
        charge: models.Charge,
        client: models.Client,
        plan: models.Plan,
    ) -> models.Charge | None:
        """Spawn the charge one period after ``charge`` unless that day is taken."""
        next_date = next_due_date(charge.due_date, plan.recurrence, anchor_day=client.billing_start_date.day)
        if self.ledger.exists_for_day(client.id, next_date):
            logger.info("Next charge for client %s on %s already exists", client.id, next_date.isoformat())
            return None
        try:
            return self.ledger.create(client.id, next_date, plan.price, source="advance")
        except DuplicateChargeError:
            logger.info("Next charge for client %s on %s created concurrently", client.id, next_date.isoformat())
            return None

    # --- manual operations ---

    def _get_active_client(self, client_id: int) -> models.Client:
        client = self.db.get(models.Client, client_id)
        if client is None:
            raise ClientNotFoundError(client_id)
        if client.is_canceled:
            raise ClientCanceledError(client_id)
        return client

    def send_reminder_for_date(self, client_id: int, due_date: dt.date) -> ChargeOutcome:
        """Process the client's charge due on ``due_date``. Errors propagate."""
        client = self._get_active_client(client_id)
        charge = self.ledger.find_for_day(client.id, due_date)
        if charge is None:
            raise ChargeNotFoundError(details={"client_id": client_id, "due_date": due_date.isoformat()})
        return self.process_charge(charge.id)

    def process_client_today(self, client_id: int, day: dt.date | None = None) -> ChargeOutcome:
        """Process the client's PENDING charge due today (or ``day``). Errors propagate."""
        today = day or self.clock.today()
        client = self._get_active_client(client_id)
        charge = self.db.scalar(
            select(models.Charge).where(
                models.Charge.client_id == client.id,
                models.Charge.due_date == today,
                models.Charge.status == models.ChargeStatus.PENDING,
            )
        )
        if charge is None:
            raise ChargeNotFoundError(details={"client_id": client_id, "due_date": today.isoformat()})
        outcome = self.process_charge(charge.id)
        logger.info("Manual processing for client %s finished: %s", client.name, outcome.value)
        return outcome

    def create_charge_for_date(self, client_id: int, due_date: dt.date) -> models.Charge:
        """Create a PENDING charge without notifying anyone."""
        client = self.db.get(models.Client, client_id)
        if client is None:
            raise ClientNotFoundError(client_id)
        try:
            charge = self.ledger.create(client.id, due_date, client.plan.price, source="manual")
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return charge
