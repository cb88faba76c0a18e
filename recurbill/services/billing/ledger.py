"""Charge ledger: creation, due-day queries and one-way status transitions."""
from __future__ import annotations

import datetime as dt
import logging
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from recurbill import metrics
from recurbill.core.exceptions import ChargeNotFoundError, DuplicateChargeError
from recurbill.models import models
from recurbill.utils.id_generator import generate_charge_reference

logger = logging.getLogger(__name__)


class ChargeLedger:
    """Owns Charge rows. Never commits; callers decide the transaction boundary."""

    def __init__(self, db: Session):
        self.db = db

    def create(
        self,
        client_id: int,
        due_date: dt.date,
        amount: Decimal,
        source: str = "manual",
    ) -> models.Charge:
        """Insert a PENDING charge.

        The insert runs in a SAVEPOINT so a unique-constraint hit on
        (client_id, due_date) only undoes this insert.

        Raises:
            DuplicateChargeError: a charge for this client already falls on ``due_date``
        """
        charge = models.Charge(
            reference=generate_charge_reference(client_id, due_date),
            client_id=client_id,
            due_date=due_date,
            amount=Decimal(amount),
            status=models.ChargeStatus.PENDING,
            reminder_sent=False,
        )
        try:
            with self.db.begin_nested():
                self.db.add(charge)
                self.db.flush()
        except IntegrityError as exc:
            if "uq_charge_client_due_date" in str(exc.orig) or self.exists_for_day(client_id, due_date):
                raise DuplicateChargeError(client_id, due_date) from exc
            raise
        metrics.charge_created(source)
        logger.info(
            "Charge %s created for client %s due %s amount %s",
            charge.reference,
            client_id,
            due_date.isoformat(),
            charge.amount,
        )
        return charge

    def find_due_on(self, day: dt.date) -> list[models.Charge]:
        """PENDING charges due on ``day`` whose reminder has not gone out."""
        stmt = (
            select(models.Charge)
            .options(joinedload(models.Charge.client).joinedload(models.Client.plan))
            .where(
                models.Charge.due_date == day,
                models.Charge.status == models.ChargeStatus.PENDING,
                models.Charge.reminder_sent.is_(False),
            )
            .order_by(models.Charge.id)
        )
        return list(self.db.scalars(stmt).unique())

    def find_overdue(self, today: dt.date) -> list[models.Charge]:
        """PENDING charges due before ``today``, oldest first, reminded or not."""
        stmt = (
            select(models.Charge)
            .options(joinedload(models.Charge.client).joinedload(models.Client.plan))
            .where(
                models.Charge.due_date < today,
                models.Charge.status == models.ChargeStatus.PENDING,
            )
            .order_by(models.Charge.due_date, models.Charge.id)
        )
        return list(self.db.scalars(stmt).unique())

    def find_pending_reminders(self, until: dt.date | None = None) -> list[models.Charge]:
        """PENDING charges still waiting for a reminder, oldest first.

        With ``until`` only charges due on or before that day are returned, which
        is what a retry run may safely send.
        """
        stmt = (
            select(models.Charge)
            .options(joinedload(models.Charge.client).joinedload(models.Client.plan))
            .where(
                models.Charge.status == models.ChargeStatus.PENDING,
                models.Charge.reminder_sent.is_(False),
            )
            .order_by(models.Charge.due_date, models.Charge.id)
        )
        if until is not None:
            stmt = stmt.where(models.Charge.due_date <= until)
        return list(self.db.scalars(stmt).unique())

    def exists_for_day(self, client_id: int, day: dt.date) -> bool:
        stmt = select(models.Charge.id).where(
            models.Charge.client_id == client_id,
            models.Charge.due_date == day,
        )
        return self.db.scalar(stmt.limit(1)) is not None

    def find_for_day(self, client_id: int, day: dt.date) -> models.Charge | None:
        stmt = select(models.Charge).where(
            models.Charge.client_id == client_id,
            models.Charge.due_date == day,
        )
        return self.db.scalar(stmt)

    def get(self, charge_id: int) -> models.Charge:
        charge = self.db.get(models.Charge, charge_id)
        if charge is None:
            raise ChargeNotFoundError(charge_id)
        return charge

    def lock(self, charge_id: int) -> models.Charge:
        """Load a charge with a row lock held until the transaction ends.

        ``populate_existing`` refreshes an already-loaded instance so status
        checks after the lock see the committed state. SQLite ignores FOR UPDATE
        and serialises writers instead.
        """
        stmt = (
            select(models.Charge)
            .where(models.Charge.id == charge_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        charge = self.db.scalar(stmt)
        if charge is None:
            raise ChargeNotFoundError(charge_id)
        return charge

    def list_charges(
        self,
        client_id: int | None = None,
        status: models.ChargeStatus | None = None,
    ) -> list[models.Charge]:
        stmt = select(models.Charge).order_by(models.Charge.due_date.desc(), models.Charge.id.desc())
        if client_id is not None:
            stmt = stmt.where(models.Charge.client_id == client_id)
        if status is not None:
            stmt = stmt.where(models.Charge.status == status)
        return list(self.db.scalars(stmt))

    def list_for_client(self, client_id: int) -> list[models.Charge]:
        return self.list_charges(client_id=client_id)

    # --- transitions ---

    def mark_reminder_sent(self, charge_id: int) -> models.Charge:
        """Set the reminder flag. Allowed in any status; never reset."""
        charge = self.get(charge_id)
        if not charge.reminder_sent:
            charge.reminder_sent = True
            charge.reminder_sent_at = models.utcnow()
            self.db.flush()
        return charge

    def mark_paid(self, charge_id: int) -> models.Charge:
        charge = self.get(charge_id)
        if charge.status.is_terminal:
            logger.info("Charge %s already %s; mark_paid ignored", charge_id, charge.status.value)
            return charge
        charge.status = models.ChargeStatus.PAID
        charge.paid_at = models.utcnow()
        self.db.flush()
        metrics.charge_paid()
        return charge

    def mark_canceled(self, charge_id: int) -> models.Charge:
        charge = self.get(charge_id)
        if charge.status.is_terminal:
            logger.info("Charge %s already %s; mark_canceled ignored", charge_id, charge.status.value)
            return charge
        charge.status = models.ChargeStatus.CANCELED
        charge.canceled_at = models.utcnow()
        self.db.flush()
        return charge

    def remove(self, charge_id: int) -> None:
        """Administrative delete."""
        charge = self.get(charge_id)
        self.db.delete(charge)
        self.db.flush()
        logger.info("Charge %s (%s) removed", charge_id, charge.reference)
