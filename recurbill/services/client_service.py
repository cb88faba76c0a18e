"""Client lifecycle: onboarding (client + first charge) and administration."""
from __future__ import annotations

import datetime as dt
import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from recurbill import metrics
from recurbill.core.exceptions import (
    BillingStartLockedError,
    ClientNotFoundError,
    DuplicateClientEmailError,
    InvalidBillingDateError,
    PastBillingDateError,
    PlanNotFoundError,
)
from recurbill.models import models
from recurbill.services.billing.engine import BillingEngine
from recurbill.services.billing.ledger import ChargeLedger
from recurbill.services.notification.service import NotificationService
from recurbill.services.system_config_service import SystemConfigService
from recurbill.utils.clock import Clock

logger = logging.getLogger(__name__)


def parse_billing_date(value: Any, clock: Clock) -> dt.date:
    """Coerce a billing start value to a calendar date in the operational timezone.

    Accepts ``date``, ``datetime``, ISO date or datetime strings and epoch
    milliseconds (int or digit string).

    Raises:
        InvalidBillingDateError: value cannot be read as a date
    """
    if isinstance(value, dt.datetime):
        return value.astimezone(clock.tz).date() if value.tzinfo else value.date()
    if isinstance(value, dt.date):
        return value
    if isinstance(value, bool) or value is None:
        raise InvalidBillingDateError(value)
    if isinstance(value, str) and not value.strip().lstrip("-").isdigit():
        text = value.strip()
        try:
            if len(text) == 10:
                return dt.date.fromisoformat(text)
            if text.endswith(("Z", "z")):
                text = text[:-1] + "+00:00"
            return parse_billing_date(dt.datetime.fromisoformat(text), clock)
        except ValueError as e:
            raise InvalidBillingDateError(value) from e
    try:
        millis = int(value)
        return dt.datetime.fromtimestamp(millis / 1000, tz=clock.tz).date()
    except (TypeError, ValueError, OverflowError, OSError) as e:
        raise InvalidBillingDateError(value) from e


class ClientService:
    def __init__(
        self,
        db: Session,
        notifier: NotificationService | None = None,
        clock: Clock | None = None,
    ):
        self.db = db
        self.notifier = notifier or NotificationService()
        self.clock = clock or Clock()
        self.ledger = ChargeLedger(db)
        self.config = SystemConfigService(db)

    # --- onboarding ---

    def onboard(
        self,
        name: str,
        email: str,
        plan_id: int,
        billing_start_date: Any,
        payment_status: models.ClientStatus | str = models.ClientStatus.ACTIVE,
    ) -> models.Client:
        """Create a client and its first charge in one transaction.

        Preconditions, in order: payment key configured, plan exists, start date
        parses, start date not before today. After commit, sends the welcome
        email and, for a same-day start past the cutoff hour, runs the billing
        engine on the first charge right away.
        """
        try:
            payment_key = self.config.require_payment_key()
            plan = self.db.get(models.Plan, plan_id)
            if plan is None:
                raise PlanNotFoundError(plan_id)
            start = parse_billing_date(billing_start_date, self.clock)
            today = self.clock.today()
            if start < today:
                raise PastBillingDateError(start, today)
            if self.get_by_email(email) is not None:
                raise DuplicateClientEmailError(email)

            client = models.Client(
                name=name.strip(),
                email=email.strip(),
                plan_id=plan.id,
                payment_status=models.ClientStatus(payment_status),
                billing_start_date=start,
            )
            self.db.add(client)
            self.db.flush()
            first_charge = self.ledger.create(client.id, start, plan.price, source="onboarding")
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise DuplicateClientEmailError(email) from exc
        except Exception:
            self.db.rollback()
            raise

        metrics.client_onboarded()
        logger.info(
            "Client %s onboarded on plan %s; first charge %s due %s",
            client.id,
            plan.name,
            first_charge.reference,
            start.isoformat(),
        )

        self._send_welcome(client, plan, payment_key)

        if start == today and self.clock.past_cutoff():
            self._process_first_charge(first_charge.id)

        self.db.refresh(client)
        return client

    def _send_welcome(self, client: models.Client, plan: models.Plan, payment_key: str) -> None:
        try:
            delivered = self.notifier.send(
                "welcome",
                {
                    "to": client.email,
                    "client_name": client.name,
                    "plan_name": plan.name,
                    "plan_price": plan.price,
                    "recurrence": plan.recurrence,
                    "payment_key": payment_key,
                    "billing_start_date": client.billing_start_date,
                },
            )
        except Exception as exc:  # noqa: BLE001
            logger.error("Welcome email for client %s failed: %s", client.id, exc)
            return
        if not delivered:
            logger.warning("Welcome email for client %s was not delivered", client.id)

    def _process_first_charge(self, charge_id: int) -> None:
        """Same-day signup after the sweep already ran: bill now instead of tomorrow."""
        engine = BillingEngine(self.db, notifier=self.notifier, clock=self.clock)
        try:
            outcome = engine.process_charge(charge_id)
        except Exception as exc:  # noqa: BLE001 - the next sweep retries it
            logger.error("Immediate processing of charge %s failed: %s", charge_id, exc)
            return
        logger.info("Immediate processing of charge %s: %s", charge_id, outcome.value)

    # --- administration ---

    def get(self, client_id: int) -> models.Client:
        client = self.db.scalar(
            select(models.Client)
            .options(selectinload(models.Client.plan), selectinload(models.Client.charges))
            .where(models.Client.id == client_id)
        )
        if client is None:
            raise ClientNotFoundError(client_id)
        return client

    def get_by_email(self, email: str) -> models.Client | None:
        return self.db.scalar(select(models.Client).where(models.Client.email == email.strip()))

    def list_clients(
        self,
        plan_id: int | None = None,
        payment_status: models.ClientStatus | None = None,
    ) -> list[models.Client]:
        stmt = select(models.Client).options(selectinload(models.Client.plan)).order_by(models.Client.id)
        if plan_id is not None:
            stmt = stmt.where(models.Client.plan_id == plan_id)
        if payment_status is not None:
            stmt = stmt.where(models.Client.payment_status == payment_status)
        return list(self.db.scalars(stmt))

    def update(self, client_id: int, data: dict[str, Any]) -> models.Client:
        client = self.get(client_id)
        try:
            if data.get("name") is not None:
                client.name = data["name"].strip()
            if data.get("email") is not None:
                existing = self.get_by_email(data["email"])
                if existing is not None and existing.id != client.id:
                    raise DuplicateClientEmailError(data["email"])
                client.email = data["email"].strip()
            if data.get("plan_id") is not None:
                if self.db.get(models.Plan, data["plan_id"]) is None:
                    raise PlanNotFoundError(data["plan_id"])
                client.plan_id = data["plan_id"]
            if data.get("billing_start_date") is not None:
                start = parse_billing_date(data["billing_start_date"], self.clock)
                today = self.clock.today()
                if start < today:
                    raise PastBillingDateError(start, today)
                # The start day anchors month-end clamping for the whole chain.
                if start != client.billing_start_date and self._has_reminded_charge(client.id):
                    raise BillingStartLockedError(client.id)
                client.billing_start_date = start
            if data.get("payment_status") is not None:
                client.payment_status = models.ClientStatus(data["payment_status"])
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(client)
        return client

    def _has_reminded_charge(self, client_id: int) -> bool:
        stmt = select(models.Charge.id).where(
            models.Charge.client_id == client_id,
            models.Charge.reminder_sent.is_(True),
        )
        return self.db.scalar(stmt.limit(1)) is not None

    def set_payment_status(self, client_id: int, status: models.ClientStatus | str) -> models.Client:
        client = self.get(client_id)
        previous = client.payment_status
        client.payment_status = models.ClientStatus(status)
        self.db.commit()
        logger.info("Client %s payment status %s -> %s", client_id, previous.value, client.payment_status.value)
        return client

    def remove(self, client_id: int) -> None:
        client = self.get(client_id)
        self.db.delete(client)
        self.db.commit()
        logger.info("Client %s removed with %d charge(s)", client_id, len(client.charges))
