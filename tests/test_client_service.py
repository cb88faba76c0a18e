"""Client onboarding and administration."""
from __future__ import annotations

import datetime as dt
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from recurbill.core.exceptions import (
    BillingStartLockedError,
    BillingValidationError,
    ClientNotFoundError,
    DuplicateClientEmailError,
    InvalidBillingDateError,
    PastBillingDateError,
    PaymentKeyNotConfiguredError,
    PlanNotFoundError,
)
from recurbill.models import models
from recurbill.services.billing import ChargeLedger
from recurbill.services.client_service import ClientService, parse_billing_date
from recurbill.services.plan_service import PlanService
from recurbill.utils.clock import FixedClock

WELCOME_SUBJECT = "Welcome to Monthly!"
REMINDER_SUBJECT = "Your payment is due today"


def _count(db_session, model) -> int:
    return db_session.scalar(select(func.count()).select_from(model))


class TestParseBillingDate:
    def test_accepts_date_and_iso_string(self, clock):
        assert parse_billing_date(dt.date(2024, 2, 1), clock) == dt.date(2024, 2, 1)
        assert parse_billing_date("2024-02-01", clock) == dt.date(2024, 2, 1)
        assert parse_billing_date("2024-02-01T15:30:00", clock) == dt.date(2024, 2, 1)

    def test_epoch_millis_read_in_billing_timezone(self, clock):
        # 2024-01-16T01:00:00Z is still the 15th in São Paulo (UTC-3).
        millis = int(dt.datetime(2024, 1, 16, 1, 0, tzinfo=dt.timezone.utc).timestamp() * 1000)
        assert parse_billing_date(millis, clock) == dt.date(2024, 1, 15)
        assert parse_billing_date(str(millis), clock) == dt.date(2024, 1, 15)

    def test_aware_datetime_converted_to_billing_timezone(self, clock):
        value = dt.datetime(2024, 1, 16, 2, 0, tzinfo=dt.timezone.utc)
        assert parse_billing_date(value, clock) == dt.date(2024, 1, 15)

    def test_iso_datetime_string_read_in_billing_timezone(self, clock):
        # 23:30 in UTC-5 is 01:30 on the 16th in São Paulo (UTC-3).
        assert parse_billing_date("2024-01-15T23:30:00-05:00", clock) == dt.date(2024, 1, 16)
        assert parse_billing_date("2024-01-16T01:00:00Z", clock) == dt.date(2024, 1, 15)

    @pytest.mark.parametrize("value", ["not-a-date", "2024-13-40", "2024-01-15garbage", "", None, True, 10**20])
    def test_rejects_garbage(self, clock, value):
        with pytest.raises(InvalidBillingDateError):
            parse_billing_date(value, clock)


class TestOnboard:
    def test_creates_client_first_charge_and_welcome(self, client_service, smtp, db_session, payment_key, monthly_plan):
        client = client_service.onboard("Ana Souza", "ana@example.com", monthly_plan.id, "2024-02-01")

        assert client.payment_status == models.ClientStatus.ACTIVE
        assert client.billing_start_date == dt.date(2024, 2, 1)
        charges = ChargeLedger(db_session).list_for_client(client.id)
        assert len(charges) == 1
        assert charges[0].due_date == dt.date(2024, 2, 1)
        assert charges[0].amount == Decimal("100.00")
        assert charges[0].status == models.ChargeStatus.PENDING
        assert charges[0].reminder_sent is False

        welcome = smtp.with_subject(WELCOME_SUBJECT)
        assert len(welcome) == 1
        assert welcome[0]["to"] == "ana@example.com"
        assert payment_key in welcome[0]["text"]
        assert "01/02/2024" in welcome[0]["text"]
        assert "100.00" in welcome[0]["text"]

    def test_start_today_before_cutoff_waits_for_sweep(self, client_service, smtp, db_session, payment_key, monthly_plan):
        client = client_service.onboard("Ana Souza", "ana@example.com", monthly_plan.id, "2024-01-15")

        charges = ChargeLedger(db_session).list_for_client(client.id)
        assert len(charges) == 1
        assert charges[0].reminder_sent is False
        assert smtp.with_subject(REMINDER_SUBJECT) == []

    def test_start_today_after_cutoff_is_billed_immediately(
        self, client_service, clock, smtp, db_session, payment_key, monthly_plan
    ):
        clock.advance(hours=3)

        client = client_service.onboard("Ana Souza", "ana@example.com", monthly_plan.id, "2024-01-15")

        db_session.expire_all()
        charges = sorted(ChargeLedger(db_session).list_for_client(client.id), key=lambda c: c.due_date)
        assert [c.due_date for c in charges] == [dt.date(2024, 1, 15), dt.date(2024, 2, 15)]
        assert charges[0].reminder_sent is True
        assert len(smtp.with_subject(REMINDER_SUBJECT)) == 1

    def test_exactly_at_cutoff_counts_as_after(self, client_service, clock, smtp, payment_key, monthly_plan):
        clock.advance(hours=1)

        client_service.onboard("Ana Souza", "ana@example.com", monthly_plan.id, "2024-01-15")

        assert len(smtp.with_subject(REMINDER_SUBJECT)) == 1

    def test_immediate_billing_failure_keeps_the_client(
        self, client_service, clock, smtp, db_session, payment_key, monthly_plan
    ):
        clock.advance(hours=3)
        smtp.rejected.add("ana@example.com")

        client = client_service.onboard("Ana Souza", "ana@example.com", monthly_plan.id, "2024-01-15")

        db_session.expire_all()
        charges = ChargeLedger(db_session).list_for_client(client.id)
        assert len(charges) == 1
        assert charges[0].reminder_sent is False
        assert _count(db_session, models.Client) == 1

    def test_welcome_failure_does_not_fail_onboarding(self, client_service, smtp, db_session, payment_key, monthly_plan):
        smtp.offline = True

        client = client_service.onboard("Ana Souza", "ana@example.com", monthly_plan.id, "2024-02-01")

        assert client.id is not None
        assert _count(db_session, models.Charge) == 1

    def test_accepts_epoch_millis(self, client_service, payment_key, monthly_plan):
        millis = int(dt.datetime(2024, 3, 10, 12, 0, tzinfo=dt.timezone.utc).timestamp() * 1000)

        client = client_service.onboard("Ana Souza", "ana@example.com", monthly_plan.id, millis)

        assert client.billing_start_date == dt.date(2024, 3, 10)

    def test_uppercase_status_is_accepted(self, client_service, payment_key, monthly_plan):
        client = client_service.onboard(
            "Ana Souza", "ana@example.com", monthly_plan.id, "2024-02-01", payment_status="PENDING"
        )
        assert client.payment_status == models.ClientStatus.PENDING


class TestOnboardPreconditions:
    def test_missing_payment_key_is_checked_first(self, client_service, db_session):
        with pytest.raises(PaymentKeyNotConfiguredError):
            client_service.onboard("Ana Souza", "ana@example.com", 999, "1999-01-01")
        assert _count(db_session, models.Client) == 0

    def test_missing_plan_checked_before_date(self, client_service, db_session, payment_key):
        with pytest.raises(PlanNotFoundError):
            client_service.onboard("Ana Souza", "ana@example.com", 999, "not-a-date")
        assert _count(db_session, models.Client) == 0

    def test_unparseable_date_checked_before_past_date(self, client_service, db_session, payment_key, monthly_plan):
        with pytest.raises(InvalidBillingDateError):
            client_service.onboard("Ana Souza", "ana@example.com", monthly_plan.id, "15/01/2024")
        assert _count(db_session, models.Client) == 0

    def test_past_start_date_rejected_without_writes(self, client_service, smtp, db_session, payment_key, monthly_plan):
        with pytest.raises(PastBillingDateError) as exc_info:
            client_service.onboard("Ana Souza", "ana@example.com", monthly_plan.id, "2024-01-14")

        assert isinstance(exc_info.value, BillingValidationError)
        assert exc_info.value.details["today"] == "2024-01-15"
        assert _count(db_session, models.Client) == 0
        assert _count(db_session, models.Charge) == 0
        assert smtp.messages == []

    def test_duplicate_email_conflicts(self, client_service, db_session, payment_key, monthly_plan):
        client_service.onboard("Ana Souza", "ana@example.com", monthly_plan.id, "2024-02-01")

        with pytest.raises(DuplicateClientEmailError):
            client_service.onboard("Ana Again", "ana@example.com", monthly_plan.id, "2024-03-01")
        assert _count(db_session, models.Client) == 1
        assert _count(db_session, models.Charge) == 1


class TestAdministration:
    @pytest.fixture
    def ana(self, client_service, payment_key, monthly_plan):
        return client_service.onboard("Ana Souza", "ana@example.com", monthly_plan.id, "2024-02-01")

    def test_get_unknown_client(self, client_service):
        with pytest.raises(ClientNotFoundError):
            client_service.get(404)

    def test_get_by_email(self, client_service, ana):
        assert client_service.get_by_email("ana@example.com").id == ana.id
        assert client_service.get_by_email("nobody@example.com") is None

    def test_list_filters_by_plan_and_status(self, client_service, db_session, ana):
        yearly = PlanService(db_session).create("Yearly", "900", "annual")
        bruno = client_service.onboard("Bruno Lima", "bruno@example.com", yearly.id, "2024-02-01")
        client_service.set_payment_status(bruno.id, models.ClientStatus.CANCELED)

        assert [c.id for c in client_service.list_clients()] == [ana.id, bruno.id]
        assert [c.id for c in client_service.list_clients(plan_id=yearly.id)] == [bruno.id]
        assert [c.id for c in client_service.list_clients(payment_status=models.ClientStatus.ACTIVE)] == [ana.id]

    def test_update_revalidates_start_date(self, client_service, ana):
        with pytest.raises(PastBillingDateError):
            client_service.update(ana.id, {"billing_start_date": "2024-01-01"})

        updated = client_service.update(ana.id, {"billing_start_date": "2024-03-01", "name": "Ana S."})
        assert updated.billing_start_date == dt.date(2024, 3, 1)
        assert updated.name == "Ana S."

    def test_start_date_locked_once_a_reminder_went_out(self, client_service, db_session, payment_key, monthly_plan):
        client = client_service.onboard("Bruno Lima", "bruno@example.com", monthly_plan.id, "2024-01-15")
        charge = ChargeLedger(db_session).list_for_client(client.id)[0]
        ChargeLedger(db_session).mark_reminder_sent(charge.id)
        db_session.commit()

        with pytest.raises(BillingStartLockedError) as exc_info:
            client_service.update(client.id, {"billing_start_date": "2024-01-31"})

        assert exc_info.value.code == "CON305"
        assert client_service.get(client.id).billing_start_date == dt.date(2024, 1, 15)
        # Resubmitting the same date is not an edit.
        assert client_service.update(client.id, {"billing_start_date": "2024-01-15", "name": "B. Lima"}).name == "B. Lima"

    def test_update_rejects_taken_email_and_unknown_plan(self, client_service, monthly_plan, ana):
        client_service.onboard("Bruno Lima", "bruno@example.com", monthly_plan.id, "2024-02-01")

        with pytest.raises(DuplicateClientEmailError):
            client_service.update(ana.id, {"email": "bruno@example.com"})
        with pytest.raises(PlanNotFoundError):
            client_service.update(ana.id, {"plan_id": 999})

    def test_remove_deletes_client_and_charges(self, client_service, db_session, ana):
        client_service.remove(ana.id)

        assert _count(db_session, models.Client) == 0
        assert _count(db_session, models.Charge) == 0

    def test_onboarding_on_another_day_uses_that_days_clock(self, db_session, notifier, payment_key, monthly_plan):
        later = FixedClock(dt.datetime(2024, 2, 1, 8, 0))
        service = ClientService(db_session, notifier=notifier, clock=later)

        with pytest.raises(PastBillingDateError):
            service.onboard("Ana Souza", "ana@example.com", monthly_plan.id, "2024-01-31")
