"""Plan administration."""
from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from recurbill.core.exceptions import (
    DuplicatePlanNameError,
    InvalidPlanPriceError,
    PlanInUseError,
    PlanNotFoundError,
)
from recurbill.models import models
from recurbill.services.plan_service import PlanService


class TestPlanService:
    def test_create_normalises_price_and_recurrence(self, db_session):
        plan = PlanService(db_session).create("  Quarterly  ", "59.9", "QUARTERLY")

        assert plan.name == "Quarterly"
        assert plan.price == Decimal("59.90")
        assert plan.recurrence is models.Recurrence.QUARTERLY

    @pytest.mark.parametrize("price", [0, "-10", "abc", "NaN"])
    def test_non_positive_or_invalid_price_rejected(self, db_session, price):
        with pytest.raises(InvalidPlanPriceError):
            PlanService(db_session).create("Broken", price, "monthly")

    def test_duplicate_name_rejected(self, db_session, monthly_plan):
        with pytest.raises(DuplicatePlanNameError) as exc_info:
            PlanService(db_session).create("Monthly", "50", "monthly")
        assert exc_info.value.status_code == 409

    def test_list_plans_sorted_by_name(self, db_session, monthly_plan):
        svc = PlanService(db_session)
        svc.create("Annual", "1000", "annual")

        assert [p.name for p in svc.list_plans()] == ["Annual", "Monthly"]

    def test_update_changes_only_given_fields(self, db_session, monthly_plan):
        plan = PlanService(db_session).update(monthly_plan.id, {"price": "150", "name": None})

        assert plan.name == "Monthly"
        assert plan.price == Decimal("150.00")
        assert plan.recurrence is models.Recurrence.MONTHLY

    def test_update_to_taken_name_rejected(self, db_session, monthly_plan):
        svc = PlanService(db_session)
        other = svc.create("Weekly", "20", "weekly")

        with pytest.raises(DuplicatePlanNameError):
            svc.update(other.id, {"name": "Monthly"})

    def test_get_unknown_plan(self, db_session):
        with pytest.raises(PlanNotFoundError):
            PlanService(db_session).get(404)

    def test_remove_plan_without_clients(self, db_session, monthly_plan):
        svc = PlanService(db_session)
        svc.remove(monthly_plan.id)

        with pytest.raises(PlanNotFoundError):
            svc.get(monthly_plan.id)

    def test_remove_plan_in_use_rejected(self, db_session, monthly_plan):
        db_session.add(
            models.Client(
                name="Ana Souza",
                email="ana@example.com",
                plan_id=monthly_plan.id,
                billing_start_date=date(2024, 1, 15),
            )
        )
        db_session.commit()
        svc = PlanService(db_session)

        assert svc.clients_count(monthly_plan.id) == 1
        with pytest.raises(PlanInUseError) as exc_info:
            svc.remove(monthly_plan.id)
        assert exc_info.value.details["clients"] == 1
