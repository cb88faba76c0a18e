from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from recurbill.core.exceptions import (
    DuplicatePlanNameError,
    InvalidPlanPriceError,
    PlanInUseError,
    PlanNotFoundError,
)
from recurbill.models import models

logger = logging.getLogger(__name__)


def _positive_price(price: Any) -> Decimal:
    try:
        value = Decimal(str(price))
    except (InvalidOperation, ValueError) as e:
        raise InvalidPlanPriceError(price) from e
    if not value.is_finite() or value <= 0:
        raise InvalidPlanPriceError(price)
    return value.quantize(Decimal("0.01"))


class PlanService:
    def __init__(self, db: Session):
        self.db = db

    def _name_taken(self, name: str, exclude_id: int | None = None) -> bool:
        stmt = select(models.Plan.id).where(models.Plan.name == name)
        if exclude_id is not None:
            stmt = stmt.where(models.Plan.id != exclude_id)
        return self.db.scalar(stmt) is not None

    def create(self, name: str, price: Any, recurrence: models.Recurrence | str) -> models.Plan:
        name = name.strip()
        if self._name_taken(name):
            raise DuplicatePlanNameError(name)
        plan = models.Plan(
            name=name,
            price=_positive_price(price),
            recurrence=models.Recurrence(recurrence),
        )
        self.db.add(plan)
        self.db.commit()
        self.db.refresh(plan)
        logger.info("Plan %s created (%s, %s)", plan.name, plan.price, plan.recurrence.value)
        return plan

    def get(self, plan_id: int) -> models.Plan:
        plan = self.db.get(models.Plan, plan_id)
        if plan is None:
            raise PlanNotFoundError(plan_id)
        return plan

    def list_plans(self) -> list[models.Plan]:
        return list(self.db.scalars(select(models.Plan).order_by(models.Plan.name)))

    def update(self, plan_id: int, data: dict[str, Any]) -> models.Plan:
        """Administrative edit. Issued charges keep the amount they were created with."""
        plan = self.get(plan_id)
        try:
            if data.get("name") is not None:
                name = data["name"].strip()
                if self._name_taken(name, exclude_id=plan.id):
                    raise DuplicatePlanNameError(name)
                plan.name = name
            if data.get("price") is not None:
                plan.price = _positive_price(data["price"])
            if data.get("recurrence") is not None:
                plan.recurrence = models.Recurrence(data["recurrence"])
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(plan)
        return plan

    def clients_count(self, plan_id: int) -> int:
        self.get(plan_id)
        return self.db.scalar(
            select(func.count(models.Client.id)).where(models.Client.plan_id == plan_id)
        ) or 0

    def remove(self, plan_id: int) -> None:
        plan = self.get(plan_id)
        clients = self.clients_count(plan_id)
        if clients:
            raise PlanInUseError(plan_id, clients)
        self.db.delete(plan)
        self.db.commit()
        logger.info("Plan %s removed", plan_id)
