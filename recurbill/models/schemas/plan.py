"""Plan schemas."""
from __future__ import annotations

import datetime as dt
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_serializer

from recurbill.models.models import Recurrence

from .utils import format_amount


class PlanCreate(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    # Positivity is enforced by PlanService so the error carries its own code.
    price: Decimal
    recurrence: Recurrence


class PlanUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=120)
    price: Decimal | None = None
    recurrence: Recurrence | None = None


class PlanOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    price: Decimal
    recurrence: Recurrence
    created_at: dt.datetime | None = None

    @field_serializer("price")
    def _serialize_price(self, value: Decimal) -> str | None:
        return format_amount(value)


class PlanClientsCountOut(BaseModel):
    plan_id: int
    clients: int
