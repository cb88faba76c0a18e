"""Charge schemas."""
from __future__ import annotations

import datetime as dt
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, field_serializer

from recurbill.models.models import ChargeStatus

from .utils import format_amount


class ChargeCreate(BaseModel):
    due_date: dt.date


class ChargeOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    reference: str
    client_id: int
    amount: Decimal
    due_date: dt.date
    status: ChargeStatus
    reminder_sent: bool
    reminder_sent_at: dt.datetime | None = None
    paid_at: dt.datetime | None = None
    canceled_at: dt.datetime | None = None
    created_at: dt.datetime | None = None

    @field_serializer("amount")
    def _serialize_amount(self, value: Decimal) -> str | None:
        return format_amount(value)
