"""Client schemas."""
from __future__ import annotations

import datetime as dt

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from recurbill.models.models import ClientStatus

from .charge import ChargeOut
from .plan import PlanOut


class ClientCreate(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    email: EmailStr
    plan_id: int
    # ISO date string or epoch milliseconds; ClientService does the parsing.
    billing_start_date: int | str
    payment_status: ClientStatus = ClientStatus.ACTIVE


class ClientUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=120)
    email: EmailStr | None = None
    plan_id: int | None = None
    billing_start_date: int | str | None = None
    payment_status: ClientStatus | None = None


class ClientStatusUpdate(BaseModel):
    payment_status: ClientStatus


class ClientOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    email: str
    plan_id: int
    payment_status: ClientStatus
    billing_start_date: dt.date
    created_at: dt.datetime | None = None


class ClientOutDetailed(ClientOut):
    plan: PlanOut
    charges: list[ChargeOut] = []
