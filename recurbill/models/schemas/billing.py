"""Billing run and system configuration schemas."""
from __future__ import annotations

import datetime as dt

from pydantic import BaseModel, Field


class PaymentKeyUpdate(BaseModel):
    payment_key: str = Field(min_length=1, max_length=255)


class PaymentKeyOut(BaseModel):
    payment_key: str | None = None
    configured: bool


class BillingRunRequest(BaseModel):
    date: dt.date | None = None
    retry: bool = False


class SweepReportOut(BaseModel):
    day: dt.date
    trigger: str
    due: int
    reminded: int
    next_created: int
    skipped_canceled: int
    skipped_already_processed: int
    failed: int
    failed_charge_ids: list[int]


class ProcessClientRequest(BaseModel):
    date: dt.date | None = None


class ProcessClientOut(BaseModel):
    client_id: int
    outcome: str
