"""Pydantic schemas for API requests and responses.

Sub-modules:
- plan: Plan schemas
- client: Client schemas
- charge: Charge schemas
- billing: Billing run and payment key schemas
- utils: Common utility functions
"""
from .billing import (
    BillingRunRequest,
    PaymentKeyOut,
    PaymentKeyUpdate,
    ProcessClientOut,
    ProcessClientRequest,
    SweepReportOut,
)
from .charge import ChargeCreate, ChargeOut
from .client import (
    ClientCreate,
    ClientOut,
    ClientOutDetailed,
    ClientStatusUpdate,
    ClientUpdate,
)
from .plan import PlanClientsCountOut, PlanCreate, PlanOut, PlanUpdate

__all__ = [
    "BillingRunRequest",
    "ChargeCreate",
    "ChargeOut",
    "ClientCreate",
    "ClientOut",
    "ClientOutDetailed",
    "ClientStatusUpdate",
    "ClientUpdate",
    "PaymentKeyOut",
    "PaymentKeyUpdate",
    "PlanClientsCountOut",
    "PlanCreate",
    "PlanOut",
    "PlanUpdate",
    "ProcessClientOut",
    "ProcessClientRequest",
    "SweepReportOut",
]
