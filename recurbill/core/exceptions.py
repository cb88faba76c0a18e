"""Custom exception hierarchy for Recurbill.

Every error raised by the billing core inherits from ``BillingException`` so the
API layer can render it uniformly and the sweep can isolate failures per charge.

Error codes follow pattern: [CATEGORY][NUMBER]
- VAL: Validation errors (100-199)
- NF:  Missing client/plan/charge (200-299)
- CON: Conflicts and duplicate writes (300-399)
- CFG: Configuration errors (400-499)
- TRN: Notification transport errors (500-599)
"""

from __future__ import annotations

import datetime as dt
from typing import Any


class BillingException(Exception):
    """Base exception for all Recurbill application errors."""

    def __init__(
        self,
        message: str,
        code: str,
        status_code: int = 400,
        details: dict[str, Any] | None = None,
    ):
        """Initialize exception with message and metadata.

        Args:
            message: Human readable error message
            code: Unique error code (e.g., "VAL100")
            status_code: HTTP status code (default: 400 Bad Request)
            details: Optional additional context
        """
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to API response format."""
        return {
            "error": {
                "message": self.message,
                "code": self.code,
                "details": self.details,
            }
        }


# ============================================================================
# VALIDATION ERRORS (VAL100-199)
# ============================================================================

class BillingValidationError(BillingException):
    """Bad input to an onboarding or administrative operation."""
    pass


class InvalidBillingDateError(BillingValidationError):
    """Billing start date could not be parsed into a calendar date."""

    def __init__(self, value: Any):
        super().__init__(
            message=f"Invalid billing start date: {value!r}",
            code="VAL100",
            status_code=422,
            details={"value": str(value)},
        )


class PastBillingDateError(BillingValidationError):
    """Billing start date lies before today's operational date."""

    def __init__(self, billing_start_date: dt.date, today: dt.date):
        super().__init__(
            message=(
                f"Billing start date {billing_start_date.isoformat()} is before "
                f"today ({today.isoformat()})"
            ),
            code="VAL101",
            status_code=422,
            details={
                "billing_start_date": billing_start_date.isoformat(),
                "today": today.isoformat(),
            },
        )


class InvalidPlanPriceError(BillingValidationError):
    def __init__(self, price: Any):
        super().__init__(
            message=f"Plan price must be a positive amount, got {price}",
            code="VAL102",
            status_code=422,
            details={"price": str(price)},
        )


class InvalidPaymentKeyError(BillingValidationError):
    def __init__(self):
        super().__init__(
            message="Payment key must not be blank",
            code="VAL103",
            status_code=422,
        )


# ============================================================================
# NOT FOUND ERRORS (NF200-299)
# ============================================================================

class NotFoundError(BillingException):
    """Operation targeted a client, plan or charge that does not exist."""
    pass


class ClientNotFoundError(NotFoundError):
    def __init__(self, client_id: int | str | None = None):
        message = "Client not found" if client_id is None else f"Client {client_id} not found"
        super().__init__(
            message=message,
            code="NF200",
            status_code=404,
            details={"client_id": client_id} if client_id is not None else {},
        )


class PlanNotFoundError(NotFoundError):
    def __init__(self, plan_id: int | str | None = None):
        message = "Plan not found" if plan_id is None else f"Plan {plan_id} not found"
        super().__init__(
            message=message,
            code="NF201",
            status_code=404,
            details={"plan_id": plan_id} if plan_id is not None else {},
        )


class ChargeNotFoundError(NotFoundError):
    def __init__(self, charge_id: int | str | None = None, details: dict[str, Any] | None = None):
        message = "Charge not found" if charge_id is None else f"Charge {charge_id} not found"
        payload = {"charge_id": charge_id} if charge_id is not None else {}
        payload.update(details or {})
        super().__init__(
            message=message,
            code="NF202",
            status_code=404,
            details=payload,
        )


# ============================================================================
# CONFLICT ERRORS (CON300-399)
# ============================================================================

class ConflictError(BillingException):
    """Write would violate a uniqueness or state rule."""
    pass


class DuplicatePlanNameError(ConflictError):
    def __init__(self, name: str):
        super().__init__(
            message=f"A plan named '{name}' already exists",
            code="CON300",
            status_code=409,
            details={"name": name},
        )


class DuplicateChargeError(ConflictError):
    """A charge already exists for this client on this calendar day."""

    def __init__(self, client_id: int, due_date: dt.date):
        super().__init__(
            message=f"Client {client_id} already has a charge due on {due_date.isoformat()}",
            code="CON301",
            status_code=409,
            details={"client_id": client_id, "due_date": due_date.isoformat()},
        )


class DuplicateClientEmailError(ConflictError):
    def __init__(self, email: str):
        super().__init__(
            message=f"A client with email {email} already exists",
            code="CON302",
            status_code=409,
            details={"email": email},
        )


class PlanInUseError(ConflictError):
    def __init__(self, plan_id: int, clients: int):
        super().__init__(
            message=f"Plan {plan_id} is still referenced by {clients} client(s)",
            code="CON303",
            status_code=409,
            details={"plan_id": plan_id, "clients": clients},
        )


class ClientCanceledError(ConflictError):
    """Billing action requested for a canceled client."""

    def __init__(self, client_id: int):
        super().__init__(
            message=f"Client {client_id} is canceled",
            code="CON304",
            status_code=409,
            details={"client_id": client_id},
        )


class BillingStartLockedError(ConflictError):
    """Start date edit requested after the client's billing chain started."""

    def __init__(self, client_id: int):
        super().__init__(
            message=f"Client {client_id} has already been reminded; billing start date can no longer change",
            code="CON305",
            status_code=409,
            details={"client_id": client_id},
        )


# ============================================================================
# CONFIGURATION ERRORS (CFG400-499)
# ============================================================================

class ConfigurationError(BillingException):
    """Application configuration is invalid or missing."""

    def __init__(self, parameter: str, message: str | None = None, code: str = "CFG400"):
        super().__init__(
            message=message or f"Configuration error: {parameter} is not configured",
            code=code,
            status_code=500,
            details={"parameter": parameter},
        )


class PaymentKeyNotConfiguredError(ConfigurationError):
    def __init__(self):
        super().__init__(
            parameter="payment_key",
            message="Payment key is not configured. Set it before onboarding clients.",
            code="CFG401",
        )


# ============================================================================
# TRANSPORT ERRORS (TRN500-599)
# ============================================================================

class TransportError(BillingException):
    """Notification could not be dispatched."""
    pass


class NotificationDeliveryError(TransportError):
    def __init__(self, kind: str, recipient: str, reason: str | None = None):
        message = f"Failed to deliver {kind} notification to {recipient}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(
            message=message,
            code="TRN500",
            status_code=502,
            details={"kind": kind, "recipient": recipient, "reason": reason},
        )
