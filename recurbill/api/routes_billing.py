from fastapi import APIRouter, Request, status

from recurbill.api.dependencies import BillingEngineDep
from recurbill.api.rate_limit import RATE_LIMITS, limiter
from recurbill.models import schemas

router = APIRouter()


@router.post("/run", response_model=schemas.SweepReportOut)
@limiter.limit(RATE_LIMITS["billing_run"])
def run_billing(request: Request, engine: BillingEngineDep, data: schemas.BillingRunRequest | None = None):
    """Run the billing sweep now, in-process.

    ``date`` defaults to today in the billing timezone. ``retry`` sends every
    reminder still owed up to that date, including charges stalled on earlier days.
    """
    data = data or schemas.BillingRunRequest()
    if data.retry:
        report = engine.retry_failed_reminders(day=data.date)
    else:
        report = engine.run_sweep(day=data.date, trigger="manual")
    return report.as_dict()


@router.post("/clients/{client_id}/process", response_model=schemas.ProcessClientOut)
@limiter.limit(RATE_LIMITS["billing_process_client"])
def process_client(
    request: Request,
    client_id: int,
    engine: BillingEngineDep,
    data: schemas.ProcessClientRequest | None = None,
):
    """Remind one client for the charge due today, or on ``date`` when given."""
    if data is not None and data.date is not None:
        outcome = engine.send_reminder_for_date(client_id, data.date)
    else:
        outcome = engine.process_client_today(client_id)
    return schemas.ProcessClientOut(client_id=client_id, outcome=outcome.value)


@router.post(
    "/clients/{client_id}/charges",
    response_model=schemas.ChargeOut,
    status_code=status.HTTP_201_CREATED,
)
def create_charge(client_id: int, data: schemas.ChargeCreate, engine: BillingEngineDep):
    """Create a charge for an arbitrary date without sending anything."""
    return engine.create_charge_for_date(client_id, data.due_date)
