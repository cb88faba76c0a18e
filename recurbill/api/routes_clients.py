from fastapi import APIRouter, Request, Response, status

from recurbill.api.dependencies import ClientServiceDep, LedgerDep
from recurbill.api.rate_limit import RATE_LIMITS, limiter
from recurbill.core.exceptions import ClientNotFoundError
from recurbill.models import schemas
from recurbill.models.models import ClientStatus

router = APIRouter()


@router.post("/", response_model=schemas.ClientOutDetailed, status_code=status.HTTP_201_CREATED)
@limiter.limit(RATE_LIMITS["onboard_client"])
def onboard_client(request: Request, data: schemas.ClientCreate, svc: ClientServiceDep):
    """Onboard a client: creates the first charge and sends the welcome email.

    A same-day start submitted after the daily cutoff is billed immediately.
    """
    client = svc.onboard(
        name=data.name,
        email=str(data.email),
        plan_id=data.plan_id,
        billing_start_date=data.billing_start_date,
        payment_status=data.payment_status,
    )
    return svc.get(client.id)


@router.get("/", response_model=list[schemas.ClientOut])
def list_clients(
    svc: ClientServiceDep,
    plan_id: int | None = None,
    payment_status: ClientStatus | None = None,
):
    return svc.list_clients(plan_id=plan_id, payment_status=payment_status)


@router.get("/by-email/{email}", response_model=schemas.ClientOut)
def get_client_by_email(email: str, svc: ClientServiceDep):
    client = svc.get_by_email(email)
    if client is None:
        raise ClientNotFoundError(email)
    return client


@router.get("/{client_id}", response_model=schemas.ClientOutDetailed)
def get_client(client_id: int, svc: ClientServiceDep):
    return svc.get(client_id)


@router.get("/{client_id}/charges", response_model=list[schemas.ChargeOut])
def list_client_charges(client_id: int, svc: ClientServiceDep, ledger: LedgerDep):
    svc.get(client_id)
    return ledger.list_for_client(client_id)


@router.patch("/{client_id}", response_model=schemas.ClientOut)
def update_client(client_id: int, data: schemas.ClientUpdate, svc: ClientServiceDep):
    return svc.update(client_id, data.model_dump(exclude_unset=True))


@router.patch("/{client_id}/status", response_model=schemas.ClientOut)
def update_client_status(client_id: int, data: schemas.ClientStatusUpdate, svc: ClientServiceDep):
    """Change the payment status. CANCELED stops all further billing for the client."""
    return svc.set_payment_status(client_id, data.payment_status)


@router.delete("/{client_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_client(client_id: int, svc: ClientServiceDep) -> Response:
    svc.remove(client_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
