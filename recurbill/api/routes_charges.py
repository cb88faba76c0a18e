from fastapi import APIRouter, Response, status

from recurbill.api.dependencies import ClockDep, DbDep, LedgerDep
from recurbill.models import schemas
from recurbill.models.models import ChargeStatus

router = APIRouter()


@router.get("/", response_model=list[schemas.ChargeOut])
def list_charges(
    ledger: LedgerDep,
    clock: ClockDep,
    client_id: int | None = None,
    status: ChargeStatus | None = None,
    overdue: bool = False,
):
    """List charges, newest first. ``overdue=true`` returns PENDING charges due before today, oldest first."""
    if overdue:
        charges = ledger.find_overdue(clock.today())
        if client_id is not None:
            charges = [c for c in charges if c.client_id == client_id]
        return charges
    return ledger.list_charges(client_id=client_id, status=status)


@router.get("/pending-reminders", response_model=list[schemas.ChargeOut])
def list_pending_reminders(ledger: LedgerDep, clock: ClockDep):
    """PENDING charges due up to today whose reminder has not gone out."""
    return ledger.find_pending_reminders(until=clock.today())


@router.get("/{charge_id}", response_model=schemas.ChargeOut)
def get_charge(charge_id: int, ledger: LedgerDep):
    return ledger.get(charge_id)


@router.post("/{charge_id}/pay", response_model=schemas.ChargeOut)
def mark_charge_paid(charge_id: int, ledger: LedgerDep, db: DbDep):
    """Record payment. Already-paid or canceled charges are returned unchanged."""
    charge = ledger.mark_paid(charge_id)
    db.commit()
    return charge


@router.post("/{charge_id}/cancel", response_model=schemas.ChargeOut)
def cancel_charge(charge_id: int, ledger: LedgerDep, db: DbDep):
    charge = ledger.mark_canceled(charge_id)
    db.commit()
    return charge


@router.delete("/{charge_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_charge(charge_id: int, ledger: LedgerDep, db: DbDep) -> Response:
    ledger.remove(charge_id)
    db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
