from fastapi import APIRouter

from recurbill.api.dependencies import ConfigServiceDep
from recurbill.models import schemas

router = APIRouter()


@router.get("/payment-key", response_model=schemas.PaymentKeyOut)
def get_payment_key(config: ConfigServiceDep):
    value = config.get_payment_key()
    return schemas.PaymentKeyOut(payment_key=value, configured=value is not None)


@router.put("/payment-key", response_model=schemas.PaymentKeyOut)
def set_payment_key(data: schemas.PaymentKeyUpdate, config: ConfigServiceDep):
    """Set the payment key quoted in welcome and reminder emails."""
    entry = config.set_payment_key(data.payment_key)
    return schemas.PaymentKeyOut(payment_key=entry.value, configured=True)
