"""Runtime payment key configuration."""
import pytest

from recurbill.core.exceptions import InvalidPaymentKeyError, PaymentKeyNotConfiguredError
from recurbill.models import models
from recurbill.services.system_config_service import PAYMENT_KEY, SystemConfigService


def test_first_read_initialises_empty_entry(db_session):
    svc = SystemConfigService(db_session)

    assert svc.get_payment_key() is None
    assert db_session.get(models.SystemConfig, PAYMENT_KEY) is not None


def test_require_payment_key_raises_when_unset(db_session):
    with pytest.raises(PaymentKeyNotConfiguredError) as exc_info:
        SystemConfigService(db_session).require_payment_key()
    assert exc_info.value.code == "CFG401"
    assert exc_info.value.details == {"parameter": "payment_key"}


def test_set_payment_key_strips_and_overwrites(db_session):
    svc = SystemConfigService(db_session)
    svc.set_payment_key("  first-key ")
    svc.set_payment_key("second-key")

    assert svc.require_payment_key() == "second-key"
    assert db_session.query(models.SystemConfig).count() == 1


@pytest.mark.parametrize("value", ["", "   ", None])
def test_blank_payment_key_rejected(db_session, value):
    with pytest.raises(InvalidPaymentKeyError):
        SystemConfigService(db_session).set_payment_key(value)
