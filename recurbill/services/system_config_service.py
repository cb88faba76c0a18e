"""Runtime system configuration backed by the ``system_config`` key/value table."""
from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from recurbill.core.exceptions import InvalidPaymentKeyError, PaymentKeyNotConfiguredError
from recurbill.models import models

logger = logging.getLogger(__name__)

PAYMENT_KEY = "payment_key"


class SystemConfigService:
    def __init__(self, db: Session):
        self.db = db

    def _entry(self, key: str) -> models.SystemConfig:
        """Fetch a config row, creating an empty one on first read."""
        entry = self.db.get(models.SystemConfig, key)
        if entry is not None:
            return entry
        entry = models.SystemConfig(key=key, value=None)
        try:
            with self.db.begin_nested():
                self.db.add(entry)
                self.db.flush()
        except IntegrityError:
            # Another process initialised it first.
            return self.db.get(models.SystemConfig, key, populate_existing=True)
        logger.info("Initialised system config entry %s", key)
        return entry

    def get_payment_key(self) -> str | None:
        value = self._entry(PAYMENT_KEY).value
        return value or None

    def require_payment_key(self) -> str:
        value = self.get_payment_key()
        if not value:
            raise PaymentKeyNotConfiguredError()
        return value

    def set_payment_key(self, value: str) -> models.SystemConfig:
        cleaned = (value or "").strip()
        if not cleaned:
            raise InvalidPaymentKeyError()
        entry = self._entry(PAYMENT_KEY)
        entry.value = cleaned
        entry.updated_at = models.utcnow()
        self.db.commit()
        logger.info("Payment key updated")
        return entry
