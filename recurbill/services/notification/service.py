from __future__ import annotations

import logging
from typing import Any, Literal

from recurbill.core.config import settings
from recurbill.services.notification.channels.email import EmailChannel

logger = logging.getLogger(__name__)

NotificationKind = Literal["welcome", "reminder"]

REQUIRED_FIELDS: dict[str, tuple[str, ...]] = {
    "welcome": ("to", "client_name", "plan_name", "plan_price", "recurrence", "payment_key", "billing_start_date"),
    "reminder": ("to", "client_name", "plan_name", "amount", "due_date", "payment_key", "charge_id"),
}


class NotificationService:
    """Facade for templated client notifications.

    ``send`` reports delivery as a boolean and never raises for transport
    problems; callers decide whether a failed delivery is fatal.
    """

    def __init__(self) -> None:
        self.email = EmailChannel(self)

    def _get_smtp_config(self) -> dict[str, str | int] | None:
        """Get SMTP configuration, or None if not configured."""
        host = settings.SMTP_HOST
        user = settings.SMTP_USER
        password = settings.SMTP_PASSWORD
        if not all([host, user, password]):
            logger.warning("Email not configured. Set SMTP_HOST, SMTP_USER and SMTP_PASSWORD")
            return None
        return {
            "host": host,
            "port": settings.SMTP_PORT,
            "user": user,
            "password": password,
        }

    def send(self, kind: NotificationKind, template_data: dict[str, Any]) -> bool:
        missing = [f for f in REQUIRED_FIELDS.get(kind, ()) if template_data.get(f) in (None, "")]
        if kind not in REQUIRED_FIELDS or missing:
            logger.error("Cannot send %s notification; missing fields: %s", kind, ", ".join(missing) or "-")
            return False
        try:
            delivered = self.email.send_templated(kind, template_data)
        except Exception as exc:  # noqa: BLE001 - template or transport failure is a failed delivery
            logger.exception("Failed to render/send %s notification to %s: %s", kind, template_data["to"], exc)
            return False
        logger.info("%s notification to %s - delivered: %s", kind.capitalize(), template_data["to"], delivered)
        return delivered

    def send_welcome(self, template_data: dict[str, Any]) -> bool:
        return self.send("welcome", template_data)

    def send_reminder(self, template_data: dict[str, Any]) -> bool:
        return self.send("reminder", template_data)
