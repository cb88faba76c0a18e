from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from recurbill.services.notification.email_helpers import render_email, send_smtp_email

if TYPE_CHECKING:  # pragma: no cover
    from recurbill.services.notification.service import NotificationService

logger = logging.getLogger(__name__)


class EmailChannel:
    """Encapsulates email send operations used by NotificationService."""

    def __init__(self, service: "NotificationService") -> None:
        self._service = service

    def send_templated(self, kind: str, data: dict[str, Any]) -> bool:
        smtp_config = self._service._get_smtp_config()
        if not smtp_config:
            logger.warning("No email provider configured; %s email to %s not sent", kind, data.get("to"))
            return False
        subject, html_body, plain_body = render_email(kind, data)
        return send_smtp_email(smtp_config, data["to"], subject, html_body, plain_body)
