from __future__ import annotations

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr
from pathlib import Path
from decimal import Decimal
from typing import Any

from jinja2 import Environment, FileSystemLoader, StrictUndefined, select_autoescape

from recurbill.core.config import settings

logger = logging.getLogger(__name__)

# Jinja2 template setup
_template_dir = Path(__file__).resolve().parent.parent.parent / "templates" / "email"
_jinja_env = Environment(
    loader=FileSystemLoader(str(_template_dir)),
    autoescape=select_autoescape(["html", "xml"]),
    undefined=StrictUndefined,
)

SUBJECTS = {
    "welcome": "Welcome to {plan_name}!",
    "reminder": "Your payment is due today",
}

RECURRENCE_LABELS = {
    "weekly": "weekly",
    "monthly": "monthly",
    "quarterly": "every 3 months",
    "semiannual": "every 6 months",
    "annual": "yearly",
}


def format_amount(value: Any) -> str:
    return f"{Decimal(str(value)):,.2f}"


def format_date(value: Any) -> str:
    return value.strftime("%d/%m/%Y") if hasattr(value, "strftime") else str(value)


def recurrence_label(value: Any) -> str:
    key = getattr(value, "value", value)
    return RECURRENCE_LABELS.get(str(key).lower(), str(key))


_jinja_env.filters["amount"] = format_amount
_jinja_env.filters["date"] = format_date
_jinja_env.filters["recurrence"] = recurrence_label


def render_email(kind: str, data: dict[str, Any]) -> tuple[str, str, str]:
    """Render (subject, html_body, plain_body) for a notification kind."""
    if kind not in SUBJECTS:
        raise ValueError(f"Unknown notification kind: {kind}")
    context = {**data, "app_name": settings.APP_NAME}
    subject = data.get("subject") or SUBJECTS[kind].format(**data)
    html_body = _jinja_env.get_template(f"{kind}.html").render(**context)
    plain_body = _jinja_env.get_template(f"{kind}.txt").render(**context)
    return subject, html_body, plain_body


def send_smtp_email(
    smtp_config: dict[str, str | int],
    to_email: str,
    subject: str,
    html_body: str,
    plain_body: str,
) -> bool:
    """Send a multipart email via SMTP/STARTTLS. Returns True on success."""
    from_email = settings.FROM_EMAIL or str(smtp_config["user"])

    msg = MIMEMultipart("alternative")
    msg["From"] = formataddr((settings.FROM_NAME, from_email))
    msg["To"] = to_email
    msg["Subject"] = subject
    msg.attach(MIMEText(plain_body, "plain", "utf-8"))
    msg.attach(MIMEText(html_body, "html", "utf-8"))

    try:
        with smtplib.SMTP(str(smtp_config["host"]), int(smtp_config["port"]), timeout=settings.SMTP_TIMEOUT) as server:
            server.starttls()
            server.login(str(smtp_config["user"]), str(smtp_config["password"]))
            server.send_message(msg)
        return True
    except (smtplib.SMTPException, OSError) as e:
        logger.warning("SMTP send failed to %s: %s", to_email, e)
        return False
