from __future__ import annotations

import os

os.environ.setdefault("APP_ENV", "test")

import datetime as dt  # noqa: E402
import smtplib  # noqa: E402
from decimal import Decimal  # noqa: E402
from email.message import Message  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from recurbill.core.config import settings  # noqa: E402
from recurbill.db import session as db_session_module  # noqa: E402
from recurbill.db.base_class import Base  # noqa: E402
from recurbill.db.session import SessionLocal  # noqa: E402
from recurbill.services.billing import BillingEngine  # noqa: E402
from recurbill.services.client_service import ClientService  # noqa: E402
from recurbill.services.notification.service import NotificationService  # noqa: E402
from recurbill.services.plan_service import PlanService  # noqa: E402
from recurbill.services.system_config_service import SystemConfigService  # noqa: E402
from recurbill.utils.clock import FixedClock  # noqa: E402

TEST_DATABASE_URL = "sqlite:///:memory:"

test_engine = create_engine(
    TEST_DATABASE_URL,
    future=True,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

# Ensure application code uses the test engine
settings.DATABASE_URL = TEST_DATABASE_URL  # type: ignore[attr-defined]
settings.ENV = "test"  # type: ignore[attr-defined]
db_session_module.engine = test_engine  # type: ignore[assignment]
SessionLocal.configure(bind=test_engine)

PAYMENT_KEY = "pix-key-0001"


@pytest.fixture(autouse=True)
def _reset_database_state():
    """Ensure each test sees a fresh database schema."""
    Base.metadata.drop_all(bind=test_engine)
    Base.metadata.create_all(bind=test_engine)
    yield


class SMTPRecorder:
    """Stands in for ``smtplib.SMTP`` and keeps every message handed to it.

    ``rejected`` addresses bounce with SMTPRecipientsRefused; ``offline``
    makes the connection itself fail.
    """

    def __init__(self) -> None:
        self.messages: list[dict[str, str]] = []
        self.rejected: set[str] = set()
        self.offline = False

    def __call__(self, host: str, port: int, timeout: float | None = None) -> "_RecordingConnection":
        if self.offline:
            raise ConnectionRefusedError(f"{host}:{port} unreachable")
        return _RecordingConnection(self)

    def sent_to(self, address: str) -> list[dict[str, str]]:
        return [m for m in self.messages if m["to"] == address]

    def with_subject(self, subject: str) -> list[dict[str, str]]:
        return [m for m in self.messages if m["subject"] == subject]


class _RecordingConnection:
    def __init__(self, recorder: SMTPRecorder) -> None:
        self.recorder = recorder

    def __enter__(self) -> "_RecordingConnection":
        return self

    def __exit__(self, *exc_info) -> bool:
        return False

    def starttls(self) -> None:
        pass

    def login(self, user: str, password: str) -> None:
        pass

    def send_message(self, msg: Message) -> None:
        to = msg["To"]
        if to in self.recorder.rejected:
            raise smtplib.SMTPRecipientsRefused({to: (550, b"mailbox unavailable")})
        plain, html = msg.get_payload()
        self.recorder.messages.append(
            {
                "to": to,
                "subject": msg["Subject"],
                "text": plain.get_payload(decode=True).decode("utf-8"),
                "html": html.get_payload(decode=True).decode("utf-8"),
            }
        )


@pytest.fixture(autouse=True)
def smtp(monkeypatch) -> SMTPRecorder:
    """Configure SMTP settings and capture outgoing mail instead of sending it."""
    monkeypatch.setattr(settings, "SMTP_HOST", "smtp.test.local")
    monkeypatch.setattr(settings, "SMTP_USER", "billing@test.local")
    monkeypatch.setattr(settings, "SMTP_PASSWORD", "secret")
    monkeypatch.setattr(settings, "FROM_EMAIL", "billing@test.local")
    recorder = SMTPRecorder()
    monkeypatch.setattr(smtplib, "SMTP", recorder)
    return recorder


@pytest.fixture
def db_session():
    """Provide a database session for tests."""
    session = SessionLocal()
    try:
        yield session
        session.commit()
    finally:
        session.close()


@pytest.fixture
def clock() -> FixedClock:
    """2024-01-15 09:00 in the billing timezone, one hour before the daily cutoff."""
    return FixedClock(dt.datetime(2024, 1, 15, 9, 0), cutoff=10)


@pytest.fixture
def notifier() -> NotificationService:
    return NotificationService()


@pytest.fixture
def payment_key(db_session) -> str:
    SystemConfigService(db_session).set_payment_key(PAYMENT_KEY)
    return PAYMENT_KEY


@pytest.fixture
def monthly_plan(db_session):
    return PlanService(db_session).create("Monthly", Decimal("100.00"), "monthly")


@pytest.fixture
def client_service(db_session, notifier, clock) -> ClientService:
    return ClientService(db_session, notifier=notifier, clock=clock)


@pytest.fixture
def billing_engine(db_session, notifier, clock) -> BillingEngine:
    return BillingEngine(db_session, notifier=notifier, clock=clock)


# FastAPI TestClient fixture
from fastapi.testclient import TestClient  # noqa: E402

from recurbill.api.dependencies import get_clock  # noqa: E402
from recurbill.api.main import app  # noqa: E402


@pytest.fixture
def api_client(clock):
    """Provide a FastAPI TestClient whose requests see the fixed test clock."""
    app.dependency_overrides[get_clock] = lambda: clock
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
