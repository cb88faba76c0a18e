from __future__ import annotations

import datetime as dt
import enum
from decimal import Decimal

from sqlalchemy import Date, DateTime, Enum, ForeignKey, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from recurbill.db.base_class import Base


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class _CaseInsensitiveEnum(str, enum.Enum):
    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            for member in cls:
                if member.value == value.lower():
                    return member
        return None


class Recurrence(_CaseInsensitiveEnum):
    """Billing cadence of a plan."""
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    SEMIANNUAL = "semiannual"
    ANNUAL = "annual"

    @property
    def months(self) -> int:
        """Number of calendar months per period (0 for day-based cadences)."""
        months = {
            Recurrence.WEEKLY: 0,
            Recurrence.MONTHLY: 1,
            Recurrence.QUARTERLY: 3,
            Recurrence.SEMIANNUAL: 6,
            Recurrence.ANNUAL: 12,
        }
        return months[self]

    @property
    def days(self) -> int:
        return 7 if self == Recurrence.WEEKLY else 0


class ClientStatus(_CaseInsensitiveEnum):
    """Payment-status tag on a client. Only CANCELED stops billing."""
    ACTIVE = "active"
    PENDING = "pending"
    CANCELED = "canceled"


class ChargeStatus(_CaseInsensitiveEnum):
    PENDING = "pending"
    PAID = "paid"
    CANCELED = "canceled"

    @property
    def is_terminal(self) -> bool:
        return self in (ChargeStatus.PAID, ChargeStatus.CANCELED)


class Plan(Base):
    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(120), unique=True, nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    recurrence: Mapped[Recurrence] = mapped_column(
        Enum(Recurrence, native_enum=False, length=20),
        nullable=False,
    )
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
    )

    clients: Mapped[list[Client]] = relationship("Client", back_populates="plan")  # type: ignore


class Client(Base):
    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    plan_id: Mapped[int] = mapped_column(ForeignKey("plan.id"), index=True)  # type: ignore
    payment_status: Mapped[ClientStatus] = mapped_column(
        Enum(ClientStatus, native_enum=False, length=20),
        default=ClientStatus.ACTIVE,
        server_default=ClientStatus.ACTIVE.name,
        nullable=False,
    )
    # Anchor of the first charge; its day-of-month also anchors month-end clamping.
    billing_start_date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
    )

    plan: Mapped[Plan] = relationship("Plan", back_populates="clients")  # type: ignore
    charges: Mapped[list[Charge]] = relationship(
        "Charge",
        back_populates="client",
        cascade="all, delete-orphan",
        order_by="Charge.due_date.desc()",
    )  # type: ignore

    @property
    def is_canceled(self) -> bool:
        return self.payment_status == ClientStatus.CANCELED


class Charge(Base):
    __table_args__ = (
        # One charge per client per calendar day, whatever its status.
        UniqueConstraint("client_id", "due_date", name="uq_charge_client_due_date"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    reference: Mapped[str] = mapped_column(String(40), unique=True, index=True)
    client_id: Mapped[int] = mapped_column(ForeignKey("client.id"), index=True)  # type: ignore
    # Copied from the plan at creation; later price edits never touch issued charges.
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    due_date: Mapped[dt.date] = mapped_column(Date, nullable=False, index=True)
    status: Mapped[ChargeStatus] = mapped_column(
        Enum(ChargeStatus, native_enum=False, length=20),
        default=ChargeStatus.PENDING,
        server_default=ChargeStatus.PENDING.name,
        nullable=False,
        index=True,
    )
    reminder_sent: Mapped[bool] = mapped_column(default=False, server_default="false")
    reminder_sent_at: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    paid_at: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    canceled_at: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
    )

    client: Mapped[Client] = relationship("Client", back_populates="charges")  # type: ignore


class SystemConfig(Base):
    """Process-wide key/value settings editable at runtime (e.g. the payment key)."""

    __tablename__ = "system_config"

    key: Mapped[str] = mapped_column(String(64), primary_key=True)
    value: Mapped[str | None] = mapped_column(String(255), nullable=True)
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        server_default=func.now(),
    )
