from __future__ import annotations

import sqlalchemy as sa

from alembic import op

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "plan",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("price", sa.Numeric(12, 2), nullable=False),
        sa.Column("recurrence", sa.String(length=20), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("name", name="uq_plan_name"),
    )
    op.create_table(
        "client",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("plan_id", sa.Integer(), sa.ForeignKey("plan.id", name="fk_client_plan_id_plan"), nullable=False),
        sa.Column("payment_status", sa.String(length=20), nullable=False, server_default="ACTIVE"),
        sa.Column("billing_start_date", sa.Date(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_client_email", "client", ["email"], unique=True)
    op.create_index("ix_client_plan_id", "client", ["plan_id"])
    op.create_table(
        "charge",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("reference", sa.String(length=40), nullable=False),
        sa.Column(
            "client_id",
            sa.Integer(),
            sa.ForeignKey("client.id", name="fk_charge_client_id_client"),
            nullable=False,
        ),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="PENDING"),
        sa.Column("reminder_sent", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("reminder_sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("canceled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("client_id", "due_date", name="uq_charge_client_due_date"),
    )
    op.create_index("ix_charge_reference", "charge", ["reference"], unique=True)
    op.create_index("ix_charge_client_id", "charge", ["client_id"])
    op.create_index("ix_charge_due_date", "charge", ["due_date"])
    op.create_index("ix_charge_status", "charge", ["status"])
    op.create_table(
        "system_config",
        sa.Column("key", sa.String(length=64), primary_key=True),
        sa.Column("value", sa.String(length=255), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )


def downgrade() -> None:
    op.drop_table("system_config")
    op.drop_index("ix_charge_status", table_name="charge")
    op.drop_index("ix_charge_due_date", table_name="charge")
    op.drop_index("ix_charge_client_id", table_name="charge")
    op.drop_index("ix_charge_reference", table_name="charge")
    op.drop_table("charge")
    op.drop_index("ix_client_plan_id", table_name="client")
    op.drop_index("ix_client_email", table_name="client")
    op.drop_table("client")
    op.drop_table("plan")
