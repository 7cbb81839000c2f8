"""Initial booking schema: users, availabilities, reservations, transactions

Revision ID: 0001
Revises:
Create Date: 2026-03-02 10:00:00.000000

"""

import sqlalchemy as sa

from alembic import op  # type: ignore[attr-defined]

# revision identifiers, used by Alembic.
revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

user_role = sa.Enum("customer", "host", "admin", name="user_role")
recurrence_kind = sa.Enum("once", "daily", "weekly", name="recurrence_kind")
reservation_status = sa.Enum(
    "pending", "confirmed", "cancelled", "completed", "no_show", name="reservation_status"
)
transaction_kind = sa.Enum("payment", "payout", "refund", name="transaction_kind")
transaction_status = sa.Enum(
    "pending", "completed", "failed", "refunded", name="transaction_status"
)


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("display_name", sa.String(255), nullable=False),
        sa.Column("role", user_role, nullable=False),
        sa.Column("country", sa.String(2), nullable=True),
        sa.Column("gateway_customer_ref", sa.String(255), nullable=True),
        sa.Column("payout_account_ref", sa.String(255), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("TRUE")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_users_email", "users", ["email"])

    op.create_table(
        "availabilities",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "host_id",
            sa.Uuid(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("start_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("recurrence", recurrence_kind, nullable=False),
        sa.Column("days_of_week", sa.JSON(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("TRUE")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("start_at < end_at", name="ck_availabilities_interval"),
    )
    op.create_index("ix_availabilities_host_id", "availabilities", ["host_id"])

    op.create_table(
        "reservations",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "customer_id",
            sa.Uuid(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "host_id",
            sa.Uuid(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("start_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", reservation_status, nullable=False),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("transaction_id", sa.Uuid(), nullable=True),
        sa.Column("cancellation_reason", sa.String(255), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column(
            "is_rescheduled", sa.Boolean(), nullable=False, server_default=sa.text("FALSE")
        ),
        sa.Column(
            "original_reservation_id",
            sa.Uuid(),
            sa.ForeignKey("reservations.id"),
            nullable=True,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("start_at < end_at", name="ck_reservations_interval"),
    )
    op.create_index("ix_reservations_customer_id", "reservations", ["customer_id"])
    op.create_index(
        "ix_reservations_host_window",
        "reservations",
        ["host_id", "status", "start_at", "end_at"],
    )

    op.create_table(
        "transactions",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("kind", transaction_kind, nullable=False),
        sa.Column("status", transaction_status, nullable=False),
        sa.Column("customer_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("host_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("reservation_id", sa.Uuid(), nullable=True),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("commission_amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("vat_amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("net_amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.Column("gateway_intent_ref", sa.String(255), nullable=True, unique=True),
        sa.Column("gateway_charge_ref", sa.String(255), nullable=True),
        sa.Column("gateway_transfer_ref", sa.String(255), nullable=True),
        sa.Column("is_released", sa.Boolean(), nullable=False, server_default=sa.text("FALSE")),
        sa.Column("released_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_transactions_customer_id", "transactions", ["customer_id"])
    op.create_index("ix_transactions_host_id", "transactions", ["host_id"])
    op.create_index("ix_transactions_reservation_id", "transactions", ["reservation_id"])
    op.create_index(
        "ix_transactions_release_scan",
        "transactions",
        ["status", "is_released", "created_at"],
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table("transactions")
    op.drop_table("reservations")
    op.drop_table("availabilities")
    op.drop_table("users")

    bind = op.get_bind()
    for enum_type in (
        transaction_status,
        transaction_kind,
        reservation_status,
        recurrence_kind,
        user_role,
    ):
        enum_type.drop(bind, checkfirst=True)
