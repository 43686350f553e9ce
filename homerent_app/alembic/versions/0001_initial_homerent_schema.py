"""initial homerent schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-17 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = "0001_initial"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

IN_SETTLEMENT = "status IN ('payment_submitted', 'approved')"


def _uuid():
    return postgresql.UUID(as_uuid=True)


def _history_table(name: str, parent_column: str, parent_table: str):
    op.create_table(
        name,
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            parent_column,
            _uuid(),
            sa.ForeignKey(f"{parent_table}.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("status", sa.String(32), nullable=False),
        sa.Column("at", sa.DateTime(), nullable=False),
        sa.Column(
            "by_id", _uuid(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True
        ),
        sa.Column("actor_kind", sa.String(32), nullable=False),
        sa.Column("note", sa.Text(), nullable=False, server_default=""),
    )
    op.create_index(f"ix_{name}_{parent_column}", name, [parent_column])


def upgrade():
    op.create_table(
        "users",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("phone", sa.String(20), nullable=True),
        sa.Column("role", sa.String(32), nullable=False),
        sa.Column("upi_id", sa.String(120), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_users_role", "users", ["role"])

    op.create_table(
        "houses",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column(
            "landlord_id",
            _uuid(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("location", sa.String(255), nullable=False),
        sa.Column("rent", sa.Integer(), nullable=False),
        sa.Column("deposit", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("booking_amount", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("house_type", sa.String(32), nullable=False),
        sa.Column("beds", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("baths", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("area", sa.Integer(), nullable=True),
        sa.Column("furnished", sa.String(32), nullable=False),
        sa.Column("verification_status", sa.String(32), nullable=False),
        sa.Column("status", sa.String(32), nullable=False, server_default="available"),
        sa.Column(
            "current_tenant_id",
            _uuid(),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("current_booking_id", _uuid(), nullable=True),
        sa.Column("rented_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint(
            "(status = 'rented') = "
            "(current_tenant_id IS NOT NULL AND current_booking_id IS NOT NULL)",
            name="ck_house_rented_has_occupant",
        ),
    )
    op.create_index("ix_houses_landlord_id", "houses", ["landlord_id"])
    op.create_index("ix_houses_status", "houses", ["status"])
    op.create_index("ix_houses_verification_status", "houses", ["verification_status"])
    op.create_index("ix_houses_current_tenant_id", "houses", ["current_tenant_id"])

    op.create_table(
        "bookings",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column(
            "house_id",
            _uuid(),
            sa.ForeignKey("houses.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column(
            "landlord_id",
            _uuid(),
            sa.ForeignKey("users.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column(
            "tenant_id",
            _uuid(),
            sa.ForeignKey("users.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(32), nullable=False),
        sa.Column("tenant_utr", sa.String(64), nullable=True),
        sa.Column("payment_proof_url", sa.Text(), nullable=True),
        sa.Column("payment_submitted_at", sa.DateTime(), nullable=True),
        sa.Column(
            "approved_by_id",
            _uuid(),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("approved_at", sa.DateTime(), nullable=True),
        sa.Column(
            "rejected_by_id",
            _uuid(),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("rejected_at", sa.DateTime(), nullable=True),
        sa.Column("admin_note", sa.Text(), nullable=False, server_default=""),
        sa.Column("payout_txn_id", sa.String(64), nullable=True),
        sa.Column("payout_at", sa.DateTime(), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(), nullable=True),
        sa.Column("cancel_note", sa.Text(), nullable=False, server_default=""),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_bookings_house_id", "bookings", ["house_id"])
    op.create_index("ix_bookings_landlord_id", "bookings", ["landlord_id"])
    op.create_index("ix_bookings_tenant_id", "bookings", ["tenant_id"])
    op.create_index("ix_bookings_status", "bookings", ["status"])
    op.create_index("ix_bookings_created_at", "bookings", ["created_at"])
    op.create_index(
        "ix_booking_tenant_landlord_status",
        "bookings",
        ["tenant_id", "landlord_id", "status"],
    )
    op.create_index("ix_booking_house_status", "bookings", ["house_id", "status"])
    op.create_index(
        "uq_booking_house_in_settlement",
        "bookings",
        ["house_id"],
        unique=True,
        postgresql_where=sa.text(IN_SETTLEMENT),
        sqlite_where=sa.text(IN_SETTLEMENT),
    )

    _history_table("booking_status_history", "booking_id", "bookings")

    op.create_table(
        "rent_payments",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column(
            "house_id",
            _uuid(),
            sa.ForeignKey("houses.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("landlord_id", _uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("tenant_id", _uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("period", sa.String(7), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(32), nullable=False),
        sa.Column("tenant_utr", sa.String(64), nullable=True),
        sa.Column("payment_proof_url", sa.Text(), nullable=True),
        sa.Column("payment_submitted_at", sa.DateTime(), nullable=True),
        sa.Column("approved_at", sa.DateTime(), nullable=True),
        sa.Column("rejected_at", sa.DateTime(), nullable=True),
        sa.Column("rejection_note", sa.Text(), nullable=False, server_default=""),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint(
            "house_id", "tenant_id", "period", name="uq_rent_payment_period"
        ),
    )
    op.create_index("ix_rent_payments_house_id", "rent_payments", ["house_id"])
    op.create_index("ix_rent_payments_landlord_id", "rent_payments", ["landlord_id"])
    op.create_index("ix_rent_payments_tenant_id", "rent_payments", ["tenant_id"])
    op.create_index("ix_rent_payments_status", "rent_payments", ["status"])

    _history_table("rent_payment_status_history", "payment_id", "rent_payments")

    op.create_table(
        "visit_requests",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column(
            "house_id",
            _uuid(),
            sa.ForeignKey("houses.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("landlord_id", _uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("tenant_id", _uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("status", sa.String(32), nullable=False),
        sa.Column("requested_start", sa.DateTime(), nullable=False),
        sa.Column("requested_end", sa.DateTime(), nullable=False),
        sa.Column("final_start", sa.DateTime(), nullable=True),
        sa.Column("final_end", sa.DateTime(), nullable=True),
        sa.Column("tenant_message", sa.Text(), nullable=False, server_default=""),
        sa.Column("landlord_note", sa.Text(), nullable=False, server_default=""),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_visit_requests_house_id", "visit_requests", ["house_id"])
    op.create_index("ix_visit_requests_landlord_id", "visit_requests", ["landlord_id"])
    op.create_index("ix_visit_requests_tenant_id", "visit_requests", ["tenant_id"])
    op.create_index("ix_visit_requests_status", "visit_requests", ["status"])

    _history_table("visit_request_status_history", "visit_id", "visit_requests")


def downgrade():
    op.drop_table("visit_request_status_history")
    op.drop_table("visit_requests")
    op.drop_table("rent_payment_status_history")
    op.drop_table("rent_payments")
    op.drop_table("booking_status_history")
    op.drop_table("bookings")
    op.drop_table("houses")
    op.drop_table("users")
