"""normalize legacy booking statuses

Revision ID: 0002_legacy_statuses
Revises: 0001_initial
Create Date: 2026-10-17 09:30:00.000000

"""
from typing import Sequence, Union

from alembic import op


# revision identifiers, used by Alembic.
revision: str = "0002_legacy_statuses"
down_revision: Union[str, Sequence[str], None] = "0001_initial"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

LEGACY = {
    "created": "initiated",
    "qr_created": "initiated",
    "paid": "payment_submitted",
    "failed": "rejected",
}


def upgrade():
    # Imported rows may still carry pre-canonical values.
    for table in ("bookings", "booking_status_history"):
        for old, new in LEGACY.items():
            op.execute(f"UPDATE {table} SET status = '{new}' WHERE status = '{old}'")


def downgrade():
    # The old values are aliases; there is nothing to restore.
    pass
