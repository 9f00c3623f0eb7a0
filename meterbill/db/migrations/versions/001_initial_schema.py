"""
Initial schema: meter_readings and notifications tables.

Creates the meter_readings table (one row per meter snapshot, indexed on ts
for range scans) and the notifications history table.

Revision ID: 001
Revises: None
Create Date: 2026-10-15

CHANGELOG:
- 2026-10-17: Leave the phase power columns to revision 002
- 2026-10-16: Add notifications table
- 2026-10-15: Initial creation

TODO:
- None
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

from meterbill.db.models import MEASUREMENT_COLUMNS, PHASE_POWER_COLUMNS

# Revision identifiers used by Alembic.
revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create meter_readings and notifications with their time indexes."""
    op.create_table(
        "meter_readings",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("ts", sa.DateTime(timezone=True), nullable=False),
        *[
            sa.Column(name, sa.Double(), nullable=True)
            for name in MEASUREMENT_COLUMNS
            if name not in PHASE_POWER_COLUMNS
        ],
        sa.Column("mac_address", sa.Text(), nullable=True),
        sa.Column(
            "extra",
            sa.JSON(),
            nullable=False,
            server_default=sa.text("'{}'"),
        ),
    )
    op.create_index("ix_meter_readings_ts", "meter_readings", ["ts"])

    op.create_table(
        "notifications",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("kind", sa.Text(), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "read",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("false"),
        ),
    )
    op.create_index("ix_notifications_kind", "notifications", ["kind"])


def downgrade() -> None:
    """Drop notifications and meter_readings."""
    op.drop_index("ix_notifications_kind", table_name="notifications")
    op.drop_table("notifications")
    op.drop_index("ix_meter_readings_ts", table_name="meter_readings")
    op.drop_table("meter_readings")
