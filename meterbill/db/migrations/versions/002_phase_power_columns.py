"""
Phase power columns: average current and per-phase power figures.

Adds current_avg and the per-phase (a/b/c) reactive power, apparent power
and power factor columns to meter_readings. All are nullable doubles, so
existing rows keep NULL.

Revision ID: 002
Revises: 001
Create Date: 2026-10-17

CHANGELOG:
- 2026-10-17: Initial creation

TODO:
- None
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

from meterbill.db.models import PHASE_POWER_COLUMNS

# Revision identifiers used by Alembic.
revision: str = "002"
down_revision: str | None = "001"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Add the phase power columns to meter_readings."""
    for name in PHASE_POWER_COLUMNS:
        op.add_column("meter_readings", sa.Column(name, sa.Double(), nullable=True))


def downgrade() -> None:
    """Drop the phase power columns from meter_readings."""
    for name in reversed(PHASE_POWER_COLUMNS):
        op.drop_column("meter_readings", name)
