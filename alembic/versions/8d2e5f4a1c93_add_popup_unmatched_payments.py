"""Add popup_unmatched_payments

Revision ID: 8d2e5f4a1c93
Revises: 3f1c9a2b7d40
Create Date: 2026-10-17 14:03:52.118604

"""

import sqlalchemy as sa

from alembic import op  # type: ignore[attr-defined]
from chef_bookings.config import SCHEMA

# revision identifiers, used by Alembic.
revision = "8d2e5f4a1c93"
down_revision = "3f1c9a2b7d40"
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "popup_unmatched_payments",
        sa.Column("payment_id", sa.String(), primary_key=True),
        sa.Column("event_id", sa.String(64), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        schema=SCHEMA,
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table("popup_unmatched_payments", schema=SCHEMA)
