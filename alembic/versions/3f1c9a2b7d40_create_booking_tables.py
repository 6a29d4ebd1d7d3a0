"""Create booking, blackout, gift card and pop-up tables

Revision ID: 3f1c9a2b7d40
Revises:
Create Date: 2026-10-17 09:12:31.418207

"""

import sqlalchemy as sa

from alembic import op  # type: ignore[attr-defined]
from chef_bookings.config import SCHEMA

# revision identifiers, used by Alembic.
revision = "3f1c9a2b7d40"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "reservations",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("channel", sa.String(16), nullable=False),
        sa.Column("customer_name", sa.String(), nullable=True),
        sa.Column("customer_email", sa.String(), nullable=True),
        sa.Column("customer_phone", sa.String(), nullable=True),
        sa.Column("address_line1", sa.String(), nullable=True),
        sa.Column("city", sa.String(), nullable=True),
        sa.Column("state", sa.String(), nullable=True),
        sa.Column("postal_code", sa.String(), nullable=True),
        sa.Column("package_id", sa.String(), nullable=True),
        sa.Column("package_title", sa.String(), nullable=True),
        sa.Column("party_size", sa.Integer(), nullable=True),
        sa.Column("start_time", sa.String(5), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("subtotal_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("deposit_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("balance_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("addon_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("payment_correlation_id", sa.String(), nullable=True, unique=True),
        sa.Column("requires_refund", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("confirmed_at", sa.DateTime(timezone=True), nullable=True),
        schema=SCHEMA,
    )
    op.create_index(
        "ix_reservations_start_date", "reservations", ["start_date"], schema=SCHEMA
    )

    op.create_table(
        "reservation_days",
        sa.Column("day", sa.Date(), primary_key=True),
        sa.Column("slot", sa.Integer(), primary_key=True, autoincrement=False),
        sa.Column(
            "reservation_id",
            sa.Uuid(),
            sa.ForeignKey(f"{SCHEMA}.reservations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.UniqueConstraint("reservation_id", "day", name="uq_reservation_days_reservation_day"),
        schema=SCHEMA,
    )

    op.create_table(
        "blackout_dates",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("start_date", sa.Date(), nullable=False, unique=True),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("reason", sa.String(), nullable=True),
        *_timestamps(),
        schema=SCHEMA,
    )

    op.create_table(
        "gift_cards",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("code", sa.String(32), nullable=False, unique=True),
        sa.Column("face_value_original_cents", sa.Integer(), nullable=False),
        sa.Column("face_value_remaining_cents", sa.Integer(), nullable=False),
        sa.Column("buyer_name", sa.String(), nullable=True),
        sa.Column("buyer_email", sa.String(), nullable=True),
        sa.Column("recipient_name", sa.String(), nullable=True),
        sa.Column("recipient_email", sa.String(), nullable=True),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("payment_correlation_id", sa.String(), nullable=False, unique=True),
        *_timestamps(),
        sa.Column("redeemed_at", sa.DateTime(timezone=True), nullable=True),
        schema=SCHEMA,
    )

    op.create_table(
        "popup_events",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("sku", sa.String(), nullable=True),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("location", sa.String(), nullable=True),
        sa.Column("event_date", sa.Date(), nullable=True),
        sa.Column("start_time", sa.String(5), nullable=True),
        sa.Column("end_time", sa.String(5), nullable=True),
        sa.Column("price_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("capacity", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("sold", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("min_per_order", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("max_per_order", sa.Integer(), nullable=False, server_default="4"),
        sa.Column("hidden", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("details", sa.JSON(), nullable=True),
        *_timestamps(),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint("sold >= 0 AND sold <= capacity", name="ck_popup_events_sold_range"),
        schema=SCHEMA,
    )

    op.create_table(
        "popup_seat_purchases",
        sa.Column(
            "event_id",
            sa.String(64),
            sa.ForeignKey(f"{SCHEMA}.popup_events.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("payment_id", sa.String(), primary_key=True),
        sa.Column("quantity_requested", sa.Integer(), nullable=False),
        sa.Column("quantity_recorded", sa.Integer(), nullable=False),
        *_timestamps(),
        schema=SCHEMA,
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table("popup_seat_purchases", schema=SCHEMA)
    op.drop_table("popup_events", schema=SCHEMA)
    op.drop_table("gift_cards", schema=SCHEMA)
    op.drop_table("blackout_dates", schema=SCHEMA)
    op.drop_table("reservation_days", schema=SCHEMA)
    op.drop_index("ix_reservations_start_date", table_name="reservations", schema=SCHEMA)
    op.drop_table("reservations", schema=SCHEMA)
