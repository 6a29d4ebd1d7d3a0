"""SQLAlchemy models for limited-capacity pop-up events and their seat ledger."""

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
)
from sqlalchemy.sql import func

from chef_bookings.config import SCHEMA
from chef_bookings.models.base import Base


class PopupEvent(Base):
    """
    ORM model for a pop-up class with a fixed number of seats.

    ``sold`` only moves through the seat ledger and is always kept inside
    ``[0, capacity]``.
    """

    __tablename__ = "popup_events"
    __table_args__ = (
        CheckConstraint("sold >= 0 AND sold <= capacity", name="ck_popup_events_sold_range"),
        {"schema": SCHEMA},
    )

    id = Column(String(64), primary_key=True)  # URL-safe slug, e.g. "pasta-bk-dec12"
    sku = Column(String, nullable=True)
    title = Column(String, nullable=False)
    location = Column(String, nullable=True)
    event_date = Column(Date, nullable=True)
    start_time = Column(String(5), nullable=True)
    end_time = Column(String(5), nullable=True)
    price_cents = Column(Integer, nullable=False, default=0)
    capacity = Column(Integer, nullable=False, default=0)
    sold = Column(Integer, nullable=False, default=0)
    min_per_order = Column(Integer, nullable=False, default=1)
    max_per_order = Column(Integer, nullable=False, default=4)
    hidden = Column(Boolean, nullable=False, default=False)
    details = Column(JSON, nullable=True)  # images, notes, what_we_make, includes
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )


class PopupSeatPurchase(Base):
    """
    Processed payment ids per event.

    The composite primary key is what makes seat accounting idempotent: a
    payment id can be recorded against an event at most once.
    """

    __tablename__ = "popup_seat_purchases"
    __table_args__ = {"schema": SCHEMA}

    event_id = Column(
        String(64),
        ForeignKey(f"{SCHEMA}.popup_events.id", ondelete="CASCADE"),
        primary_key=True,
    )
    payment_id = Column(String, primary_key=True)
    quantity_requested = Column(Integer, nullable=False)
    quantity_recorded = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class PopupUnmatchedPayment(Base):
    """
    Payments for pop-up events that no longer exist, awaiting refund.

    Keyed on the payment id alone (no foreign key, the event is gone) so a
    redelivered payment is recognised and the admin is alerted once.
    """

    __tablename__ = "popup_unmatched_payments"
    __table_args__ = {"schema": SCHEMA}

    payment_id = Column(String, primary_key=True)
    event_id = Column(String(64), nullable=False)
    quantity = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
