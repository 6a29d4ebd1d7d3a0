# models/reservations.py

import enum
import uuid

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.sql import func

from chef_bookings.config import SCHEMA
from chef_bookings.models.base import Base


class ReservationStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELED = "canceled"


class Channel(str, enum.Enum):
    ONLINE = "online"
    MANUAL = "manual"


class Reservation(Base):
    """
    ORM model for a customer's hold on a date range.

    The range is half-open ``[start_date, end_date)`` at day granularity; a
    single-day event is ``[D, D+1)``. Rows start ``pending`` (online intake) or
    ``confirmed`` (manual admin entry) and only the payment reconciler moves a
    pending row to confirmed. ``payment_correlation_id`` is the Stripe Checkout
    Session id and is unique: it is the idempotency key for confirmation.
    """

    __tablename__ = "reservations"
    __table_args__ = {"schema": SCHEMA}

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    start_date = Column(Date, nullable=False, index=True)
    end_date = Column(Date, nullable=False)
    status = Column(String(16), nullable=False, default=ReservationStatus.PENDING.value)
    channel = Column(String(16), nullable=False, default=Channel.ONLINE.value)

    customer_name = Column(String, nullable=True)
    customer_email = Column(String, nullable=True)
    customer_phone = Column(String, nullable=True)
    address_line1 = Column(String, nullable=True)
    city = Column(String, nullable=True)
    state = Column(String, nullable=True)
    postal_code = Column(String, nullable=True)

    package_id = Column(String, nullable=True)
    package_title = Column(String, nullable=True)
    party_size = Column(Integer, nullable=True)
    start_time = Column(String(5), nullable=True)
    notes = Column(Text, nullable=True)

    subtotal_cents = Column(Integer, nullable=False, default=0)
    deposit_cents = Column(Integer, nullable=False, default=0)
    balance_cents = Column(Integer, nullable=False, default=0)
    addon_cents = Column(Integer, nullable=False, default=0)

    payment_correlation_id = Column(String, nullable=True, unique=True)
    requires_refund = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
    confirmed_at = Column(DateTime(timezone=True), nullable=True)


class DayClaim(Base):
    """
    One claimed slot on one calendar day, held by a confirmed reservation.

    ``(day, slot)`` is the primary key and ``slot`` ranges over
    ``[0, RESOURCE_CAPACITY_PER_DAY)``, so the table itself refuses more
    confirmed reservations on a day than the resource can serve. The unique
    ``(reservation_id, day)`` pair keeps a redelivered confirmation from taking
    a second slot for the same reservation.
    """

    __tablename__ = "reservation_days"
    __table_args__ = (
        UniqueConstraint("reservation_id", "day", name="uq_reservation_days_reservation_day"),
        {"schema": SCHEMA},
    )

    day = Column(Date, primary_key=True)
    slot = Column(Integer, primary_key=True, autoincrement=False)
    reservation_id = Column(
        Uuid,
        ForeignKey(f"{SCHEMA}.reservations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
