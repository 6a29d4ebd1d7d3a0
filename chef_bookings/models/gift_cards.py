"""SQLAlchemy model for purchased gift cards."""

import enum

from sqlalchemy import Column, DateTime, Integer, String, Text
from sqlalchemy.sql import func

from chef_bookings.config import SCHEMA
from chef_bookings.models.base import Base


class GiftCardStatus(str, enum.Enum):
    ACTIVE = "active"
    REDEEMED = "redeemed"


class GiftCard(Base):
    """
    ORM model for a gift card minted from a settled payment.

    ``code`` is generated server-side at issuance. ``payment_correlation_id``
    is unique so a redelivered payment notification can never mint a second
    card for the same payment.
    """

    __tablename__ = "gift_cards"
    __table_args__ = {"schema": SCHEMA}

    id = Column(Integer, primary_key=True, autoincrement=True)
    code = Column(String(32), nullable=False, unique=True)
    face_value_original_cents = Column(Integer, nullable=False)
    face_value_remaining_cents = Column(Integer, nullable=False)
    buyer_name = Column(String, nullable=True)
    buyer_email = Column(String, nullable=True)
    recipient_name = Column(String, nullable=True)
    recipient_email = Column(String, nullable=True)
    message = Column(Text, nullable=True)
    status = Column(String(16), nullable=False, default=GiftCardStatus.ACTIVE.value)
    payment_correlation_id = Column(String, nullable=False, unique=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    redeemed_at = Column(DateTime(timezone=True), nullable=True)
