"""SQLAlchemy model for admin-declared unavailable date ranges."""

from sqlalchemy import Column, Date, DateTime, Integer, String
from sqlalchemy.sql import func

from chef_bookings.config import SCHEMA
from chef_bookings.models.base import Base


class BlackoutRange(Base):
    """
    ORM model for a manual blackout.

    Unique on ``start_date`` so repeated admin submissions upsert instead of
    stacking duplicate ranges.
    """

    __tablename__ = "blackout_dates"
    __table_args__ = {"schema": SCHEMA}

    id = Column(Integer, primary_key=True, autoincrement=True)
    start_date = Column(Date, nullable=False, unique=True)
    end_date = Column(Date, nullable=False)
    reason = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
