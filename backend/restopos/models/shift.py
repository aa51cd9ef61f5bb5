"""Cashier shift model."""

from enum import Enum

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship, validates

from restopos.db.base import Base, TimestampMixin
from restopos.models.validators import non_negative, one_of


class ShiftStatus(str, Enum):
    ACTIVE = "ACTIVE"
    CLOSED = "CLOSED"


SHIFT_STATUSES = {s.value for s in ShiftStatus}


class Shift(Base, TimestampMixin):
    """A staff member's till session, from opening float to cash count."""
    __tablename__ = "shifts"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    status = Column(String(20), nullable=False, default=ShiftStatus.ACTIVE.value, index=True)

    # Opening
    cash_start = Column(Integer, nullable=False)
    start_time = Column(DateTime(timezone=True), nullable=False)

    # Closing
    cash_end = Column(Integer, nullable=True)
    end_time = Column(DateTime(timezone=True), nullable=True)

    # Calculated at close
    cash_sales = Column(Integer, nullable=True)
    expected_cash = Column(Integer, nullable=True)
    difference = Column(Integer, nullable=True)  # counted minus expected

    notes = Column(Text, nullable=True)

    user = relationship("User")

    @validates("cash_start", "cash_end")
    def _validate_cash(self, key, value):
        return non_negative(key, value)

    @validates("status")
    def _validate_status(self, key, value):
        return one_of(key, value, SHIFT_STATUSES)
