"""Customer and loyalty ledger models."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import List, Optional

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from restopos.db.base import Base, SoftDeleteMixin, TimestampMixin, utcnow
from restopos.models.validators import non_negative, one_of, positive


class LoyaltyLevel(str, Enum):
    BRONZE = "BRONZE"
    SILVER = "SILVER"
    GOLD = "GOLD"


class PointType(str, Enum):
    EARNED = "EARNED"
    SPENT = "SPENT"


class Customer(Base, TimestampMixin, SoftDeleteMixin):
    """Customer enrolled in the loyalty program."""

    __tablename__ = "customers"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    birthday: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # Cached ledger balance; the point_transactions table is authoritative
    points: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    level: Mapped[str] = mapped_column(String(20), default=LoyaltyLevel.BRONZE.value, nullable=False)

    point_transactions: Mapped[List["PointTransaction"]] = relationship(
        back_populates="customer",
        cascade="all, delete-orphan",
        order_by="PointTransaction.id.desc()",
    )

    @validates("points")
    def _validate_points(self, key, value):
        return non_negative(key, value)

    @validates("level")
    def _validate_level(self, key, value):
        return one_of(key, value, {lvl.value for lvl in LoyaltyLevel})


class PointTransaction(Base):
    """One ledger entry. ``points`` is always a positive magnitude."""

    __tablename__ = "point_transactions"

    id: Mapped[int] = mapped_column(primary_key=True)
    customer_id: Mapped[int] = mapped_column(ForeignKey("customers.id"), nullable=False, index=True)
    type: Mapped[str] = mapped_column(String(10), nullable=False)
    points: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    order_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("orders.id", ondelete="SET NULL"), nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    customer: Mapped[Customer] = relationship(back_populates="point_transactions")

    @validates("points")
    def _validate_points(self, key, value):
        return positive(key, value)

    @validates("type")
    def _validate_type(self, key, value):
        return one_of(key, value, {t.value for t in PointType})
