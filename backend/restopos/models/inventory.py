"""Inventory models: suppliers, ingredients, menu recipes and the stock ledger."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Integer, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from restopos.db.base import Base, TimestampMixin, utcnow
from restopos.models.validators import non_negative, one_of, positive


class MovementReason(str, Enum):
    """Reasons for stock movements."""

    SALE = "sale"  # Consumed by an order line
    REFUND = "refund"  # Returned when an open order line is voided
    PURCHASE = "purchase"  # Goods received
    WASTE = "waste"  # Spoilage, breakage
    ADJUSTMENT = "adjustment"  # Manual correction


MOVEMENT_REASONS = {r.value for r in MovementReason}


class Supplier(Base, TimestampMixin):
    """Vendor that ingredients are bought from."""

    __tablename__ = "suppliers"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    contact_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    ingredients: Mapped[List["Ingredient"]] = relationship(back_populates="supplier")


class Ingredient(Base, TimestampMixin):
    """Stocked ingredient. ``current_stock`` is kept in the ingredient's own unit."""

    __tablename__ = "ingredients"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    unit: Mapped[str] = mapped_column(String(20), nullable=False)
    current_stock: Mapped[Decimal] = mapped_column(Numeric(12, 3), default=0, nullable=False)
    min_stock: Mapped[Decimal] = mapped_column(Numeric(12, 3), default=0, nullable=False)
    max_stock: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 3), nullable=True)
    cost_price: Mapped[int] = mapped_column(Integer, default=0, nullable=False)  # per stock unit
    supplier_id: Mapped[Optional[int]] = mapped_column(ForeignKey("suppliers.id"), nullable=True)
    expiry_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    supplier: Mapped[Optional[Supplier]] = relationship(back_populates="ingredients")
    recipe_lines: Mapped[List["MenuIngredient"]] = relationship(back_populates="ingredient")

    @validates("current_stock", "min_stock", "max_stock", "cost_price")
    def _validate_amounts(self, key, value):
        return non_negative(key, value)

    @property
    def is_low_stock(self) -> bool:
        return (self.current_stock or 0) <= (self.min_stock or 0)


class MenuIngredient(Base, TimestampMixin):
    """One recipe line: how much of an ingredient a single menu item uses."""

    __tablename__ = "menu_ingredients"
    __table_args__ = (
        UniqueConstraint("menu_item_id", "ingredient_id", name="uq_menu_ingredient"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    menu_item_id: Mapped[int] = mapped_column(
        ForeignKey("menu_items.id", ondelete="CASCADE"), nullable=False, index=True
    )
    ingredient_id: Mapped[int] = mapped_column(ForeignKey("ingredients.id"), nullable=False, index=True)
    quantity: Mapped[Decimal] = mapped_column(Numeric(12, 3), nullable=False)
    unit: Mapped[str] = mapped_column(String(20), nullable=False)

    menu_item = relationship("MenuItem", back_populates="recipe")
    ingredient: Mapped[Ingredient] = relationship(back_populates="recipe_lines")

    @validates("quantity")
    def _validate_quantity(self, key, value):
        return positive(key, value)


class StockMovement(Base):
    """Ledger of all stock changes. ``qty_delta`` is signed, in the ingredient's unit."""

    __tablename__ = "stock_movements"

    id: Mapped[int] = mapped_column(primary_key=True)
    ingredient_id: Mapped[int] = mapped_column(
        ForeignKey("ingredients.id", ondelete="CASCADE"), nullable=False, index=True
    )
    qty_delta: Mapped[Decimal] = mapped_column(Numeric(12, 3), nullable=False)
    reason: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    ref_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)  # order, manual
    ref_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    created_by: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False, index=True
    )

    ingredient: Mapped[Ingredient] = relationship()

    @validates("reason")
    def _validate_reason(self, key, value):
        return one_of(key, value, MOVEMENT_REASONS)
