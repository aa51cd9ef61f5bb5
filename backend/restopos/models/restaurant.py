"""Restaurant operations models - tables, menu, orders, payments."""

from enum import Enum

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship, validates

from restopos.db.base import Base, TimestampMixin, VersionMixin
from restopos.models.validators import non_negative, one_of, positive


class TableStatus(str, Enum):
    AVAILABLE = "available"
    OCCUPIED = "occupied"
    RESERVED = "reserved"


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"


class PaymentMethod(str, Enum):
    CASH = "CASH"
    CARD = "CARD"
    TRANSFER = "TRANSFER"


TABLE_STATUSES = {s.value for s in TableStatus}
ORDER_STATUSES = {s.value for s in OrderStatus}


class DiningTable(Base, TimestampMixin, VersionMixin):
    """Restaurant table for seating."""
    __tablename__ = "tables"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    capacity = Column(Integer, nullable=False, default=4)
    status = Column(String(20), nullable=False, default=TableStatus.AVAILABLE.value)
    location = Column(String(100), nullable=True)  # Floor 1, Terrace, ...
    description = Column(Text, nullable=True)
    sort_order = Column(Integer, nullable=False, default=0)

    # Relationships
    orders = relationship("Order", back_populates="table")

    @validates("capacity")
    def _validate_capacity(self, key, value):
        return positive(key, value)

    @validates("status")
    def _validate_status(self, key, value):
        return one_of(key, value, TABLE_STATUSES)


class Category(Base):
    """Menu category for organizing items."""
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    sort_order = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)

    # Relationships
    menu_items = relationship("MenuItem", back_populates="category")


class MenuItem(Base, TimestampMixin):
    """Sellable menu item. Prices are whole currency amounts."""
    __tablename__ = "menu_items"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Integer, nullable=False)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=True)
    image_url = Column(String(500), nullable=True)
    is_available = Column(Boolean, nullable=False, default=True)  # in stock today
    is_active = Column(Boolean, nullable=False, default=True)  # listed on the menu

    # Relationships
    category = relationship("Category", back_populates="menu_items")
    recipe = relationship(
        "MenuIngredient", back_populates="menu_item", cascade="all, delete-orphan", order_by="MenuIngredient.id",
    )

    @validates("price")
    def _validate_price(self, key, value):
        return non_negative(key, value)

    @property
    def sellable(self) -> bool:
        return bool(self.is_available and self.is_active)


class Order(Base, TimestampMixin, VersionMixin):
    """A bill tied to a table: open while PENDING, frozen once COMPLETED."""
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    order_number = Column(String(20), nullable=False, unique=True, index=True)
    table_id = Column(Integer, ForeignKey("tables.id"), nullable=False, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)

    status = Column(String(20), nullable=False, default=OrderStatus.PENDING.value, index=True)

    subtotal = Column(Integer, nullable=False, default=0)
    tax = Column(Integer, nullable=False, default=0)
    discount = Column(Integer, nullable=False, default=0)
    total = Column(Integer, nullable=False, default=0)

    is_paid = Column(Boolean, nullable=False, default=False)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    notes = Column(Text, nullable=True)

    # Relationships
    table = relationship("DiningTable", back_populates="orders")
    customer = relationship("Customer")
    items = relationship(
        "OrderItem", back_populates="order", cascade="all, delete-orphan", order_by="OrderItem.id",
    )
    payments = relationship("Payment", back_populates="order", cascade="all, delete-orphan")

    @validates("subtotal", "tax", "discount", "total")
    def _validate_amounts(self, key, value):
        return non_negative(key, value)

    @validates("status")
    def _validate_status(self, key, value):
        return one_of(key, value, ORDER_STATUSES)

    @property
    def is_open(self) -> bool:
        return self.status == OrderStatus.PENDING.value

    @property
    def current_round(self) -> int:
        return max((item.round for item in self.items), default=0)


class OrderItem(Base):
    """A committed line on an order."""
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    menu_item_id = Column(Integer, ForeignKey("menu_items.id"), nullable=False, index=True)

    quantity = Column(Integer, nullable=False, default=1)
    unit_price = Column(Integer, nullable=False)
    subtotal = Column(Integer, nullable=False)
    round = Column(Integer, nullable=False, default=1)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    order = relationship("Order", back_populates="items")
    menu_item = relationship("MenuItem")

    @validates("quantity")
    def _validate_quantity(self, key, value):
        return positive(key, value)

    @validates("unit_price", "subtotal")
    def _validate_amounts(self, key, value):
        return non_negative(key, value)


class Payment(Base):
    """Payment recorded when an order completes."""
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    method = Column(String(20), nullable=False, default=PaymentMethod.CASH.value)
    amount = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False, default="SUCCESS")
    processed_at = Column(DateTime(timezone=True), nullable=True)
    received_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    # Relationships
    order = relationship("Order", back_populates="payments")

    @validates("amount")
    def _validate_amount(self, key, value):
        return non_negative(key, value)
