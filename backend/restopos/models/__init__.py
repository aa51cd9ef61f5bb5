"""SQLAlchemy models."""

from restopos.models.user import User
from restopos.models.restaurant import (
    DiningTable,
    Category,
    MenuItem,
    Order,
    OrderItem,
    Payment,
    TableStatus,
    OrderStatus,
    PaymentMethod,
)
from restopos.models.customer import (
    Customer,
    PointTransaction,
    LoyaltyLevel,
    PointType,
)
from restopos.models.inventory import (
    Supplier,
    Ingredient,
    MenuIngredient,
    StockMovement,
    MovementReason,
)
from restopos.models.shift import Shift, ShiftStatus

__all__ = [
    "User",
    "DiningTable",
    "Category",
    "MenuItem",
    "Order",
    "OrderItem",
    "Payment",
    "TableStatus",
    "OrderStatus",
    "PaymentMethod",
    "Customer",
    "PointTransaction",
    "LoyaltyLevel",
    "PointType",
    "Supplier",
    "Ingredient",
    "MenuIngredient",
    "StockMovement",
    "MovementReason",
    "Shift",
    "ShiftStatus",
]
