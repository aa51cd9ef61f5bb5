"""POS schemas: tables, menu, cart preview, orders."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Accepts snake_case or camelCase input, serializes camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# ============== TABLES ==============

class TableCreate(CamelModel):
    name: Optional[str] = Field(default=None, max_length=100)
    capacity: int = 4
    status: str = "available"
    location: Optional[str] = Field(default=None, max_length=100)
    description: Optional[str] = None


class TableUpdate(CamelModel):
    name: Optional[str] = Field(default=None, max_length=100)
    capacity: Optional[int] = None
    status: Optional[str] = None
    location: Optional[str] = Field(default=None, max_length=100)
    description: Optional[str] = None
    version: Optional[int] = None


class TableStatusUpdate(CamelModel):
    status: str


class TableResponse(CamelModel):
    id: int
    name: str
    capacity: int
    status: str
    location: Optional[str] = None
    description: Optional[str] = None
    sort_order: int = 0
    version: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class TableDetailResponse(TableResponse):
    active_orders: List["OrderResponse"] = []


class TableSummary(CamelModel):
    total_tables: int
    available: int
    occupied: int
    reserved: int
    occupancy_rate: float


# ============== MENU ==============

class CategoryCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    sort_order: Optional[int] = None


class CategoryResponse(CamelModel):
    id: int
    name: str
    description: Optional[str] = None
    sort_order: int
    is_active: bool


class MenuItemCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=200)
    price: int = Field(..., ge=0)
    description: Optional[str] = None
    category_id: Optional[int] = None
    image_url: Optional[str] = Field(default=None, max_length=500)
    is_available: bool = True


class MenuItemUpdate(CamelModel):
    name: Optional[str] = Field(default=None, max_length=200)
    price: Optional[int] = Field(default=None, ge=0)
    description: Optional[str] = None
    category_id: Optional[int] = None
    image_url: Optional[str] = Field(default=None, max_length=500)
    is_available: Optional[bool] = None
    is_active: Optional[bool] = None


class MenuItemResponse(CamelModel):
    id: int
    name: str
    description: Optional[str] = None
    price: int
    category_id: Optional[int] = None
    image_url: Optional[str] = None
    is_available: bool
    is_active: bool


# ============== CART ==============

class CartLineIn(CamelModel):
    menu_item_id: int = Field(..., alias="menuId")
    quantity: int = 1
    notes: Optional[str] = None


class CartPreviewRequest(CamelModel):
    lines: List[CartLineIn] = Field(default_factory=list, alias="orderItems")


class CartLineOut(CamelModel):
    menu_item_id: int = Field(..., alias="menuId")
    name: str
    quantity: int
    unit_price: int
    subtotal: int
    notes: Optional[str] = None


class CartPreviewResponse(CamelModel):
    lines: List[CartLineOut]
    skipped: List[int]
    total: int


# ============== ORDERS ==============

class OrderLineIn(CamelModel):
    menu_item_id: int = Field(..., alias="menuId")
    quantity: int = 1
    notes: Optional[str] = None


class OrderCreate(CamelModel):
    table_id: int
    items: List[OrderLineIn] = Field(default_factory=list, alias="orderItems")
    customer_id: Optional[int] = None
    notes: Optional[str] = None
    discount: Optional[int] = None
    open_order_id: Optional[int] = None


class OrderAmend(CamelModel):
    items: List[OrderLineIn] = Field(default_factory=list, alias="orderItems")
    version: Optional[int] = None


class OrderUpdate(CamelModel):
    table_id: Optional[int] = None
    notes: Optional[str] = None
    version: Optional[int] = None


class OrderStatusUpdate(CamelModel):
    status: str
    payment_method: str = "CASH"


class OrderItemResponse(CamelModel):
    id: int
    menu_item_id: int
    name: Optional[str] = None
    quantity: int
    unit_price: int
    subtotal: int
    round: int
    notes: Optional[str] = None

    @classmethod
    def from_db(cls, item) -> "OrderItemResponse":
        return cls(
            id=item.id,
            menu_item_id=item.menu_item_id,
            name=item.menu_item.name if item.menu_item else None,
            quantity=item.quantity,
            unit_price=item.unit_price,
            subtotal=item.subtotal,
            round=item.round,
            notes=item.notes,
        )


class PaymentResponse(CamelModel):
    id: int
    method: str
    amount: int
    status: str
    processed_at: Optional[datetime] = None
    received_by: Optional[int] = None


class OrderResponse(CamelModel):
    id: int
    order_number: str
    table_id: int
    customer_id: Optional[int] = None
    user_id: Optional[int] = None
    status: str
    subtotal: int
    tax: int
    discount: int
    total: int
    is_paid: bool
    paid_at: Optional[datetime] = None
    notes: Optional[str] = None
    version: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    items: List[OrderItemResponse] = []
    payments: List[PaymentResponse] = []

    @classmethod
    def from_db(cls, order) -> "OrderResponse":
        return cls(
            id=order.id,
            order_number=order.order_number,
            table_id=order.table_id,
            customer_id=order.customer_id,
            user_id=order.user_id,
            status=order.status,
            subtotal=order.subtotal,
            tax=order.tax,
            discount=order.discount,
            total=order.total,
            is_paid=order.is_paid,
            paid_at=order.paid_at,
            notes=order.notes,
            version=order.version,
            created_at=order.created_at,
            updated_at=order.updated_at,
            items=[OrderItemResponse.from_db(i) for i in order.items],
            payments=[PaymentResponse.model_validate(p) for p in order.payments],
        )


TableDetailResponse.model_rebuild()
