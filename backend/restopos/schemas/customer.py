"""Customer and loyalty schemas."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import EmailStr, Field

from restopos.schemas.pos import CamelModel, OrderResponse


class CustomerCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=255)
    phone: str = Field(..., min_length=1, max_length=50)
    email: Optional[EmailStr] = None
    address: Optional[str] = None
    birthday: Optional[datetime] = None


class CustomerUpdate(CamelModel):
    name: Optional[str] = Field(default=None, max_length=255)
    phone: Optional[str] = Field(default=None, max_length=50)
    email: Optional[EmailStr] = None
    address: Optional[str] = None
    birthday: Optional[datetime] = None


class CustomerResponse(CamelModel):
    id: int
    name: str
    phone: str
    email: Optional[str] = None
    address: Optional[str] = None
    birthday: Optional[datetime] = None
    points: int
    level: str
    created_at: Optional[datetime] = None


class PointsAdjust(CamelModel):
    """Points change. SPENT may be sent as a negative number."""

    points: int
    type: str = "EARNED"
    description: Optional[str] = Field(default=None, max_length=255)
    order_id: Optional[int] = None


class PointTransactionResponse(CamelModel):
    id: int
    type: str
    points: int
    description: Optional[str] = None
    order_id: Optional[int] = None
    created_at: datetime


class BalanceResponse(CamelModel):
    customer_id: int
    balance: int
    level: str


class FavoriteItem(CamelModel):
    menu_item_id: int
    name: Optional[str] = None
    count: int


class CustomerOrderHistory(CamelModel):
    customer: CustomerResponse
    orders: List[OrderResponse]
    total_orders: int
    total_spent: int
    favorite_items: List[FavoriteItem]
