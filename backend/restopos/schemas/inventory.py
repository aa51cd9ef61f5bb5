"""Inventory schemas."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import EmailStr, Field

from restopos.schemas.pos import CamelModel


# ============== SUPPLIERS ==============

class SupplierCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=255)
    contact_name: Optional[str] = Field(default=None, max_length=255)
    phone: Optional[str] = Field(default=None, max_length=50)
    email: Optional[EmailStr] = None
    address: Optional[str] = None


class SupplierUpdate(CamelModel):
    name: Optional[str] = Field(default=None, max_length=255)
    contact_name: Optional[str] = Field(default=None, max_length=255)
    phone: Optional[str] = Field(default=None, max_length=50)
    email: Optional[EmailStr] = None
    address: Optional[str] = None
    is_active: Optional[bool] = None


class SupplierResponse(CamelModel):
    id: int
    name: str
    contact_name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    is_active: bool


# ============== INGREDIENTS ==============

class IngredientCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=255)
    unit: str = Field(..., min_length=1, max_length=20)
    current_stock: Decimal = Decimal("0")
    min_stock: Decimal = Decimal("0")
    max_stock: Optional[Decimal] = None
    cost_price: int = 0
    supplier_id: Optional[int] = None
    expiry_date: Optional[date] = None


class IngredientUpdate(CamelModel):
    """Stock on hand is changed with adjust-stock, not here."""

    name: Optional[str] = Field(default=None, max_length=255)
    unit: Optional[str] = Field(default=None, max_length=20)
    min_stock: Optional[Decimal] = None
    max_stock: Optional[Decimal] = None
    cost_price: Optional[int] = None
    supplier_id: Optional[int] = None
    expiry_date: Optional[date] = None
    is_active: Optional[bool] = None


class IngredientResponse(CamelModel):
    id: int
    name: str
    unit: str
    current_stock: float
    min_stock: float
    max_stock: Optional[float] = None
    cost_price: int
    supplier_id: Optional[int] = None
    expiry_date: Optional[date] = None
    is_active: bool
    is_low_stock: bool


class StockAdjust(CamelModel):
    """Signed change: positive adds stock, negative removes it."""

    quantity: Decimal
    reason: str = "adjustment"
    notes: Optional[str] = Field(default=None, max_length=255)


# ============== RECIPES ==============

class RecipeLineCreate(CamelModel):
    ingredient_id: int
    quantity: Decimal
    unit: Optional[str] = Field(default=None, max_length=20)


class RecipeLineUpdate(CamelModel):
    quantity: Optional[Decimal] = None
    unit: Optional[str] = Field(default=None, max_length=20)


class RecipeLineResponse(CamelModel):
    id: int
    menu_item_id: int
    ingredient_id: int
    ingredient_name: Optional[str] = None
    quantity: float
    unit: str

    @classmethod
    def from_db(cls, line) -> "RecipeLineResponse":
        return cls(
            id=line.id,
            menu_item_id=line.menu_item_id,
            ingredient_id=line.ingredient_id,
            ingredient_name=line.ingredient.name if line.ingredient else None,
            quantity=line.quantity,
            unit=line.unit,
        )


class CostLine(CamelModel):
    ingredient_id: int
    ingredient: str
    quantity: float
    unit: str
    stock_quantity: float
    stock_unit: str
    cost_price: int
    cost: int


class MenuCostResponse(CamelModel):
    menu_item_id: int
    total_cost: int
    ingredient_count: int
    breakdown: List[CostLine]


# ============== MOVEMENTS ==============

class StockMovementResponse(CamelModel):
    id: int
    ingredient_id: int
    qty_delta: float
    reason: str
    ref_type: Optional[str] = None
    ref_id: Optional[int] = None
    notes: Optional[str] = None
    created_by: Optional[int] = None
    created_at: datetime


class MovementSummary(CamelModel):
    ingredient_id: int
    days: int
    total_in: float
    total_out: float
    net_change: float
    movement_count: int


class InventoryDashboard(CamelModel):
    total_ingredients: int
    low_stock_ingredients: int
    expiring_ingredients: int
    total_suppliers: int
    recent_movements: List[StockMovementResponse]
