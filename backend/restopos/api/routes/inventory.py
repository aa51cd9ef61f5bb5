"""Inventory routes: ingredients, suppliers, recipes and the stock ledger."""

import logging
from typing import Optional

from fastapi import APIRouter, Query, Request, status

from restopos.core.rate_limit import limiter
from restopos.core.rbac import CanManageInventory, CanViewInventory
from restopos.core.responses import list_response
from restopos.core.validators import PositiveIntId
from restopos.db.session import DbSession
from restopos.schemas.inventory import (
    IngredientCreate,
    IngredientResponse,
    IngredientUpdate,
    InventoryDashboard,
    MenuCostResponse,
    MovementSummary,
    RecipeLineCreate,
    RecipeLineResponse,
    RecipeLineUpdate,
    StockAdjust,
    StockMovementResponse,
    SupplierCreate,
    SupplierResponse,
    SupplierUpdate,
)
from restopos.services.inventory_service import InventoryService

logger = logging.getLogger(__name__)

router = APIRouter()


# ============== DASHBOARD ==============

@router.get("/dashboard", response_model=InventoryDashboard)
@limiter.limit("30/minute")
def get_inventory_dashboard(request: Request, db: DbSession, current_user: CanViewInventory):
    data = InventoryService(db).dashboard()
    data["recent_movements"] = [StockMovementResponse.model_validate(m) for m in data["recent_movements"]]
    return data


@router.get("/low-stock")
@limiter.limit("60/minute")
def list_low_stock(request: Request, db: DbSession, current_user: CanViewInventory):
    """Active ingredients at or below their minimum, emptiest first."""
    items = InventoryService(db).list_ingredients(low_stock_only=True)
    return list_response([IngredientResponse.model_validate(i) for i in items])


@router.get("/expiring")
@limiter.limit("60/minute")
def list_expiring(
    request: Request,
    db: DbSession,
    current_user: CanViewInventory,
    days: Optional[int] = Query(None, ge=0, le=365),
):
    items = InventoryService(db).expiring(days)
    return list_response([IngredientResponse.model_validate(i) for i in items])


# ============== INGREDIENTS ==============

@router.get("/ingredients")
@limiter.limit("60/minute")
def list_ingredients(request: Request, db: DbSession, current_user: CanViewInventory):
    items = InventoryService(db).list_ingredients()
    return list_response([IngredientResponse.model_validate(i) for i in items])


@router.post("/ingredients", response_model=IngredientResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
def create_ingredient(request: Request, body: IngredientCreate, db: DbSession, current_user: CanManageInventory):
    return InventoryService(db).create_ingredient(user_id=current_user.user_id, **body.model_dump())


@router.get("/ingredients/{ingredient_id}", response_model=IngredientResponse)
@limiter.limit("60/minute")
def get_ingredient(request: Request, ingredient_id: PositiveIntId, db: DbSession, current_user: CanViewInventory):
    return InventoryService(db).get_ingredient(ingredient_id)


@router.patch("/ingredients/{ingredient_id}", response_model=IngredientResponse)
@limiter.limit("30/minute")
def update_ingredient(
    request: Request,
    ingredient_id: PositiveIntId,
    body: IngredientUpdate,
    db: DbSession,
    current_user: CanManageInventory,
):
    return InventoryService(db).update_ingredient(ingredient_id, body.model_dump(exclude_unset=True))


@router.delete("/ingredients/{ingredient_id}")
@limiter.limit("30/minute")
def delete_ingredient(
    request: Request, ingredient_id: PositiveIntId, db: DbSession, current_user: CanManageInventory,
):
    InventoryService(db).delete_ingredient(ingredient_id)
    return {"status": "deleted", "ingredient_id": ingredient_id}


@router.post("/ingredients/{ingredient_id}/adjust-stock", response_model=IngredientResponse)
@limiter.limit("30/minute")
def adjust_stock(
    request: Request,
    ingredient_id: PositiveIntId,
    body: StockAdjust,
    db: DbSession,
    current_user: CanManageInventory,
):
    """Book a purchase, waste or manual correction."""
    return InventoryService(db).adjust_stock(
        ingredient_id,
        body.quantity,
        notes=body.notes,
        reason=body.reason.lower(),
        user_id=current_user.user_id,
    )


# ============== SUPPLIERS ==============

@router.get("/suppliers")
@limiter.limit("60/minute")
def list_suppliers(request: Request, db: DbSession, current_user: CanViewInventory):
    suppliers = InventoryService(db).list_suppliers()
    return list_response([SupplierResponse.model_validate(s) for s in suppliers])


@router.post("/suppliers", response_model=SupplierResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
def create_supplier(request: Request, body: SupplierCreate, db: DbSession, current_user: CanManageInventory):
    return InventoryService(db).create_supplier(**body.model_dump())


@router.get("/suppliers/{supplier_id}", response_model=SupplierResponse)
@limiter.limit("60/minute")
def get_supplier(request: Request, supplier_id: PositiveIntId, db: DbSession, current_user: CanViewInventory):
    return InventoryService(db).get_supplier(supplier_id)


@router.patch("/suppliers/{supplier_id}", response_model=SupplierResponse)
@limiter.limit("30/minute")
def update_supplier(
    request: Request,
    supplier_id: PositiveIntId,
    body: SupplierUpdate,
    db: DbSession,
    current_user: CanManageInventory,
):
    return InventoryService(db).update_supplier(supplier_id, body.model_dump(exclude_unset=True))


@router.delete("/suppliers/{supplier_id}")
@limiter.limit("30/minute")
def delete_supplier(request: Request, supplier_id: PositiveIntId, db: DbSession, current_user: CanManageInventory):
    InventoryService(db).delete_supplier(supplier_id)
    return {"status": "deleted", "supplier_id": supplier_id}


# ============== STOCK MOVEMENTS ==============

@router.get("/stock-movements")
@limiter.limit("60/minute")
def list_stock_movements(
    request: Request,
    db: DbSession,
    current_user: CanViewInventory,
    ingredient_id: Optional[int] = Query(None, gt=0),
    reason: Optional[str] = None,
    limit: Optional[int] = Query(None, ge=1, le=500),
):
    """Ledger entries, newest first."""
    movements = InventoryService(db).list_movements(ingredient_id=ingredient_id, reason=reason, limit=limit)
    return list_response([StockMovementResponse.model_validate(m) for m in movements])


@router.get("/stock-movements/summary/{ingredient_id}", response_model=MovementSummary)
@limiter.limit("60/minute")
def get_movement_summary(
    request: Request,
    ingredient_id: PositiveIntId,
    db: DbSession,
    current_user: CanViewInventory,
    days: int = Query(30, ge=1, le=365),
):
    return InventoryService(db).movement_summary(ingredient_id, days=days)


# ============== RECIPES ==============

@router.get("/recipes/{menu_item_id}")
@limiter.limit("60/minute")
def get_recipe(request: Request, menu_item_id: PositiveIntId, db: DbSession, current_user: CanViewInventory):
    lines = InventoryService(db).recipe_for(menu_item_id)
    return list_response([RecipeLineResponse.from_db(line) for line in lines])


@router.post("/recipes/{menu_item_id}", response_model=RecipeLineResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
def add_recipe_line(
    request: Request,
    menu_item_id: PositiveIntId,
    body: RecipeLineCreate,
    db: DbSession,
    current_user: CanManageInventory,
):
    line = InventoryService(db).add_recipe_line(menu_item_id, body.ingredient_id, body.quantity, body.unit)
    return RecipeLineResponse.from_db(line)


@router.get("/recipes/{menu_item_id}/cost", response_model=MenuCostResponse)
@limiter.limit("60/minute")
def get_menu_cost(request: Request, menu_item_id: PositiveIntId, db: DbSession, current_user: CanViewInventory):
    """Ingredient cost of one portion."""
    return InventoryService(db).menu_cost(menu_item_id)


@router.patch("/recipe-lines/{line_id}", response_model=RecipeLineResponse)
@limiter.limit("30/minute")
def update_recipe_line(
    request: Request,
    line_id: PositiveIntId,
    body: RecipeLineUpdate,
    db: DbSession,
    current_user: CanManageInventory,
):
    line = InventoryService(db).update_recipe_line(line_id, quantity=body.quantity, unit=body.unit)
    return RecipeLineResponse.from_db(line)


@router.delete("/recipe-lines/{line_id}")
@limiter.limit("30/minute")
def delete_recipe_line(request: Request, line_id: PositiveIntId, db: DbSession, current_user: CanManageInventory):
    InventoryService(db).remove_recipe_line(line_id)
    return {"status": "deleted", "line_id": line_id}
