"""Inventory: ingredients, suppliers, menu recipes and stock movements.

Selling a menu item consumes the ingredients on its recipe.

Flow:
1. An order round is committed (create or amend)
2. For each menu item on the round:
   a. Look up its recipe lines
   b. Convert each line's quantity into the ingredient's stock unit (g→kg, ml→l)
3. Validate every ingredient has enough stock for the whole round
4. Deduct and write one StockMovement per ingredient

Voiding an open order line (removing it, deleting the open order, force
deleting its menu item) returns the stock with REFUND movements. Deduction
and refund never commit: they run inside the order workflow's transaction,
so an order and the stock it consumed are saved together or not at all.
"""

import logging
from collections import OrderedDict
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import case, func

from restopos.core.config import settings
from restopos.core.exceptions import ConflictError, InsufficientStockError, NotFoundError, ValidationError
from restopos.db.base import utcnow
from restopos.models.inventory import Ingredient, MenuIngredient, MovementReason, StockMovement, Supplier
from restopos.models.restaurant import MenuItem
from restopos.services.base import BaseService

logger = logging.getLogger(__name__)

QUANTUM = Decimal("0.001")

# Unit conversion factors (convert TO base unit)
UNIT_CONVERSIONS = {
    # Weight: base unit = g
    "kg": Decimal("1000"),
    "g": Decimal("1"),
    "mg": Decimal("0.001"),
    # Volume: base unit = ml
    "l": Decimal("1000"),
    "ml": Decimal("1"),
    "cl": Decimal("10"),
    "dl": Decimal("100"),
    # Count: base unit = pcs
    "pcs": Decimal("1"),
    "ea": Decimal("1"),
    "unit": Decimal("1"),
    "dozen": Decimal("12"),
}

WEIGHT_UNITS = {"kg", "g", "mg"}
VOLUME_UNITS = {"l", "ml", "cl", "dl"}

SUPPLIER_FIELDS = {"name", "contact_name", "phone", "email", "address", "is_active"}
INGREDIENT_FIELDS = {
    "name", "unit", "min_stock", "max_stock", "cost_price", "supplier_id", "expiry_date", "is_active",
}
MANUAL_REASONS = {MovementReason.ADJUSTMENT.value, MovementReason.PURCHASE.value, MovementReason.WASTE.value}


def to_quantity(value: Any) -> Decimal:
    """Quantities are kept to three decimals."""
    return Decimal(str(value)).quantize(QUANTUM)


def unit_type(unit: str) -> str:
    """Get the type of unit (weight, volume, count)."""
    unit = unit.lower().strip()
    if unit in WEIGHT_UNITS:
        return "weight"
    if unit in VOLUME_UNITS:
        return "volume"
    return "count"


def convert_units(qty: Decimal, from_unit: str, to_unit: str) -> Optional[Decimal]:
    """Convert quantity between units. Returns None if incompatible."""
    from_unit = from_unit.lower().strip()
    to_unit = to_unit.lower().strip()
    if from_unit == to_unit:
        return qty
    if unit_type(from_unit) != unit_type(to_unit):
        return None
    # Unknown count units (bunch, clove, ...) convert one to one
    from_factor = UNIT_CONVERSIONS.get(from_unit, Decimal("1"))
    to_factor = UNIT_CONVERSIONS.get(to_unit, Decimal("1"))
    return (qty * from_factor / to_factor).quantize(QUANTUM)


class InventoryService(BaseService):
    """Stock on hand for ingredients and the recipes that consume it."""

    # ========== SUPPLIERS ==========

    def list_suppliers(self) -> List[Supplier]:
        return (
            self.db.query(Supplier)
            .filter(Supplier.is_active.is_(True))
            .order_by(Supplier.name.asc())
            .all()
        )

    def get_supplier(self, supplier_id: int) -> Supplier:
        supplier = self.db.get(Supplier, supplier_id)
        if not supplier:
            raise NotFoundError("Supplier", supplier_id)
        return supplier

    def create_supplier(self, **fields: Any) -> Supplier:
        data = {k: v for k, v in fields.items() if k in SUPPLIER_FIELDS and v is not None}
        if not data.get("name") or not data["name"].strip():
            raise ValidationError("Supplier name cannot be empty")
        data["name"] = data["name"].strip()
        supplier = Supplier(**data)
        with self.transaction():
            self.db.add(supplier)
        self.db.refresh(supplier)
        logger.info(f"Created supplier {supplier.id} ({supplier.name})")
        return supplier

    def update_supplier(self, supplier_id: int, fields: Dict[str, Any]) -> Supplier:
        changes = {k: v for k, v in fields.items() if k in SUPPLIER_FIELDS}
        if "name" in changes and (not changes["name"] or not changes["name"].strip()):
            raise ValidationError("Supplier name cannot be empty")
        if "is_active" in changes and changes["is_active"] is None:
            raise ValidationError("Supplier is_active cannot be null")
        with self.transaction():
            supplier = self.get_supplier(supplier_id)
            for key, value in changes.items():
                setattr(supplier, key, value.strip() if key == "name" else value)
        self.db.refresh(supplier)
        return supplier

    def delete_supplier(self, supplier_id: int) -> None:
        """Deactivate a supplier that no active ingredient is bought from."""
        with self.transaction():
            supplier = self.get_supplier(supplier_id)
            in_use = (
                self.db.query(Ingredient)
                .filter(Ingredient.supplier_id == supplier_id, Ingredient.is_active.is_(True))
                .count()
            )
            if in_use:
                raise ConflictError(f"Cannot delete supplier: {in_use} active ingredients use it")
            supplier.is_active = False
        logger.info(f"Deactivated supplier {supplier_id}")

    # ========== INGREDIENTS ==========

    def list_ingredients(self, low_stock_only: bool = False) -> List[Ingredient]:
        query = self.db.query(Ingredient).filter(Ingredient.is_active.is_(True))
        if low_stock_only:
            query = query.filter(Ingredient.current_stock <= Ingredient.min_stock)
            return query.order_by(Ingredient.current_stock.asc(), Ingredient.name.asc()).all()
        return query.order_by(Ingredient.name.asc()).all()

    def get_ingredient(self, ingredient_id: int, lock: bool = False) -> Ingredient:
        query = self.db.query(Ingredient).filter(Ingredient.id == ingredient_id)
        if lock:
            query = query.with_for_update()
        ingredient = query.first()
        if not ingredient:
            raise NotFoundError("Ingredient", ingredient_id)
        return ingredient

    def _check_ingredient_fields(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        for key in ("name", "unit"):
            if key in fields and (not fields[key] or not str(fields[key]).strip()):
                raise ValidationError(f"Ingredient {key} cannot be empty")
        for key in ("min_stock", "cost_price", "is_active"):
            if key in fields and fields[key] is None:
                raise ValidationError(f"Ingredient {key} cannot be null")
        for key in ("min_stock", "max_stock"):
            if fields.get(key) is not None:
                fields[key] = to_quantity(fields[key])
                if fields[key] < 0:
                    raise ValidationError(f"Ingredient {key} cannot be negative")
        if fields.get("cost_price") is not None and fields["cost_price"] < 0:
            raise ValidationError("Ingredient cost_price cannot be negative")
        if fields.get("supplier_id") is not None:
            self.get_supplier(fields["supplier_id"])
        for key in ("name", "unit"):
            if fields.get(key):
                fields[key] = fields[key].strip()
        return fields

    def create_ingredient(self, current_stock: Any = 0, user_id: Optional[int] = None, **fields: Any) -> Ingredient:
        """Create an ingredient. Opening stock is booked as a PURCHASE movement."""
        data = {k: v for k, v in fields.items() if k in INGREDIENT_FIELDS and v is not None}
        if "name" not in data or "unit" not in data:
            raise ValidationError("Ingredient requires a name and a unit")
        data = self._check_ingredient_fields(data)
        opening = to_quantity(current_stock or 0)
        if opening < 0:
            raise ValidationError("Opening stock cannot be negative")

        ingredient = Ingredient(**data, current_stock=opening)
        with self.transaction():
            self.db.add(ingredient)
            self.db.flush()
            if opening > 0:
                self.db.add(StockMovement(
                    ingredient_id=ingredient.id,
                    qty_delta=opening,
                    reason=MovementReason.PURCHASE.value,
                    ref_type="manual",
                    notes="Opening stock",
                    created_by=user_id,
                ))
        self.db.refresh(ingredient)
        logger.info(f"Created ingredient {ingredient.id} ({ingredient.name}) with {opening} {ingredient.unit}")
        return ingredient

    def update_ingredient(self, ingredient_id: int, fields: Dict[str, Any]) -> Ingredient:
        """Partial update. Stock levels change only through ``adjust_stock``."""
        changes = self._check_ingredient_fields({k: v for k, v in fields.items() if k in INGREDIENT_FIELDS})
        with self.transaction():
            ingredient = self.get_ingredient(ingredient_id)
            new_unit = changes.get("unit")
            if new_unit and new_unit.lower() != ingredient.unit.lower():
                for line in ingredient.recipe_lines:
                    if convert_units(line.quantity, line.unit, new_unit) is None:
                        raise ValidationError(
                            f"Unit {new_unit} is incompatible with recipe line {line.id} ({line.unit})"
                        )
            for key, value in changes.items():
                setattr(ingredient, key, value)
        self.db.refresh(ingredient)
        return ingredient

    def delete_ingredient(self, ingredient_id: int) -> None:
        """Deactivate an ingredient no recipe uses."""
        with self.transaction():
            ingredient = self.get_ingredient(ingredient_id)
            if ingredient.recipe_lines:
                raise ConflictError(
                    f"Cannot delete ingredient that is used in {len(ingredient.recipe_lines)} menu items"
                )
            ingredient.is_active = False
        logger.info(f"Deactivated ingredient {ingredient_id}")

    def adjust_stock(
        self,
        ingredient_id: int,
        delta: Any,
        notes: Optional[str] = None,
        reason: str = MovementReason.ADJUSTMENT.value,
        user_id: Optional[int] = None,
    ) -> Ingredient:
        """Book a manual stock change: positive adds, negative removes."""
        delta = to_quantity(delta)
        if delta == 0:
            raise ValidationError("Stock adjustment must be non-zero")
        if reason not in MANUAL_REASONS:
            raise ValidationError(f"Invalid adjustment reason: {reason}")
        if reason == MovementReason.PURCHASE.value and delta < 0:
            raise ValidationError("A purchase must add stock")
        if reason == MovementReason.WASTE.value and delta > 0:
            raise ValidationError("Waste must remove stock")

        with self.transaction():
            ingredient = self.get_ingredient(ingredient_id, lock=True)
            new_stock = to_quantity(ingredient.current_stock) + delta
            if new_stock < 0:
                raise InsufficientStockError(ingredient.name, -delta, ingredient.current_stock, ingredient.unit)
            ingredient.current_stock = new_stock
            self.db.add(StockMovement(
                ingredient_id=ingredient.id,
                qty_delta=delta,
                reason=reason,
                ref_type="manual",
                notes=notes or "Manual adjustment",
                created_by=user_id,
            ))
        self.db.refresh(ingredient)
        logger.info(f"Stock {reason} for {ingredient.name}: {delta:+} -> {ingredient.current_stock} {ingredient.unit}")
        return ingredient

    # ========== RECIPES ==========

    def recipe_for(self, menu_item_id: int) -> List[MenuIngredient]:
        if self.db.get(MenuItem, menu_item_id) is None:
            raise NotFoundError("Menu item", menu_item_id)
        return (
            self.db.query(MenuIngredient)
            .filter(MenuIngredient.menu_item_id == menu_item_id)
            .order_by(MenuIngredient.id.asc())
            .all()
        )

    def get_recipe_line(self, line_id: int) -> MenuIngredient:
        line = self.db.get(MenuIngredient, line_id)
        if not line:
            raise NotFoundError("Recipe line", line_id)
        return line

    @staticmethod
    def _check_recipe_quantity(quantity: Any, unit: str, ingredient: Ingredient) -> Tuple[Decimal, str]:
        if quantity is None or to_quantity(quantity) <= 0:
            raise ValidationError("Recipe quantity must be positive")
        if not unit or not unit.strip():
            raise ValidationError("Recipe unit cannot be empty")
        unit = unit.strip()
        if convert_units(Decimal("1"), unit, ingredient.unit) is None:
            raise ValidationError(f"Cannot convert {unit} to {ingredient.unit} for '{ingredient.name}'")
        return to_quantity(quantity), unit

    def add_recipe_line(
        self, menu_item_id: int, ingredient_id: int, quantity: Any, unit: Optional[str] = None,
    ) -> MenuIngredient:
        """Attach an ingredient to a menu item. ``unit`` defaults to the ingredient's."""
        if self.db.get(MenuItem, menu_item_id) is None:
            raise NotFoundError("Menu item", menu_item_id)
        ingredient = self.get_ingredient(ingredient_id)
        if not ingredient.is_active:
            raise ValidationError(f"Ingredient is inactive: {ingredient.name}")
        quantity, unit = self._check_recipe_quantity(quantity, unit or ingredient.unit, ingredient)

        existing = (
            self.db.query(MenuIngredient)
            .filter(MenuIngredient.menu_item_id == menu_item_id, MenuIngredient.ingredient_id == ingredient_id)
            .first()
        )
        if existing:
            raise ConflictError(f"{ingredient.name} is already on this menu item's recipe")

        line = MenuIngredient(menu_item_id=menu_item_id, ingredient_id=ingredient_id, quantity=quantity, unit=unit)
        with self.transaction():
            self.db.add(line)
        self.db.refresh(line)
        return line

    def update_recipe_line(self, line_id: int, quantity: Any = None, unit: Optional[str] = None) -> MenuIngredient:
        with self.transaction():
            line = self.get_recipe_line(line_id)
            new_quantity, new_unit = self._check_recipe_quantity(
                line.quantity if quantity is None else quantity,
                line.unit if unit is None else unit,
                line.ingredient,
            )
            line.quantity = new_quantity
            line.unit = new_unit
        self.db.refresh(line)
        return line

    def remove_recipe_line(self, line_id: int) -> None:
        with self.transaction():
            self.db.delete(self.get_recipe_line(line_id))

    def menu_cost(self, menu_item_id: int) -> Dict[str, Any]:
        """Ingredient cost of one portion, using each ingredient's cost price."""
        breakdown = []
        total = Decimal("0")
        for line in self.recipe_for(menu_item_id):
            ingredient = line.ingredient
            qty = convert_units(to_quantity(line.quantity), line.unit, ingredient.unit)
            cost = qty * ingredient.cost_price
            total += cost
            breakdown.append({
                "ingredient_id": ingredient.id,
                "ingredient": ingredient.name,
                "quantity": float(line.quantity),
                "unit": line.unit,
                "stock_quantity": float(qty),
                "stock_unit": ingredient.unit,
                "cost_price": ingredient.cost_price,
                "cost": int(cost.quantize(Decimal("1"))),
            })
        return {
            "menu_item_id": menu_item_id,
            "total_cost": int(total.quantize(Decimal("1"))),
            "ingredient_count": len(breakdown),
            "breakdown": breakdown,
        }

    # ========== ORDER STOCK (no commit) ==========

    def _requirements(self, lines: Iterable[Tuple[MenuItem, int]]) -> "OrderedDict[int, Tuple[Decimal, List[str]]]":
        """Stock needed per ingredient, in stock units, for ``(menu_item, quantity)`` pairs."""
        needed: "OrderedDict[int, Tuple[Decimal, List[str]]]" = OrderedDict()
        for menu_item, quantity in lines:
            for recipe_line in menu_item.recipe:
                ingredient = recipe_line.ingredient
                qty = convert_units(to_quantity(recipe_line.quantity) * quantity, recipe_line.unit, ingredient.unit)
                if qty is None:
                    raise ValidationError(
                        f"Cannot convert {recipe_line.unit} to {ingredient.unit} for '{ingredient.name}'"
                    )
                total, items = needed.get(ingredient.id, (Decimal("0"), []))
                needed[ingredient.id] = (total + qty, items + [f"{menu_item.name} x{quantity}"])
        return needed

    def deduct_for_lines(
        self,
        lines: Iterable[Tuple[MenuItem, int]],
        order_id: Optional[int] = None,
        user_id: Optional[int] = None,
    ) -> List[StockMovement]:
        """Consume stock for sold lines. All ingredients are checked before any is touched."""
        needed = self._requirements(lines)
        locked = {i: self.get_ingredient(i, lock=True) for i in sorted(needed)}

        for ingredient_id, (qty, _) in needed.items():
            ingredient = locked[ingredient_id]
            if to_quantity(ingredient.current_stock) < qty:
                logger.warning(
                    f"Insufficient stock for {ingredient.name}: need {qty}, have {ingredient.current_stock}"
                )
                raise InsufficientStockError(ingredient.name, qty, ingredient.current_stock, ingredient.unit)

        movements = []
        for ingredient_id, (qty, items) in needed.items():
            ingredient = locked[ingredient_id]
            ingredient.current_stock = to_quantity(ingredient.current_stock) - qty
            movement = StockMovement(
                ingredient_id=ingredient_id,
                qty_delta=-qty,
                reason=MovementReason.SALE.value,
                ref_type="order",
                ref_id=order_id,
                notes=f"Sale: {', '.join(items)}"[:500],
                created_by=user_id,
            )
            self.db.add(movement)
            movements.append(movement)
        return movements

    def refund_for_lines(
        self,
        lines: Iterable[Tuple[MenuItem, int]],
        order_id: Optional[int] = None,
        user_id: Optional[int] = None,
    ) -> List[StockMovement]:
        """Return stock for voided lines, using the menu item's current recipe."""
        needed = self._requirements(lines)
        movements = []
        for ingredient_id in sorted(needed):
            qty, items = needed[ingredient_id]
            ingredient = self.get_ingredient(ingredient_id, lock=True)
            ingredient.current_stock = to_quantity(ingredient.current_stock) + qty
            movement = StockMovement(
                ingredient_id=ingredient_id,
                qty_delta=qty,
                reason=MovementReason.REFUND.value,
                ref_type="order",
                ref_id=order_id,
                notes=f"Refund: {', '.join(items)}"[:500],
                created_by=user_id,
            )
            self.db.add(movement)
            movements.append(movement)
        return movements

    def refund_order_items(self, items, order_id: Optional[int] = None) -> List[StockMovement]:
        """Refund committed order lines."""
        return self.refund_for_lines([(item.menu_item, item.quantity) for item in items], order_id=order_id)

    # ========== MOVEMENTS AND DASHBOARD ==========

    def list_movements(
        self,
        ingredient_id: Optional[int] = None,
        reason: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[StockMovement]:
        """Newest first."""
        query = self.db.query(StockMovement)
        if ingredient_id is not None:
            query = query.filter(StockMovement.ingredient_id == ingredient_id)
        if reason:
            if reason not in {r.value for r in MovementReason}:
                raise ValidationError(f"Invalid movement reason: {reason}")
            query = query.filter(StockMovement.reason == reason)
        return (
            query.order_by(StockMovement.created_at.desc(), StockMovement.id.desc())
            .limit(limit or settings.inventory_movement_page_size)
            .all()
        )

    def movement_summary(self, ingredient_id: int, days: int = 30) -> Dict[str, Any]:
        """Stock in, stock out and net change over the last ``days`` days."""
        self.get_ingredient(ingredient_id)
        since = utcnow() - timedelta(days=days)
        total_in, total_out, count = (
            self.db.query(
                func.coalesce(func.sum(case((StockMovement.qty_delta > 0, StockMovement.qty_delta), else_=0)), 0),
                func.coalesce(func.sum(case((StockMovement.qty_delta < 0, -StockMovement.qty_delta), else_=0)), 0),
                func.count(StockMovement.id),
            )
            .filter(StockMovement.ingredient_id == ingredient_id, StockMovement.created_at >= since)
            .one()
        )
        total_in, total_out = to_quantity(total_in), to_quantity(total_out)
        return {
            "ingredient_id": ingredient_id,
            "days": days,
            "total_in": float(total_in),
            "total_out": float(total_out),
            "net_change": float(total_in - total_out),
            "movement_count": count,
        }

    def expiring(self, days: Optional[int] = None) -> List[Ingredient]:
        days = settings.inventory_expiry_warning_days if days is None else days
        cutoff = date.today() + timedelta(days=days)
        return (
            self.db.query(Ingredient)
            .filter(
                Ingredient.is_active.is_(True),
                Ingredient.expiry_date.isnot(None),
                Ingredient.expiry_date <= cutoff,
            )
            .order_by(Ingredient.expiry_date.asc())
            .all()
        )

    def dashboard(self) -> Dict[str, Any]:
        active = self.db.query(Ingredient).filter(Ingredient.is_active.is_(True))
        return {
            "total_ingredients": active.count(),
            "low_stock_ingredients": active.filter(Ingredient.current_stock <= Ingredient.min_stock).count(),
            "expiring_ingredients": len(self.expiring()),
            "total_suppliers": self.db.query(Supplier).filter(Supplier.is_active.is_(True)).count(),
            "recent_movements": self.list_movements(limit=10),
        }
