"""Menu and category catalog."""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import func

from restopos.core.exceptions import ConflictError, NotFoundError, ValidationError
from restopos.models.restaurant import Category, MenuItem, Order, OrderItem, OrderStatus
from restopos.services.base import BaseService
from restopos.services.inventory_service import InventoryService
from restopos.services.pricing import recalculate_order

logger = logging.getLogger(__name__)

MENU_ITEM_FIELDS = {"name", "description", "price", "category_id", "image_url", "is_available", "is_active"}
REQUIRED_FIELDS = ("name", "price", "is_available", "is_active")


class MenuService(BaseService):
    """Menu items and categories."""

    # ========== CATEGORIES ==========

    def list_categories(self, include_inactive: bool = False) -> List[Category]:
        query = self.db.query(Category)
        if not include_inactive:
            query = query.filter(Category.is_active.is_(True))
        return query.order_by(Category.sort_order.asc(), Category.id.asc()).all()

    def get_category(self, category_id: int) -> Category:
        category = self.db.get(Category, category_id)
        if not category:
            raise NotFoundError("Category", category_id)
        return category

    def create_category(
        self, name: str, description: Optional[str] = None, sort_order: Optional[int] = None,
    ) -> Category:
        if not name or not name.strip():
            raise ValidationError("Category name cannot be empty")
        if sort_order is None:
            sort_order = (self.db.query(func.max(Category.sort_order)).scalar() or 0) + 1
        category = Category(name=name.strip(), description=description, sort_order=sort_order)
        with self.transaction():
            self.db.add(category)
        self.db.refresh(category)
        return category

    # ========== MENU ITEMS ==========

    def list_items(self, category_id: Optional[int] = None, available_only: bool = False) -> List[MenuItem]:
        query = self.db.query(MenuItem).filter(MenuItem.is_active.is_(True))
        if category_id is not None:
            query = query.filter(MenuItem.category_id == category_id)
        if available_only:
            query = query.filter(MenuItem.is_available.is_(True))
        return query.order_by(MenuItem.name.asc(), MenuItem.id.asc()).all()

    def get_item(self, item_id: int) -> MenuItem:
        item = self.db.get(MenuItem, item_id)
        if not item:
            raise NotFoundError("Menu item", item_id)
        return item

    def catalog(self) -> Dict[int, MenuItem]:
        """Live catalog keyed by id, as consumed by ``Cart``."""
        return {item.id: item for item in self.db.query(MenuItem).all()}

    def _check_fields(self, fields: Dict[str, Any]) -> None:
        for key in REQUIRED_FIELDS:
            if key in fields and fields[key] is None:
                raise ValidationError(f"Menu item {key} cannot be null")
        if "name" in fields and (not fields["name"] or not fields["name"].strip()):
            raise ValidationError("Menu item name cannot be empty")
        if "price" in fields and (fields["price"] is None or fields["price"] < 0):
            raise ValidationError("Price cannot be negative")
        if fields.get("category_id") is not None:
            self.get_category(fields["category_id"])

    def create_item(self, **fields: Any) -> MenuItem:
        data = {k: v for k, v in fields.items() if k in MENU_ITEM_FIELDS and v is not None}
        if "name" not in data or "price" not in data:
            raise ValidationError("Menu item requires a name and a price")
        self._check_fields(data)
        data["name"] = data["name"].strip()

        item = MenuItem(**data)
        with self.transaction():
            self.db.add(item)
        self.db.refresh(item)
        logger.info(f"Created menu item {item.id} ({item.name}) at {item.price}")
        return item

    def update_item(self, item_id: int, fields: Dict[str, Any]) -> MenuItem:
        """Partial update. Price changes never touch already committed lines."""
        changes = {k: v for k, v in fields.items() if k in MENU_ITEM_FIELDS}
        self._check_fields(changes)
        with self.transaction():
            item = self.get_item(item_id)
            for key, value in changes.items():
                setattr(item, key, value.strip() if key == "name" else value)
        self.db.refresh(item)
        return item

    def delete_item(self, item_id: int, force: bool = False) -> Dict[str, Any]:
        """Delete a menu item.

        Refuses while order lines reference it. ``force=True`` removes those
        lines first and recomputes the totals of the open orders they belonged
        to; completed orders keep their recorded totals. Stock consumed by the
        removed open lines is returned.
        """
        with self.transaction():
            item = self.get_item(item_id)
            lines = self.db.query(OrderItem).filter(OrderItem.menu_item_id == item_id).all()
            if lines and not force:
                raise ConflictError(
                    f"Cannot delete menu item: it appears on {len(lines)} order lines. Use force delete."
                )

            affected_ids = {line.order_id for line in lines}
            open_lines = [line for line in lines if line.order.status == OrderStatus.PENDING.value]
            inventory = InventoryService(self.db)
            for line in open_lines:
                inventory.refund_order_items([line], order_id=line.order_id)
            for line in lines:
                self.db.delete(line)
            self.db.flush()

            if affected_ids:
                open_orders = (
                    self.db.query(Order)
                    .filter(Order.id.in_(affected_ids), Order.status == OrderStatus.PENDING.value)
                    .all()
                )
                for order in open_orders:
                    self.db.refresh(order, ["items"])
                    recalculate_order(order)
                    order.increment_version()
            self.db.delete(item)

        if lines:
            logger.warning(
                f"Force deleted menu item {item_id} with {len(lines)} order lines "
                f"across {len(affected_ids)} orders"
            )
        return {"status": "deleted", "menu_item_id": item_id, "order_items_deleted": len(lines)}
