"""Cart builder: ephemeral staging area for order lines before commit.

A cart holds no prices of its own. It keeps a reference to a live catalog
(menu item id -> item) and prices every read from it, so a price change made
mid-session shows up in the next ``total()``.
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional


@dataclass
class CartLine:
    menu_item_id: int
    quantity: int = 1
    notes: Optional[str] = None


def _is_sellable(item: Any) -> bool:
    return bool(getattr(item, "is_available", True)) and bool(getattr(item, "is_active", True))


class Cart:
    """In-memory reducer over cart lines. No I/O."""

    def __init__(self, catalog: Mapping[int, Any]):
        self.catalog = catalog
        self._lines: List[CartLine] = []

    @property
    def lines(self) -> List[CartLine]:
        return list(self._lines)

    def __len__(self) -> int:
        return len(self._lines)

    def _find(self, menu_item_id: int) -> Optional[CartLine]:
        for line in self._lines:
            if line.menu_item_id == menu_item_id:
                return line
        return None

    def add_line(self, menu_item_id: int, notes: Optional[str] = None) -> bool:
        """Add one unit of an item. Returns False (no-op) if the item can't be sold."""
        item = self.catalog.get(menu_item_id)
        if item is None or not _is_sellable(item):
            return False

        line = self._find(menu_item_id)
        if line:
            line.quantity += 1
            if notes:
                line.notes = notes
        else:
            self._lines.append(CartLine(menu_item_id=menu_item_id, quantity=1, notes=notes))
        return True

    def set_quantity(self, menu_item_id: int, qty: int) -> None:
        """Set a line's quantity; qty <= 0 removes the line."""
        if qty <= 0:
            self._lines = [line for line in self._lines if line.menu_item_id != menu_item_id]
            return

        line = self._find(menu_item_id)
        if line:
            line.quantity = qty

    def total(self) -> int:
        """Sum of live catalog price x quantity. Lines whose item vanished count as 0."""
        total = 0
        for line in self._lines:
            item = self.catalog.get(line.menu_item_id)
            if item is not None:
                total += int(item.price) * line.quantity
        return total

    def clear(self) -> None:
        self._lines = []

    def load_order(self, order_items: Iterable[Any]) -> None:
        """Replace the cart with the lines of an already committed order.

        Lines are loaded as-is, even for items no longer sellable, since they
        describe what was already served.
        """
        self._lines = []
        for item in order_items:
            existing = self._find(item.menu_item_id)
            if existing:
                existing.quantity += item.quantity
            else:
                self._lines.append(
                    CartLine(menu_item_id=item.menu_item_id, quantity=item.quantity, notes=item.notes)
                )

    def to_order_lines(self) -> List[Dict[str, Any]]:
        """Payload for order creation / amendment."""
        return [
            {"menu_item_id": line.menu_item_id, "quantity": line.quantity, "notes": line.notes}
            for line in self._lines
        ]
