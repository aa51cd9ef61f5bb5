"""Table registry: table identity, capacity and occupancy."""

import logging
import re
from typing import Any, Dict, List, Optional

from sqlalchemy import func

from restopos.core.config import settings
from restopos.core.exceptions import ConflictError, NotFoundError, ValidationError
from restopos.models.restaurant import (
    TABLE_STATUSES,
    DiningTable,
    Order,
    OrderStatus,
    TableStatus,
)
from restopos.services.base import BaseService
from restopos.services.inventory_service import InventoryService

logger = logging.getLogger(__name__)

_NUMBER_RE = re.compile(r"(\d+)")

UPDATABLE_FIELDS = {"name", "capacity", "status", "location", "description"}


def table_number(name: str) -> Optional[int]:
    """Number embedded in a table name ("Table 12" -> 12), if any."""
    match = _NUMBER_RE.search(name or "")
    return int(match.group(1)) if match else None


class TableService(BaseService):
    """CRUD and occupancy bookkeeping for dining tables."""

    # ========== VALIDATION ==========

    @staticmethod
    def _validate_name(name: str) -> str:
        if name is None or not name.strip():
            raise ValidationError("Table name cannot be empty")
        return name.strip()

    @staticmethod
    def _validate_capacity(capacity: int) -> int:
        if capacity is None or capacity < 1:
            raise ValidationError("Table capacity must be at least 1")
        if capacity > settings.table_max_capacity:
            raise ValidationError(f"Table capacity cannot exceed {settings.table_max_capacity}")
        return capacity

    @staticmethod
    def _validate_status(status: str) -> str:
        if status not in TABLE_STATUSES:
            raise ValidationError(f"Invalid table status: {status}")
        return status

    # ========== QUERIES ==========

    def get(self, table_id: int, lock: bool = False) -> DiningTable:
        """Fetch a table or raise NotFoundError. ``lock`` takes a row lock."""
        query = self.db.query(DiningTable).filter(DiningTable.id == table_id)
        if lock:
            query = query.with_for_update()
        table = query.first()
        if not table:
            raise NotFoundError("Table", table_id)
        return table

    def list_tables(self, status: Optional[str] = None) -> List[DiningTable]:
        """All tables sorted by the number in their name, unnumbered last."""
        query = self.db.query(DiningTable)
        if status:
            query = query.filter(DiningTable.status == self._validate_status(status))
        tables = query.all()

        def sort_key(table: DiningTable):
            number = table_number(table.name)
            return (number is None, number or 0, table.name, table.id)

        return sorted(tables, key=sort_key)

    def active_orders(self, table_id: int) -> List[Order]:
        """PENDING orders for a table, newest first."""
        return (
            self.db.query(Order)
            .filter(Order.table_id == table_id, Order.status == OrderStatus.PENDING.value)
            .order_by(Order.created_at.desc(), Order.id.desc())
            .all()
        )

    def summary(self) -> Dict[str, Any]:
        """Table counts per status and occupancy rate."""
        rows = (
            self.db.query(DiningTable.status, func.count(DiningTable.id))
            .group_by(DiningTable.status)
            .all()
        )
        counts = {status.value: 0 for status in TableStatus}
        counts.update({status: count for status, count in rows})
        total = sum(counts.values())
        occupied = counts[TableStatus.OCCUPIED.value]
        return {
            "total_tables": total,
            **counts,
            "occupancy_rate": round(occupied / total * 100, 1) if total > 0 else 0,
        }

    # ========== COMMANDS ==========

    def _next_table_number(self) -> int:
        prefix_re = re.compile(rf"^{re.escape(settings.table_name_prefix)}\s*(\d+)$", re.IGNORECASE)
        highest = 0
        for (name,) in self.db.query(DiningTable.name).all():
            match = prefix_re.match(name or "")
            if match:
                highest = max(highest, int(match.group(1)))
        return highest + 1

    def create_table(
        self,
        name: Optional[str],
        capacity: int,
        status: str = TableStatus.AVAILABLE.value,
        location: Optional[str] = None,
        description: Optional[str] = None,
    ) -> DiningTable:
        """Create a table. ``name=None`` auto-generates the next "<prefix> N"."""
        if name is None:
            name = f"{settings.table_name_prefix} {self._next_table_number()}"
        name = self._validate_name(name)
        capacity = self._validate_capacity(capacity)
        status = self._validate_status(status or TableStatus.AVAILABLE.value)

        max_sort = self.db.query(func.max(DiningTable.sort_order)).scalar() or 0
        table = DiningTable(
            name=name,
            capacity=capacity,
            status=status,
            location=location,
            description=description,
            sort_order=max_sort + 1,
        )
        with self.transaction():
            self.db.add(table)
        self.db.refresh(table)
        logger.info(f"Created table {table.id} ({table.name}, capacity {table.capacity})")
        return table

    def update_table(
        self,
        table_id: int,
        fields: Dict[str, Any],
        expected_version: Optional[int] = None,
    ) -> DiningTable:
        """Apply a partial update. Unknown keys are ignored."""
        with self.transaction():
            table = self.get(table_id, lock=True)
            table.check_version(expected_version)

            changes = {k: v for k, v in fields.items() if k in UPDATABLE_FIELDS}
            if "name" in changes:
                changes["name"] = self._validate_name(changes["name"])
            if "capacity" in changes:
                changes["capacity"] = self._validate_capacity(changes["capacity"])
            if "status" in changes:
                changes["status"] = self._validate_status(changes["status"])

            for key, value in changes.items():
                setattr(table, key, value)
            if changes:
                table.increment_version()
        self.db.refresh(table)
        return table

    def set_status(self, table_id: int, status: str) -> None:
        """Set occupancy status directly."""
        status = self._validate_status(status)
        with self.transaction():
            table = self.get(table_id, lock=True)
            if table.status != status:
                table.status = status
                table.increment_version()
        logger.info(f"Table {table_id} status set to {status}")

    def sync_occupancy(self, table: DiningTable, exclude_order_id: Optional[int] = None) -> str:
        """Make ``table.status`` agree with its PENDING orders.

        Writes into the caller's transaction; does not commit.
        """
        query = self.db.query(func.count(Order.id)).filter(
            Order.table_id == table.id,
            Order.status == OrderStatus.PENDING.value,
        )
        if exclude_order_id is not None:
            query = query.filter(Order.id != exclude_order_id)
        has_open = (query.scalar() or 0) > 0

        new_status = TableStatus.OCCUPIED.value if has_open else TableStatus.AVAILABLE.value
        if table.status != new_status:
            table.status = new_status
            table.increment_version()
        return new_status

    def delete_table(self, table_id: int, force: bool = False) -> Dict[str, Any]:
        """Delete a table.

        Refuses while any order references the table. With ``force=True``
        every order of the table is deleted first; this cannot be undone.
        Stock consumed by an open order goes back on the shelf.
        """
        with self.transaction():
            table = self.get(table_id, lock=True)
            orders = self.db.query(Order).filter(Order.table_id == table_id).all()
            if orders and not force:
                raise ConflictError(
                    "Cannot delete table: table has active orders. Delete its orders first or force delete."
                )
            for order in orders:
                if order.status == OrderStatus.PENDING.value:
                    InventoryService(self.db).refund_order_items(order.items, order_id=order.id)
                self.db.delete(order)
            self.db.flush()
            self.db.delete(table)

        if orders:
            logger.warning(f"Force deleted table {table_id} together with {len(orders)} orders")
        else:
            logger.info(f"Deleted table {table_id}")
        return {"status": "deleted", "table_id": table_id, "orders_deleted": len(orders)}

    def renumber_all(self) -> List[DiningTable]:
        """Rename every table "<prefix> 1..n" in creation order, atomically."""
        with self.transaction():
            tables = (
                self.db.query(DiningTable)
                .order_by(DiningTable.created_at.asc(), DiningTable.id.asc())
                .with_for_update()
                .all()
            )
            for index, table in enumerate(tables, 1):
                table.name = f"{settings.table_name_prefix} {index}"
                table.sort_order = index
                table.increment_version()
        logger.info(f"Renumbered {len(tables)} tables")
        return tables
