"""Order lifecycle: create, amend, transfer, complete.

A table holds at most one PENDING order at a time. Staff adding dishes to a
seated table amend that order (each submission becomes a new round) instead
of opening a second bill. Every workflow below runs in one transaction with
the affected table rows locked, so table occupancy always agrees with the
order state that was committed alongside it.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional
from zoneinfo import ZoneInfo

from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from restopos.core.config import settings
from restopos.core.exceptions import ConflictError, NotFoundError, ValidationError
from restopos.db.base import utcnow
from restopos.models.customer import Customer
from restopos.models.restaurant import (
    ORDER_STATUSES,
    DiningTable,
    MenuItem,
    Order,
    OrderItem,
    OrderStatus,
    Payment,
    PaymentMethod,
    TableStatus,
)
from restopos.services.base import BaseService
from restopos.services.inventory_service import InventoryService
from restopos.services.loyalty_service import LoyaltyService
from restopos.services.pricing import recalculate_order
from restopos.services.table_service import TableService

logger = logging.getLogger(__name__)

PAYMENT_METHODS = {m.value for m in PaymentMethod}


class OrderService(BaseService):
    """Order workflows against tables."""

    def __init__(self, db: Session):
        super().__init__(db)
        self.tables = TableService(db)
        self.inventory = InventoryService(db)

    # ========== HELPERS ==========

    @staticmethod
    def _validate_lines(lines: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
        lines = list(lines or [])
        if not lines:
            raise ValidationError("Order must contain at least one item")
        for line in lines:
            quantity = line.get("quantity")
            if quantity is None or int(quantity) < 1:
                raise ValidationError("Quantity must be at least 1")
        return lines

    def _next_order_number(self) -> str:
        """``YYYYMMDD`` in the restaurant's timezone plus a 4-digit daily sequence."""
        prefix = datetime.now(ZoneInfo(settings.timezone)).strftime("%Y%m%d")
        last = (
            self.db.query(func.max(Order.order_number))
            .filter(Order.order_number.like(f"{prefix}%"))
            .scalar()
        )
        sequence = int(last[len(prefix):]) + 1 if last else 1
        return f"{prefix}{sequence:04d}"

    def _get_order(self, order_id: int, lock: bool = False) -> Order:
        query = self.db.query(Order).filter(Order.id == order_id)
        if lock:
            query = query.with_for_update()
        order = query.first()
        if not order:
            raise NotFoundError("Order", order_id)
        return order

    def _open_order(self, table_id: int) -> Optional[Order]:
        return (
            self.db.query(Order)
            .filter(Order.table_id == table_id, Order.status == OrderStatus.PENDING.value)
            .order_by(Order.created_at.desc(), Order.id.desc())
            .first()
        )

    def _check_customer(self, customer_id: int) -> Customer:
        customer = self.db.get(Customer, customer_id)
        if customer is None or customer.is_deleted:
            raise NotFoundError("Customer", customer_id)
        return customer

    def _append_lines(self, order: Order, lines: List[Dict[str, Any]], user_id: Optional[int] = None) -> int:
        """Price and attach ``lines`` as the order's next round, consuming their stock.

        Returns the round. Raises InsufficientStockError before any stock moves
        when an ingredient runs short; the caller's transaction then rolls the
        whole round back.
        """
        resolved = []
        for line in lines:
            menu_item = self.db.get(MenuItem, line["menu_item_id"])
            if menu_item is None:
                raise NotFoundError("Menu item", line["menu_item_id"])
            if not menu_item.sellable:
                raise ValidationError(f"Menu item is not available: {menu_item.name}")
            resolved.append((menu_item, int(line["quantity"]), line.get("notes")))

        round_number = order.current_round + 1
        now = utcnow()
        for menu_item, quantity, notes in resolved:
            order.items.append(OrderItem(
                menu_item_id=menu_item.id,
                quantity=quantity,
                unit_price=menu_item.price,
                subtotal=menu_item.price * quantity,
                round=round_number,
                notes=notes,
                created_at=now,
            ))
        recalculate_order(order)
        self.db.flush()
        self.inventory.deduct_for_lines(
            [(menu_item, quantity) for menu_item, quantity, _ in resolved],
            order_id=order.id,
            user_id=user_id or order.user_id,
        )
        return round_number

    def _lock_tables(self, *table_ids: int) -> Dict[int, DiningTable]:
        """Lock tables in id order so concurrent transfers cannot deadlock."""
        return {table_id: self.tables.get(table_id, lock=True) for table_id in sorted(set(table_ids))}

    # ========== QUERIES ==========

    def get_order(self, order_id: int) -> Order:
        return self._get_order(order_id)

    def list_orders(self, table_id: Optional[int] = None, status: Optional[str] = None) -> List[Order]:
        """Orders newest first, optionally filtered by table and status."""
        query = self.db.query(Order).options(selectinload(Order.items))
        if table_id is not None:
            query = query.filter(Order.table_id == table_id)
        if status:
            if status not in ORDER_STATUSES:
                raise ValidationError(f"Invalid order status: {status}")
            query = query.filter(Order.status == status)
        return query.order_by(Order.created_at.desc(), Order.id.desc()).all()

    def current_order(self, table_id: int) -> Optional[Order]:
        """The table's open order, or None."""
        self.tables.get(table_id)
        return self._open_order(table_id)

    # ========== WORKFLOWS ==========

    def create_order(
        self,
        table_id: int,
        lines: Iterable[Dict[str, Any]],
        customer_id: Optional[int] = None,
        notes: Optional[str] = None,
        discount: Optional[int] = None,
        open_order_id: Optional[int] = None,
        user_id: Optional[int] = None,
    ) -> Order:
        """Open an order on a table, or add to the one the caller is serving.

        When the table already has an open order, the caller must name it in
        ``open_order_id``; the lines are then appended to it as a new round.
        Any other caller gets a ConflictError instead of a second bill.

        On an amend, a given ``notes`` or ``discount`` replaces the order's
        value and ``customer_id`` attaches a customer to an anonymous order.
        Naming a different customer than the one already attached is a
        ConflictError.
        """
        lines = self._validate_lines(lines)
        if discount is not None:
            discount = int(discount)
            if discount < 0:
                raise ValidationError("Discount cannot be negative")

        with self.transaction():
            table = self.tables.get(table_id, lock=True)
            if table.status == TableStatus.RESERVED.value:
                raise ConflictError(f"Table {table.name} is reserved")

            open_order = self._open_order(table.id)
            if open_order is not None:
                if open_order_id != open_order.id:
                    raise ConflictError(
                        f"Table {table.name} already has an open order ({open_order.order_number})"
                    )
                if customer_id is not None and customer_id != open_order.customer_id:
                    if open_order.customer_id is not None:
                        raise ConflictError(
                            f"Order {open_order.order_number} already belongs to customer {open_order.customer_id}"
                        )
                    open_order.customer_id = self._check_customer(customer_id).id
                if notes is not None:
                    open_order.notes = notes
                if discount is not None:
                    open_order.discount = discount
                round_number = self._append_lines(open_order, lines, user_id=user_id)
                open_order.increment_version()
                order, amended = open_order, True
            else:
                if customer_id is not None:
                    self._check_customer(customer_id)

                order = Order(
                    order_number=self._next_order_number(),
                    table_id=table.id,
                    customer_id=customer_id,
                    user_id=user_id,
                    status=OrderStatus.PENDING.value,
                    discount=discount or 0,
                    notes=notes,
                )
                self.db.add(order)
                round_number = self._append_lines(order, lines, user_id=user_id)
                amended = False

            if table.status != TableStatus.OCCUPIED.value:
                table.status = TableStatus.OCCUPIED.value
                table.increment_version()

        self.db.refresh(order)
        if amended:
            logger.info(f"Order {order.order_number}: round {round_number} added on table {table_id}")
        else:
            logger.info(f"Order {order.order_number} opened on table {table_id}, total {order.total}")
        return order

    def amend_order(
        self,
        table_id: int,
        lines: Iterable[Dict[str, Any]],
        expected_version: Optional[int] = None,
        user_id: Optional[int] = None,
    ) -> Order:
        """Append lines to the table's open order as its next round."""
        lines = self._validate_lines(lines)
        with self.transaction():
            table = self.tables.get(table_id, lock=True)
            order = self._open_order(table.id)
            if order is None:
                raise NotFoundError("Open order for table", table_id)
            order.check_version(expected_version)

            round_number = self._append_lines(order, lines, user_id=user_id)
            order.increment_version()
            if table.status != TableStatus.OCCUPIED.value:
                table.status = TableStatus.OCCUPIED.value
                table.increment_version()

        self.db.refresh(order)
        logger.info(f"Order {order.order_number}: round {round_number} added, total {order.total}")
        return order

    def complete_order(
        self,
        order_id: int,
        payment_method: str = PaymentMethod.CASH.value,
        user_id: Optional[int] = None,
    ) -> Order:
        """Settle an order: payment, loyalty accrual and table release together.

        ``user_id`` is recorded as the staff member who took the payment.

        Completing an already completed order returns it unchanged.
        """
        payment_method = (payment_method or PaymentMethod.CASH.value).upper()
        if payment_method not in PAYMENT_METHODS:
            raise ValidationError(f"Invalid payment method: {payment_method}")

        with self.transaction():
            order = self._get_order(order_id, lock=True)
            if order.status == OrderStatus.COMPLETED.value:
                logger.info(f"Order {order.order_number} already completed")
                return order

            table = self.tables.get(order.table_id, lock=True)
            now = utcnow()
            order.status = OrderStatus.COMPLETED.value
            order.is_paid = True
            order.paid_at = now
            order.increment_version()
            order.payments.append(Payment(
                method=payment_method,
                amount=order.total,
                status="SUCCESS",
                processed_at=now,
                received_by=user_id,
            ))
            LoyaltyService(self.db).accrue_for_order(order)
            self.db.flush()
            self.tables.sync_occupancy(table, exclude_order_id=order.id)

        self.db.refresh(order)
        logger.info(f"Order {order.order_number} completed: {order.total} by {payment_method}")
        return order

    def update_status(
        self,
        order_id: int,
        status: str,
        payment_method: str = PaymentMethod.CASH.value,
        user_id: Optional[int] = None,
    ) -> Order:
        if status == OrderStatus.COMPLETED.value:
            return self.complete_order(order_id, payment_method, user_id=user_id)
        if status != OrderStatus.PENDING.value:
            raise ValidationError(f"Invalid order status: {status}")

        order = self._get_order(order_id)
        if order.status == OrderStatus.COMPLETED.value:
            raise ConflictError(f"Order {order.order_number} is completed and cannot be reopened")
        return order

    def transfer_table(
        self,
        order_id: int,
        new_table_id: int,
        expected_version: Optional[int] = None,
    ) -> Order:
        """Move an open order to another table, releasing the old one."""
        with self.transaction():
            order = self._get_order(order_id, lock=True)
            order.check_version(expected_version)
            if order.status != OrderStatus.PENDING.value:
                raise ConflictError(f"Order {order.order_number} is completed and cannot be moved")
            if new_table_id == order.table_id:
                raise ValidationError("Order is already on this table")

            old_table_id = order.table_id
            locked = self._lock_tables(old_table_id, new_table_id)
            old_table, new_table = locked[old_table_id], locked[new_table_id]

            if new_table.status == TableStatus.RESERVED.value:
                raise ConflictError(f"Table {new_table.name} is reserved")
            occupant = self._open_order(new_table.id)
            if occupant is not None:
                raise ConflictError(
                    f"Table {new_table.name} already has an open order ({occupant.order_number})"
                )

            order.table_id = new_table.id
            order.increment_version()
            self.db.flush()
            self.tables.sync_occupancy(old_table)
            self.tables.sync_occupancy(new_table)

        self.db.refresh(order)
        logger.info(f"Order {order.order_number} moved from table {old_table_id} to {new_table_id}")
        return order

    def update_order(
        self,
        order_id: int,
        table_id: Optional[int] = None,
        notes: Optional[str] = None,
        expected_version: Optional[int] = None,
    ) -> Order:
        """Edit notes and/or move the order when ``table_id`` differs."""
        order = self._get_order(order_id)
        if table_id is not None and table_id != order.table_id:
            order = self.transfer_table(order_id, table_id, expected_version)
            expected_version = None
        if notes is not None:
            with self.transaction():
                order = self._get_order(order_id, lock=True)
                order.check_version(expected_version)
                order.notes = notes
                order.increment_version()
            self.db.refresh(order)
        return order

    def remove_order_item(self, order_id: int, item_id: int) -> Order:
        """Drop one line from an open order and recompute its totals."""
        with self.transaction():
            order = self._get_order(order_id, lock=True)
            if order.status != OrderStatus.PENDING.value:
                raise ConflictError("Cannot remove items from a completed order")
            line = next((item for item in order.items if item.id == item_id), None)
            if line is None:
                raise NotFoundError("Order item", item_id)

            self.inventory.refund_order_items([line], order_id=order.id)
            order.items.remove(line)
            recalculate_order(order)
            order.increment_version()

        self.db.refresh(order)
        logger.info(f"Removed line {item_id} from order {order.order_number}, total {order.total}")
        return order

    def delete_order(self, order_id: int) -> Dict[str, Any]:
        """Delete an order; deleting an open order frees its table and returns its stock."""
        with self.transaction():
            order = self._get_order(order_id, lock=True)
            table = self.tables.get(order.table_id, lock=True)
            was_open = order.status == OrderStatus.PENDING.value
            order_number = order.order_number
            if was_open:
                self.inventory.refund_order_items(order.items, order_id=order.id)

            self.db.delete(order)
            self.db.flush()
            if was_open:
                self.tables.sync_occupancy(table)

        logger.info(f"Deleted order {order_number}")
        return {"status": "deleted", "order_id": order_id, "order_number": order_number}
