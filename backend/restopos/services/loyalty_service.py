"""Customer loyalty ledger.

Every balance change is a ``PointTransaction`` row holding a positive
magnitude. ``Customer.points`` caches the running balance and the derived
level; the ledger is authoritative (see ``get_balance``).
"""

import logging
from collections import Counter
from typing import Any, Dict, List, Optional

from sqlalchemy import case, func, or_

from restopos.core.config import settings
from restopos.core.exceptions import NotFoundError, ValidationError
from restopos.models.customer import Customer, LoyaltyLevel, PointTransaction, PointType
from restopos.models.restaurant import Order
from restopos.services.base import BaseService

logger = logging.getLogger(__name__)

CUSTOMER_FIELDS = {"name", "phone", "email", "address", "birthday"}


def level_for(points: int) -> str:
    """Loyalty level for a point balance."""
    if points >= settings.loyalty_gold_threshold:
        return LoyaltyLevel.GOLD.value
    if points >= settings.loyalty_silver_threshold:
        return LoyaltyLevel.SILVER.value
    return LoyaltyLevel.BRONZE.value


def points_for_total(total: int) -> int:
    return max(0, int(total or 0)) // settings.loyalty_currency_per_point


class LoyaltyService(BaseService):
    """Customers and their point ledger."""

    # ========== CUSTOMERS ==========

    def get_customer(self, customer_id: int) -> Customer:
        customer = (
            self.db.query(Customer)
            .filter(Customer.id == customer_id, Customer.not_deleted())
            .first()
        )
        if not customer:
            raise NotFoundError("Customer", customer_id)
        return customer

    def list_customers(self, search: Optional[str] = None) -> List[Customer]:
        query = self.db.query(Customer).filter(Customer.not_deleted())
        if search:
            pattern = f"%{search.strip()}%"
            query = query.filter(or_(
                Customer.name.ilike(pattern),
                Customer.phone.ilike(pattern),
                Customer.email.ilike(pattern),
            ))
        return query.order_by(Customer.created_at.desc(), Customer.id.desc()).all()

    @staticmethod
    def _check_fields(fields: Dict[str, Any]) -> None:
        for key in ("name", "phone"):
            if key in fields and (not fields[key] or not str(fields[key]).strip()):
                raise ValidationError(f"Customer {key} cannot be empty")

    def create_customer(self, **fields: Any) -> Customer:
        data = {k: v for k, v in fields.items() if k in CUSTOMER_FIELDS and v is not None}
        if "name" not in data or "phone" not in data:
            raise ValidationError("Customer requires a name and a phone number")
        self._check_fields(data)

        customer = Customer(**data, points=0, level=LoyaltyLevel.BRONZE.value)
        with self.transaction():
            self.db.add(customer)
        self.db.refresh(customer)
        logger.info(f"Enrolled customer {customer.id}")
        return customer

    def update_customer(self, customer_id: int, fields: Dict[str, Any]) -> Customer:
        changes = {k: v for k, v in fields.items() if k in CUSTOMER_FIELDS}
        self._check_fields(changes)
        with self.transaction():
            customer = self.get_customer(customer_id)
            for key, value in changes.items():
                setattr(customer, key, value)
        self.db.refresh(customer)
        return customer

    def delete_customer(self, customer_id: int) -> None:
        """Soft delete; orders and ledger entries keep pointing at the row."""
        with self.transaction():
            customer = self.get_customer(customer_id)
            customer.soft_delete()
        logger.info(f"Soft deleted customer {customer_id}")

    # ========== LEDGER ==========

    def _record(
        self,
        customer: Customer,
        points: int,
        point_type: str,
        description: Optional[str],
        order_id: Optional[int] = None,
    ) -> PointTransaction:
        """Append a ledger entry and refresh the cached balance. No commit."""
        balance = customer.points or 0
        if point_type == PointType.SPENT.value:
            if points > balance:
                raise ValidationError(
                    f"Insufficient points: balance is {balance}, tried to spend {points}"
                )
            balance -= points
        else:
            balance += points

        entry = PointTransaction(
            customer_id=customer.id,
            type=point_type,
            points=points,
            description=description,
            order_id=order_id,
        )
        self.db.add(entry)
        customer.points = balance
        customer.level = level_for(balance)
        return entry

    def add_points(
        self,
        customer_id: int,
        delta: int,
        reason: Optional[str] = None,
        point_type: str = PointType.EARNED.value,
        order_id: Optional[int] = None,
    ) -> Customer:
        """Earn or spend points.

        ``delta`` is taken as a magnitude: a SPENT entry may be submitted with
        a negative delta and is stored as a positive amount.
        """
        if point_type not in {t.value for t in PointType}:
            raise ValidationError(f"Invalid point type: {point_type}")
        points = abs(int(delta or 0))
        if points == 0:
            raise ValidationError("Points must be non-zero")

        with self.transaction():
            customer = self.get_customer(customer_id)
            if order_id is not None:
                order = self.db.get(Order, order_id)
                if order is None:
                    raise NotFoundError("Order", order_id)
                if order.customer_id != customer.id:
                    raise ValidationError(
                        f"Order {order.order_number} does not belong to customer {customer.id}"
                    )
            self._record(customer, points, point_type, reason, order_id)
        self.db.refresh(customer)
        logger.info(f"Customer {customer_id} {point_type} {points} points, balance {customer.points}")
        return customer

    def get_balance(self, customer_id: int) -> int:
        """Balance recomputed from the ledger: earned minus spent."""
        self.get_customer(customer_id)
        signed = case(
            (PointTransaction.type == PointType.SPENT.value, -PointTransaction.points),
            else_=PointTransaction.points,
        )
        total = (
            self.db.query(func.coalesce(func.sum(signed), 0))
            .filter(PointTransaction.customer_id == customer_id)
            .scalar()
        )
        return int(total or 0)

    def accrue_for_order(self, order: Order) -> Optional[PointTransaction]:
        """Credit points for a paid order inside the caller's transaction.

        Returns None when the order has no customer or earns zero points.
        """
        if not order.customer_id:
            return None
        points = points_for_total(order.total)
        if points == 0:
            return None
        customer = self.db.get(Customer, order.customer_id)
        if customer is None or customer.is_deleted:
            logger.warning(f"Skipping accrual for order {order.order_number}: customer {order.customer_id} is gone")
            return None
        entry = self._record(
            customer,
            points,
            PointType.EARNED.value,
            f"Earned from order {order.order_number}",
            order_id=order.id,
        )
        logger.info(f"Accrued {points} points to customer {customer.id} for order {order.order_number}")
        return entry

    def points_history(self, customer_id: int) -> List[PointTransaction]:
        self.get_customer(customer_id)
        return (
            self.db.query(PointTransaction)
            .filter(PointTransaction.customer_id == customer_id)
            .order_by(PointTransaction.created_at.desc(), PointTransaction.id.desc())
            .all()
        )

    def order_history(self, customer_id: int) -> Dict[str, Any]:
        """Paid orders, total spent and the five most ordered items."""
        customer = self.get_customer(customer_id)
        orders = (
            self.db.query(Order)
            .filter(Order.customer_id == customer_id, Order.is_paid.is_(True))
            .order_by(Order.created_at.desc(), Order.id.desc())
            .all()
        )

        counts: Counter = Counter()
        names: Dict[int, str] = {}
        for order in orders:
            for item in order.items:
                counts[item.menu_item_id] += item.quantity
                if item.menu_item is not None:
                    names[item.menu_item_id] = item.menu_item.name

        favorites = [
            {"menu_item_id": menu_item_id, "name": names.get(menu_item_id), "count": count}
            for menu_item_id, count in counts.most_common(5)
        ]
        return {
            "customer": customer,
            "orders": orders,
            "total_orders": len(orders),
            "total_spent": sum(order.total for order in orders),
            "favorite_items": favorites,
        }
