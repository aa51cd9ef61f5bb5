"""Sales reporting over paid orders."""

import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Dict, Optional, Tuple
from zoneinfo import ZoneInfo

from sqlalchemy import func

from restopos.core.config import settings
from restopos.core.exceptions import ValidationError
from restopos.models.customer import Customer
from restopos.models.restaurant import MenuItem, Order, OrderItem, OrderStatus, Payment
from restopos.services.base import BaseService
from restopos.services.table_service import TableService

logger = logging.getLogger(__name__)


def local_today() -> date:
    return datetime.now(ZoneInfo(settings.timezone)).date()


def day_bounds(start: date, end: date) -> Tuple[datetime, datetime]:
    """UTC instants covering local days ``start`` through ``end`` inclusive."""
    tz = ZoneInfo(settings.timezone)
    lower = datetime.combine(start, time.min, tzinfo=tz).astimezone(timezone.utc)
    upper = datetime.combine(end + timedelta(days=1), time.min, tzinfo=tz).astimezone(timezone.utc)
    return lower, upper


class ReportService(BaseService):
    """Revenue figures. Revenue is the pre-tax subtotal of paid orders."""

    def sales_report(self, start_date: Optional[date] = None, end_date: Optional[date] = None) -> Dict[str, Any]:
        today = local_today()
        start_date = start_date or end_date or today
        end_date = end_date or start_date
        if start_date > end_date:
            raise ValidationError("start_date must not be after end_date")

        lower, upper = day_bounds(start_date, end_date)
        paid = [
            Order.is_paid.is_(True),
            Order.paid_at >= lower,
            Order.paid_at < upper,
        ]

        totals = (
            self.db.query(
                func.count(Order.id),
                func.coalesce(func.sum(Order.subtotal), 0),
                func.coalesce(func.sum(Order.tax), 0),
                func.coalesce(func.sum(Order.discount), 0),
                func.coalesce(func.sum(Order.total), 0),
            )
            .filter(*paid)
            .one()
        )
        order_count, revenue, tax, discount, collected = totals

        item_rows = (
            self.db.query(
                OrderItem.menu_item_id,
                MenuItem.name,
                func.sum(OrderItem.quantity),
                func.sum(OrderItem.subtotal),
            )
            .join(Order, Order.id == OrderItem.order_id)
            .outerjoin(MenuItem, MenuItem.id == OrderItem.menu_item_id)
            .filter(*paid)
            .group_by(OrderItem.menu_item_id, MenuItem.name)
            .order_by(func.sum(OrderItem.quantity).desc())
            .all()
        )

        method_rows = (
            self.db.query(Payment.method, func.count(Payment.id), func.coalesce(func.sum(Payment.amount), 0))
            .join(Order, Order.id == Payment.order_id)
            .filter(*paid)
            .group_by(Payment.method)
            .all()
        )

        return {
            "start_date": start_date.isoformat(),
            "end_date": end_date.isoformat(),
            "total_orders": int(order_count or 0),
            "total_revenue": int(revenue or 0),
            "total_tax": int(tax or 0),
            "total_discount": int(discount or 0),
            "total_collected": int(collected or 0),
            "average_order_value": round(revenue / order_count) if order_count else 0,
            "items": [
                {
                    "menu_item_id": menu_item_id,
                    "name": name,
                    "quantity": int(quantity or 0),
                    "revenue": int(item_revenue or 0),
                }
                for menu_item_id, name, quantity, item_revenue in item_rows
            ],
            "payment_methods": {
                method: {"count": int(count), "amount": int(amount or 0)}
                for method, count, amount in method_rows
            },
        }

    def dashboard(self) -> Dict[str, Any]:
        """Today's figures plus headline counts for the back office."""
        lower, upper = day_bounds(local_today(), local_today())

        today_orders, today_revenue = (
            self.db.query(func.count(Order.id), func.coalesce(func.sum(Order.subtotal), 0))
            .filter(Order.is_paid.is_(True), Order.paid_at >= lower, Order.paid_at < upper)
            .one()
        )
        total_orders = self.db.query(func.count(Order.id)).scalar() or 0
        pending_orders = (
            self.db.query(func.count(Order.id))
            .filter(Order.status == OrderStatus.PENDING.value)
            .scalar()
        ) or 0
        active_customers = self.db.query(func.count(Customer.id)).filter(Customer.not_deleted()).scalar() or 0
        active_menu_items = (
            self.db.query(func.count(MenuItem.id)).filter(MenuItem.is_active.is_(True)).scalar()
        ) or 0
        recent_orders = (
            self.db.query(Order)
            .order_by(Order.created_at.desc(), Order.id.desc())
            .limit(5)
            .all()
        )

        return {
            "today_revenue": int(today_revenue or 0),
            "today_orders": int(today_orders or 0),
            "total_orders": int(total_orders),
            "pending_orders": int(pending_orders),
            "active_customers": int(active_customers),
            "active_menu_items": int(active_menu_items),
            "tables": TableService(self.db).summary(),
            "recent_orders": recent_orders,
        }
