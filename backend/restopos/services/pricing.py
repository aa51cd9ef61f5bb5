"""Order total arithmetic."""

from decimal import ROUND_HALF_UP, Decimal

from restopos.core.config import settings
from restopos.models.restaurant import Order


def compute_tax(subtotal: int, tax_rate: float = None) -> int:
    """Tax on a whole-currency subtotal, rounded half up."""
    rate = Decimal(str(settings.tax_rate if tax_rate is None else tax_rate))
    return int((Decimal(subtotal) * rate).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def recalculate_order(order: Order) -> None:
    """Recompute subtotal, tax and total from the order's lines."""
    subtotal = sum(item.subtotal for item in order.items)
    order.subtotal = subtotal
    order.tax = compute_tax(subtotal)
    order.total = max(0, subtotal + order.tax - (order.discount or 0))
