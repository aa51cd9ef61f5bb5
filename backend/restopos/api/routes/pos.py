"""POS terminal routes: tables, menu, cart preview and orders."""

import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Query, Request, status

from restopos.core.rate_limit import limiter
from restopos.core.rbac import (
    CanCreateMenu,
    CanCreateOrders,
    CanCreateTables,
    CanDeleteMenu,
    CanDeleteOrders,
    CanDeleteTables,
    CanUpdateMenu,
    CanUpdateOrders,
    CanUpdateTables,
    CanViewMenu,
    CanViewOrders,
    CanViewTables,
)
from restopos.core.realtime import broadcast_order_event, order_event
from restopos.core.responses import list_response
from restopos.core.validators import PositiveIntId
from restopos.db.session import DbSession
from restopos.schemas.pos import (
    CartLineOut,
    CartPreviewRequest,
    CartPreviewResponse,
    CategoryCreate,
    CategoryResponse,
    MenuItemCreate,
    MenuItemResponse,
    MenuItemUpdate,
    OrderAmend,
    OrderCreate,
    OrderResponse,
    OrderStatusUpdate,
    OrderUpdate,
    TableCreate,
    TableDetailResponse,
    TableResponse,
    TableStatusUpdate,
    TableSummary,
    TableUpdate,
)
from restopos.services.cart import Cart
from restopos.services.menu_service import MenuService
from restopos.services.order_service import OrderService
from restopos.services.table_service import TableService

logger = logging.getLogger(__name__)

router = APIRouter()


def _lines(items) -> list:
    return [item.model_dump() for item in items]


# ============== TABLES ==============

@router.get("/tables")
@limiter.limit("60/minute")
def list_tables(
    request: Request,
    db: DbSession,
    current_user: CanViewTables,
    status_filter: Optional[str] = Query(None, alias="status"),
):
    """List tables in floor order (by the number in their name)."""
    tables = TableService(db).list_tables(status=status_filter)
    return list_response([TableResponse.model_validate(t) for t in tables])


@router.get("/tables/summary", response_model=TableSummary)
@limiter.limit("60/minute")
def get_tables_summary(request: Request, db: DbSession, current_user: CanViewTables):
    """Table counts per status."""
    return TableService(db).summary()


@router.post("/tables/renumber")
@limiter.limit("10/minute")
def renumber_tables(request: Request, db: DbSession, current_user: CanUpdateTables):
    """Rename all tables 1..n in creation order."""
    tables = TableService(db).renumber_all()
    return list_response([TableResponse.model_validate(t) for t in tables])


@router.get("/tables/{table_id}", response_model=TableDetailResponse)
@limiter.limit("60/minute")
def get_table(request: Request, table_id: PositiveIntId, db: DbSession, current_user: CanViewTables):
    """Get a table with its open orders."""
    service = TableService(db)
    table = service.get(table_id)
    detail = TableDetailResponse.model_validate(table)
    detail.active_orders = [OrderResponse.from_db(o) for o in service.active_orders(table_id)]
    return detail


@router.get("/tables/{table_id}/current-order", response_model=Optional[OrderResponse])
@limiter.limit("60/minute")
def get_current_order(request: Request, table_id: PositiveIntId, db: DbSession, current_user: CanViewOrders):
    """The table's open order, or null when the table is free."""
    order = OrderService(db).current_order(table_id)
    return OrderResponse.from_db(order) if order else None


@router.post("/tables", response_model=TableResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
def create_table(request: Request, body: TableCreate, db: DbSession, current_user: CanCreateTables):
    """Create a table. Omit the name to get the next "Table N"."""
    table = TableService(db).create_table(
        name=body.name,
        capacity=body.capacity,
        status=body.status,
        location=body.location,
        description=body.description,
    )
    return table


@router.patch("/tables/{table_id}", response_model=TableResponse)
@limiter.limit("30/minute")
def update_table(
    request: Request, table_id: PositiveIntId, body: TableUpdate, db: DbSession, current_user: CanUpdateTables,
):
    """Partially update a table. Send ``version`` to guard against concurrent edits."""
    fields = body.model_dump(exclude_unset=True, exclude={"version"})
    return TableService(db).update_table(table_id, fields, expected_version=body.version)


@router.patch("/tables/{table_id}/status", response_model=TableResponse)
@limiter.limit("30/minute")
def update_table_status(
    request: Request, table_id: PositiveIntId, body: TableStatusUpdate, db: DbSession, current_user: CanUpdateTables,
):
    """Set a table's occupancy status."""
    service = TableService(db)
    service.set_status(table_id, body.status)
    return service.get(table_id)


@router.delete("/tables/{table_id}")
@limiter.limit("30/minute")
def delete_table(request: Request, table_id: PositiveIntId, db: DbSession, current_user: CanDeleteTables):
    """Delete a table that has no orders."""
    return TableService(db).delete_table(table_id)


@router.delete("/tables/{table_id}/force")
@limiter.limit("10/minute")
def force_delete_table(request: Request, table_id: PositiveIntId, db: DbSession, current_user: CanDeleteTables):
    """Delete a table together with all of its orders."""
    return TableService(db).delete_table(table_id, force=True)


@router.post("/tables/{table_id}/orders/amend", response_model=OrderResponse)
@limiter.limit("30/minute")
def amend_table_order(
    request: Request,
    table_id: PositiveIntId,
    body: OrderAmend,
    db: DbSession,
    current_user: CanCreateOrders,
    background_tasks: BackgroundTasks,
):
    """Add a new round of items to the table's open order."""
    order = OrderService(db).amend_order(
        table_id, _lines(body.items), expected_version=body.version, user_id=current_user.user_id,
    )
    background_tasks.add_task(broadcast_order_event, order_event("amended", order))
    return OrderResponse.from_db(order)


# ============== MENU ==============

@router.get("/menu")
@limiter.limit("60/minute")
def list_menu(
    request: Request,
    db: DbSession,
    current_user: CanViewMenu,
    category_id: Optional[int] = None,
    available_only: bool = False,
):
    """List active menu items."""
    items = MenuService(db).list_items(category_id=category_id, available_only=available_only)
    return list_response([MenuItemResponse.model_validate(i) for i in items])


@router.get("/menu/{item_id}", response_model=MenuItemResponse)
@limiter.limit("60/minute")
def get_menu_item(request: Request, item_id: PositiveIntId, db: DbSession, current_user: CanViewMenu):
    return MenuService(db).get_item(item_id)


@router.post("/menu", response_model=MenuItemResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
def create_menu_item(request: Request, body: MenuItemCreate, db: DbSession, current_user: CanCreateMenu):
    return MenuService(db).create_item(**body.model_dump())


@router.patch("/menu/{item_id}", response_model=MenuItemResponse)
@limiter.limit("30/minute")
def update_menu_item(
    request: Request, item_id: PositiveIntId, body: MenuItemUpdate, db: DbSession, current_user: CanUpdateMenu,
):
    """Update a menu item. Committed order lines keep the price they were sold at."""
    return MenuService(db).update_item(item_id, body.model_dump(exclude_unset=True))


@router.delete("/menu/{item_id}")
@limiter.limit("30/minute")
def delete_menu_item(request: Request, item_id: PositiveIntId, db: DbSession, current_user: CanDeleteMenu):
    return MenuService(db).delete_item(item_id)


@router.delete("/menu/{item_id}/force")
@limiter.limit("10/minute")
def force_delete_menu_item(request: Request, item_id: PositiveIntId, db: DbSession, current_user: CanDeleteMenu):
    """Delete a menu item and every order line that references it."""
    return MenuService(db).delete_item(item_id, force=True)


@router.get("/categories")
@limiter.limit("60/minute")
def list_categories(request: Request, db: DbSession, current_user: CanViewMenu):
    categories = MenuService(db).list_categories()
    return list_response([CategoryResponse.model_validate(c) for c in categories])


@router.post("/categories", response_model=CategoryResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
def create_category(request: Request, body: CategoryCreate, db: DbSession, current_user: CanCreateMenu):
    return MenuService(db).create_category(body.name, body.description, body.sort_order)


# ============== CART ==============

@router.post("/cart/preview", response_model=CartPreviewResponse)
@limiter.limit("120/minute")
def preview_cart(request: Request, body: CartPreviewRequest, db: DbSession, current_user: CanViewMenu):
    """Price a cart against the live menu without writing anything.

    Items that cannot be sold are reported in ``skipped``.
    """
    catalog = MenuService(db).catalog()
    cart = Cart(catalog)
    skipped = []
    for line in body.lines:
        previous = sum(c.quantity for c in cart.lines if c.menu_item_id == line.menu_item_id)
        if not cart.add_line(line.menu_item_id, line.notes):
            skipped.append(line.menu_item_id)
            continue
        cart.set_quantity(line.menu_item_id, previous + line.quantity)

    priced = []
    for line in cart.lines:
        item = catalog[line.menu_item_id]
        priced.append(CartLineOut(
            menu_item_id=line.menu_item_id,
            name=item.name,
            quantity=line.quantity,
            unit_price=item.price,
            subtotal=item.price * line.quantity,
            notes=line.notes,
        ))
    return CartPreviewResponse(lines=priced, skipped=skipped, total=cart.total())


# ============== ORDERS ==============

@router.get("/orders")
@limiter.limit("60/minute")
def list_orders(
    request: Request,
    db: DbSession,
    current_user: CanViewOrders,
    table_id: Optional[int] = Query(None, alias="tableId"),
    status_filter: Optional[str] = Query(None, alias="status"),
):
    """List orders newest first."""
    orders = OrderService(db).list_orders(table_id=table_id, status=status_filter)
    return list_response([OrderResponse.from_db(o) for o in orders])


@router.get("/orders/{order_id}", response_model=OrderResponse)
@limiter.limit("60/minute")
def get_order(request: Request, order_id: PositiveIntId, db: DbSession, current_user: CanViewOrders):
    return OrderResponse.from_db(OrderService(db).get_order(order_id))


@router.post("/orders", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
def create_order(
    request: Request,
    body: OrderCreate,
    db: DbSession,
    current_user: CanCreateOrders,
    background_tasks: BackgroundTasks,
):
    """Open an order on a table.

    If the table already has an open order, send its id as ``openOrderId`` to
    add these items to it; otherwise the request is rejected with 409.
    """
    order = OrderService(db).create_order(
        table_id=body.table_id,
        lines=_lines(body.items),
        customer_id=body.customer_id,
        notes=body.notes,
        discount=body.discount,
        open_order_id=body.open_order_id,
        user_id=current_user.user_id,
    )
    background_tasks.add_task(broadcast_order_event, order_event("created", order))
    return OrderResponse.from_db(order)


@router.patch("/orders/{order_id}", response_model=OrderResponse)
@limiter.limit("30/minute")
def update_order(
    request: Request,
    order_id: PositiveIntId,
    body: OrderUpdate,
    db: DbSession,
    current_user: CanUpdateOrders,
    background_tasks: BackgroundTasks,
):
    """Edit notes, or move the order to another table when ``tableId`` differs."""
    order = OrderService(db).update_order(
        order_id, table_id=body.table_id, notes=body.notes, expected_version=body.version,
    )
    background_tasks.add_task(broadcast_order_event, order_event("updated", order))
    return OrderResponse.from_db(order)


@router.patch("/orders/{order_id}/status", response_model=OrderResponse)
@limiter.limit("30/minute")
def update_order_status(
    request: Request,
    order_id: PositiveIntId,
    body: OrderStatusUpdate,
    db: DbSession,
    current_user: CanUpdateOrders,
    background_tasks: BackgroundTasks,
):
    """Change order status. COMPLETED settles the bill and frees the table."""
    order = OrderService(db).update_status(
        order_id, body.status, body.payment_method, user_id=current_user.user_id,
    )
    background_tasks.add_task(broadcast_order_event, order_event("status", order))
    return OrderResponse.from_db(order)


@router.delete("/orders/{order_id}")
@limiter.limit("30/minute")
def delete_order(
    request: Request,
    order_id: PositiveIntId,
    db: DbSession,
    current_user: CanDeleteOrders,
    background_tasks: BackgroundTasks,
):
    result = OrderService(db).delete_order(order_id)
    background_tasks.add_task(
        broadcast_order_event,
        {"type": "order", "action": "deleted", "data": {"id": order_id, "orderNumber": result["order_number"]}},
    )
    return result


@router.delete("/orders/{order_id}/items/{item_id}", response_model=OrderResponse)
@limiter.limit("30/minute")
def remove_order_item(
    request: Request,
    order_id: PositiveIntId,
    item_id: PositiveIntId,
    db: DbSession,
    current_user: CanUpdateOrders,
    background_tasks: BackgroundTasks,
):
    """Remove a line from an open order."""
    order = OrderService(db).remove_order_item(order_id, item_id)
    background_tasks.add_task(broadcast_order_event, order_event("updated", order))
    return OrderResponse.from_db(order)
