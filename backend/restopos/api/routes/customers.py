"""Customer and loyalty routes."""

import logging
from typing import Optional

from fastapi import APIRouter, Query, Request, status

from restopos.core.rate_limit import limiter
from restopos.core.rbac import CanManageCustomers, CanViewCustomers
from restopos.core.responses import list_response
from restopos.core.validators import PositiveIntId
from restopos.db.session import DbSession
from restopos.schemas.customer import (
    BalanceResponse,
    CustomerCreate,
    CustomerOrderHistory,
    CustomerResponse,
    CustomerUpdate,
    FavoriteItem,
    PointsAdjust,
    PointTransactionResponse,
)
from restopos.schemas.pos import OrderResponse
from restopos.services.loyalty_service import LoyaltyService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("")
@limiter.limit("60/minute")
def list_customers(
    request: Request,
    db: DbSession,
    current_user: CanViewCustomers,
    search: Optional[str] = Query(None, max_length=100),
):
    """List active customers, optionally matching name, phone or email."""
    customers = LoyaltyService(db).list_customers(search=search)
    return list_response([CustomerResponse.model_validate(c) for c in customers])


@router.post("", response_model=CustomerResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
def create_customer(request: Request, body: CustomerCreate, db: DbSession, current_user: CanManageCustomers):
    return LoyaltyService(db).create_customer(**body.model_dump())


@router.get("/{customer_id}", response_model=CustomerResponse)
@limiter.limit("60/minute")
def get_customer(request: Request, customer_id: PositiveIntId, db: DbSession, current_user: CanViewCustomers):
    return LoyaltyService(db).get_customer(customer_id)


@router.patch("/{customer_id}", response_model=CustomerResponse)
@limiter.limit("30/minute")
def update_customer(
    request: Request,
    customer_id: PositiveIntId,
    body: CustomerUpdate,
    db: DbSession,
    current_user: CanManageCustomers,
):
    return LoyaltyService(db).update_customer(customer_id, body.model_dump(exclude_unset=True))


@router.delete("/{customer_id}")
@limiter.limit("30/minute")
def delete_customer(request: Request, customer_id: PositiveIntId, db: DbSession, current_user: CanManageCustomers):
    LoyaltyService(db).delete_customer(customer_id)
    return {"status": "deleted", "customer_id": customer_id}


@router.get("/{customer_id}/points")
@limiter.limit("60/minute")
def get_points_history(
    request: Request, customer_id: PositiveIntId, db: DbSession, current_user: CanViewCustomers,
):
    """Ledger entries, newest first."""
    entries = LoyaltyService(db).points_history(customer_id)
    return list_response([PointTransactionResponse.model_validate(e) for e in entries])


@router.post("/{customer_id}/points", response_model=CustomerResponse)
@limiter.limit("30/minute")
def adjust_points(
    request: Request,
    customer_id: PositiveIntId,
    body: PointsAdjust,
    db: DbSession,
    current_user: CanManageCustomers,
):
    """Earn or spend points."""
    return LoyaltyService(db).add_points(
        customer_id,
        body.points,
        reason=body.description,
        point_type=body.type.upper(),
        order_id=body.order_id,
    )


@router.get("/{customer_id}/balance", response_model=BalanceResponse)
@limiter.limit("60/minute")
def get_balance(request: Request, customer_id: PositiveIntId, db: DbSession, current_user: CanViewCustomers):
    """Balance recomputed from the ledger."""
    service = LoyaltyService(db)
    customer = service.get_customer(customer_id)
    return BalanceResponse(
        customer_id=customer.id,
        balance=service.get_balance(customer_id),
        level=customer.level,
    )


@router.get("/{customer_id}/orders", response_model=CustomerOrderHistory)
@limiter.limit("60/minute")
def get_order_history(
    request: Request, customer_id: PositiveIntId, db: DbSession, current_user: CanViewCustomers,
):
    """Paid orders, total spent and favourite items."""
    history = LoyaltyService(db).order_history(customer_id)
    return CustomerOrderHistory(
        customer=CustomerResponse.model_validate(history["customer"]),
        orders=[OrderResponse.from_db(o) for o in history["orders"]],
        total_orders=history["total_orders"],
        total_spent=history["total_spent"],
        favorite_items=[FavoriteItem(**f) for f in history["favorite_items"]],
    )
