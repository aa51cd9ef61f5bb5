"""Cashier shift routes."""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, Request, status

from restopos.core.rate_limit import limiter
from restopos.core.rbac import CanOpenShifts, Permission, TokenData, has_permission
from restopos.core.responses import list_response
from restopos.core.validators import PositiveIntId
from restopos.db.session import DbSession
from restopos.schemas.staff import ShiftEnd, ShiftResponse, ShiftStart
from restopos.services.shift_service import ShiftService

logger = logging.getLogger(__name__)

router = APIRouter()


def _can_manage(user: TokenData) -> bool:
    return has_permission(user.role, Permission.SHIFT_MANAGE)


def _check_owner(shift, user: TokenData) -> None:
    if shift.user_id != user.user_id and not _can_manage(user):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Access denied. Required permissions: {Permission.SHIFT_MANAGE.value}",
        )


@router.get("")
@limiter.limit("60/minute")
def list_shifts(
    request: Request,
    db: DbSession,
    current_user: CanOpenShifts,
    user_id: Optional[int] = None,
    shift_status: Optional[str] = Query(None, alias="status"),
):
    """Shifts newest first. Staff without shift:manage only see their own."""
    if not _can_manage(current_user):
        user_id = current_user.user_id
    shifts = ShiftService(db).list_shifts(user_id=user_id, status=shift_status)
    return list_response([ShiftResponse.model_validate(s) for s in shifts])


@router.get("/current")
@limiter.limit("60/minute")
def get_current_shift(request: Request, db: DbSession, current_user: CanOpenShifts):
    """The caller's ACTIVE shift, or null."""
    shift = ShiftService(db).current_shift(current_user.user_id)
    return ShiftResponse.model_validate(shift) if shift else None


@router.get("/{shift_id}", response_model=ShiftResponse)
@limiter.limit("60/minute")
def get_shift(request: Request, shift_id: PositiveIntId, db: DbSession, current_user: CanOpenShifts):
    shift = ShiftService(db).get_shift(shift_id)
    _check_owner(shift, current_user)
    return shift


@router.post("", response_model=ShiftResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("10/minute")
def start_shift(request: Request, body: ShiftStart, db: DbSession, current_user: CanOpenShifts):
    """Open a shift for the caller with the counted opening float."""
    return ShiftService(db).start_shift(current_user.user_id, body.cash_start, notes=body.notes)


@router.patch("/{shift_id}/end", response_model=ShiftResponse)
@limiter.limit("10/minute")
def end_shift(
    request: Request,
    shift_id: PositiveIntId,
    body: ShiftEnd,
    db: DbSession,
    current_user: CanOpenShifts,
):
    """Close a shift with the counted drawer and record the difference."""
    service = ShiftService(db)
    _check_owner(service.get_shift(shift_id), current_user)
    return service.end_shift(shift_id, body.cash_end, notes=body.notes)
