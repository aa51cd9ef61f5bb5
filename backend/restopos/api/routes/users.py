"""Staff account routes."""

import logging
from typing import Optional

from fastapi import APIRouter, Query, Request, status

from restopos.core.rate_limit import limiter
from restopos.core.rbac import CanManageUsers, CanViewUsers
from restopos.core.responses import list_response
from restopos.core.validators import PositiveIntId
from restopos.db.session import DbSession
from restopos.schemas.staff import StaffUserResponse, UserCreate, UserStats, UserUpdate
from restopos.services.user_service import UserService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("")
@limiter.limit("60/minute")
def list_users(
    request: Request,
    db: DbSession,
    current_user: CanViewUsers,
    search: Optional[str] = Query(None, max_length=100),
    role: Optional[str] = None,
    is_active: Optional[bool] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
):
    """Staff accounts matching name or email, paginated."""
    users, total = UserService(db).list_users(
        search=search, role=role, is_active=is_active, page=page, page_size=page_size,
    )
    return list_response([StaffUserResponse.from_db(u) for u in users], total=total)


@router.get("/stats", response_model=UserStats)
@limiter.limit("30/minute")
def get_user_stats(request: Request, db: DbSession, current_user: CanViewUsers):
    return UserService(db).stats()


@router.get("/{user_id}", response_model=StaffUserResponse)
@limiter.limit("60/minute")
def get_user(request: Request, user_id: PositiveIntId, db: DbSession, current_user: CanViewUsers):
    return StaffUserResponse.from_db(UserService(db).get_user(user_id))


@router.post("", response_model=StaffUserResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("10/minute")
def create_user(request: Request, body: UserCreate, db: DbSession, current_user: CanManageUsers):
    return StaffUserResponse.from_db(UserService(db).create_user(**body.model_dump()))


@router.patch("/{user_id}", response_model=StaffUserResponse)
@limiter.limit("30/minute")
def update_user(
    request: Request,
    user_id: PositiveIntId,
    body: UserUpdate,
    db: DbSession,
    current_user: CanManageUsers,
):
    user = UserService(db).update_user(
        user_id, body.model_dump(exclude_unset=True), acting_user_id=current_user.user_id,
    )
    return StaffUserResponse.from_db(user)


@router.patch("/{user_id}/toggle-status", response_model=StaffUserResponse)
@limiter.limit("30/minute")
def toggle_user_status(request: Request, user_id: PositiveIntId, db: DbSession, current_user: CanManageUsers):
    """Activate an inactive account or deactivate an active one."""
    user = UserService(db).toggle_status(user_id, acting_user_id=current_user.user_id)
    return StaffUserResponse.from_db(user)


@router.delete("/{user_id}")
@limiter.limit("30/minute")
def delete_user(request: Request, user_id: PositiveIntId, db: DbSession, current_user: CanManageUsers):
    UserService(db).delete_user(user_id, acting_user_id=current_user.user_id)
    return {"status": "deleted", "user_id": user_id}
