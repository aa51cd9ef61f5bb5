"""Authentication routes."""

import logging

from fastapi import APIRouter, HTTPException, Request, status

from restopos.core.rate_limit import limiter
from restopos.core.rbac import CurrentUser, capabilities_for
from restopos.core.security import create_access_token, verify_password
from restopos.db.session import DbSession
from restopos.models.user import User
from restopos.schemas.auth import CapabilitiesResponse, LoginRequest, Token, UserResponse

logger = logging.getLogger("auth")

router = APIRouter()


@router.post("/login", response_model=Token)
@limiter.limit("5/minute")
def login(request: Request, login_request: LoginRequest, db: DbSession):
    """Authenticate user and return JWT token."""
    client_ip = request.client.host if request.client else "unknown"
    user = db.query(User).filter(User.email == login_request.email).first()

    if not user or not verify_password(login_request.password, user.password_hash):
        logger.warning(f"Failed login attempt for email: {login_request.email} from IP: {client_ip}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )
    if not user.is_active:
        logger.warning(f"Login attempt for inactive user: {login_request.email} (ID: {user.id})")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User account is inactive",
        )

    logger.info(f"Successful login: {user.email} (ID: {user.id}, role: {user.role.value}) from IP: {client_ip}")
    token = create_access_token(
        data={"sub": str(user.id), "email": user.email, "role": user.role.value}
    )
    return Token(access_token=token)


@router.get("/me", response_model=UserResponse)
@limiter.limit("60/minute")
def get_current_user_info(request: Request, current_user: CurrentUser, db: DbSession):
    """Get current authenticated user info."""
    user = db.get(User, current_user.user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return UserResponse(
        id=user.id, email=user.email, name=user.name, role=user.role.value, is_active=user.is_active,
    )


@router.get("/me/capabilities", response_model=CapabilitiesResponse)
@limiter.limit("60/minute")
def get_my_capabilities(request: Request, current_user: CurrentUser):
    """Permissions granted to the signed-in user's role."""
    return CapabilitiesResponse(
        role=current_user.role.value,
        permissions=capabilities_for(current_user.role),
    )
