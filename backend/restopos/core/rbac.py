"""Role-based access policy.

The role -> permission table below is the only place capabilities are
defined. Routes check it through ``require_permission``; terminals read a
user's capabilities from ``GET /auth/me/capabilities`` instead of keeping
their own copy of the table.
"""

from enum import Enum
from typing import Annotated, Dict, FrozenSet, List

from fastapi import Depends, HTTPException, Request, status

from restopos.core.security import decode_access_token
from restopos.db.session import DbSession


class UserRole(str, Enum):
    """User roles."""

    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    CASHIER = "CASHIER"
    KITCHEN = "KITCHEN"
    WAITER = "WAITER"
    STAFF = "STAFF"


class Permission(str, Enum):
    """Available permissions in the system."""
    # Tables
    TABLE_VIEW = "table:view"
    TABLE_CREATE = "table:create"
    TABLE_UPDATE = "table:update"
    TABLE_DELETE = "table:delete"

    # Menu
    MENU_VIEW = "menu:view"
    MENU_CREATE = "menu:create"
    MENU_UPDATE = "menu:update"
    MENU_DELETE = "menu:delete"

    # Orders
    ORDER_VIEW = "order:view"
    ORDER_CREATE = "order:create"
    ORDER_UPDATE = "order:update"
    ORDER_DELETE = "order:delete"

    # Customers / loyalty
    CUSTOMER_VIEW = "customer:view"
    CUSTOMER_MANAGE = "customer:manage"

    # Reports
    REPORTS_VIEW = "reports:view"

    # Users
    USER_VIEW = "user:view"
    USER_MANAGE = "user:manage"

    # Inventory
    INVENTORY_VIEW = "inventory:view"
    INVENTORY_MANAGE = "inventory:manage"

    # Shifts
    SHIFT_OPEN = "shift:open"  # own shift
    SHIFT_MANAGE = "shift:manage"  # anyone's shift


_P = Permission

ROLE_PERMISSIONS: Dict[UserRole, FrozenSet[Permission]] = {
    UserRole.ADMIN: frozenset(Permission),
    UserRole.MANAGER: frozenset({
        _P.TABLE_VIEW, _P.TABLE_CREATE, _P.TABLE_UPDATE, _P.TABLE_DELETE,
        _P.MENU_VIEW, _P.MENU_CREATE, _P.MENU_UPDATE, _P.MENU_DELETE,
        _P.ORDER_VIEW, _P.ORDER_CREATE, _P.ORDER_UPDATE, _P.ORDER_DELETE,
        _P.CUSTOMER_VIEW, _P.CUSTOMER_MANAGE,
        _P.REPORTS_VIEW,
        _P.USER_VIEW,
        _P.INVENTORY_VIEW, _P.INVENTORY_MANAGE,
        _P.SHIFT_OPEN, _P.SHIFT_MANAGE,
    }),
    UserRole.CASHIER: frozenset({
        _P.TABLE_VIEW, _P.TABLE_UPDATE,
        _P.MENU_VIEW,
        _P.ORDER_VIEW, _P.ORDER_CREATE, _P.ORDER_UPDATE,
        _P.CUSTOMER_VIEW, _P.CUSTOMER_MANAGE,
        _P.REPORTS_VIEW,
        _P.SHIFT_OPEN,
    }),
    UserRole.KITCHEN: frozenset({
        _P.MENU_VIEW, _P.MENU_UPDATE,
        _P.ORDER_VIEW, _P.ORDER_UPDATE,
        _P.INVENTORY_VIEW,
    }),
    UserRole.WAITER: frozenset({
        _P.TABLE_VIEW, _P.TABLE_UPDATE,
        _P.MENU_VIEW,
        _P.ORDER_VIEW, _P.ORDER_CREATE, _P.ORDER_UPDATE,
        _P.CUSTOMER_VIEW,
        _P.SHIFT_OPEN,
    }),
    UserRole.STAFF: frozenset({
        _P.TABLE_VIEW,
        _P.MENU_VIEW,
        _P.ORDER_VIEW,
    }),
}


def has_permission(role: UserRole, permission: Permission) -> bool:
    """Check if a role grants a permission."""
    return permission in ROLE_PERMISSIONS.get(role, frozenset())


def capabilities_for(role: UserRole) -> List[str]:
    """Sorted permission strings granted to a role."""
    return sorted(p.value for p in ROLE_PERMISSIONS.get(role, frozenset()))


class TokenData:
    """Decoded token data.

    Attributes:
        user_id: The user's database ID.
        email: The user's email address.
        role: The user's role.
    """

    def __init__(self, user_id: int, email: str, role: UserRole, name: str = ""):
        self.user_id = user_id
        self.id = user_id
        self.email = email
        self.role = role
        self.name = name or email.split("@")[0]

    @property
    def permissions(self) -> List[str]:
        return capabilities_for(self.role)


def get_current_user(request: Request, db: DbSession) -> TokenData:
    """Get the current authenticated user from the Authorization bearer token."""
    payload = None
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header.split(" ", 1)[1]
        if token:
            payload = decode_access_token(token)

    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user_id = payload.get("sub")
    if user_id is None or not str(user_id).isdigit():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
        )

    # Verify user is still active in the database
    from restopos.models.user import User
    user = db.get(User, int(user_id))
    if user is None or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User account is disabled",
        )

    # The role claim is informational; a role change applies on the next request
    return TokenData(
        user_id=user.id,
        email=user.email,
        role=UserRole(user.role.value),
        name=user.name or "",
    )


CurrentUser = Annotated[TokenData, Depends(get_current_user)]


def require_permission(*permissions: Permission):
    """Dependency requiring at least one of *permissions*.

    Usage:
        @router.post("/orders")
        def create_order(current_user: Annotated[TokenData, Depends(require_permission(Permission.ORDER_CREATE))]):
            ...
    """

    def permission_checker(current_user: CurrentUser) -> TokenData:
        if not any(has_permission(current_user.role, p) for p in permissions):
            required = ", ".join(p.value for p in permissions)
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required permissions: {required}",
            )
        return current_user

    return permission_checker


# Common permission dependencies
CanViewTables = Annotated[TokenData, Depends(require_permission(Permission.TABLE_VIEW))]
CanCreateTables = Annotated[TokenData, Depends(require_permission(Permission.TABLE_CREATE))]
CanUpdateTables = Annotated[TokenData, Depends(require_permission(Permission.TABLE_UPDATE))]
CanDeleteTables = Annotated[TokenData, Depends(require_permission(Permission.TABLE_DELETE))]
CanViewMenu = Annotated[TokenData, Depends(require_permission(Permission.MENU_VIEW))]
CanCreateMenu = Annotated[TokenData, Depends(require_permission(Permission.MENU_CREATE))]
CanUpdateMenu = Annotated[TokenData, Depends(require_permission(Permission.MENU_UPDATE))]
CanDeleteMenu = Annotated[TokenData, Depends(require_permission(Permission.MENU_DELETE))]
CanViewOrders = Annotated[TokenData, Depends(require_permission(Permission.ORDER_VIEW))]
CanCreateOrders = Annotated[TokenData, Depends(require_permission(Permission.ORDER_CREATE))]
CanUpdateOrders = Annotated[TokenData, Depends(require_permission(Permission.ORDER_UPDATE))]
CanDeleteOrders = Annotated[TokenData, Depends(require_permission(Permission.ORDER_DELETE))]
CanViewCustomers = Annotated[TokenData, Depends(require_permission(Permission.CUSTOMER_VIEW))]
CanManageCustomers = Annotated[TokenData, Depends(require_permission(Permission.CUSTOMER_MANAGE))]
CanViewReports = Annotated[TokenData, Depends(require_permission(Permission.REPORTS_VIEW))]
CanViewUsers = Annotated[TokenData, Depends(require_permission(Permission.USER_VIEW))]
CanManageUsers = Annotated[TokenData, Depends(require_permission(Permission.USER_MANAGE))]
CanViewInventory = Annotated[TokenData, Depends(require_permission(Permission.INVENTORY_VIEW))]
CanManageInventory = Annotated[TokenData, Depends(require_permission(Permission.INVENTORY_MANAGE))]
CanOpenShifts = Annotated[TokenData, Depends(require_permission(Permission.SHIFT_OPEN, Permission.SHIFT_MANAGE))]
