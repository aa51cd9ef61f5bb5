"""Staff account management."""

import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func, or_

from restopos.core.exceptions import ConflictError, NotFoundError, ValidationError
from restopos.core.rbac import UserRole
from restopos.core.security import get_password_hash
from restopos.models.restaurant import Order
from restopos.models.shift import Shift
from restopos.models.user import User
from restopos.services.base import BaseService

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8
USER_FIELDS = {"email", "name", "role", "is_active", "password"}


def parse_role(role: Any) -> UserRole:
    try:
        return role if isinstance(role, UserRole) else UserRole(str(role).upper())
    except ValueError:
        raise ValidationError(f"Invalid role: {role}")


class UserService(BaseService):
    """Create, edit and retire staff accounts."""

    def list_users(
        self,
        search: Optional[str] = None,
        role: Optional[str] = None,
        is_active: Optional[bool] = None,
        page: int = 1,
        page_size: int = 50,
    ) -> Tuple[List[User], int]:
        """Users ordered by name. Returns the page and the total match count."""
        query = self.db.query(User)
        if search:
            pattern = f"%{search.strip()}%"
            query = query.filter(or_(User.name.ilike(pattern), User.email.ilike(pattern)))
        if role and role != "all":
            query = query.filter(User.role == parse_role(role))
        if is_active is not None:
            query = query.filter(User.is_active.is_(is_active))

        total = query.count()
        users = (
            query.order_by(User.name.asc(), User.id.asc())
            .offset((max(page, 1) - 1) * page_size)
            .limit(page_size)
            .all()
        )
        return users, total

    def get_user(self, user_id: int) -> User:
        user = self.db.get(User, user_id)
        if not user:
            raise NotFoundError("User", user_id)
        return user

    def _check_email_free(self, email: str, exclude_id: Optional[int] = None) -> None:
        query = self.db.query(User).filter(func.lower(User.email) == email.lower())
        if exclude_id is not None:
            query = query.filter(User.id != exclude_id)
        if query.first():
            raise ConflictError(f"Email already in use: {email}")

    @staticmethod
    def _hash(password: Optional[str]) -> str:
        if not password or len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
        return get_password_hash(password)

    def create_user(
        self,
        email: str,
        password: str,
        name: Optional[str] = None,
        role: Any = UserRole.STAFF,
        is_active: bool = True,
    ) -> User:
        email = (email or "").strip().lower()
        if not email:
            raise ValidationError("Email cannot be empty")
        user = User(
            email=email,
            password_hash=self._hash(password),
            name=name.strip() if name else None,
            role=parse_role(role),
            is_active=is_active,
        )
        with self.transaction():
            self._check_email_free(email)
            self.db.add(user)
        self.db.refresh(user)
        logger.info(f"Created user {user.id} ({user.email}) as {user.role.value}")
        return user

    def update_user(self, user_id: int, fields: Dict[str, Any], acting_user_id: Optional[int] = None) -> User:
        """Partial update. A new password is re-hashed."""
        changes = {k: v for k, v in fields.items() if k in USER_FIELDS}
        for key in ("email", "role", "is_active", "password"):
            if key in changes and changes[key] is None:
                raise ValidationError(f"User {key} cannot be null")
        if changes.get("is_active") is False and user_id == acting_user_id:
            raise ValidationError("You cannot deactivate your own account")

        with self.transaction():
            user = self.get_user(user_id)
            if "email" in changes:
                changes["email"] = changes["email"].strip().lower()
                self._check_email_free(changes["email"], exclude_id=user.id)
                user.email = changes["email"]
            if "password" in changes:
                user.password_hash = self._hash(changes["password"])
            if "role" in changes:
                user.role = parse_role(changes["role"])
            if "name" in changes:
                user.name = changes["name"].strip() if changes["name"] else None
            if "is_active" in changes:
                user.is_active = changes["is_active"]
        self.db.refresh(user)
        logger.info(f"Updated user {user.id}: {sorted(k for k in changes if k != 'password')}")
        return user

    def toggle_status(self, user_id: int, acting_user_id: Optional[int] = None) -> User:
        user = self.get_user(user_id)
        return self.update_user(user_id, {"is_active": not user.is_active}, acting_user_id=acting_user_id)

    def delete_user(self, user_id: int, acting_user_id: Optional[int] = None) -> None:
        """Delete an account with no history. Accounts that took orders or ran
        shifts must be deactivated instead."""
        if user_id == acting_user_id:
            raise ValidationError("You cannot delete your own account")
        with self.transaction():
            user = self.get_user(user_id)
            orders = self.db.query(Order).filter(Order.user_id == user_id).count()
            shifts = self.db.query(Shift).filter(Shift.user_id == user_id).count()
            if orders or shifts:
                raise ConflictError(
                    f"User {user.email} has {orders} orders and {shifts} shifts. Deactivate the account instead."
                )
            self.db.delete(user)
        logger.info(f"Deleted user {user_id}")

    def stats(self) -> Dict[str, Any]:
        total = self.db.query(func.count(User.id)).scalar() or 0
        active = self.db.query(func.count(User.id)).filter(User.is_active.is_(True)).scalar() or 0
        by_role = {role.value: 0 for role in UserRole}
        for role, count in self.db.query(User.role, func.count(User.id)).group_by(User.role).all():
            by_role[role.value] = count
        return {"total": total, "active": active, "inactive": total - active, "by_role": by_role}
