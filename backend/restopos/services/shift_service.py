"""Cashier shifts: open with a float, close with a cash count."""

import logging
from typing import List, Optional

from sqlalchemy import func

from restopos.core.exceptions import ConflictError, NotFoundError, ValidationError
from restopos.db.base import utcnow
from restopos.models.restaurant import Payment, PaymentMethod
from restopos.models.shift import SHIFT_STATUSES, Shift, ShiftStatus
from restopos.models.user import User
from restopos.services.base import BaseService

logger = logging.getLogger(__name__)


class ShiftService(BaseService):
    """One ACTIVE shift per user at a time."""

    def list_shifts(self, user_id: Optional[int] = None, status: Optional[str] = None) -> List[Shift]:
        """Shifts newest first."""
        query = self.db.query(Shift)
        if user_id is not None:
            query = query.filter(Shift.user_id == user_id)
        if status:
            status = status.upper()
            if status not in SHIFT_STATUSES:
                raise ValidationError(f"Invalid shift status: {status}")
            query = query.filter(Shift.status == status)
        return query.order_by(Shift.start_time.desc(), Shift.id.desc()).all()

    def get_shift(self, shift_id: int, lock: bool = False) -> Shift:
        query = self.db.query(Shift).filter(Shift.id == shift_id)
        if lock:
            query = query.with_for_update()
        shift = query.first()
        if not shift:
            raise NotFoundError("Shift", shift_id)
        return shift

    def current_shift(self, user_id: int) -> Optional[Shift]:
        return (
            self.db.query(Shift)
            .filter(Shift.user_id == user_id, Shift.status == ShiftStatus.ACTIVE.value)
            .first()
        )

    def start_shift(self, user_id: int, cash_start: int, notes: Optional[str] = None) -> Shift:
        if cash_start is None or cash_start < 0:
            raise ValidationError("Opening cash cannot be negative")
        with self.transaction():
            # Serialize concurrent starts for the same user on the account row
            user = self.db.query(User).filter(User.id == user_id).with_for_update().first()
            if user is None:
                raise NotFoundError("User", user_id)
            if self.current_shift(user_id) is not None:
                raise ConflictError("Shift already started")
            shift = Shift(
                user_id=user_id,
                status=ShiftStatus.ACTIVE.value,
                cash_start=cash_start,
                start_time=utcnow(),
                notes=notes,
            )
            self.db.add(shift)
        self.db.refresh(shift)
        logger.info(f"Shift {shift.id} started by user {user_id} with {cash_start}")
        return shift

    def cash_sales(self, shift: Shift, until=None) -> int:
        """Cash the shift's owner took between the shift start and ``until``."""
        query = self.db.query(func.coalesce(func.sum(Payment.amount), 0)).filter(
            Payment.method == PaymentMethod.CASH.value,
            Payment.received_by == shift.user_id,
            Payment.processed_at >= shift.start_time,
        )
        if until is not None:
            query = query.filter(Payment.processed_at <= until)
        return int(query.scalar() or 0)

    def end_shift(self, shift_id: int, cash_end: int, notes: Optional[str] = None) -> Shift:
        """Close a shift and reconcile the counted cash against the expected drawer."""
        if cash_end is None or cash_end < 0:
            raise ValidationError("Closing cash cannot be negative")
        with self.transaction():
            shift = self.get_shift(shift_id, lock=True)
            if shift.status != ShiftStatus.ACTIVE.value:
                raise ConflictError(f"Shift {shift.id} is already closed")
            now = utcnow()
            shift.cash_sales = self.cash_sales(shift, until=now)
            shift.expected_cash = shift.cash_start + shift.cash_sales
            shift.cash_end = cash_end
            shift.difference = cash_end - shift.expected_cash
            shift.end_time = now
            shift.status = ShiftStatus.CLOSED.value
            if notes is not None:
                shift.notes = notes
        self.db.refresh(shift)
        if shift.difference:
            logger.warning(f"Shift {shift.id} closed with cash difference {shift.difference}")
        else:
            logger.info(f"Shift {shift.id} closed, drawer balanced at {cash_end}")
        return shift
