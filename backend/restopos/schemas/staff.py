"""Staff account and shift schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Dict, Optional

from pydantic import EmailStr, Field

from restopos.schemas.pos import CamelModel


class UserCreate(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)
    name: Optional[str] = Field(default=None, max_length=255)
    role: str = "STAFF"
    is_active: bool = True


class UserUpdate(CamelModel):
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(default=None, min_length=8, max_length=128)
    name: Optional[str] = Field(default=None, max_length=255)
    role: Optional[str] = None
    is_active: Optional[bool] = None


class StaffUserResponse(CamelModel):
    id: int
    email: str
    name: Optional[str] = None
    role: str
    is_active: bool
    created_at: Optional[datetime] = None

    @classmethod
    def from_db(cls, user) -> "StaffUserResponse":
        return cls(
            id=user.id,
            email=user.email,
            name=user.name,
            role=user.role.value,
            is_active=user.is_active,
            created_at=user.created_at,
        )


class UserStats(CamelModel):
    total: int
    active: int
    inactive: int
    by_role: Dict[str, int]


class ShiftStart(CamelModel):
    cash_start: int = Field(..., ge=0)
    notes: Optional[str] = None


class ShiftEnd(CamelModel):
    cash_end: int = Field(..., ge=0)
    notes: Optional[str] = None


class ShiftResponse(CamelModel):
    id: int
    user_id: int
    status: str
    cash_start: int
    start_time: datetime
    cash_end: Optional[int] = None
    end_time: Optional[datetime] = None
    cash_sales: Optional[int] = None
    expected_cash: Optional[int] = None
    difference: Optional[int] = None
    notes: Optional[str] = None
