"""API routes."""

import logging

from fastapi import APIRouter

from restopos.api.routes import auth, customers, inventory, pos, reports, shifts, users

logger = logging.getLogger(__name__)

api_router = APIRouter()

api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(pos.router, prefix="/pos", tags=["pos"])
api_router.include_router(customers.router, prefix="/customers", tags=["customers", "loyalty"])
api_router.include_router(reports.router, prefix="/reports", tags=["reports"])
api_router.include_router(inventory.router, prefix="/inventory", tags=["inventory"])
api_router.include_router(users.router, prefix="/users", tags=["users"])
api_router.include_router(shifts.router, prefix="/shifts", tags=["shifts"])
