"""Sales reporting routes."""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Request

from restopos.core.rate_limit import limiter
from restopos.core.rbac import CanViewReports
from restopos.db.session import DbSession
from restopos.schemas.pos import OrderResponse
from restopos.services.report_service import ReportService

router = APIRouter()


@router.get("/sales")
@limiter.limit("30/minute")
def get_sales_report(
    request: Request,
    db: DbSession,
    current_user: CanViewReports,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
):
    """Revenue for paid orders between two local dates, inclusive. Defaults to today."""
    return ReportService(db).sales_report(start_date, end_date)


@router.get("/dashboard")
@limiter.limit("30/minute")
def get_dashboard(request: Request, db: DbSession, current_user: CanViewReports):
    data = ReportService(db).dashboard()
    data["recent_orders"] = [OrderResponse.from_db(o) for o in data["recent_orders"]]
    return data
