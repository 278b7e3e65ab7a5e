"""
Reporting endpoints.
"""
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query

from collections_service.core.dependencies import get_report_service
from collections_service.schemas.reports import DashboardMetrics, PortfolioReport
from collections_service.services.report_service import ReportService

router = APIRouter(prefix="/reports", tags=["reports"])


@router.get("/portfolio", response_model=PortfolioReport)
async def portfolio_report(
    due_from: Optional[date] = Query(None, description="Earliest due date included"),
    due_to: Optional[date] = Query(None, description="Latest due date included"),
    report_service: ReportService = Depends(get_report_service),
):
    """Open debts grouped by arrears tier."""
    return await report_service.portfolio(due_from=due_from, due_to=due_to)


@router.get("/dashboard", response_model=DashboardMetrics)
async def dashboard(
    report_service: ReportService = Depends(get_report_service),
):
    return await report_service.dashboard()
