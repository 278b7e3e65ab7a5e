"""
Debt endpoints: entry, listing, payment, cancellation and manual reclassification.
"""
from typing import Any, Dict, Optional

import structlog
from fastapi import APIRouter, Depends, Query, status

from collections_service.core.dependencies import get_debt_service, get_scheduler
from collections_service.models.domain import Debt, DebtTier
from collections_service.schemas.common import Page
from collections_service.schemas.debt import DebtCreate, PaymentRecord
from collections_service.services.debt_service import DebtService
from collections_service.services.scheduler import ReclassificationScheduler

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/debts", tags=["debts"])


@router.post("", response_model=Debt, status_code=status.HTTP_201_CREATED)
async def create_debt(
    request: DebtCreate,
    debt_service: DebtService = Depends(get_debt_service),
):
    """Enter a debt; its tier is computed from the due date."""
    return await debt_service.create_debt(request)


@router.get("", response_model=Page[Debt])
async def list_debts(
    tier: Optional[DebtTier] = Query(None),
    customer_id: Optional[str] = Query(None),
    days_in_arrears: Optional[int] = Query(None, ge=0),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    debt_service: DebtService = Depends(get_debt_service),
):
    """List debts ordered by due date."""
    debts, total = await debt_service.list_debts(
        tier=tier,
        customer_id=customer_id,
        days_in_arrears=days_in_arrears,
        page=page,
        limit=limit,
    )
    return Page[Debt].build(debts, total, page, limit)


@router.post("/reclassify")
async def reclassify_debts(
    scheduler: ReclassificationScheduler = Depends(get_scheduler),
) -> Dict[str, Any]:
    """Run a reclassification sweep now."""
    report = await scheduler.run_once()
    return report.to_dict()


@router.get("/{debt_id}", response_model=Debt)
async def get_debt(
    debt_id: str,
    debt_service: DebtService = Depends(get_debt_service),
):
    return await debt_service.get_debt(debt_id)


@router.post("/{debt_id}/payments", response_model=Debt)
async def record_payment(
    debt_id: str,
    request: PaymentRecord,
    debt_service: DebtService = Depends(get_debt_service),
):
    """
    Mark a debt as paid.

    The payment is credited to the campaign of the most recent campaign
    message sent about the debt.
    """
    return await debt_service.record_payment(debt_id, request)


@router.post("/{debt_id}/cancel", response_model=Debt)
async def cancel_debt(
    debt_id: str,
    debt_service: DebtService = Depends(get_debt_service),
):
    return await debt_service.cancel_debt(debt_id)
