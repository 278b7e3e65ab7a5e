"""Pydantic schemas for report endpoints."""

from decimal import Decimal
from typing import List

from pydantic import BaseModel, Field

from collections_service.models.domain import DebtTier


class TierSummary(BaseModel):
    """Aggregate of open debts in one tier."""
    tier: DebtTier
    count: int
    total_amount: Decimal
    average_days_in_arrears: float


class PortfolioReport(BaseModel):
    """Open debts grouped by arrears tier."""
    tiers: List[TierSummary]
    total_count: int
    total_amount: Decimal


class DashboardMetrics(BaseModel):
    """Headline figures for the collections dashboard."""
    active_customers: int
    open_debts: int
    debts_by_tier: List[TierSummary]
    communications_last_30_days: int
    response_rate: float = Field(..., description="Responded / sent over the last 30 days, percent")
