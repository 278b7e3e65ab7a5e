"""
Portfolio and dashboard reporting.
"""
from datetime import date, timedelta
from decimal import Decimal
from typing import List, Optional

from collections_service.core.clock import Clock
from collections_service.core.exceptions import ValidationError
from collections_service.models.domain import DebtTier, percentage
from collections_service.schemas.reports import DashboardMetrics, PortfolioReport, TierSummary
from collections_service.services.store import CollectionsStore

DASHBOARD_WINDOW_DAYS = 30

_TIER_ORDER = [DebtTier.CURRENT, DebtTier.EARLY, DebtTier.MID, DebtTier.ADVANCED]


class ReportService:
    def __init__(self, store: CollectionsStore, clock: Clock):
        self.store = store
        self.clock = clock

    async def _tier_summaries(
        self, due_from: Optional[date] = None, due_to: Optional[date] = None
    ) -> List[TierSummary]:
        totals = await self.store.aggregate_open_debts(due_from=due_from, due_to=due_to)
        summaries = [
            TierSummary(
                tier=t.tier,
                count=t.count,
                total_amount=t.total_amount,
                average_days_in_arrears=round(t.average_days_in_arrears, 2),
            )
            for t in totals
        ]
        return sorted(summaries, key=lambda s: _TIER_ORDER.index(s.tier))

    async def portfolio(
        self, due_from: Optional[date] = None, due_to: Optional[date] = None
    ) -> PortfolioReport:
        """Open debts by tier, optionally limited to a due-date window."""
        if due_from and due_to and due_from > due_to:
            raise ValidationError("start of the window is after its end", field="due_from")

        tiers = await self._tier_summaries(due_from, due_to)
        return PortfolioReport(
            tiers=tiers,
            total_count=sum(t.count for t in tiers),
            total_amount=sum((t.total_amount for t in tiers), Decimal("0")),
        )

    async def dashboard(self) -> DashboardMetrics:
        since = self.clock.now() - timedelta(days=DASHBOARD_WINDOW_DAYS)
        tiers = await self._tier_summaries()
        sent, responded = await self.store.communication_counts_since(since)
        return DashboardMetrics(
            active_customers=await self.store.count_customers(),
            open_debts=sum(t.count for t in tiers),
            debts_by_tier=tiers,
            communications_last_30_days=sent,
            response_rate=percentage(responded, sent),
        )
