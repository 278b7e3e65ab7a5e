"""
Debt registry: entry, listing, payment and cancellation.
"""
from typing import Optional, Tuple, List

import structlog

from collections_service.core.clock import Clock
from collections_service.core.exceptions import BusinessRuleError, ResourceNotFoundError
from collections_service.core.logging import log_business_event
from collections_service.models.domain import Debt, DebtTier
from collections_service.schemas.debt import DebtCreate, PaymentRecord
from collections_service.services.campaign_metrics import CampaignMetricsAggregator
from collections_service.services.classifier import classify
from collections_service.services.store import CollectionsStore

logger = structlog.get_logger(__name__)


class DebtService:
    """Manages the lifecycle of debts outside the reclassification sweep."""

    def __init__(
        self,
        store: CollectionsStore,
        clock: Clock,
        metrics: Optional[CampaignMetricsAggregator] = None,
    ):
        self.store = store
        self.clock = clock
        self.metrics = metrics or CampaignMetricsAggregator(store)

    async def create_debt(self, data: DebtCreate) -> Debt:
        """
        Enter a debt, classified as of today.

        Raises:
            ResourceNotFoundError: Customer does not exist
            BusinessRuleError: Invoice number already recorded
        """
        customer = await self.store.get_customer(data.customer_id)
        if customer is None:
            raise ResourceNotFoundError("customer", data.customer_id)

        if data.invoice_number and await self.store.get_debt_by_invoice(data.invoice_number):
            raise BusinessRuleError(
                f"invoice {data.invoice_number} is already recorded",
                rule_name="unique_invoice",
            )

        classification = classify(data.due_date, self.clock.today(), DebtTier.CURRENT)
        debt = Debt(
            customer_id=customer.id,
            original_amount=data.original_amount,
            amount=data.amount,
            due_date=data.due_date,
            days_in_arrears=classification.days_in_arrears,
            tier=classification.tier,
            description=data.description,
            invoice_number=data.invoice_number,
            created_at=self.clock.now(),
        )
        await self.store.add_debt(debt)

        logger.info(
            "Debt created",
            debt_id=debt.id,
            customer_id=customer.id,
            tier=debt.tier.value,
            days_in_arrears=debt.days_in_arrears,
        )
        return debt

    async def get_debt(self, debt_id: str) -> Debt:
        debt = await self.store.get_debt(debt_id)
        if debt is None:
            raise ResourceNotFoundError("debt", debt_id)
        return debt

    async def list_debts(
        self,
        tier: Optional[DebtTier] = None,
        customer_id: Optional[str] = None,
        days_in_arrears: Optional[int] = None,
        page: int = 1,
        limit: int = 10,
    ) -> Tuple[List[Debt], int]:
        return await self.store.list_debts(
            tier=tier,
            customer_id=customer_id,
            days_in_arrears=days_in_arrears,
            offset=(page - 1) * limit,
            limit=limit,
        )

    async def record_payment(self, debt_id: str, payment: PaymentRecord) -> Debt:
        """
        Settle a debt in full and credit the campaign that last contacted it.

        Raises:
            ResourceNotFoundError: Debt does not exist
            BusinessRuleError: Debt is already paid or cancelled
        """
        debt = await self._settle(debt_id, DebtTier.PAID, payment.paid_at, payment.method)

        communication = await self.store.latest_campaign_communication(debt.id)
        if communication is not None:
            await self.metrics.increment(communication.campaign_id, "paid")

        log_business_event(
            "payment_recorded",
            debt_id=debt.id,
            customer_id=debt.customer_id,
            payment_method=payment.method,
            campaign_id=communication.campaign_id if communication else None,
        )
        return debt

    async def cancel_debt(self, debt_id: str) -> Debt:
        """
        Write off a debt.

        Raises:
            ResourceNotFoundError: Debt does not exist
            BusinessRuleError: Debt is already paid or cancelled
        """
        debt = await self._settle(debt_id, DebtTier.CANCELLED)
        logger.info("Debt cancelled", debt_id=debt.id)
        return debt

    async def _settle(self, debt_id, tier, settled_at=None, payment_method=None) -> Debt:
        existing = await self.get_debt(debt_id)
        settled = await self.store.settle_debt(
            existing.id,
            tier,
            settled_at or self.clock.now(),
            payment_method=payment_method,
        )
        if settled is None:
            current = await self.get_debt(debt_id)
            raise BusinessRuleError(
                f"debt is already {current.tier.value}",
                rule_name="debt_terminal",
                entity_id=debt_id,
            )
        return settled
