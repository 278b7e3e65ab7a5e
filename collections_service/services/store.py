"""
Collections store interface and in-memory implementation.

The store is the only shared mutable resource. Two writes need store-level
guarantees rather than application read-modify-write:

- campaign metric increments are atomic per campaign;
- classification writes only land while the stored tier is non-terminal, so
  a payment or cancellation always wins over a concurrent sweep.
"""
import asyncio
from abc import ABC, abstractmethod
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

import structlog

from collections_service.models.domain import (
    METRIC_FIELDS,
    Campaign,
    CampaignMetrics,
    Channel,
    Communication,
    Customer,
    Debt,
    DebtTier,
    DeliveryStatus,
    Template,
    Tone,
)

logger = structlog.get_logger(__name__)


@dataclass
class TierTotals:
    """Aggregate of open debts in one tier."""
    tier: DebtTier
    count: int
    total_amount: Decimal
    average_days_in_arrears: float


class CollectionsStore(ABC):
    """Durable store for customers, debts, templates, communications and campaigns."""

    # Customers
    @abstractmethod
    async def add_customer(self, customer: Customer) -> Customer: ...

    @abstractmethod
    async def get_customer(self, customer_id: str) -> Optional[Customer]: ...

    @abstractmethod
    async def get_customer_by_email(self, email: str) -> Optional[Customer]: ...

    @abstractmethod
    async def list_customers(
        self, search: Optional[str] = None, offset: int = 0, limit: int = 10
    ) -> Tuple[List[Customer], int]:
        """Active customers, newest first, optionally filtered by name/email/phone."""

    @abstractmethod
    async def count_customers(self, active_only: bool = True) -> int: ...

    # Debts
    @abstractmethod
    async def add_debt(self, debt: Debt) -> Debt: ...

    @abstractmethod
    async def get_debt(self, debt_id: str) -> Optional[Debt]: ...

    @abstractmethod
    async def get_debt_by_invoice(self, invoice_number: str) -> Optional[Debt]: ...

    @abstractmethod
    async def list_debts(
        self,
        tier: Optional[DebtTier] = None,
        customer_id: Optional[str] = None,
        days_in_arrears: Optional[int] = None,
        offset: int = 0,
        limit: int = 10,
    ) -> Tuple[List[Debt], int]:
        """Debts ordered by due date, oldest first."""

    @abstractmethod
    async def list_open_debts(self) -> List[Debt]:
        """Every debt whose tier is not terminal."""

    @abstractmethod
    async def apply_classification(self, debt_id: str, days_in_arrears: int, tier: DebtTier) -> bool:
        """
        Write a classifier result unless the stored debt is terminal.

        Returns:
            True if the write landed, False if the debt is missing or terminal
        """

    @abstractmethod
    async def settle_debt(
        self,
        debt_id: str,
        tier: DebtTier,
        settled_at: datetime,
        payment_method: Optional[str] = None,
    ) -> Optional[Debt]:
        """
        Move a non-terminal debt into a terminal tier.

        Returns:
            The settled debt, or None if it is missing or already terminal
        """

    @abstractmethod
    async def aggregate_open_debts(
        self, due_from: Optional[date] = None, due_to: Optional[date] = None
    ) -> List[TierTotals]: ...

    # Templates
    @abstractmethod
    async def add_template(self, template: Template) -> Template: ...

    @abstractmethod
    async def get_template(self, template_id: str) -> Optional[Template]: ...

    @abstractmethod
    async def save_template(self, template: Template, require_unused: bool = False) -> Optional[Template]:
        """
        Overwrite a stored template.

        With ``require_unused`` the write is refused, returning None, when any
        communication already references the template. The check and the write
        happen as one step.
        """

    @abstractmethod
    async def list_templates(
        self,
        channel: Optional[Channel] = None,
        tone: Optional[Tone] = None,
        active_only: bool = True,
    ) -> List[Template]:
        """Templates ordered by threshold, then id."""

    @abstractmethod
    async def template_in_use(self, template_id: str) -> bool: ...

    # Communications
    @abstractmethod
    async def add_communication(self, communication: Communication) -> Communication: ...

    @abstractmethod
    async def get_communication(self, communication_id: str) -> Optional[Communication]: ...

    @abstractmethod
    async def finalize_communication(
        self,
        communication_id: str,
        status: DeliveryStatus,
        provider_message_id: Optional[str] = None,
        error_message: Optional[str] = None,
    ) -> Communication: ...

    @abstractmethod
    async def list_communications(
        self,
        customer_id: Optional[str] = None,
        debt_id: Optional[str] = None,
        channel: Optional[Channel] = None,
        offset: int = 0,
        limit: int = 10,
    ) -> Tuple[List[Communication], int]:
        """Communications, newest first."""

    @abstractmethod
    async def latest_campaign_communication(self, debt_id: str) -> Optional[Communication]:
        """Most recent communication for the debt that carries a campaign reference."""

    @abstractmethod
    async def communication_counts_since(self, since: datetime) -> Tuple[int, int]:
        """(total, responded) communications sent at or after ``since``."""

    # Campaigns
    @abstractmethod
    async def add_campaign(self, campaign: Campaign) -> Campaign: ...

    @abstractmethod
    async def get_campaign(self, campaign_id: str) -> Optional[Campaign]: ...

    @abstractmethod
    async def list_campaigns(self) -> List[Campaign]:
        """Campaigns, newest first."""

    @abstractmethod
    async def increment_campaign_metrics(
        self, campaign_id: str, deltas: Dict[str, int]
    ) -> Optional[CampaignMetrics]:
        """
        Atomically add ``deltas`` to the campaign counters.

        Returns:
            Counters after the increment, or None if the campaign is missing
        """

    async def health_check(self) -> bool:
        return True

    async def close(self) -> None:
        return None


def _matches_search(customer: Customer, search: str) -> bool:
    needle = search.lower()
    return any(needle in (value or "").lower() for value in (customer.name, customer.email, customer.phone))


class InMemoryStore(CollectionsStore):
    """
    Process-local store for development and tests.

    Records are copied on the way in and out so callers never share state with
    the store.
    """

    def __init__(self):
        self._customers: Dict[str, Customer] = {}
        self._debts: Dict[str, Debt] = {}
        self._templates: Dict[str, Template] = {}
        self._communications: Dict[str, Communication] = {}
        self._campaigns: Dict[str, Campaign] = {}
        self._debt_locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._campaign_locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    # Customers
    async def add_customer(self, customer: Customer) -> Customer:
        self._customers[customer.id] = customer.model_copy(deep=True)
        return customer

    async def get_customer(self, customer_id: str) -> Optional[Customer]:
        customer = self._customers.get(customer_id)
        return customer.model_copy(deep=True) if customer else None

    async def get_customer_by_email(self, email: str) -> Optional[Customer]:
        for customer in self._customers.values():
            if customer.email == email.lower():
                return customer.model_copy(deep=True)
        return None

    async def list_customers(
        self, search: Optional[str] = None, offset: int = 0, limit: int = 10
    ) -> Tuple[List[Customer], int]:
        customers = [c for c in self._customers.values() if c.active]
        if search:
            customers = [c for c in customers if _matches_search(c, search)]
        customers.sort(key=lambda c: c.registered_at, reverse=True)
        page = [c.model_copy(deep=True) for c in customers[offset:offset + limit]]
        return page, len(customers)

    async def count_customers(self, active_only: bool = True) -> int:
        return sum(1 for c in self._customers.values() if c.active or not active_only)

    # Debts
    async def add_debt(self, debt: Debt) -> Debt:
        self._debts[debt.id] = debt.model_copy(deep=True)
        return debt

    async def get_debt(self, debt_id: str) -> Optional[Debt]:
        debt = self._debts.get(debt_id)
        return debt.model_copy(deep=True) if debt else None

    async def get_debt_by_invoice(self, invoice_number: str) -> Optional[Debt]:
        for debt in self._debts.values():
            if debt.invoice_number == invoice_number:
                return debt.model_copy(deep=True)
        return None

    async def list_debts(
        self,
        tier: Optional[DebtTier] = None,
        customer_id: Optional[str] = None,
        days_in_arrears: Optional[int] = None,
        offset: int = 0,
        limit: int = 10,
    ) -> Tuple[List[Debt], int]:
        debts = list(self._debts.values())
        if tier is not None:
            debts = [d for d in debts if d.tier == tier]
        if customer_id is not None:
            debts = [d for d in debts if d.customer_id == customer_id]
        if days_in_arrears is not None:
            debts = [d for d in debts if d.days_in_arrears == days_in_arrears]
        debts.sort(key=lambda d: (d.due_date, d.id))
        page = [d.model_copy(deep=True) for d in debts[offset:offset + limit]]
        return page, len(debts)

    async def list_open_debts(self) -> List[Debt]:
        return [d.model_copy(deep=True) for d in self._debts.values() if not d.is_terminal]

    async def apply_classification(self, debt_id: str, days_in_arrears: int, tier: DebtTier) -> bool:
        async with self._debt_locks[debt_id]:
            debt = self._debts.get(debt_id)
            if debt is None or debt.is_terminal:
                return False
            debt.days_in_arrears = days_in_arrears
            debt.tier = tier
            return True

    async def settle_debt(
        self,
        debt_id: str,
        tier: DebtTier,
        settled_at: datetime,
        payment_method: Optional[str] = None,
    ) -> Optional[Debt]:
        async with self._debt_locks[debt_id]:
            debt = self._debts.get(debt_id)
            if debt is None or debt.is_terminal:
                return None
            debt.tier = tier
            if tier == DebtTier.PAID:
                debt.amount = Decimal("0")
                debt.paid_at = settled_at
                debt.payment_method = payment_method
            return debt.model_copy(deep=True)

    async def aggregate_open_debts(
        self, due_from: Optional[date] = None, due_to: Optional[date] = None
    ) -> List[TierTotals]:
        grouped: Dict[DebtTier, List[Debt]] = defaultdict(list)
        for debt in self._debts.values():
            if debt.is_terminal:
                continue
            if due_from and debt.due_date < due_from:
                continue
            if due_to and debt.due_date > due_to:
                continue
            grouped[debt.tier].append(debt)

        return [
            TierTotals(
                tier=tier,
                count=len(debts),
                total_amount=sum((d.amount for d in debts), Decimal("0")),
                average_days_in_arrears=sum(d.days_in_arrears for d in debts) / len(debts),
            )
            for tier, debts in grouped.items()
        ]

    # Templates
    async def add_template(self, template: Template) -> Template:
        self._templates[template.id] = template.model_copy(deep=True)
        return template

    async def get_template(self, template_id: str) -> Optional[Template]:
        template = self._templates.get(template_id)
        return template.model_copy(deep=True) if template else None

    async def save_template(self, template: Template, require_unused: bool = False) -> Optional[Template]:
        if require_unused and any(c.template_id == template.id for c in self._communications.values()):
            return None
        self._templates[template.id] = template.model_copy(deep=True)
        return template

    async def list_templates(
        self,
        channel: Optional[Channel] = None,
        tone: Optional[Tone] = None,
        active_only: bool = True,
    ) -> List[Template]:
        templates = list(self._templates.values())
        if active_only:
            templates = [t for t in templates if t.active]
        if channel is not None:
            templates = [t for t in templates if t.channel == channel]
        if tone is not None:
            templates = [t for t in templates if t.tone == tone]
        templates.sort(key=lambda t: (t.min_days_in_arrears, t.id))
        return [t.model_copy(deep=True) for t in templates]

    async def template_in_use(self, template_id: str) -> bool:
        return any(c.template_id == template_id for c in self._communications.values())

    # Communications
    async def add_communication(self, communication: Communication) -> Communication:
        self._communications[communication.id] = communication.model_copy(deep=True)
        return communication

    async def get_communication(self, communication_id: str) -> Optional[Communication]:
        communication = self._communications.get(communication_id)
        return communication.model_copy(deep=True) if communication else None

    async def finalize_communication(
        self,
        communication_id: str,
        status: DeliveryStatus,
        provider_message_id: Optional[str] = None,
        error_message: Optional[str] = None,
    ) -> Communication:
        communication = self._communications[communication_id]
        communication.status = status
        communication.provider_message_id = provider_message_id
        communication.error_message = error_message
        return communication.model_copy(deep=True)

    async def list_communications(
        self,
        customer_id: Optional[str] = None,
        debt_id: Optional[str] = None,
        channel: Optional[Channel] = None,
        offset: int = 0,
        limit: int = 10,
    ) -> Tuple[List[Communication], int]:
        communications = list(self._communications.values())
        if customer_id is not None:
            communications = [c for c in communications if c.customer_id == customer_id]
        if debt_id is not None:
            communications = [c for c in communications if c.debt_id == debt_id]
        if channel is not None:
            communications = [c for c in communications if c.channel == channel]
        communications.sort(key=lambda c: c.sent_at, reverse=True)
        page = [c.model_copy(deep=True) for c in communications[offset:offset + limit]]
        return page, len(communications)

    async def latest_campaign_communication(self, debt_id: str) -> Optional[Communication]:
        tagged = [
            c for c in self._communications.values()
            if c.debt_id == debt_id and c.campaign_id is not None
        ]
        if not tagged:
            return None
        return max(tagged, key=lambda c: c.sent_at).model_copy(deep=True)

    async def communication_counts_since(self, since: datetime) -> Tuple[int, int]:
        recent = [c for c in self._communications.values() if c.sent_at >= since]
        responded = sum(1 for c in recent if c.status == DeliveryStatus.RESPONDED)
        return len(recent), responded

    # Campaigns
    async def add_campaign(self, campaign: Campaign) -> Campaign:
        self._campaigns[campaign.id] = campaign.model_copy(deep=True)
        return campaign

    async def get_campaign(self, campaign_id: str) -> Optional[Campaign]:
        campaign = self._campaigns.get(campaign_id)
        return campaign.model_copy(deep=True) if campaign else None

    async def list_campaigns(self) -> List[Campaign]:
        campaigns = sorted(self._campaigns.values(), key=lambda c: c.created_at, reverse=True)
        return [c.model_copy(deep=True) for c in campaigns]

    async def increment_campaign_metrics(
        self, campaign_id: str, deltas: Dict[str, int]
    ) -> Optional[CampaignMetrics]:
        async with self._campaign_locks[campaign_id]:
            campaign = self._campaigns.get(campaign_id)
            if campaign is None:
                return None
            for field_name, delta in deltas.items():
                if field_name not in METRIC_FIELDS:
                    raise ValueError(f"Unknown campaign metric: {field_name}")
                setattr(campaign.metrics, field_name, getattr(campaign.metrics, field_name) + delta)
            return campaign.metrics.model_copy()
