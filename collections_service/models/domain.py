"""Domain entities for the collections workflow."""

import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, computed_field


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DebtTier(str, Enum):
    """Arrears classification bucket of a debt."""
    CURRENT = "current"
    EARLY = "early"
    MID = "mid"
    ADVANCED = "advanced"
    PAID = "paid"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_TIERS


TERMINAL_TIERS = frozenset({DebtTier.PAID, DebtTier.CANCELLED})


class Channel(str, Enum):
    """Outbound message channels."""
    EMAIL = "email"
    SMS = "sms"
    CHAT = "chat"


class Tone(str, Enum):
    """Message tones, from gentle reminder to legal notice."""
    FRIENDLY = "friendly"
    FORMAL = "formal"
    URGENT = "urgent"
    LEGAL = "legal"


class DeliveryStatus(str, Enum):
    """Communication delivery states."""
    SENT = "sent"
    DELIVERED = "delivered"
    READ = "read"
    RESPONDED = "responded"
    FAILED = "failed"


class CampaignVariant(str, Enum):
    """A/B test arm."""
    A = "A"
    B = "B"


METRIC_FIELDS = ("sent", "delivered", "read", "responded", "paid")


def percentage(count: int, total: int) -> float:
    """``count / total * 100`` rounded to two decimals, 0 when total is 0."""
    if not total:
        return 0.0
    return round(count / total * 100, 2)


class Customer(BaseModel):
    """A debtor that can be contacted."""
    id: str = Field(default_factory=new_id)
    name: str
    email: str
    phone: str
    chat_handle: Optional[str] = None
    company: Optional[str] = None
    active: bool = True
    registered_at: datetime = Field(default_factory=utcnow)


class Debt(BaseModel):
    """An outstanding invoice owed by a customer."""
    id: str = Field(default_factory=new_id)
    customer_id: str
    original_amount: Decimal
    amount: Decimal
    due_date: date
    days_in_arrears: int = Field(default=0, ge=0)
    tier: DebtTier = DebtTier.CURRENT
    description: Optional[str] = None
    invoice_number: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    paid_at: Optional[datetime] = None
    payment_method: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.tier.is_terminal


class Template(BaseModel):
    """Reusable message skeleton scoped by channel, tone and arrears threshold."""
    id: str = Field(default_factory=new_id)
    name: str
    channel: Channel
    tone: Tone
    min_days_in_arrears: int = Field(ge=0)
    body: str
    placeholders: List[str] = Field(default_factory=list)
    active: bool = True
    created_at: datetime = Field(default_factory=utcnow)


class Communication(BaseModel):
    """One dispatch attempt."""
    id: str = Field(default_factory=new_id)
    customer_id: str
    debt_id: str
    template_id: str
    channel: Channel
    tone: Tone
    content: str
    status: DeliveryStatus = DeliveryStatus.SENT
    sent_at: datetime = Field(default_factory=utcnow)
    campaign_id: Optional[str] = None
    provider_message_id: Optional[str] = None
    error_message: Optional[str] = None
    reply: Optional[str] = None
    replied_at: Optional[datetime] = None


class CampaignConfig(BaseModel):
    """Settings under test for a campaign arm."""
    tone: Optional[Tone] = None
    template_class: Optional[str] = None
    channels: List[Channel] = Field(default_factory=list)
    cadence_days: Optional[int] = Field(default=None, ge=1)
    send_window: Optional[str] = None


class CampaignMetrics(BaseModel):
    """Monotonic counters; the conversion rate is always derived from them."""
    sent: int = 0
    delivered: int = 0
    read: int = 0
    responded: int = 0
    paid: int = 0

    @computed_field
    @property
    def conversion_rate(self) -> float:
        return percentage(self.paid, self.sent)


class Campaign(BaseModel):
    """An A/B-tested configuration bundle."""
    id: str = Field(default_factory=new_id)
    name: str
    description: Optional[str] = None
    variant: CampaignVariant
    config: CampaignConfig = Field(default_factory=CampaignConfig)
    metrics: CampaignMetrics = Field(default_factory=CampaignMetrics)
    active: bool = True
    created_at: datetime = Field(default_factory=utcnow)
    ended_at: Optional[datetime] = None
