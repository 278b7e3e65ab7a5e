"""
SQLAlchemy implementation of the collections store.

Counter increments and classification writes are single UPDATE statements so
concurrent writers never lose updates and a terminal tier is never overwritten.

Queries run on a synchronous Session inside the async methods, so each call
holds the event loop for the duration of its statement. Keep statements short
and indexed; the in-memory backend is the non-blocking option.
"""
from contextlib import contextmanager
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

import structlog
from sqlalchemy import create_engine, func, or_, select, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from collections_service.core.exceptions import StoreError
from collections_service.models.database import (
    Base,
    CampaignRecord,
    CommunicationRecord,
    CustomerRecord,
    DebtRecord,
    TemplateRecord,
)
from collections_service.models.domain import (
    METRIC_FIELDS,
    TERMINAL_TIERS,
    Campaign,
    CampaignConfig,
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
from collections_service.services.store import CollectionsStore, TierTotals

logger = structlog.get_logger(__name__)

_TERMINAL_VALUES = [tier.value for tier in TERMINAL_TIERS]


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite drops tzinfo; stored values are always UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _to_customer(record: CustomerRecord) -> Customer:
    return Customer(
        id=record.id,
        name=record.name,
        email=record.email,
        phone=record.phone,
        chat_handle=record.chat_handle,
        company=record.company,
        active=record.active,
        registered_at=_aware(record.registered_at),
    )


def _to_debt(record: DebtRecord) -> Debt:
    return Debt(
        id=record.id,
        customer_id=record.customer_id,
        original_amount=Decimal(record.original_amount),
        amount=Decimal(record.amount),
        due_date=record.due_date,
        days_in_arrears=record.days_in_arrears,
        tier=DebtTier(record.tier),
        description=record.description,
        invoice_number=record.invoice_number,
        created_at=_aware(record.created_at),
        paid_at=_aware(record.paid_at),
        payment_method=record.payment_method,
    )


def _to_template(record: TemplateRecord) -> Template:
    return Template(
        id=record.id,
        name=record.name,
        channel=Channel(record.channel),
        tone=Tone(record.tone),
        min_days_in_arrears=record.min_days_in_arrears,
        body=record.body,
        placeholders=list(record.placeholders or []),
        active=record.active,
        created_at=_aware(record.created_at),
    )


def _to_communication(record: CommunicationRecord) -> Communication:
    return Communication(
        id=record.id,
        customer_id=record.customer_id,
        debt_id=record.debt_id,
        template_id=record.template_id,
        channel=Channel(record.channel),
        tone=Tone(record.tone),
        content=record.content,
        status=DeliveryStatus(record.status),
        sent_at=_aware(record.sent_at),
        campaign_id=record.campaign_id,
        provider_message_id=record.provider_message_id,
        error_message=record.error_message,
        reply=record.reply,
        replied_at=_aware(record.replied_at),
    )


def _to_metrics(record: CampaignRecord) -> CampaignMetrics:
    return CampaignMetrics(**{name: getattr(record, name) for name in METRIC_FIELDS})


def _to_campaign(record: CampaignRecord) -> Campaign:
    return Campaign(
        id=record.id,
        name=record.name,
        description=record.description,
        variant=record.variant,
        config=CampaignConfig.model_validate(record.config or {}),
        metrics=_to_metrics(record),
        active=record.active,
        created_at=_aware(record.created_at),
        ended_at=_aware(record.ended_at),
    )


def create_store_engine(database_url: str, echo: bool = False) -> Engine:
    connect_args = {"check_same_thread": False} if database_url.startswith("sqlite") else {}
    return create_engine(database_url, echo=echo, connect_args=connect_args)


class SQLAlchemyStore(CollectionsStore):
    """Relational store backed by a SQLAlchemy engine."""

    def __init__(self, engine: Engine, create_tables: bool = True):
        self.engine = engine
        self.session_factory = sessionmaker(bind=engine, expire_on_commit=False)
        if create_tables:
            Base.metadata.create_all(engine)

    @classmethod
    def from_settings(cls, settings) -> "SQLAlchemyStore":
        return cls(create_store_engine(settings.database_url, echo=settings.database_echo))

    @contextmanager
    def _session(self, operation: str):
        session: Session = self.session_factory()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.error("Store operation failed", operation=operation, error=str(e), exc_info=True)
            raise StoreError(f"Failed to {operation.replace('_', ' ')}: {e}", operation=operation)
        finally:
            session.close()

    # Customers
    async def add_customer(self, customer: Customer) -> Customer:
        with self._session("add_customer") as session:
            session.add(CustomerRecord(**customer.model_dump()))
        return customer

    async def get_customer(self, customer_id: str) -> Optional[Customer]:
        with self._session("get_customer") as session:
            record = session.get(CustomerRecord, customer_id)
            return _to_customer(record) if record else None

    async def get_customer_by_email(self, email: str) -> Optional[Customer]:
        with self._session("get_customer_by_email") as session:
            record = session.scalars(
                select(CustomerRecord).where(CustomerRecord.email == email.lower())
            ).first()
            return _to_customer(record) if record else None

    async def list_customers(
        self, search: Optional[str] = None, offset: int = 0, limit: int = 10
    ) -> Tuple[List[Customer], int]:
        with self._session("list_customers") as session:
            query = select(CustomerRecord).where(CustomerRecord.active.is_(True))
            if search:
                pattern = f"%{search}%"
                query = query.where(
                    or_(
                        CustomerRecord.name.ilike(pattern),
                        CustomerRecord.email.ilike(pattern),
                        CustomerRecord.phone.ilike(pattern),
                    )
                )
            total = session.scalar(select(func.count()).select_from(query.subquery()))
            records = session.scalars(
                query.order_by(CustomerRecord.registered_at.desc()).offset(offset).limit(limit)
            ).all()
            return [_to_customer(r) for r in records], total

    async def count_customers(self, active_only: bool = True) -> int:
        with self._session("count_customers") as session:
            query = select(func.count(CustomerRecord.id))
            if active_only:
                query = query.where(CustomerRecord.active.is_(True))
            return session.scalar(query)

    # Debts
    async def add_debt(self, debt: Debt) -> Debt:
        with self._session("add_debt") as session:
            values = debt.model_dump()
            values["tier"] = debt.tier.value
            session.add(DebtRecord(**values))
        return debt

    async def get_debt(self, debt_id: str) -> Optional[Debt]:
        with self._session("get_debt") as session:
            record = session.get(DebtRecord, debt_id)
            return _to_debt(record) if record else None

    async def get_debt_by_invoice(self, invoice_number: str) -> Optional[Debt]:
        with self._session("get_debt_by_invoice") as session:
            record = session.scalars(
                select(DebtRecord).where(DebtRecord.invoice_number == invoice_number)
            ).first()
            return _to_debt(record) if record else None

    async def list_debts(
        self,
        tier: Optional[DebtTier] = None,
        customer_id: Optional[str] = None,
        days_in_arrears: Optional[int] = None,
        offset: int = 0,
        limit: int = 10,
    ) -> Tuple[List[Debt], int]:
        with self._session("list_debts") as session:
            query = select(DebtRecord)
            if tier is not None:
                query = query.where(DebtRecord.tier == DebtTier(tier).value)
            if customer_id is not None:
                query = query.where(DebtRecord.customer_id == customer_id)
            if days_in_arrears is not None:
                query = query.where(DebtRecord.days_in_arrears == days_in_arrears)
            total = session.scalar(select(func.count()).select_from(query.subquery()))
            records = session.scalars(
                query.order_by(DebtRecord.due_date, DebtRecord.id).offset(offset).limit(limit)
            ).all()
            return [_to_debt(r) for r in records], total

    async def list_open_debts(self) -> List[Debt]:
        with self._session("list_open_debts") as session:
            records = session.scalars(
                select(DebtRecord).where(DebtRecord.tier.notin_(_TERMINAL_VALUES))
            ).all()
            return [_to_debt(r) for r in records]

    async def apply_classification(self, debt_id: str, days_in_arrears: int, tier: DebtTier) -> bool:
        with self._session("apply_classification") as session:
            result = session.execute(
                update(DebtRecord)
                .where(DebtRecord.id == debt_id, DebtRecord.tier.notin_(_TERMINAL_VALUES))
                .values(days_in_arrears=days_in_arrears, tier=DebtTier(tier).value)
            )
            return result.rowcount == 1

    async def settle_debt(
        self,
        debt_id: str,
        tier: DebtTier,
        settled_at: datetime,
        payment_method: Optional[str] = None,
    ) -> Optional[Debt]:
        values = {"tier": DebtTier(tier).value}
        if tier == DebtTier.PAID:
            values.update(amount=Decimal("0"), paid_at=settled_at, payment_method=payment_method)

        with self._session("settle_debt") as session:
            result = session.execute(
                update(DebtRecord)
                .where(DebtRecord.id == debt_id, DebtRecord.tier.notin_(_TERMINAL_VALUES))
                .values(**values)
            )
            if result.rowcount != 1:
                return None
            record = session.get(DebtRecord, debt_id, populate_existing=True)
            return _to_debt(record)

    async def aggregate_open_debts(
        self, due_from: Optional[date] = None, due_to: Optional[date] = None
    ) -> List[TierTotals]:
        with self._session("aggregate_open_debts") as session:
            query = (
                select(
                    DebtRecord.tier,
                    func.count(DebtRecord.id),
                    func.sum(DebtRecord.amount),
                    func.avg(DebtRecord.days_in_arrears),
                )
                .where(DebtRecord.tier.notin_(_TERMINAL_VALUES))
                .group_by(DebtRecord.tier)
            )
            if due_from is not None:
                query = query.where(DebtRecord.due_date >= due_from)
            if due_to is not None:
                query = query.where(DebtRecord.due_date <= due_to)

            return [
                TierTotals(
                    tier=DebtTier(tier),
                    count=count,
                    total_amount=Decimal(str(total or 0)),
                    average_days_in_arrears=float(average or 0),
                )
                for tier, count, total, average in session.execute(query).all()
            ]

    # Templates
    async def add_template(self, template: Template) -> Template:
        with self._session("add_template") as session:
            values = template.model_dump()
            values.update(channel=template.channel.value, tone=template.tone.value)
            session.add(TemplateRecord(**values))
        return template

    async def get_template(self, template_id: str) -> Optional[Template]:
        with self._session("get_template") as session:
            record = session.get(TemplateRecord, template_id)
            return _to_template(record) if record else None

    async def save_template(self, template: Template, require_unused: bool = False) -> Optional[Template]:
        with self._session("save_template") as session:
            record = session.get(TemplateRecord, template.id, with_for_update=True)
            if record is None:
                raise StoreError(f"Template {template.id} does not exist", operation="save_template")
            if require_unused and session.scalar(
                select(CommunicationRecord.id)
                .where(CommunicationRecord.template_id == template.id)
                .limit(1)
            ) is not None:
                return None
            record.name = template.name
            record.min_days_in_arrears = template.min_days_in_arrears
            record.body = template.body
            record.placeholders = list(template.placeholders)
            record.active = template.active
        return template

    async def list_templates(
        self,
        channel: Optional[Channel] = None,
        tone: Optional[Tone] = None,
        active_only: bool = True,
    ) -> List[Template]:
        with self._session("list_templates") as session:
            query = select(TemplateRecord)
            if active_only:
                query = query.where(TemplateRecord.active.is_(True))
            if channel is not None:
                query = query.where(TemplateRecord.channel == Channel(channel).value)
            if tone is not None:
                query = query.where(TemplateRecord.tone == Tone(tone).value)
            records = session.scalars(
                query.order_by(TemplateRecord.min_days_in_arrears, TemplateRecord.id)
            ).all()
            return [_to_template(r) for r in records]

    async def template_in_use(self, template_id: str) -> bool:
        with self._session("template_in_use") as session:
            found = session.scalar(
                select(CommunicationRecord.id)
                .where(CommunicationRecord.template_id == template_id)
                .limit(1)
            )
            return found is not None

    # Communications
    async def add_communication(self, communication: Communication) -> Communication:
        with self._session("add_communication") as session:
            values = communication.model_dump()
            values.update(
                channel=communication.channel.value,
                tone=communication.tone.value,
                status=communication.status.value,
            )
            session.add(CommunicationRecord(**values))
        return communication

    async def get_communication(self, communication_id: str) -> Optional[Communication]:
        with self._session("get_communication") as session:
            record = session.get(CommunicationRecord, communication_id)
            return _to_communication(record) if record else None

    async def finalize_communication(
        self,
        communication_id: str,
        status: DeliveryStatus,
        provider_message_id: Optional[str] = None,
        error_message: Optional[str] = None,
    ) -> Communication:
        with self._session("finalize_communication") as session:
            record = session.get(CommunicationRecord, communication_id)
            if record is None:
                raise StoreError(
                    f"Communication {communication_id} does not exist",
                    operation="finalize_communication",
                )
            record.status = DeliveryStatus(status).value
            record.provider_message_id = provider_message_id
            record.error_message = error_message
            session.flush()
            return _to_communication(record)

    async def list_communications(
        self,
        customer_id: Optional[str] = None,
        debt_id: Optional[str] = None,
        channel: Optional[Channel] = None,
        offset: int = 0,
        limit: int = 10,
    ) -> Tuple[List[Communication], int]:
        with self._session("list_communications") as session:
            query = select(CommunicationRecord)
            if customer_id is not None:
                query = query.where(CommunicationRecord.customer_id == customer_id)
            if debt_id is not None:
                query = query.where(CommunicationRecord.debt_id == debt_id)
            if channel is not None:
                query = query.where(CommunicationRecord.channel == Channel(channel).value)
            total = session.scalar(select(func.count()).select_from(query.subquery()))
            records = session.scalars(
                query.order_by(CommunicationRecord.sent_at.desc()).offset(offset).limit(limit)
            ).all()
            return [_to_communication(r) for r in records], total

    async def latest_campaign_communication(self, debt_id: str) -> Optional[Communication]:
        with self._session("latest_campaign_communication") as session:
            record = session.scalars(
                select(CommunicationRecord)
                .where(
                    CommunicationRecord.debt_id == debt_id,
                    CommunicationRecord.campaign_id.is_not(None),
                )
                .order_by(CommunicationRecord.sent_at.desc())
                .limit(1)
            ).first()
            return _to_communication(record) if record else None

    async def communication_counts_since(self, since: datetime) -> Tuple[int, int]:
        with self._session("communication_counts_since") as session:
            total = session.scalar(
                select(func.count(CommunicationRecord.id)).where(CommunicationRecord.sent_at >= since)
            )
            responded = session.scalar(
                select(func.count(CommunicationRecord.id)).where(
                    CommunicationRecord.sent_at >= since,
                    CommunicationRecord.status == DeliveryStatus.RESPONDED.value,
                )
            )
            return total, responded

    # Campaigns
    async def add_campaign(self, campaign: Campaign) -> Campaign:
        with self._session("add_campaign") as session:
            session.add(
                CampaignRecord(
                    id=campaign.id,
                    name=campaign.name,
                    description=campaign.description,
                    variant=campaign.variant.value,
                    config=campaign.config.model_dump(mode="json"),
                    active=campaign.active,
                    created_at=campaign.created_at,
                    ended_at=campaign.ended_at,
                    **{name: getattr(campaign.metrics, name) for name in METRIC_FIELDS},
                )
            )
        return campaign

    async def get_campaign(self, campaign_id: str) -> Optional[Campaign]:
        with self._session("get_campaign") as session:
            record = session.get(CampaignRecord, campaign_id)
            return _to_campaign(record) if record else None

    async def list_campaigns(self) -> List[Campaign]:
        with self._session("list_campaigns") as session:
            records = session.scalars(
                select(CampaignRecord).order_by(CampaignRecord.created_at.desc())
            ).all()
            return [_to_campaign(r) for r in records]

    async def increment_campaign_metrics(
        self, campaign_id: str, deltas: Dict[str, int]
    ) -> Optional[CampaignMetrics]:
        for name in deltas:
            if name not in METRIC_FIELDS:
                raise ValueError(f"Unknown campaign metric: {name}")

        with self._session("increment_campaign_metrics") as session:
            if deltas:
                result = session.execute(
                    update(CampaignRecord)
                    .where(CampaignRecord.id == campaign_id)
                    .values({
                        getattr(CampaignRecord, name): getattr(CampaignRecord, name) + delta
                        for name, delta in deltas.items()
                    })
                )
                if result.rowcount != 1:
                    return None
            record = session.get(CampaignRecord, campaign_id, populate_existing=True)
            return _to_metrics(record) if record else None

    async def health_check(self) -> bool:
        try:
            with self.engine.connect() as connection:
                connection.execute(select(1))
            return True
        except SQLAlchemyError as e:
            logger.warning("Store health check failed", error=str(e))
            return False

    async def close(self) -> None:
        self.engine.dispose()
