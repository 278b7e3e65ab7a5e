"""
Tests for the SQLAlchemy store against in-memory SQLite.
"""
import asyncio
from datetime import date, timedelta
from decimal import Decimal
from unittest.mock import patch

import pytest
from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.pool import StaticPool

from conftest import NOW, make_campaign, make_customer, make_debt, make_template
from collections_service.core.exceptions import StoreError
from collections_service.models.domain import (
    CampaignConfig,
    Channel,
    Communication,
    DebtTier,
    DeliveryStatus,
    Tone,
)
from collections_service.services.scheduler import ReclassificationScheduler
from collections_service.services.sql_store import SQLAlchemyStore


@pytest.fixture
def sql_store():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    store = SQLAlchemyStore(engine)
    yield store
    engine.dispose()


def _communication(customer, debt, template, **overrides):
    values = {
        "customer_id": customer.id,
        "debt_id": debt.id,
        "template_id": template.id,
        "channel": template.channel,
        "tone": template.tone,
        "content": "text",
        "sent_at": NOW,
    }
    values.update(overrides)
    return Communication(**values)


class TestRoundTrips:
    @pytest.mark.asyncio
    async def test_customer_and_debt(self, sql_store):
        customer = await sql_store.add_customer(make_customer())
        debt = await sql_store.add_debt(
            make_debt(customer, date(2024, 1, 30), amount=Decimal("1234.56"), invoice_number="INV-7")
        )

        stored_customer = await sql_store.get_customer(customer.id)
        stored_debt = await sql_store.get_debt_by_invoice("INV-7")

        assert stored_customer == customer
        assert stored_debt.id == debt.id
        assert stored_debt.amount == Decimal("1234.56")
        assert stored_debt.created_at.tzinfo is not None
        assert await sql_store.get_customer("missing") is None

    @pytest.mark.asyncio
    async def test_campaign_config_survives(self, sql_store):
        campaign = make_campaign(config=CampaignConfig(tone=Tone.URGENT, channels=[Channel.SMS], cadence_days=3))
        await sql_store.add_campaign(campaign)

        stored = await sql_store.get_campaign(campaign.id)

        assert stored.config == campaign.config
        assert stored.metrics.sent == 0

    @pytest.mark.asyncio
    async def test_duplicate_email_raises_store_error(self, sql_store):
        await sql_store.add_customer(make_customer())
        with pytest.raises(StoreError) as exc_info:
            await sql_store.add_customer(make_customer())
        assert exc_info.value.operation == "add_customer"


class TestConditionalWrites:
    @pytest.mark.asyncio
    async def test_classification_skips_terminal_debt(self, sql_store):
        customer = await sql_store.add_customer(make_customer())
        debt = await sql_store.add_debt(make_debt(customer, date(2024, 1, 1)))

        assert await sql_store.apply_classification(debt.id, 10, DebtTier.EARLY) is True
        settled = await sql_store.settle_debt(debt.id, DebtTier.PAID, NOW, payment_method="card")
        assert settled.tier == DebtTier.PAID
        assert settled.amount == Decimal("0")

        assert await sql_store.apply_classification(debt.id, 11, DebtTier.EARLY) is False
        assert (await sql_store.get_debt(debt.id)).tier == DebtTier.PAID
        assert await sql_store.settle_debt(debt.id, DebtTier.CANCELLED, NOW) is None

    @pytest.mark.asyncio
    async def test_increment_is_additive(self, sql_store):
        campaign = await sql_store.add_campaign(make_campaign())

        await asyncio.gather(
            *(sql_store.increment_campaign_metrics(campaign.id, {"sent": 1, "delivered": 1}) for _ in range(10))
        )
        metrics = await sql_store.increment_campaign_metrics(campaign.id, {"paid": 2})

        assert (metrics.sent, metrics.delivered, metrics.paid) == (10, 10, 2)
        assert await sql_store.increment_campaign_metrics("missing", {"sent": 1}) is None


class TestQueries:
    @pytest.mark.asyncio
    async def test_communications_and_attribution(self, sql_store):
        customer = await sql_store.add_customer(make_customer())
        debt = await sql_store.add_debt(make_debt(customer, date(2024, 1, 1)))
        template = await sql_store.add_template(make_template())
        campaign = await sql_store.add_campaign(make_campaign())

        tagged = await sql_store.add_communication(
            _communication(customer, debt, template, campaign_id=campaign.id, sent_at=NOW - timedelta(days=3))
        )
        await sql_store.add_communication(_communication(customer, debt, template, sent_at=NOW))
        finalized = await sql_store.finalize_communication(
            tagged.id, DeliveryStatus.DELIVERED, provider_message_id="m-1"
        )

        assert finalized.status == DeliveryStatus.DELIVERED
        assert (await sql_store.latest_campaign_communication(debt.id)).id == tagged.id
        assert await sql_store.template_in_use(template.id) is True

        page, total = await sql_store.list_communications(debt_id=debt.id, limit=1)
        assert total == 2
        assert page[0].campaign_id is None

    @pytest.mark.asyncio
    async def test_aggregate_excludes_terminal(self, sql_store):
        customer = await sql_store.add_customer(make_customer())
        await sql_store.add_debt(make_debt(customer, date(2024, 3, 1), amount=Decimal("10.50"), days_in_arrears=14, tier=DebtTier.EARLY))
        await sql_store.add_debt(make_debt(customer, date(2024, 3, 5), amount=Decimal("20.25"), days_in_arrears=10, tier=DebtTier.EARLY))
        await sql_store.add_debt(make_debt(customer, date(2024, 1, 1), tier=DebtTier.PAID))

        totals = await sql_store.aggregate_open_debts()

        assert len(totals) == 1
        assert totals[0].tier == DebtTier.EARLY
        assert totals[0].count == 2
        assert totals[0].total_amount == Decimal("30.75")
        assert totals[0].average_days_in_arrears == 12.0

    @pytest.mark.asyncio
    async def test_sweep_against_sql_store(self, sql_store, fixed_clock):
        customer = await sql_store.add_customer(make_customer())
        debt = await sql_store.add_debt(make_debt(customer, date(2024, 1, 30)))

        report = await ReclassificationScheduler(sql_store, fixed_clock).run_once()

        assert report.updated == 1
        stored = await sql_store.get_debt(debt.id)
        assert (stored.days_in_arrears, stored.tier) == (45, DebtTier.MID)

    @pytest.mark.asyncio
    async def test_health_check(self, sql_store):
        assert await sql_store.health_check() is True

        with patch.object(sql_store.engine, "connect", side_effect=OperationalError("SELECT 1", {}, Exception("gone"))):
            assert await sql_store.health_check() is False


class TestTemplateWrites:
    @pytest.mark.asyncio
    async def test_guarded_save_refused_once_template_is_used(self, sql_store):
        customer = await sql_store.add_customer(make_customer())
        debt = await sql_store.add_debt(make_debt(customer, date(2024, 1, 1)))
        used = await sql_store.add_template(make_template())
        unused = await sql_store.add_template(make_template(name="Spare"))
        await sql_store.add_communication(_communication(customer, debt, used, sent_at=NOW))

        refused = await sql_store.save_template(used.model_copy(update={"body": "Changed"}), require_unused=True)
        saved = await sql_store.save_template(unused.model_copy(update={"body": "Changed"}), require_unused=True)

        assert refused is None
        assert (await sql_store.get_template(used.id)).body == used.body
        assert saved is not None
        assert (await sql_store.get_template(unused.id)).body == "Changed"
