"""
Tests for campaign metrics aggregation.
"""
import asyncio

import pytest

from conftest import make_campaign
from collections_service.core.exceptions import ResourceNotFoundError, ValidationError
from collections_service.models.domain import CampaignVariant
from collections_service.services.campaign_metrics import CampaignMetricsAggregator


@pytest.fixture
def aggregator(store):
    return CampaignMetricsAggregator(store)


class TestIncrement:
    @pytest.mark.asyncio
    async def test_increment_many_applies_all_deltas(self, store, aggregator):
        campaign = await store.add_campaign(make_campaign())

        metrics = await aggregator.increment_many(campaign.id, {"sent": 1, "delivered": 1})

        assert (metrics.sent, metrics.delivered, metrics.paid) == (1, 1, 0)

    @pytest.mark.asyncio
    async def test_concurrent_increments_are_not_lost(self, store, aggregator):
        campaign = await store.add_campaign(make_campaign())

        await asyncio.gather(*(aggregator.increment(campaign.id, "read") for _ in range(50)))

        assert (await store.get_campaign(campaign.id)).metrics.read == 50

    @pytest.mark.asyncio
    async def test_negative_delta_rejected(self, store, aggregator):
        campaign = await store.add_campaign(make_campaign())
        with pytest.raises(ValidationError):
            await aggregator.increment(campaign.id, "sent", -1)
        assert (await store.get_campaign(campaign.id)).metrics.sent == 0

    @pytest.mark.asyncio
    async def test_unknown_counter_rejected(self, store, aggregator):
        campaign = await store.add_campaign(make_campaign())
        with pytest.raises(ValidationError):
            await aggregator.increment(campaign.id, "clicked")

    @pytest.mark.asyncio
    async def test_unknown_campaign(self, aggregator):
        with pytest.raises(ResourceNotFoundError):
            await aggregator.increment("missing", "sent")


class TestCompare:
    @pytest.mark.asyncio
    async def test_rates(self, store, aggregator):
        a = await store.add_campaign(make_campaign(name="Friendly first"))
        b = await store.add_campaign(make_campaign(name="Formal first", variant=CampaignVariant.B))
        await aggregator.increment_many(a.id, {"sent": 8, "delivered": 8, "read": 6, "responded": 2, "paid": 1})
        await aggregator.increment_many(b.id, {"sent": 3, "read": 1, "paid": 1})

        comparison = await aggregator.compare(a.id, b.id)

        assert comparison.campaign_a.name == "Friendly first"
        assert comparison.campaign_a.open_rate == 75.0
        assert comparison.campaign_a.response_rate == 25.0
        assert comparison.campaign_a.conversion_rate == 12.5
        assert comparison.campaign_b.open_rate == 33.33
        assert comparison.campaign_b.conversion_rate == 33.33

    @pytest.mark.asyncio
    async def test_nothing_sent_gives_zero_rates(self, store, aggregator):
        a = await store.add_campaign(make_campaign())
        b = await store.add_campaign(make_campaign(variant=CampaignVariant.B))

        comparison = await aggregator.compare(a.id, b.id)

        assert comparison.campaign_a.open_rate == 0.0
        assert comparison.campaign_b.conversion_rate == 0.0
        assert comparison.campaign_b.metrics.conversion_rate == 0.0
