"""
Campaign metrics aggregation.

Counters only ever grow; every increment is delegated to the store so the
read-modify-write happens atomically per campaign.
"""
from typing import Dict, Mapping

import structlog

from collections_service.core.exceptions import ResourceNotFoundError, ValidationError
from collections_service.core.logging import log_business_event
from collections_service.models.domain import METRIC_FIELDS, Campaign, CampaignMetrics, percentage
from collections_service.schemas.campaign import CampaignComparison, CampaignRates
from collections_service.services.store import CollectionsStore

logger = structlog.get_logger(__name__)


def campaign_rates(campaign: Campaign) -> CampaignRates:
    """Open, response and conversion rates of a campaign."""
    metrics = campaign.metrics
    return CampaignRates(
        campaign_id=campaign.id,
        name=campaign.name,
        metrics=metrics,
        open_rate=percentage(metrics.read, metrics.sent),
        response_rate=percentage(metrics.responded, metrics.sent),
        conversion_rate=percentage(metrics.paid, metrics.sent),
    )


class CampaignMetricsAggregator:
    """Records dispatch and payment outcomes against campaigns."""

    def __init__(self, store: CollectionsStore):
        self.store = store

    async def increment(self, campaign_id: str, field: str, delta: int = 1) -> CampaignMetrics:
        return await self.increment_many(campaign_id, {field: delta})

    async def increment_many(self, campaign_id: str, deltas: Mapping[str, int]) -> CampaignMetrics:
        """
        Apply several counter deltas as one atomic update.

        Raises:
            ValidationError: Unknown counter or negative delta
            ResourceNotFoundError: Campaign does not exist
        """
        checked: Dict[str, int] = {}
        for field, delta in deltas.items():
            if field not in METRIC_FIELDS:
                raise ValidationError(f"unknown counter '{field}'", field="metric", value=field)
            if delta < 0:
                raise ValidationError("counters never decrease", field="delta", value=delta)
            checked[field] = delta

        metrics = await self.store.increment_campaign_metrics(campaign_id, checked)
        if metrics is None:
            raise ResourceNotFoundError("campaign", campaign_id)

        log_business_event(
            "campaign_metrics_incremented",
            campaign_id=campaign_id,
            deltas=checked,
            sent=metrics.sent,
        )
        return metrics

    async def rates(self, campaign_id: str) -> CampaignRates:
        campaign = await self.store.get_campaign(campaign_id)
        if campaign is None:
            raise ResourceNotFoundError("campaign", campaign_id)
        return campaign_rates(campaign)

    async def compare(self, campaign_a_id: str, campaign_b_id: str) -> CampaignComparison:
        """Side-by-side rates of two campaigns; rates are 0 for a campaign with nothing sent."""
        return CampaignComparison(
            campaign_a=await self.rates(campaign_a_id),
            campaign_b=await self.rates(campaign_b_id),
        )
