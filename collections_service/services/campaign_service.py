"""Campaign management."""
from typing import List

import structlog

from collections_service.core.clock import Clock
from collections_service.core.exceptions import ResourceNotFoundError
from collections_service.models.domain import Campaign
from collections_service.schemas.campaign import CampaignCreate
from collections_service.services.store import CollectionsStore

logger = structlog.get_logger(__name__)


class CampaignService:
    def __init__(self, store: CollectionsStore, clock: Clock):
        self.store = store
        self.clock = clock

    async def create_campaign(self, data: CampaignCreate) -> Campaign:
        campaign = Campaign(**data.model_dump(), created_at=self.clock.now())
        await self.store.add_campaign(campaign)
        logger.info("Campaign created", campaign_id=campaign.id, variant=campaign.variant.value)
        return campaign

    async def get_campaign(self, campaign_id: str) -> Campaign:
        campaign = await self.store.get_campaign(campaign_id)
        if campaign is None:
            raise ResourceNotFoundError("campaign", campaign_id)
        return campaign

    async def list_campaigns(self) -> List[Campaign]:
        return await self.store.list_campaigns()
