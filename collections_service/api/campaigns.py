"""
Campaign endpoints: management and A/B comparison.
"""
from typing import List

from fastapi import APIRouter, Depends, Query, status

from collections_service.core.dependencies import get_campaign_service, get_metrics_aggregator
from collections_service.models.domain import Campaign
from collections_service.schemas.campaign import CampaignComparison, CampaignCreate, CampaignRates
from collections_service.services.campaign_metrics import CampaignMetricsAggregator
from collections_service.services.campaign_service import CampaignService

router = APIRouter(prefix="/campaigns", tags=["campaigns"])


@router.post("", response_model=Campaign, status_code=status.HTTP_201_CREATED)
async def create_campaign(
    request: CampaignCreate,
    campaign_service: CampaignService = Depends(get_campaign_service),
):
    return await campaign_service.create_campaign(request)


@router.get("", response_model=List[Campaign])
async def list_campaigns(
    campaign_service: CampaignService = Depends(get_campaign_service),
):
    return await campaign_service.list_campaigns()


@router.get("/compare", response_model=CampaignComparison)
async def compare_campaigns(
    campaign_a: str = Query(..., description="First campaign id"),
    campaign_b: str = Query(..., description="Second campaign id"),
    aggregator: CampaignMetricsAggregator = Depends(get_metrics_aggregator),
):
    """Open, response and conversion rates of two campaigns side by side."""
    return await aggregator.compare(campaign_a, campaign_b)


@router.get("/{campaign_id}", response_model=Campaign)
async def get_campaign(
    campaign_id: str,
    campaign_service: CampaignService = Depends(get_campaign_service),
):
    return await campaign_service.get_campaign(campaign_id)


@router.get("/{campaign_id}/rates", response_model=CampaignRates)
async def get_campaign_rates(
    campaign_id: str,
    aggregator: CampaignMetricsAggregator = Depends(get_metrics_aggregator),
):
    return await aggregator.rates(campaign_id)
