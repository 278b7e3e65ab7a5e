"""Pydantic schemas for campaign endpoints."""

from typing import Optional

from pydantic import BaseModel, Field

from collections_service.models.domain import CampaignConfig, CampaignMetrics, CampaignVariant


class CampaignCreate(BaseModel):
    """Request model for creating a campaign arm."""
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    variant: CampaignVariant
    config: CampaignConfig = Field(default_factory=CampaignConfig)


class CampaignRates(BaseModel):
    """Derived rates for one campaign."""
    campaign_id: str
    name: str
    metrics: CampaignMetrics
    open_rate: float = Field(..., description="read / sent * 100")
    response_rate: float = Field(..., description="responded / sent * 100")
    conversion_rate: float = Field(..., description="paid / sent * 100")


class CampaignComparison(BaseModel):
    """Side-by-side rates of two campaigns."""
    campaign_a: CampaignRates
    campaign_b: CampaignRates
