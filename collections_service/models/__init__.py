"""
Models package for the Collections Engine Service.
"""
from .domain import (
    Campaign,
    CampaignConfig,
    CampaignMetrics,
    CampaignVariant,
    Channel,
    Communication,
    Customer,
    Debt,
    DebtTier,
    DeliveryStatus,
    Template,
    Tone,
)

__all__ = [
    "Campaign",
    "CampaignConfig",
    "CampaignMetrics",
    "CampaignVariant",
    "Channel",
    "Communication",
    "Customer",
    "Debt",
    "DebtTier",
    "DeliveryStatus",
    "Template",
    "Tone",
]
