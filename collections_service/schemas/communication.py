"""Pydantic schemas for communication endpoints."""

from typing import Optional

from pydantic import BaseModel, Field

from collections_service.models.domain import Channel, Tone


class DispatchRequest(BaseModel):
    """Request model for rendering and sending one message."""
    customer_id: str = Field(..., description="Recipient customer")
    debt_id: str = Field(..., description="Debt the message is about")
    channel: Channel = Field(..., description="Delivery channel")
    tone: Tone = Field(Tone.FRIENDLY, description="Message tone")
    campaign_id: Optional[str] = Field(None, description="Campaign to attribute the dispatch to")
