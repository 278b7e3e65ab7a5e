"""
Dispatch orchestration: select, render, record, send, then finalize.

The communication is persisted in ``sent`` before the transport is called so
every attempt leaves exactly one record, and the campaign receives at most one
increment per dispatch. Any error raised by the send becomes a returned
failure; a cancelled send marks the record failed before the cancellation
propagates.
"""
import asyncio
from dataclasses import dataclass
from typing import Optional

import structlog

from collections_service.core.clock import Clock
from collections_service.core.exceptions import (
    ExternalServiceError,
    ResourceNotFoundError,
    TransportFailureError,
)
from collections_service.core.logging import correlation_context, log_business_event
from collections_service.models.domain import Channel, Communication, Customer, DeliveryStatus
from collections_service.schemas.communication import DispatchRequest
from collections_service.services.campaign_metrics import CampaignMetricsAggregator
from collections_service.services.renderer import build_substitutions, render
from collections_service.services.store import CollectionsStore
from collections_service.services.template_selector import select_template
from collections_service.services.transports import ChannelTransports

logger = structlog.get_logger(__name__)


@dataclass
class DispatchResult:
    """Finalized communication and the transport failure, if any."""
    communication: Communication
    error: Optional[TransportFailureError] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


def recipient_for(customer: Customer, channel: Channel) -> Optional[str]:
    if channel == Channel.EMAIL:
        return customer.email
    if channel == Channel.SMS:
        return customer.phone
    return customer.chat_handle


class DispatchOrchestrator:
    """Renders and sends one collections message per call."""

    def __init__(
        self,
        store: CollectionsStore,
        transports: ChannelTransports,
        clock: Clock,
        settings,
        metrics: Optional[CampaignMetricsAggregator] = None,
    ):
        self.store = store
        self.transports = transports
        self.clock = clock
        self.settings = settings
        self.metrics = metrics or CampaignMetricsAggregator(store)

    async def dispatch(self, request: DispatchRequest) -> DispatchResult:
        """
        Dispatch a message for a debt.

        Args:
            request: Customer, debt, channel, tone and optional campaign

        Returns:
            DispatchResult with the finalized communication. ``error`` is set
            when the transport failed or timed out.

        Raises:
            ResourceNotFoundError: Customer, debt or campaign does not exist
            TemplateNotFoundError: No active template applies
        """
        with correlation_context(debt_id=request.debt_id):
            customer = await self.store.get_customer(request.customer_id)
            if customer is None:
                raise ResourceNotFoundError("customer", request.customer_id)

            debt = await self.store.get_debt(request.debt_id)
            if debt is None or debt.customer_id != customer.id:
                raise ResourceNotFoundError("debt", request.debt_id)

            if request.campaign_id is not None:
                campaign = await self.store.get_campaign(request.campaign_id)
                if campaign is None:
                    raise ResourceNotFoundError("campaign", request.campaign_id)

            catalog = await self.store.list_templates(channel=request.channel, tone=request.tone)
            template = select_template(request.channel, request.tone, debt.days_in_arrears, catalog)

            substitutions = build_substitutions(
                customer,
                debt,
                currency_symbol=self.settings.currency_symbol,
                date_format=self.settings.date_format,
            )
            content = render(template, substitutions)
            subject = None
            if request.channel == Channel.EMAIL:
                subject = self.settings.email_subject_template.format_map(
                    _Bindings(substitutions)
                )

            communication = await self.store.add_communication(
                Communication(
                    customer_id=customer.id,
                    debt_id=debt.id,
                    template_id=template.id,
                    channel=request.channel,
                    tone=request.tone,
                    content=content,
                    status=DeliveryStatus.SENT,
                    sent_at=self.clock.now(),
                    campaign_id=request.campaign_id,
                )
            )

            error: Optional[TransportFailureError] = None
            provider_message_id = None
            try:
                receipt = await asyncio.wait_for(
                    self.transports.send(
                        request.channel,
                        recipient_for(customer, request.channel),
                        content,
                        subject=subject,
                    ),
                    timeout=self.settings.transport_timeout_seconds,
                )
                provider_message_id = receipt.provider_message_id
            except asyncio.CancelledError:
                # The record must not stay in sent once this task gives up
                await asyncio.shield(
                    self._finalize(
                        communication.id,
                        request,
                        TransportFailureError(request.channel.value, "Dispatch cancelled during send"),
                    )
                )
                raise
            except asyncio.TimeoutError:
                error = TransportFailureError(
                    request.channel.value,
                    f"Transport timed out after {self.settings.transport_timeout_seconds}s",
                )
            except TransportFailureError as e:
                error = e
            except ExternalServiceError as e:
                error = TransportFailureError(request.channel.value, str(e), status_code=e.status_code)
            except Exception as e:
                logger.error(
                    "Unexpected transport error",
                    communication_id=communication.id,
                    channel=request.channel.value,
                    error=str(e),
                    exc_info=True,
                )
                error = TransportFailureError(
                    request.channel.value, f"Unexpected transport error: {type(e).__name__}: {e}"
                )

            communication = await self._finalize(
                communication.id, request, error, provider_message_id=provider_message_id
            )

            log_business_event(
                "communication_dispatched",
                communication_id=communication.id,
                customer_id=customer.id,
                template_id=template.id,
                channel=request.channel.value,
                tone=request.tone.value,
                status=communication.status.value,
                campaign_id=request.campaign_id,
            )
            return DispatchResult(communication=communication, error=error)

    async def _finalize(
        self,
        communication_id: str,
        request: DispatchRequest,
        error: Optional[TransportFailureError],
        provider_message_id: Optional[str] = None,
    ) -> Communication:
        """Write the terminal status and apply the single campaign increment."""
        if error is None:
            communication = await self.store.finalize_communication(
                communication_id,
                DeliveryStatus.DELIVERED,
                provider_message_id=provider_message_id,
            )
            deltas = {"sent": 1, "delivered": 1}
        else:
            logger.warning(
                "Dispatch failed",
                communication_id=communication_id,
                channel=request.channel.value,
                error=str(error),
            )
            communication = await self.store.finalize_communication(
                communication_id,
                DeliveryStatus.FAILED,
                error_message=str(error),
            )
            deltas = {"sent": 1}

        if request.campaign_id is not None:
            await self.metrics.increment_many(request.campaign_id, deltas)
        return communication


class _Bindings(dict):
    """Leaves unknown fields blank when formatting the email subject."""

    def __missing__(self, key):
        return ""
