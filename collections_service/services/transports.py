"""
Channel transports for email, SMS and chat.

Each channel is an HTTP gateway reached through a ServiceClient (circuit
breaker) with tenacity retries around it. Every failure surfaces as a
TransportFailureError so the dispatcher has a single error to handle.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import httpx
import structlog

from collections_service.core.circuit_breaker import CircuitBreakerConfig, ServiceClient
from collections_service.core.exceptions import ExternalServiceError, TransportFailureError
from collections_service.core.retry import create_async_retry_decorator, get_gateway_retry_config
from collections_service.models.domain import Channel

logger = structlog.get_logger(__name__)


@dataclass
class TransportReceipt:
    """Provider acknowledgement of an accepted message."""
    channel: Channel
    provider_message_id: Optional[str] = None
    accepted_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class ChannelTransports(ABC):
    """Outbound channel senders used by the dispatcher."""

    @abstractmethod
    async def send_email(self, to: str, subject: str, body: str) -> TransportReceipt: ...

    @abstractmethod
    async def send_sms(self, to: str, body: str) -> TransportReceipt: ...

    @abstractmethod
    async def send_chat(self, to: str, body: str) -> TransportReceipt: ...

    async def send(
        self,
        channel: Channel,
        to: Optional[str],
        body: str,
        subject: Optional[str] = None,
    ) -> TransportReceipt:
        """
        Route a message to the sender for its channel.

        Raises:
            TransportFailureError: Missing recipient or provider failure
        """
        channel = Channel(channel)
        if not to:
            raise TransportFailureError(channel.value, "Customer has no address for this channel")

        if channel == Channel.EMAIL:
            return await self.send_email(to, subject or "", body)
        if channel == Channel.SMS:
            return await self.send_sms(to, body)
        return await self.send_chat(to, body)

    async def close(self) -> None:
        return None

    def get_status(self) -> Dict[str, Any]:
        return {}


class GatewayTransport:
    """One channel gateway: circuit breaker, retries and error mapping."""

    def __init__(
        self,
        channel: Channel,
        base_url: str,
        sender: str,
        settings,
        api_key: Optional[str] = None,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.channel = Channel(channel)
        self.sender = sender
        headers = {"Authorization": f"Bearer {api_key}"} if api_key else None
        self.client = ServiceClient(
            service_name=f"{self.channel.value}_gateway",
            base_url=base_url,
            timeout_seconds=settings.gateway_request_timeout_seconds,
            circuit_breaker_config=CircuitBreakerConfig(
                failure_threshold=settings.circuit_breaker_failure_threshold,
                timeout=settings.circuit_breaker_timeout_seconds,
            ),
            headers=headers,
            transport=http_transport,
        )
        retry_decorator = create_async_retry_decorator(
            get_gateway_retry_config(settings),
            service_name=self.client.service_name,
        )
        self._post_with_retry = retry_decorator(self.client.post)

    async def deliver(self, payload: Dict[str, Any]) -> TransportReceipt:
        """
        Post a message to the gateway.

        Raises:
            TransportFailureError: If the gateway rejects the message or is unreachable
        """
        payload = {"from": self.sender, **payload}
        try:
            response = await self._post_with_retry("/messages", json=payload)
        except ExternalServiceError as e:
            logger.warning(
                "Gateway send failed",
                channel=self.channel.value,
                status_code=e.status_code,
                error=str(e),
            )
            raise TransportFailureError(self.channel.value, str(e), status_code=e.status_code)

        if not isinstance(response, dict):
            response = {}
        message_id = response.get("message_id") or response.get("id")
        logger.info("Gateway accepted message", channel=self.channel.value, provider_message_id=message_id)
        return TransportReceipt(channel=self.channel, provider_message_id=message_id)

    async def close(self) -> None:
        await self.client.close()


class HttpChannelTransports(ChannelTransports):
    """Channel transports backed by the configured HTTP gateways."""

    def __init__(self, settings, http_transport: Optional[httpx.AsyncBaseTransport] = None):
        self.email = GatewayTransport(
            Channel.EMAIL,
            settings.email_gateway_url,
            settings.email_sender,
            settings,
            api_key=settings.gateway_api_key,
            http_transport=http_transport,
        )
        self.sms = GatewayTransport(
            Channel.SMS,
            settings.sms_gateway_url,
            settings.sms_sender,
            settings,
            api_key=settings.gateway_api_key,
            http_transport=http_transport,
        )
        self.chat = GatewayTransport(
            Channel.CHAT,
            settings.chat_gateway_url,
            settings.chat_sender,
            settings,
            api_key=settings.gateway_api_key,
            http_transport=http_transport,
        )

    async def send_email(self, to: str, subject: str, body: str) -> TransportReceipt:
        return await self.email.deliver({"to": to, "subject": subject, "body": body})

    async def send_sms(self, to: str, body: str) -> TransportReceipt:
        return await self.sms.deliver({"to": to, "body": body})

    async def send_chat(self, to: str, body: str) -> TransportReceipt:
        return await self.chat.deliver({"to": to, "body": body})

    async def close(self) -> None:
        for gateway in (self.email, self.sms, self.chat):
            await gateway.close()

    def get_status(self) -> Dict[str, Any]:
        """Circuit breaker status per channel."""
        return {
            gateway.channel.value: gateway.client.get_circuit_status()
            for gateway in (self.email, self.sms, self.chat)
        }
