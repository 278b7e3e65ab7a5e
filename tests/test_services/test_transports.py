"""
Tests for the HTTP channel gateways.
"""
import json

import httpx
import pytest

from collections_service.core.config import Settings
from collections_service.core.exceptions import TransportFailureError
from collections_service.models.domain import Channel
from collections_service.services.transports import HttpChannelTransports


@pytest.fixture
def gateway_settings():
    return Settings(
        email_gateway_url="http://email.test",
        sms_gateway_url="http://sms.test",
        chat_gateway_url="http://chat.test",
        gateway_api_key="secret",
        retry_max_attempts=3,
        retry_base_delay_seconds=0,
        retry_max_delay_seconds=0,
    )


class TestHttpChannelTransports:
    @pytest.mark.asyncio
    async def test_email_payload_and_receipt(self, gateway_settings):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(202, json={"message_id": "email-1"})

        transports = HttpChannelTransports(gateway_settings, http_transport=httpx.MockTransport(handler))
        receipt = await transports.send_email("ana@example.com", "Invoice INV-1", "Please pay")

        assert receipt.provider_message_id == "email-1"
        assert receipt.channel == Channel.EMAIL
        sent = requests[0]
        assert sent.url.host == "email.test"
        assert sent.headers["Authorization"] == "Bearer secret"
        assert json.loads(sent.content) == {
            "from": gateway_settings.email_sender,
            "to": "ana@example.com",
            "subject": "Invoice INV-1",
            "body": "Please pay",
        }
        await transports.close()

    @pytest.mark.asyncio
    async def test_non_object_response_gives_empty_receipt(self, gateway_settings):
        transports = HttpChannelTransports(
            gateway_settings,
            http_transport=httpx.MockTransport(lambda request: httpx.Response(200, json=["queued"])),
        )

        receipt = await transports.send_sms("+15551234567", "Please pay")

        assert receipt.channel == Channel.SMS
        assert receipt.provider_message_id is None
        await transports.close()

    @pytest.mark.asyncio
    async def test_server_errors_are_retried(self, gateway_settings):
        attempts = []

        def handler(request):
            attempts.append(request)
            if len(attempts) < 3:
                return httpx.Response(503)
            return httpx.Response(200, json={"id": "sms-9"})

        transports = HttpChannelTransports(gateway_settings, http_transport=httpx.MockTransport(handler))
        receipt = await transports.send_sms("+15551234567", "Pay now")

        assert receipt.provider_message_id == "sms-9"
        assert len(attempts) == 3
        await transports.close()

    @pytest.mark.asyncio
    async def test_rejection_raises_transport_failure(self, gateway_settings):
        attempts = []

        def handler(request):
            attempts.append(request)
            return httpx.Response(400, text="invalid number")

        transports = HttpChannelTransports(gateway_settings, http_transport=httpx.MockTransport(handler))

        with pytest.raises(TransportFailureError) as exc_info:
            await transports.send(Channel.CHAT, "+15551234567", "Hello")

        assert exc_info.value.channel == "chat"
        assert exc_info.value.status_code == 400
        assert len(attempts) == 1
        await transports.close()

    @pytest.mark.asyncio
    async def test_missing_recipient(self, gateway_settings):
        transports = HttpChannelTransports(
            gateway_settings, http_transport=httpx.MockTransport(lambda r: httpx.Response(200, json={}))
        )
        with pytest.raises(TransportFailureError):
            await transports.send(Channel.CHAT, None, "Hello")
        await transports.close()

    def test_status_per_channel(self, gateway_settings):
        transports = HttpChannelTransports(gateway_settings)
        assert set(transports.get_status()) == {"email", "sms", "chat"}
