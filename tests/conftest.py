"""
Pytest configuration and fixtures for the Collections Engine Service.
"""
import asyncio
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Dict, Generator, List, Optional

import pytest
from fastapi.testclient import TestClient

from collections_service.core.clock import FixedClock
from collections_service.core.config import Settings
from collections_service.core.dependencies import build_container
from collections_service.core.exceptions import TransportFailureError
from collections_service.main import create_app
from collections_service.models.domain import (
    Campaign,
    CampaignVariant,
    Channel,
    Customer,
    Debt,
    Template,
    Tone,
)
from collections_service.services.store import InMemoryStore
from collections_service.services.transports import ChannelTransports, TransportReceipt

NOW = datetime(2024, 3, 15, 9, 0, tzinfo=timezone.utc)


@dataclass
class SentMessage:
    channel: Channel
    to: str
    body: str
    subject: Optional[str] = None


class FakeTransports(ChannelTransports):
    """Records sends; failures and delays are configured per channel."""

    def __init__(self):
        self.sent: List[SentMessage] = []
        self.failures: Dict[Channel, Exception] = {}
        self.delay: float = 0

    async def _deliver(self, channel, to, body, subject=None) -> TransportReceipt:
        if self.delay:
            await asyncio.sleep(self.delay)
        failure = self.failures.get(channel)
        if failure is not None:
            raise failure
        self.sent.append(SentMessage(channel=channel, to=to, body=body, subject=subject))
        return TransportReceipt(channel=channel, provider_message_id=f"msg-{len(self.sent)}")

    async def send_email(self, to, subject, body):
        return await self._deliver(Channel.EMAIL, to, body, subject)

    async def send_sms(self, to, body):
        return await self._deliver(Channel.SMS, to, body)

    async def send_chat(self, to, body):
        return await self._deliver(Channel.CHAT, to, body)

    def fail(self, channel: Channel, message: str = "Gateway unavailable") -> None:
        self.failures[channel] = TransportFailureError(channel.value, message, status_code=503)


def make_customer(**overrides) -> Customer:
    values = {
        "name": "Ana Silva",
        "email": "ana@example.com",
        "phone": "+15551234567",
        "chat_handle": "+15551234567",
        "company": "Silva Imports",
        "registered_at": NOW,
    }
    values.update(overrides)
    return Customer(**values)


def make_debt(customer: Customer, due_date: date, **overrides) -> Debt:
    values = {
        "customer_id": customer.id,
        "original_amount": Decimal("1500.00"),
        "amount": Decimal("1500.00"),
        "due_date": due_date,
        "invoice_number": None,
        "created_at": NOW,
    }
    values.update(overrides)
    return Debt(**values)


def make_template(**overrides) -> Template:
    values = {
        "name": "Friendly reminder",
        "channel": Channel.EMAIL,
        "tone": Tone.FRIENDLY,
        "min_days_in_arrears": 0,
        "body": "Hi {name}, your balance of {amount} is {days_in_arrears} days overdue.",
        "placeholders": ["name", "amount", "days_in_arrears"],
        "created_at": NOW,
    }
    values.update(overrides)
    return Template(**values)


def make_campaign(**overrides) -> Campaign:
    values = {"name": "Spring push", "variant": CampaignVariant.A, "created_at": NOW}
    values.update(overrides)
    return Campaign(**values)


@pytest.fixture
def fixed_clock() -> FixedClock:
    return FixedClock(NOW)


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def transports() -> FakeTransports:
    return FakeTransports()


@pytest.fixture
def test_settings() -> Settings:
    """Settings with the background sweep disabled and a short transport timeout."""
    return Settings(
        reclassification_enabled=False,
        transport_timeout_seconds=0.5,
        store_backend="memory",
    )


@pytest.fixture
def container(test_settings, store, transports, fixed_clock):
    return build_container(test_settings, store=store, transports=transports, clock=fixed_clock)


@pytest.fixture
def client(container) -> Generator[TestClient, None, None]:
    """
    Create a test client for the FastAPI application.

    The application runs on the in-memory store, fake transports and the
    fixed clock.
    """
    with TestClient(create_app(container=container)) as test_client:
        yield test_client


@pytest.fixture
def api_prefix(test_settings) -> str:
    return test_settings.api_prefix


@pytest.fixture
def sample_headers() -> dict:
    """Sample request headers with correlation ID."""
    return {
        "X-Correlation-ID": "test-correlation-123",
        "Content-Type": "application/json",
    }
