"""
Tests for circuit breaker implementation.
"""
import httpx
import pytest

from collections_service.core.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitState,
    ServiceClient,
)
from collections_service.core.exceptions import CircuitOpenError, ExternalServiceError


class TestCircuitBreakerConfig:
    """Test circuit breaker configuration."""

    def test_default_config(self):
        config = CircuitBreakerConfig()
        assert config.failure_threshold == 5
        assert config.success_threshold == 2
        assert config.timeout == 60
        assert config.half_open_max_calls == 3


class TestCircuitBreaker:
    """Test circuit breaker functionality."""

    @pytest.fixture
    def circuit_breaker(self):
        config = CircuitBreakerConfig(failure_threshold=3, success_threshold=2, timeout=60)
        return CircuitBreaker("sms_gateway", config)

    @pytest.fixture
    def failing_function(self):
        async def fail_func():
            raise ExternalServiceError("sms_gateway", "Service unavailable", status_code=503)
        return fail_func

    @pytest.fixture
    def successful_function(self):
        async def success_func():
            return {"message_id": "abc"}
        return success_func

    @pytest.mark.asyncio
    async def test_initial_closed_state(self, circuit_breaker):
        assert circuit_breaker.state == CircuitState.CLOSED
        assert circuit_breaker.failure_count == 0

    @pytest.mark.asyncio
    async def test_circuit_opens_after_failure_threshold(self, circuit_breaker, failing_function):
        for _ in range(3):
            with pytest.raises(ExternalServiceError):
                await circuit_breaker.call_async(failing_function)

        assert circuit_breaker.state == CircuitState.OPEN

        with pytest.raises(CircuitOpenError):
            await circuit_breaker.call_async(failing_function)

    @pytest.mark.asyncio
    async def test_success_resets_failure_count(self, circuit_breaker, failing_function, successful_function):
        for _ in range(2):
            with pytest.raises(ExternalServiceError):
                await circuit_breaker.call_async(failing_function)

        await circuit_breaker.call_async(successful_function)
        assert circuit_breaker.failure_count == 0
        assert circuit_breaker.state == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_half_open_closes_after_success_threshold(self, failing_function, successful_function):
        breaker = CircuitBreaker(
            "email_gateway", CircuitBreakerConfig(failure_threshold=1, success_threshold=2, timeout=0)
        )
        with pytest.raises(ExternalServiceError):
            await breaker.call_async(failing_function)
        assert breaker.state == CircuitState.OPEN

        await breaker.call_async(successful_function)
        assert breaker.state == CircuitState.HALF_OPEN

        await breaker.call_async(successful_function)
        assert breaker.state == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_failure_in_half_open_reopens(self, failing_function, successful_function):
        breaker = CircuitBreaker(
            "chat_gateway", CircuitBreakerConfig(failure_threshold=1, success_threshold=2, timeout=0)
        )
        with pytest.raises(ExternalServiceError):
            await breaker.call_async(failing_function)
        await breaker.call_async(successful_function)
        assert breaker.state == CircuitState.HALF_OPEN

        with pytest.raises(ExternalServiceError):
            await breaker.call_async(failing_function)
        assert breaker.state == CircuitState.OPEN

    @pytest.mark.asyncio
    async def test_metrics_tracking(self, circuit_breaker, successful_function, failing_function):
        for _ in range(3):
            await circuit_breaker.call_async(successful_function)
        for _ in range(2):
            with pytest.raises(ExternalServiceError):
                await circuit_breaker.call_async(failing_function)

        metrics = circuit_breaker.metrics
        assert metrics.total_calls == 5
        assert metrics.successful_calls == 3
        assert metrics.failed_calls == 2
        assert metrics.failure_rate == pytest.approx(0.4)

    def test_get_status(self, circuit_breaker):
        status = circuit_breaker.get_status()

        assert status["service"] == "sms_gateway"
        assert status["state"] == CircuitState.CLOSED.value
        assert status["is_available"] is True
        assert "metrics" in status


class TestServiceClient:
    """Test service client with circuit breaker."""

    def _client(self, handler, **kwargs):
        return ServiceClient(
            service_name="sms_gateway",
            base_url="http://gateway.test",
            transport=httpx.MockTransport(handler),
            **kwargs,
        )

    @pytest.mark.asyncio
    async def test_post_returns_json(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["path"] = request.url.path
            captured["auth"] = request.headers.get("Authorization")
            return httpx.Response(200, json={"message_id": "m-1"})

        client = self._client(handler, headers={"Authorization": "Bearer key"})
        response = await client.post("/messages", json={"to": "+15551234567"})

        assert response == {"message_id": "m-1"}
        assert captured == {"path": "/messages", "auth": "Bearer key"}
        await client.close()

    @pytest.mark.asyncio
    async def test_http_error_maps_to_external_service_error(self):
        client = self._client(lambda request: httpx.Response(422, text="bad number"))

        with pytest.raises(ExternalServiceError) as exc_info:
            await client.post("/messages", json={})

        assert exc_info.value.status_code == 422
        assert "bad number" in str(exc_info.value)
        await client.close()

    @pytest.mark.asyncio
    async def test_connection_error_has_no_status(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        client = self._client(handler)

        with pytest.raises(ExternalServiceError) as exc_info:
            await client.post("/messages")

        assert exc_info.value.status_code is None
        await client.close()

    @pytest.mark.asyncio
    async def test_non_json_body_is_wrapped(self):
        client = self._client(lambda request: httpx.Response(200, text="queued"))

        response = await client.post("/messages")

        assert response == {"data": "queued", "status_code": 200}
        await client.close()

    @pytest.mark.asyncio
    async def test_failed_call_counted_by_breaker(self):
        client = self._client(lambda request: httpx.Response(503))

        with pytest.raises(ExternalServiceError):
            await client.post("/messages", json={})

        assert client.get_circuit_status()["metrics"]["failed_calls"] == 1
        await client.close()
