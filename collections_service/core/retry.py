"""
Retry logic with exponential backoff using tenacity.
"""
from dataclasses import dataclass
from typing import Callable, Optional

import structlog
from tenacity import (
    retry,
    stop_after_attempt,
    wait_random_exponential,
    retry_if_exception,
    RetryCallState,
)

from collections_service.core.exceptions import CircuitOpenError, ExternalServiceError

logger = structlog.get_logger(__name__)


@dataclass
class RetryConfig:
    """Configuration for retry logic."""

    max_attempts: int = 3
    base_delay: float = 0.5
    max_delay: float = 5.0


def is_retryable_gateway_error(error: BaseException) -> bool:
    """Connection errors and 5xx responses are retried; 4xx and open circuits are not."""
    if isinstance(error, CircuitOpenError):
        return False
    if isinstance(error, ExternalServiceError):
        return error.status_code is None or error.status_code >= 500
    return isinstance(error, (ConnectionError, TimeoutError))


def create_async_retry_decorator(
    config: Optional[RetryConfig] = None,
    service_name: str = "Unknown Service",
) -> Callable:
    """Create a retry decorator for async gateway calls."""

    config = config or RetryConfig()

    def _before_sleep(retry_state: RetryCallState) -> None:
        logger.warning(
            "Retrying failed async operation",
            service=service_name,
            attempt=retry_state.attempt_number,
            max_attempts=config.max_attempts,
            delay=retry_state.next_action.sleep,
            exception=str(retry_state.outcome.exception()),
        )

    return retry(
        stop=stop_after_attempt(config.max_attempts),
        wait=wait_random_exponential(multiplier=config.base_delay, max=config.max_delay),
        retry=retry_if_exception(is_retryable_gateway_error),
        before_sleep=_before_sleep,
        reraise=True,
    )


def get_gateway_retry_config(settings) -> RetryConfig:
    """Build the retry configuration for channel gateways from settings."""
    return RetryConfig(
        max_attempts=settings.retry_max_attempts,
        base_delay=settings.retry_base_delay_seconds,
        max_delay=settings.retry_max_delay_seconds,
    )
