"""
Custom exception classes for the Collections Engine Service.
"""
from typing import Optional, Any, Dict
import uuid
from fastapi import HTTPException, status

from collections_service.core.logging import get_correlation_id


class BaseAPIException(HTTPException):
    """Base exception for API errors."""

    def __init__(
        self,
        status_code: int,
        detail: str,
        error_code: Optional[str] = None,
        headers: Optional[dict[str, Any]] = None,
        correlation_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.error_code = error_code
        self.correlation_id = correlation_id or get_correlation_id() or str(uuid.uuid4())
        self.context = context or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API response."""
        return {
            "error": True,
            "error_code": self.error_code,
            "message": self.detail,
            "correlation_id": self.correlation_id,
            "context": self.context,
        }


class ValidationError(BaseAPIException):
    """Exception for validation errors."""

    def __init__(
        self,
        detail: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        **context
    ):
        error_code = "COL_422"
        if field:
            error_code = f"COL_422_{field.upper()}"
            detail = f"Validation failed for field '{field}': {detail}"

        context_dict = {"field": field, "value": value, **context}

        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=detail,
            error_code=error_code,
            context=context_dict,
        )


class ResourceNotFoundError(BaseAPIException):
    """Exception for a customer, debt, campaign or communication that does not exist."""

    def __init__(self, resource: str, resource_id: Optional[str] = None, detail: Optional[str] = None, **context):
        self.resource = resource
        if not detail:
            detail = f"{resource.capitalize()} not found"
            if resource_id:
                detail = f"{resource.capitalize()} '{resource_id}' not found"

        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=detail,
            error_code=f"COL_404_{resource.upper()}",
            context={"resource": resource, "resource_id": resource_id, **context},
        )


class TemplateNotFoundError(ResourceNotFoundError):
    """No active template matches the requested channel, tone and arrears."""

    def __init__(self, channel: str, tone: str, days_in_arrears: int):
        super().__init__(
            "template",
            detail=(
                f"No active {channel} template with tone '{tone}' applies to "
                f"{days_in_arrears} days in arrears"
            ),
            channel=channel,
            tone=tone,
            days_in_arrears=days_in_arrears,
        )


class BusinessRuleError(BaseAPIException):
    """Exception for business rule violations."""

    def __init__(
        self,
        detail: str,
        rule_name: Optional[str] = None,
        entity_id: Optional[str] = None,
        **context
    ):
        error_code = "COL_409"
        if rule_name:
            error_code = f"COL_409_{rule_name.upper()}"
            detail = f"Business rule '{rule_name}' violated: {detail}"

        context_dict = {"rule_name": rule_name, "entity_id": entity_id, **context}

        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail,
            error_code=error_code,
            context=context_dict,
        )


class DispatchFailedError(BaseAPIException):
    """The channel transport failed; the attempt was recorded as a failed communication."""

    def __init__(self, detail: str, communication_id: str, channel: str, **context):
        super().__init__(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=detail,
            error_code="COL_502_TRANSPORT",
            context={"communication_id": communication_id, "channel": channel, **context},
        )


class ServiceUnavailableError(BaseAPIException):
    """Exception for external service unavailability."""

    def __init__(
        self,
        service_name: str,
        detail: Optional[str] = None,
        retry_after: Optional[int] = None,
        **context
    ):
        self.service_name = service_name
        self.retry_after = retry_after
        if not detail:
            detail = f"External service '{service_name}' is currently unavailable"

        headers = {}
        if retry_after:
            headers["Retry-After"] = str(retry_after)

        super().__init__(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=detail,
            error_code="COL_503",
            headers=headers,
            context={"service_name": service_name, "retry_after": retry_after, **context},
        )


# External Service Exceptions
class ExternalServiceError(Exception):
    """Exception for external service call errors."""

    def __init__(
        self,
        service_name: str,
        message: str,
        status_code: Optional[int] = None,
        retry_after: Optional[int] = None,
        **context
    ):
        self.service_name = service_name
        self.status_code = status_code
        self.retry_after = retry_after
        self.context = context
        super().__init__(f"[{service_name}] {message}")


class TransportFailureError(ExternalServiceError):
    """A channel provider rejected, failed or timed out on a send."""

    def __init__(self, channel: str, message: str, status_code: Optional[int] = None, **context):
        self.channel = channel
        super().__init__(
            service_name=f"{channel}_gateway",
            message=message,
            status_code=status_code,
            **context
        )


class CircuitOpenError(ExternalServiceError):
    """Circuit breaker rejected the call without reaching the service."""

    def __init__(self, service_name: str, message: Optional[str] = None):
        super().__init__(
            service_name=service_name,
            message=message or f"Circuit breaker is OPEN for {service_name}",
        )


# Store Exceptions
class StoreError(Exception):
    """Exception for persistence failures."""

    def __init__(self, detail: str, operation: Optional[str] = None, **context):
        self.operation = operation
        if operation:
            context["operation"] = operation
        self.context = context
        super().__init__(detail)


def map_store_error(store_error: StoreError) -> BaseAPIException:
    """Map a persistence failure to an API exception."""
    return ServiceUnavailableError(
        service_name="store",
        detail=f"Store operation failed: {store_error}",
        operation=store_error.operation,
    )
