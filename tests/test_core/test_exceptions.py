"""
Tests for custom exception hierarchy.
"""
from fastapi import HTTPException, status

from collections_service.core.exceptions import (
    BaseAPIException,
    BusinessRuleError,
    DispatchFailedError,
    ExternalServiceError,
    ResourceNotFoundError,
    ServiceUnavailableError,
    StoreError,
    TemplateNotFoundError,
    TransportFailureError,
    ValidationError,
    map_store_error,
)
from collections_service.core.logging import correlation_context


class TestBaseAPIException:
    """Test base API exception."""

    def test_basic_creation(self):
        exc = BaseAPIException(status_code=400, detail="Test error", error_code="TEST_ERROR")

        assert isinstance(exc, HTTPException)
        assert exc.status_code == 400
        assert exc.error_code == "TEST_ERROR"
        assert exc.correlation_id is not None
        assert exc.context == {}

    def test_uses_current_correlation_id(self):
        with correlation_context(correlation_id="corr-42"):
            exc = BaseAPIException(status_code=400, detail="Test error")
        assert exc.correlation_id == "corr-42"

    def test_to_dict(self):
        exc = BaseAPIException(
            status_code=400,
            detail="Test error",
            error_code="TEST_ERROR",
            correlation_id="corr-1",
            context={"field": "amount"},
        )
        assert exc.to_dict() == {
            "error": True,
            "error_code": "TEST_ERROR",
            "message": "Test error",
            "correlation_id": "corr-1",
            "context": {"field": "amount"},
        }


class TestDomainErrors:
    """Error codes and statuses for the collections taxonomy."""

    def test_resource_not_found(self):
        exc = ResourceNotFoundError("debt", "d-1")
        assert exc.status_code == status.HTTP_404_NOT_FOUND
        assert exc.error_code == "COL_404_DEBT"
        assert exc.detail == "Debt 'd-1' not found"

    def test_template_not_found_is_not_found(self):
        exc = TemplateNotFoundError("sms", "urgent", 45)
        assert isinstance(exc, ResourceNotFoundError)
        assert exc.error_code == "COL_404_TEMPLATE"
        assert exc.context["days_in_arrears"] == 45

    def test_validation_error_field(self):
        exc = ValidationError("must be positive", field="delta", value=-1)
        assert exc.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
        assert exc.error_code == "COL_422_DELTA"

    def test_business_rule_error(self):
        exc = BusinessRuleError("debt is already paid", rule_name="debt_terminal", entity_id="d-1")
        assert exc.status_code == status.HTTP_409_CONFLICT
        assert exc.error_code == "COL_409_DEBT_TERMINAL"
        assert exc.context["entity_id"] == "d-1"

    def test_dispatch_failed_error(self):
        exc = DispatchFailedError("gateway down", communication_id="c-1", channel="sms")
        assert exc.status_code == status.HTTP_502_BAD_GATEWAY
        assert exc.error_code == "COL_502_TRANSPORT"
        assert exc.context["communication_id"] == "c-1"

    def test_transport_failure_is_external_service_error(self):
        exc = TransportFailureError("chat", "rejected", status_code=400)
        assert isinstance(exc, ExternalServiceError)
        assert exc.service_name == "chat_gateway"
        assert exc.status_code == 400

    def test_map_store_error(self):
        mapped = map_store_error(StoreError("disk full", operation="add_debt"))
        assert isinstance(mapped, ServiceUnavailableError)
        assert mapped.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
        assert mapped.context["operation"] == "add_debt"
