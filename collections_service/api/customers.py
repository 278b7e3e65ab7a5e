"""
Customer registry endpoints.
"""
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Query, status

from collections_service.core.dependencies import get_customer_service
from collections_service.models.domain import Customer
from collections_service.schemas.common import Page
from collections_service.schemas.customer import CustomerCreate
from collections_service.services.customer_service import CustomerService

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/customers", tags=["customers"])


@router.post("", response_model=Customer, status_code=status.HTTP_201_CREATED)
async def create_customer(
    request: CustomerCreate,
    customer_service: CustomerService = Depends(get_customer_service),
):
    """Register a customer."""
    return await customer_service.create_customer(request)


@router.get("", response_model=Page[Customer])
async def list_customers(
    search: Optional[str] = Query(None, description="Match on name, email or phone"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    customer_service: CustomerService = Depends(get_customer_service),
):
    """List active customers, newest first."""
    customers, total = await customer_service.list_customers(search=search, page=page, limit=limit)
    return Page[Customer].build(customers, total, page, limit)


@router.get("/{customer_id}", response_model=Customer)
async def get_customer(
    customer_id: str,
    customer_service: CustomerService = Depends(get_customer_service),
):
    return await customer_service.get_customer(customer_id)
