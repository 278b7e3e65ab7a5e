"""Customer registry."""
from typing import List, Optional, Tuple

import structlog

from collections_service.core.clock import Clock
from collections_service.core.exceptions import BusinessRuleError, ResourceNotFoundError
from collections_service.models.domain import Customer
from collections_service.schemas.customer import CustomerCreate
from collections_service.services.store import CollectionsStore

logger = structlog.get_logger(__name__)


class CustomerService:
    def __init__(self, store: CollectionsStore, clock: Clock):
        self.store = store
        self.clock = clock

    async def create_customer(self, data: CustomerCreate) -> Customer:
        """Register a customer; email addresses are unique."""
        if await self.store.get_customer_by_email(data.email):
            raise BusinessRuleError(
                f"a customer with email {data.email} already exists",
                rule_name="unique_email",
            )

        customer = Customer(**data.model_dump(), registered_at=self.clock.now())
        await self.store.add_customer(customer)
        logger.info("Customer created", customer_id=customer.id)
        return customer

    async def get_customer(self, customer_id: str) -> Customer:
        customer = await self.store.get_customer(customer_id)
        if customer is None:
            raise ResourceNotFoundError("customer", customer_id)
        return customer

    async def list_customers(
        self, search: Optional[str] = None, page: int = 1, limit: int = 10
    ) -> Tuple[List[Customer], int]:
        return await self.store.list_customers(
            search=search.strip() if search else None,
            offset=(page - 1) * limit,
            limit=limit,
        )
