"""Pydantic schemas for debt endpoints."""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, model_validator


class DebtCreate(BaseModel):
    """Request model for entering an invoice."""
    customer_id: str = Field(..., description="Owning customer")
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2, description="Outstanding amount")
    original_amount: Optional[Decimal] = Field(
        None, gt=0, max_digits=12, decimal_places=2, description="Invoiced amount, defaults to amount"
    )
    due_date: date = Field(..., description="Payment due date")
    description: Optional[str] = Field(None, max_length=500)
    invoice_number: Optional[str] = Field(None, max_length=50)

    @model_validator(mode="after")
    def default_original_amount(self) -> "DebtCreate":
        if self.original_amount is None:
            self.original_amount = self.amount
        return self


class PaymentRecord(BaseModel):
    """Request model for settling a debt."""
    method: str = Field(..., min_length=1, max_length=50, description="Payment method")
    paid_at: Optional[datetime] = Field(None, description="Payment timestamp, defaults to now")
