"""Pydantic schemas for customer endpoints."""

from typing import Optional

from pydantic import BaseModel, Field, field_validator


class CustomerCreate(BaseModel):
    """Request model for registering a customer."""
    name: str = Field(..., min_length=2, max_length=100, description="Customer name")
    email: str = Field(..., description="Contact email address")
    phone: str = Field(..., description="Phone number in E.164 format")
    chat_handle: Optional[str] = Field(None, description="Chat messaging number in E.164 format")
    company: Optional[str] = Field(None, max_length=100, description="Company name")

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        local, _, domain = v.partition("@")
        if not local or "." not in domain or domain.startswith(".") or domain.endswith("."):
            raise ValueError("Email must have a valid format")
        return v.lower()

    @field_validator("phone", "chat_handle")
    @classmethod
    def validate_phone(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        digits = v[1:]
        if not v.startswith("+") or not digits.isdigit() or not 2 <= len(digits) <= 15 or digits[0] == "0":
            raise ValueError("Phone number must be in E.164 format (e.g., +1234567890)")
        return v
