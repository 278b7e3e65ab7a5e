"""Shared response envelopes."""

import math
from typing import Generic, List, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class Page(BaseModel, Generic[T]):
    """One page of a listing."""
    items: List[T]
    total: int = Field(..., description="Total matching records")
    page: int = Field(..., description="Current page, starting at 1")
    limit: int = Field(..., description="Page size")
    total_pages: int = Field(..., description="Number of pages")

    @classmethod
    def build(cls, items: List[T], total: int, page: int, limit: int) -> "Page[T]":
        return cls(
            items=items,
            total=total,
            page=page,
            limit=limit,
            total_pages=math.ceil(total / limit) if limit else 0,
        )


class ErrorResponse(BaseModel):
    """Error document returned for every handled failure."""
    error: bool = True
    error_code: str
    message: str
    correlation_id: str
    context: dict = Field(default_factory=dict)
