"""Pydantic schemas for template endpoints."""

from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from collections_service.models.domain import Channel, Tone
from collections_service.services.renderer import PLACEHOLDER_PATTERN, extract_placeholders


def _validate_names(names: List[str]) -> List[str]:
    for name in names:
        if not PLACEHOLDER_PATTERN.fullmatch("{" + name + "}"):
            raise ValueError(f"Invalid placeholder name: {name!r}")
    return names


class TemplateCreate(BaseModel):
    """Request model for adding a template to the catalog."""
    name: str = Field(..., min_length=1, max_length=100)
    channel: Channel
    tone: Tone
    min_days_in_arrears: int = Field(..., ge=0, description="Arrears day count the template applies from")
    body: str = Field(..., min_length=1, description="Body with {placeholder} tokens")
    placeholders: Optional[List[str]] = Field(
        None, description="Declared placeholders, defaults to every token found in the body"
    )
    active: bool = True

    @field_validator("placeholders")
    @classmethod
    def validate_placeholders(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        return v if v is None else _validate_names(v)

    @model_validator(mode="after")
    def default_placeholders(self) -> "TemplateCreate":
        if self.placeholders is None:
            self.placeholders = extract_placeholders(self.body)
        return self


class TemplateUpdate(BaseModel):
    """Partial update; content fields are refused once the template has been used."""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    min_days_in_arrears: Optional[int] = Field(None, ge=0)
    body: Optional[str] = Field(None, min_length=1)
    placeholders: Optional[List[str]] = None
    active: Optional[bool] = None

    @field_validator("placeholders")
    @classmethod
    def validate_placeholders(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        return v if v is None else _validate_names(v)

    @property
    def content_fields(self) -> set:
        """Fields other than the active flag that were set."""
        return self.model_fields_set - {"active"}
