"""
Template catalog endpoints.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from collections_service.core.dependencies import get_template_service
from collections_service.models.domain import Channel, Template, Tone
from collections_service.schemas.template import TemplateCreate, TemplateUpdate
from collections_service.services.template_service import TemplateService

router = APIRouter(prefix="/templates", tags=["templates"])


@router.post("", response_model=Template, status_code=status.HTTP_201_CREATED)
async def create_template(
    request: TemplateCreate,
    template_service: TemplateService = Depends(get_template_service),
):
    return await template_service.create_template(request)


@router.get("", response_model=List[Template])
async def list_templates(
    channel: Optional[Channel] = Query(None),
    tone: Optional[Tone] = Query(None),
    include_inactive: bool = Query(False),
    template_service: TemplateService = Depends(get_template_service),
):
    """Templates ordered by arrears threshold."""
    return await template_service.list_templates(
        channel=channel, tone=tone, include_inactive=include_inactive
    )


@router.get("/{template_id}", response_model=Template)
async def get_template(
    template_id: str,
    template_service: TemplateService = Depends(get_template_service),
):
    return await template_service.get_template(template_id)


@router.patch("/{template_id}", response_model=Template)
async def update_template(
    template_id: str,
    request: TemplateUpdate,
    template_service: TemplateService = Depends(get_template_service),
):
    """Update a template. Only the active flag can change once it has been sent."""
    return await template_service.update_template(template_id, request)
