"""
Communication endpoints: dispatch and history.
"""
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Query, status

from collections_service.core.dependencies import ServiceContainer, get_container, get_dispatcher
from collections_service.core.exceptions import DispatchFailedError, ResourceNotFoundError
from collections_service.models.domain import Channel, Communication
from collections_service.schemas.common import Page
from collections_service.schemas.communication import DispatchRequest
from collections_service.services.dispatcher import DispatchOrchestrator

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/communications", tags=["communications"])


@router.post("/dispatch", response_model=Communication, status_code=status.HTTP_201_CREATED)
async def dispatch_communication(
    request: DispatchRequest,
    dispatcher: DispatchOrchestrator = Depends(get_dispatcher),
):
    """
    Render and send a collections message for a debt.

    Returns the delivered communication. A transport failure is recorded as
    a failed communication and reported as 502 with its id.
    """
    result = await dispatcher.dispatch(request)
    if result.error is not None:
        raise DispatchFailedError(
            detail=f"Message could not be delivered: {result.error}",
            communication_id=result.communication.id,
            channel=result.communication.channel.value,
        )
    return result.communication


@router.get("", response_model=Page[Communication])
async def list_communications(
    customer_id: Optional[str] = Query(None),
    debt_id: Optional[str] = Query(None),
    channel: Optional[Channel] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    container: ServiceContainer = Depends(get_container),
):
    """Communication history, newest first."""
    communications, total = await container.store.list_communications(
        customer_id=customer_id,
        debt_id=debt_id,
        channel=channel,
        offset=(page - 1) * limit,
        limit=limit,
    )
    return Page[Communication].build(communications, total, page, limit)


@router.get("/{communication_id}", response_model=Communication)
async def get_communication(
    communication_id: str,
    container: ServiceContainer = Depends(get_container),
):
    communication = await container.store.get_communication(communication_id)
    if communication is None:
        raise ResourceNotFoundError("communication", communication_id)
    return communication
