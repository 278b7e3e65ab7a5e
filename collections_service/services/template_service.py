"""
Template catalog management.

A template's content is frozen once any communication references it so the
stored content of past messages always matches their template. The active
flag can still be toggled to retire a template.
"""
from typing import List, Optional

import structlog

from collections_service.core.clock import Clock
from collections_service.core.exceptions import BusinessRuleError, ResourceNotFoundError
from collections_service.models.domain import Channel, Template, Tone
from collections_service.schemas.template import TemplateCreate, TemplateUpdate
from collections_service.services.renderer import extract_placeholders
from collections_service.services.store import CollectionsStore

logger = structlog.get_logger(__name__)


class TemplateService:
    def __init__(self, store: CollectionsStore, clock: Clock):
        self.store = store
        self.clock = clock

    async def create_template(self, data: TemplateCreate) -> Template:
        template = Template(**data.model_dump(), created_at=self.clock.now())
        await self.store.add_template(template)
        logger.info(
            "Template created",
            template_id=template.id,
            channel=template.channel.value,
            tone=template.tone.value,
            min_days_in_arrears=template.min_days_in_arrears,
        )
        return template

    async def get_template(self, template_id: str) -> Template:
        template = await self.store.get_template(template_id)
        if template is None:
            raise ResourceNotFoundError("template", template_id)
        return template

    async def list_templates(
        self,
        channel: Optional[Channel] = None,
        tone: Optional[Tone] = None,
        include_inactive: bool = False,
    ) -> List[Template]:
        return await self.store.list_templates(
            channel=channel, tone=tone, active_only=not include_inactive
        )

    async def update_template(self, template_id: str, data: TemplateUpdate) -> Template:
        """
        Apply a partial update.

        Raises:
            ResourceNotFoundError: Template does not exist
            BusinessRuleError: Content change requested for a template already used
        """
        template = await self.get_template(template_id)

        if data.content_fields and await self.store.template_in_use(template_id):
            raise self._immutable(template_id, data)

        changes = data.model_dump(exclude_unset=True)
        if "body" in changes and "placeholders" not in changes:
            changes["placeholders"] = extract_placeholders(changes["body"])

        updated = template.model_copy(update=changes)
        # A dispatch that selected the template before this write still sends
        # the content it rendered; its communication then blocks later edits.
        if await self.store.save_template(updated, require_unused=bool(data.content_fields)) is None:
            raise self._immutable(template_id, data)
        logger.info("Template updated", template_id=template_id, fields=sorted(changes))
        return updated

    @staticmethod
    def _immutable(template_id: str, data: TemplateUpdate) -> BusinessRuleError:
        return BusinessRuleError(
            "content of a template that has been sent cannot change",
            rule_name="template_immutable",
            entity_id=template_id,
            fields=sorted(data.content_fields),
        )
