"""
Template selection for a dispatch.

Among active templates for the channel and tone whose threshold has been
reached, the most escalated one (largest threshold) wins. Equal thresholds
are broken by the lowest template id so the result never depends on catalog
order.
"""
from typing import Iterable

from collections_service.core.exceptions import TemplateNotFoundError
from collections_service.models.domain import Channel, Template, Tone


def _selection_key(template: Template):
    return (-template.min_days_in_arrears, template.id)


def select_template(
    channel: Channel,
    tone: Tone,
    days_in_arrears: int,
    catalog: Iterable[Template],
) -> Template:
    """
    Pick the best matching template.

    Raises:
        TemplateNotFoundError: If no active template applies
    """
    channel = Channel(channel)
    tone = Tone(tone)
    candidates = [
        template
        for template in catalog
        if template.active
        and template.channel == channel
        and template.tone == tone
        and template.min_days_in_arrears <= days_in_arrears
    ]
    if not candidates:
        raise TemplateNotFoundError(channel.value, tone.value, days_in_arrears)

    return min(candidates, key=_selection_key)
