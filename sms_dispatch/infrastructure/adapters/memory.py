"""
In-memory implementations of the collaborator ports.

Used for development and tests; production deployments swap in
database-backed implementations.
"""

import asyncio
import re

import structlog

from ...domain.errors import TemplateNotFoundError
from ...domain.models import Campaign, DeliveryRecord
from ...domain.ports import (
    CampaignQueue,
    ContactGroupResolver,
    DeliveryRecordRepository,
    TemplateResolver,
)

logger = structlog.get_logger()

DEFAULT_TEMPLATES = {
    "welcome": "Welcome {{name}} to {{company}}! Your account is now active.",
    "verification": "Your verification code is: {{code}}. Valid for 10 minutes.",
    "reminder": "Hi {{name}}, reminder: {{message}}",
}


def render_template(content: str, variables: dict[str, str] | None) -> str:
    """Substitute ``{{ name }}`` placeholders; unknown names are left as-is."""
    for key, value in (variables or {}).items():
        pattern = re.compile(r"\{\{\s*" + re.escape(key) + r"\s*\}\}")
        content = pattern.sub(lambda _: str(value), content)
    return content


class InMemoryTemplateResolver(TemplateResolver):
    def __init__(self, templates: dict[str, str] | None = None) -> None:
        self._templates = dict(DEFAULT_TEMPLATES if templates is None else templates)

    async def resolve(self, template_id: str, variables: dict[str, str] | None) -> str:
        content = self._templates.get(template_id)
        if content is None:
            raise TemplateNotFoundError(template_id)
        return render_template(content, variables)


class InMemoryContactGroupResolver(ContactGroupResolver):
    """Groups keyed by id; unknown ids expand to nothing."""

    def __init__(self, groups: dict[str, list[str]] | None = None) -> None:
        self._groups = {k: list(v) for k, v in (groups or {}).items()}

    async def expand(self, group_ids: list[str]) -> list[str]:
        members: list[str] = []
        for group_id in group_ids:
            if group_id not in self._groups:
                logger.warning("Unknown contact group", group_id=group_id)
                continue
            members.extend(self._groups[group_id])
        return members


class InMemoryDeliveryRecordRepository(DeliveryRecordRepository):
    """
    Dict-backed record store.

    Lookups by gateway session id return the most recently saved match,
    since session ids are short and may be reused.
    """

    def __init__(self) -> None:
        self._records: dict[str, DeliveryRecord] = {}

    async def save(self, record: DeliveryRecord) -> None:
        self._records[record.id] = record

    async def load(self, correlation_id: str | int) -> DeliveryRecord | None:
        if isinstance(correlation_id, str) and correlation_id in self._records:
            return self._records[correlation_id]

        for record in reversed(list(self._records.values())):
            if isinstance(correlation_id, int) and record.session_id == correlation_id:
                return record
            if record.provider_message_id is not None and record.provider_message_id == correlation_id:
                return record
        return None

    def all(self) -> list[DeliveryRecord]:
        return list(self._records.values())


class InMemoryCampaignQueue(CampaignQueue):
    """asyncio.Queue hand-off between the API and the campaign worker."""

    def __init__(self, maxsize: int = 0) -> None:
        self._queue: asyncio.Queue[Campaign] = asyncio.Queue(maxsize=maxsize)

    async def enqueue(self, campaign: Campaign) -> None:
        await self._queue.put(campaign)

    async def get(self) -> Campaign:
        return await self._queue.get()

    def qsize(self) -> int:
        return self._queue.qsize()
