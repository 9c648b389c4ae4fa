"""
Outbound ports for the collaborators the dispatch core calls into.

Template storage, contact groups, record persistence and campaign queuing
all live outside the core. Implementations live in the infrastructure
layer.
"""

from abc import ABC, abstractmethod

from ..models import Campaign, DeliveryRecord


class TemplateResolver(ABC):
    @abstractmethod
    async def resolve(self, template_id: str, variables: dict[str, str] | None) -> str:
        """
        Render a template with its variables.

        Substitution syntax is ``{{variableName}}``.

        Raises:
            TemplateNotFoundError: If the template id is unknown
        """
        ...


class ContactGroupResolver(ABC):
    @abstractmethod
    async def expand(self, group_ids: list[str]) -> list[str]:
        """Return the recipient addresses belonging to the given groups."""
        ...


class DeliveryRecordRepository(ABC):
    """
    Best-effort persistence hooks.

    The core never waits on these to return a dispatch result.
    """

    @abstractmethod
    async def save(self, record: DeliveryRecord) -> None:
        ...

    @abstractmethod
    async def load(self, correlation_id: str | int) -> DeliveryRecord | None:
        """Load a record by record id, provider message id or gateway session id."""
        ...


class CampaignQueue(ABC):
    @abstractmethod
    async def enqueue(self, campaign: Campaign) -> None:
        """Hand a campaign off for background delivery."""
        ...
