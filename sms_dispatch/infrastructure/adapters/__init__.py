from .campaign_ledger import CampaignLedger, CampaignState
from .kinesis_queue import KinesisCampaignConsumer, KinesisCampaignQueue
from .memory import (
    InMemoryCampaignQueue,
    InMemoryContactGroupResolver,
    InMemoryDeliveryRecordRepository,
    InMemoryTemplateResolver,
)
from .provider_factory import ProviderFactory

__all__ = [
    "CampaignLedger",
    "CampaignState",
    "InMemoryCampaignQueue",
    "InMemoryContactGroupResolver",
    "InMemoryDeliveryRecordRepository",
    "InMemoryTemplateResolver",
    "KinesisCampaignConsumer",
    "KinesisCampaignQueue",
    "ProviderFactory",
]
