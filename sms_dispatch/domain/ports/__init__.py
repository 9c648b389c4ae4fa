from .carrier_provider import (
    CarrierProvider,
    DeliveryStatusResult,
    ProviderLimits,
    ProviderPricing,
    ProviderSendResult,
    map_vendor_status,
)
from .collaborators import (
    CampaignQueue,
    ContactGroupResolver,
    DeliveryRecordRepository,
    TemplateResolver,
)

__all__ = [
    "CampaignQueue",
    "CarrierProvider",
    "ContactGroupResolver",
    "DeliveryRecordRepository",
    "DeliveryStatusResult",
    "ProviderLimits",
    "ProviderPricing",
    "ProviderSendResult",
    "TemplateResolver",
    "map_vendor_status",
]
