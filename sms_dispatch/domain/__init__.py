from .errors import DispatchError, ErrorKind, TemplateNotFoundError
from .models import (
    GATEWAY_PROVIDER,
    BulkDispatchRequest,
    Campaign,
    CampaignTicket,
    ChannelState,
    ChannelStatus,
    DeliveryRecord,
    DeliveryStatus,
    Direction,
    DispatchRequest,
    GatewayCredentials,
    InboundMessage,
    mint_session_id,
    normalize_number,
)

__all__ = [
    "GATEWAY_PROVIDER",
    "BulkDispatchRequest",
    "Campaign",
    "CampaignTicket",
    "ChannelState",
    "ChannelStatus",
    "DeliveryRecord",
    "DeliveryStatus",
    "Direction",
    "DispatchError",
    "DispatchRequest",
    "ErrorKind",
    "GatewayCredentials",
    "InboundMessage",
    "TemplateNotFoundError",
    "mint_session_id",
    "normalize_number",
]
