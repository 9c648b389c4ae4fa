from .gateway_dto import GatewayCredentialsDTO, GatewayStatusDTO
from .sms_dto import (
    ApiResponseDTO,
    BulkSmsDTO,
    DeliveryRecordDTO,
    EstimateCostDTO,
    InboundSmsDTO,
    SendSmsDTO,
)

__all__ = [
    "ApiResponseDTO",
    "BulkSmsDTO",
    "DeliveryRecordDTO",
    "EstimateCostDTO",
    "GatewayCredentialsDTO",
    "GatewayStatusDTO",
    "InboundSmsDTO",
    "SendSmsDTO",
]
