import re
from dataclasses import dataclass
from typing import Any

import structlog
from aiobotocore.config import AioConfig
from aiobotocore.session import get_session
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectTimeoutError,
    EndpointConnectionError,
    ReadTimeoutError,
)

from ..domain.errors import ErrorKind
from ..domain.models import DeliveryStatus
from ..domain.ports import (
    CarrierProvider,
    DeliveryStatusResult,
    ProviderLimits,
    ProviderPricing,
    ProviderSendResult,
)
from ..infrastructure.logging import mask_number
from .base import DEFAULT_TIMEOUT

logger = structlog.get_logger()

REGION_PATTERN = re.compile(r"^[a-z0-9-]+$")

AUTH_ERROR_CODES = frozenset(
    {"InvalidClientTokenId", "SignatureDoesNotMatch", "AuthorizationError", "UnrecognizedClientException"}
)


@dataclass(frozen=True)
class SnsConfig:
    access_key_id: str
    secret_access_key: str
    region: str = "us-east-1"
    sender_id: str = ""


class SnsProvider(CarrierProvider):
    """AWS SNS direct-to-phone SMS."""

    slug = "aws_sns"
    name = "AWS SNS"
    limits = ProviderLimits(max_message_length=1600, max_recipients_per_bulk=100, rate_limit_per_second=20)
    pricing = ProviderPricing(price_per_segment=0.00645, currency="USD")

    def __init__(self, config: SnsConfig, timeout: float = DEFAULT_TIMEOUT) -> None:
        self._config = config
        self._timeout = timeout
        self._session = get_session()

    def validate_config(self, config: Any) -> bool:
        return (
            isinstance(config, SnsConfig)
            and config.access_key_id.startswith("AKIA")
            and len(config.secret_access_key) >= 40
            and bool(REGION_PATTERN.match(config.region))
        )

    @property
    def is_configured(self) -> bool:
        return self.validate_config(self._config)

    def _create_client(self):
        return self._session.create_client(
            "sns",
            region_name=self._config.region,
            aws_access_key_id=self._config.access_key_id,
            aws_secret_access_key=self._config.secret_access_key,
            config=AioConfig(connect_timeout=self._timeout, read_timeout=self._timeout),
        )

    async def send(
        self,
        recipient: str,
        body: str,
        sender: str | None = None,
    ) -> ProviderSendResult:
        """Publish straight to a phone number as a transactional SMS."""
        if not self.is_configured:
            return ProviderSendResult.misconfigured(self.name)

        attributes = {
            "AWS.SNS.SMS.SMSType": {"DataType": "String", "StringValue": "Transactional"},
        }
        sender_id = sender or self._config.sender_id
        if sender_id:
            attributes["AWS.SNS.SMS.SenderID"] = {"DataType": "String", "StringValue": sender_id}

        try:
            async with self._create_client() as client:
                response = await client.publish(
                    PhoneNumber=recipient,
                    Message=body,
                    MessageAttributes=attributes,
                )
        except ClientError as e:
            error = e.response.get("Error", {})
            code = error.get("Code")
            kind = ErrorKind.AUTHENTICATION_FAILED if code in AUTH_ERROR_CODES else ErrorKind.REJECTED
            logger.warning("SNS rejected message", error_code=code, error=str(e), recipient=mask_number(recipient))
            return ProviderSendResult(
                success=False,
                error_kind=kind,
                error_code=code,
                error=error.get("Message") or str(e),
            )
        except (ConnectTimeoutError, ReadTimeoutError) as e:
            logger.error("SNS request timed out", error=str(e), recipient=mask_number(recipient))
            return ProviderSendResult(success=False, error_kind=ErrorKind.TIMEOUT, error=str(e))
        except (EndpointConnectionError, BotoCoreError) as e:
            logger.error("SNS delivery failed", error=str(e), recipient=mask_number(recipient))
            return ProviderSendResult(success=False, error_kind=ErrorKind.UNREACHABLE, error=str(e))

        message_id = response.get("MessageId")
        logger.info("SNS message published", message_id=message_id, recipient=mask_number(recipient))
        return ProviderSendResult(
            success=True,
            message_id=message_id,
            cost=self.estimate_cost(body),
            currency=self.pricing.currency,
            raw={"MessageId": message_id},
        )

    async def delivery_status(self, provider_message_id: str) -> DeliveryStatusResult:
        # SNS exposes no per-message lookup; a published message is reported as sent.
        if not self.is_configured:
            return DeliveryStatusResult(
                status=DeliveryStatus.FAILED,
                error_kind=ErrorKind.MISCONFIGURED_PROVIDER,
                error=f"{self.name} provider not properly configured",
            )
        return DeliveryStatusResult(status=DeliveryStatus.SENT)
