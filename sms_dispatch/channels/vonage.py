from dataclasses import dataclass
from typing import Any

import httpx
import structlog

from ..domain.errors import ErrorKind
from ..domain.models import DeliveryStatus
from ..domain.ports import (
    DeliveryStatusResult,
    ProviderLimits,
    ProviderPricing,
    ProviderSendResult,
    map_vendor_status,
)
from ..infrastructure.logging import mask_number
from .base import DEFAULT_TIMEOUT, HttpCarrierProvider, is_e164

logger = structlog.get_logger()

SUCCESS_STATUS = "0"

# Numeric delivery codes; anything not listed fails closed.
VONAGE_STATUS_MAP: dict[str, DeliveryStatus] = {
    "0": DeliveryStatus.SENT,
    "1": DeliveryStatus.PENDING,
    "2": DeliveryStatus.FAILED,  # absent subscriber, temporary
    "3": DeliveryStatus.FAILED,  # absent subscriber, permanent
    "4": DeliveryStatus.FAILED,  # call barred by user
    "5": DeliveryStatus.FAILED,  # portability error
    "6": DeliveryStatus.FAILED,  # anti-spam rejection
    "7": DeliveryStatus.FAILED,  # handset busy
    "8": DeliveryStatus.FAILED,  # network error
    "9": DeliveryStatus.FAILED,  # illegal number
    "10": DeliveryStatus.FAILED,  # invalid message
    "11": DeliveryStatus.FAILED,  # unroutable
    "12": DeliveryStatus.EXPIRED,
    "13": DeliveryStatus.DELIVERED,
    "14": DeliveryStatus.FAILED,
    "15": DeliveryStatus.FAILED,
}


@dataclass(frozen=True)
class VonageConfig:
    api_key: str
    api_secret: str
    from_number: str


class VonageProvider(HttpCarrierProvider):
    """Vonage (formerly Nexmo) SMS API client."""

    slug = "vonage"
    name = "Vonage"
    limits = ProviderLimits(max_message_length=1600, max_recipients_per_bulk=1000, rate_limit_per_second=8)
    pricing = ProviderPricing(price_per_segment=0.0072, currency="EUR")

    BASE_URL = "https://rest.nexmo.com"

    def __init__(
        self,
        config: VonageConfig,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(timeout=timeout, transport=transport)
        self._config = config

    def validate_config(self, config: Any) -> bool:
        return (
            isinstance(config, VonageConfig)
            and len(config.api_key) >= 8
            and len(config.api_secret) >= 16
            and is_e164(config.from_number)
        )

    @property
    def is_configured(self) -> bool:
        return self.validate_config(self._config)

    def _credentials(self) -> dict[str, str]:
        return {"api_key": self._config.api_key, "api_secret": self._config.api_secret}

    async def send(
        self,
        recipient: str,
        body: str,
        sender: str | None = None,
    ) -> ProviderSendResult:
        """Send through the SMS API. Vonage wants numbers without the leading +."""
        if not self.is_configured:
            return ProviderSendResult.misconfigured(self.name)

        data = {
            **self._credentials(),
            "to": recipient.lstrip("+"),
            "from": (sender or self._config.from_number).lstrip("+"),
            "text": body,
        }

        try:
            async with self._client() as client:
                response = await client.post(f"{self.BASE_URL}/sms/json", data=data)
                response.raise_for_status()
                payload = response.json()
        except httpx.HTTPStatusError as e:
            return ProviderSendResult(
                success=False,
                error_kind=ErrorKind.REJECTED,
                error_code=str(e.response.status_code),
                error=f"Vonage API error: {e.response.status_code}",
            )
        except httpx.HTTPError as e:
            return self._transport_failure(e)
        except ValueError:
            return ProviderSendResult(
                success=False,
                error_kind=ErrorKind.PROTOCOL_ERROR,
                error="Vonage returned an unparseable body",
            )

        messages = payload.get("messages") if isinstance(payload, dict) else None
        if not messages or not isinstance(messages[0], dict):
            return ProviderSendResult(
                success=False,
                error_kind=ErrorKind.PROTOCOL_ERROR,
                error="No response messages from Vonage",
                raw=payload if isinstance(payload, dict) else None,
            )

        message = messages[0]
        status = str(message.get("status"))
        if status == SUCCESS_STATUS:
            price = message.get("message-price")
            logger.info(
                "Vonage message accepted",
                message_id=message.get("message-id"),
                recipient=mask_number(recipient),
            )
            return ProviderSendResult(
                success=True,
                message_id=message.get("message-id"),
                cost=float(price) if price else self.estimate_cost(body),
                currency=self.pricing.currency,
                raw=payload,
            )

        error_text = message.get("error-text") or "Unknown Vonage error"
        logger.warning("Vonage rejected message", error_code=status, error=error_text, recipient=mask_number(recipient))
        return ProviderSendResult(
            success=False,
            error_kind=ErrorKind.REJECTED,
            error_code=status,
            error=error_text,
            raw=payload,
        )

    async def delivery_status(self, provider_message_id: str) -> DeliveryStatusResult:
        if not self.is_configured:
            return self._status_misconfigured()

        try:
            async with self._client() as client:
                response = await client.get(
                    f"{self.BASE_URL}/search/message",
                    params={**self._credentials(), "id": provider_message_id},
                )
                response.raise_for_status()
                payload = response.json()
        except (httpx.HTTPError, ValueError) as e:
            return self._status_failure(e)

        if not isinstance(payload, dict):
            payload = {}
        vendor_status = payload.get("status")
        return DeliveryStatusResult(
            status=map_vendor_status(vendor_status, VONAGE_STATUS_MAP),
            vendor_status=str(vendor_status) if vendor_status is not None else None,
            error=payload.get("error-text"),
        )
