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

TWILIO_STATUS_MAP: dict[str, DeliveryStatus] = {
    "accepted": DeliveryStatus.PENDING,
    "scheduled": DeliveryStatus.PENDING,
    "queued": DeliveryStatus.PENDING,
    "sending": DeliveryStatus.PENDING,
    "sent": DeliveryStatus.SENT,
    "delivered": DeliveryStatus.DELIVERED,
    "failed": DeliveryStatus.FAILED,
    "undelivered": DeliveryStatus.FAILED,
    "expired": DeliveryStatus.EXPIRED,
}

ACCEPTED_STATUSES = frozenset({"accepted", "scheduled", "queued", "sending", "sent"})


@dataclass(frozen=True)
class TwilioConfig:
    account_sid: str
    auth_token: str
    from_number: str


class TwilioProvider(HttpCarrierProvider):
    """Twilio Programmable Messaging client."""

    slug = "twilio"
    name = "Twilio"
    limits = ProviderLimits(max_message_length=1600, max_recipients_per_bulk=1000, rate_limit_per_second=10)
    pricing = ProviderPricing(price_per_segment=0.0075, currency="USD")

    BASE_URL = "https://api.twilio.com/2010-04-01"

    def __init__(
        self,
        config: TwilioConfig,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(timeout=timeout, transport=transport)
        self._config = config

    def validate_config(self, config: Any) -> bool:
        return (
            isinstance(config, TwilioConfig)
            and config.account_sid.startswith("AC")
            and bool(config.auth_token)
            and is_e164(config.from_number)
        )

    @property
    def is_configured(self) -> bool:
        return self.validate_config(self._config)

    def _auth(self) -> tuple[str, str]:
        return (self._config.account_sid, self._config.auth_token)

    async def send(
        self,
        recipient: str,
        body: str,
        sender: str | None = None,
    ) -> ProviderSendResult:
        """Create a Message resource."""
        if not self.is_configured:
            return ProviderSendResult.misconfigured(self.name)

        url = f"{self.BASE_URL}/Accounts/{self._config.account_sid}/Messages.json"
        data = {
            "To": recipient,
            "From": sender or self._config.from_number,
            "Body": body,
        }

        try:
            async with self._client(auth=self._auth()) as client:
                response = await client.post(url, data=data)
        except httpx.HTTPError as e:
            return self._transport_failure(e)

        try:
            payload = response.json()
        except ValueError:
            return ProviderSendResult(
                success=False,
                error_kind=ErrorKind.PROTOCOL_ERROR,
                error=f"Twilio API error: {response.status_code}",
            )
        if not isinstance(payload, dict):
            payload = {}

        if response.is_success and payload.get("status") in ACCEPTED_STATUSES:
            price = payload.get("price")
            logger.info("Twilio message created", message_id=payload.get("sid"), recipient=mask_number(recipient))
            return ProviderSendResult(
                success=True,
                message_id=payload.get("sid"),
                cost=abs(float(price)) if price else self.estimate_cost(body),
                currency=(payload.get("price_unit") or self.pricing.currency).upper(),
                raw=payload,
            )

        code = payload.get("code") or payload.get("error_code")
        message = payload.get("message") or payload.get("error_message") or f"HTTP {response.status_code}"
        kind = ErrorKind.AUTHENTICATION_FAILED if response.status_code == 401 else ErrorKind.REJECTED
        logger.warning("Twilio rejected message", error_code=code, error=message, recipient=mask_number(recipient))
        return ProviderSendResult(
            success=False,
            message_id=payload.get("sid"),
            error_kind=kind,
            error_code=str(code) if code is not None else None,
            error=message,
            raw=payload,
        )

    async def delivery_status(self, provider_message_id: str) -> DeliveryStatusResult:
        if not self.is_configured:
            return self._status_misconfigured()

        url = f"{self.BASE_URL}/Accounts/{self._config.account_sid}/Messages/{provider_message_id}.json"
        try:
            async with self._client(auth=self._auth()) as client:
                response = await client.get(url)
                response.raise_for_status()
                payload = response.json()
        except (httpx.HTTPError, ValueError) as e:
            return self._status_failure(e)

        vendor_status = payload.get("status") if isinstance(payload, dict) else None
        return DeliveryStatusResult(
            status=map_vendor_status(vendor_status, TWILIO_STATUS_MAP),
            vendor_status=vendor_status,
            error=payload.get("error_message") if isinstance(payload, dict) else None,
        )
