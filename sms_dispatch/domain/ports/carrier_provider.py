"""
Outbound port for cloud carrier SMS backends.

The orchestrator depends on this interface only. Each carrier client in
the channels package implements it.
"""

import math
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from ..errors import ErrorKind
from ..models import DeliveryStatus

SEGMENT_LENGTH = 160

E164_PATTERN = re.compile(r"^\+?[1-9]\d{1,14}$")


@dataclass(frozen=True)
class ProviderLimits:
    """Throughput ceilings the orchestrator honours when batching."""

    max_message_length: int
    max_recipients_per_bulk: int
    rate_limit_per_second: int


@dataclass(frozen=True)
class ProviderPricing:
    """Per-segment pricing."""

    price_per_segment: float
    currency: str
    segment_length: int = SEGMENT_LENGTH

    def segments(self, body: str) -> int:
        return max(1, math.ceil(len(body) / self.segment_length))

    def estimate(self, body: str, recipients: int = 1) -> float:
        return self.segments(body) * recipients * self.price_per_segment


@dataclass
class ProviderSendResult:
    """Result of a carrier send attempt."""

    success: bool
    message_id: str | None = None
    cost: float | None = None
    currency: str | None = None
    error_kind: ErrorKind | None = None
    error_code: str | None = None
    error: str | None = None
    raw: dict[str, Any] | None = None

    @classmethod
    def misconfigured(cls, provider_name: str) -> "ProviderSendResult":
        return cls(
            success=False,
            error_kind=ErrorKind.MISCONFIGURED_PROVIDER,
            error=f"{provider_name} provider not properly configured",
        )


@dataclass
class DeliveryStatusResult:
    """Canonical delivery status reported by a carrier."""

    status: DeliveryStatus
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    vendor_status: str | None = None
    error_kind: ErrorKind | None = None
    error: str | None = None


def map_vendor_status(
    vendor_status: str | None,
    mapping: dict[str, DeliveryStatus],
) -> DeliveryStatus:
    """Map a vendor status code; unknown codes fail closed."""
    if vendor_status is None:
        return DeliveryStatus.FAILED
    return mapping.get(str(vendor_status).lower(), DeliveryStatus.FAILED)


class CarrierProvider(ABC):
    """
    Capability interface for a cloud SMS API.

    Implementations validate their configuration before any network I/O
    and never raise on vendor or transport failures.
    """

    slug: str
    name: str
    limits: ProviderLimits
    pricing: ProviderPricing

    @abstractmethod
    async def send(
        self,
        recipient: str,
        body: str,
        sender: str | None = None,
    ) -> ProviderSendResult:
        """
        Send one SMS.

        Args:
            recipient: Destination number in E.164 format
            body: Message text
            sender: Optional sender override

        Returns:
            ProviderSendResult with the vendor message id or classified error
        """
        ...

    @abstractmethod
    async def delivery_status(self, provider_message_id: str) -> DeliveryStatusResult:
        """Look up the canonical delivery status of a sent message."""
        ...

    @abstractmethod
    def validate_config(self, config: Any) -> bool:
        """Check credential shapes locally without touching the network."""
        ...

    def estimate_cost(self, body: str, recipients: int = 1) -> float:
        return self.pricing.estimate(body, recipients)

    async def health_check(self) -> bool:
        return self.is_configured

    @property
    @abstractmethod
    def is_configured(self) -> bool:
        ...
