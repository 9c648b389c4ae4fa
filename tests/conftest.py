from typing import Any

import pytest

from sms_dispatch.application.services import DispatchPolicy, DispatchService
from sms_dispatch.domain.errors import ErrorKind
from sms_dispatch.domain.models import DeliveryStatus, GatewayCredentials
from sms_dispatch.domain.ports import (
    CarrierProvider,
    DeliveryStatusResult,
    ProviderLimits,
    ProviderPricing,
    ProviderSendResult,
)
from sms_dispatch.gateway import GatewayAdapter
from sms_dispatch.infrastructure.adapters import (
    InMemoryCampaignQueue,
    InMemoryContactGroupResolver,
    InMemoryDeliveryRecordRepository,
    InMemoryTemplateResolver,
)


class FakeProvider(CarrierProvider):
    """Carrier double that records every send."""

    def __init__(
        self,
        slug: str,
        succeed: bool = True,
        price: float = 0.0075,
        bulk_limit: int = 1000,
        rate: int = 1000,
    ) -> None:
        self.slug = slug
        self.name = slug.title()
        self.limits = ProviderLimits(max_message_length=1600, max_recipients_per_bulk=bulk_limit, rate_limit_per_second=rate)
        self.pricing = ProviderPricing(price_per_segment=price, currency="USD")
        self.succeed = succeed
        self.sent: list[tuple[str, str]] = []
        self.status = DeliveryStatus.DELIVERED

    async def send(self, recipient: str, body: str, sender: str | None = None) -> ProviderSendResult:
        self.sent.append((recipient, body))
        if self.succeed:
            return ProviderSendResult(
                success=True,
                message_id=f"{self.slug}-{len(self.sent)}",
                cost=self.estimate_cost(body),
                currency="USD",
            )
        return ProviderSendResult(
            success=False,
            error_kind=ErrorKind.REJECTED,
            error_code="21211",
            error=f"{self.slug} rejected",
        )

    async def delivery_status(self, provider_message_id: str) -> DeliveryStatusResult:
        return DeliveryStatusResult(status=self.status, vendor_status=self.status.value)

    def validate_config(self, config: Any) -> bool:
        return True

    @property
    def is_configured(self) -> bool:
        return True


@pytest.fixture
def credentials() -> GatewayCredentials:
    return GatewayCredentials(
        base_address="192.168.1.50",
        port=8080,
        username="admin",
        password="secret",
        serial_number="DWG-001",
    )


@pytest.fixture
def records() -> InMemoryDeliveryRecordRepository:
    return InMemoryDeliveryRecordRepository()


@pytest.fixture
def campaign_queue() -> InMemoryCampaignQueue:
    return InMemoryCampaignQueue()


@pytest.fixture
def providers() -> dict[str, FakeProvider]:
    return {
        "twilio": FakeProvider("twilio"),
        "vonage": FakeProvider("vonage", price=0.0072),
        "aws_sns": FakeProvider("aws_sns", price=0.00645, bulk_limit=100),
    }


@pytest.fixture
def make_service(records, campaign_queue, providers):
    def factory(
        policy: DispatchPolicy | None = None,
        gateway: GatewayAdapter | None = None,
        groups: dict[str, list[str]] | None = None,
        provider_map: dict[str, CarrierProvider] | None = None,
    ) -> DispatchService:
        return DispatchService(
            providers=providers if provider_map is None else provider_map,
            gateway=gateway or GatewayAdapter(),
            templates=InMemoryTemplateResolver(),
            contact_groups=InMemoryContactGroupResolver(groups),
            records=records,
            campaigns=campaign_queue,
            policy=policy,
        )

    return factory


@pytest.fixture
def make_provider():
    return FakeProvider
