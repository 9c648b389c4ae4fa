from ...application.services import DispatchPolicy, DispatchService
from ...config import settings
from ...domain.ports import CampaignQueue, DeliveryRecordRepository
from ...gateway import GatewayAdapter
from ...infrastructure.adapters import (
    InMemoryCampaignQueue,
    InMemoryContactGroupResolver,
    InMemoryDeliveryRecordRepository,
    InMemoryTemplateResolver,
    KinesisCampaignQueue,
    ProviderFactory,
)

# Singleton instances
_provider_factory: ProviderFactory | None = None
_record_repository: DeliveryRecordRepository | None = None
_campaign_queue: CampaignQueue | None = None
_dispatch_service: DispatchService | None = None


def get_provider_factory() -> ProviderFactory:
    global _provider_factory
    if _provider_factory is None:
        _provider_factory = ProviderFactory(settings)
    return _provider_factory


def get_gateway_adapter() -> GatewayAdapter:
    return get_provider_factory().get_gateway()


def get_record_repository() -> DeliveryRecordRepository:
    global _record_repository
    if _record_repository is None:
        _record_repository = InMemoryDeliveryRecordRepository()
    return _record_repository


def get_campaign_queue() -> CampaignQueue:
    global _campaign_queue
    if _campaign_queue is None:
        if settings.campaign_queue_backend == "kinesis":
            _campaign_queue = KinesisCampaignQueue(settings)
        else:
            _campaign_queue = InMemoryCampaignQueue()
    return _campaign_queue


def get_dispatch_service() -> DispatchService:
    global _dispatch_service
    if _dispatch_service is None:
        factory = get_provider_factory()
        _dispatch_service = DispatchService(
            providers=factory.get_all_providers(),
            gateway=factory.get_gateway(),
            templates=InMemoryTemplateResolver(),
            contact_groups=InMemoryContactGroupResolver(),
            records=get_record_repository(),
            campaigns=get_campaign_queue(),
            policy=DispatchPolicy(
                default_provider=settings.default_provider,
                fallback_enabled=settings.fallback_enabled,
                fallback_providers=tuple(settings.fallback_providers),
            ),
        )
    return _dispatch_service


def reset_dependencies() -> None:
    """Drop all singletons (useful for testing)."""
    global _provider_factory, _record_repository, _campaign_queue, _dispatch_service
    _provider_factory = None
    _record_repository = None
    _campaign_queue = None
    _dispatch_service = None
