import httpx
import structlog

from ..domain.errors import ErrorKind
from ..domain.models import DeliveryStatus
from ..domain.ports import CarrierProvider, DeliveryStatusResult, ProviderSendResult
from ..domain.ports.carrier_provider import E164_PATTERN

logger = structlog.get_logger()

DEFAULT_TIMEOUT = 15.0


def is_e164(number: str | None) -> bool:
    return bool(number) and bool(E164_PATTERN.match(number))


class HttpCarrierProvider(CarrierProvider):
    """Shared plumbing for carriers reached over plain HTTPS."""

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._timeout = timeout
        self._transport = transport

    def _client(self, **kwargs) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self._transport, timeout=self._timeout, **kwargs)

    def _transport_failure(self, error: httpx.HTTPError) -> ProviderSendResult:
        kind = ErrorKind.TIMEOUT if isinstance(error, httpx.TimeoutException) else ErrorKind.UNREACHABLE
        logger.error(f"{self.name} request failed", provider=self.slug, error_kind=kind.value, error=str(error))
        return ProviderSendResult(success=False, error_kind=kind, error=str(error) or kind.value)

    def _status_failure(self, error: Exception) -> DeliveryStatusResult:
        if isinstance(error, httpx.HTTPStatusError):
            kind = ErrorKind.REJECTED
            message = f"{self.name} API error: {error.response.status_code}"
        elif isinstance(error, httpx.TimeoutException):
            kind, message = ErrorKind.TIMEOUT, str(error) or "timeout"
        elif isinstance(error, httpx.HTTPError):
            kind, message = ErrorKind.UNREACHABLE, str(error)
        else:
            kind, message = ErrorKind.PROTOCOL_ERROR, str(error)
        return DeliveryStatusResult(status=DeliveryStatus.FAILED, error_kind=kind, error=message)

    def _status_misconfigured(self) -> DeliveryStatusResult:
        return DeliveryStatusResult(
            status=DeliveryStatus.FAILED,
            error_kind=ErrorKind.MISCONFIGURED_PROVIDER,
            error=f"{self.name} provider not properly configured",
        )
