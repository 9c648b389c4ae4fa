"""
Application service for SMS dispatch.

This service routes a send to the hardware gateway or a carrier provider,
walks the fallback chain on failure, and hands records to persistence.
It depends on abstractions (ports), not concrete implementations.
"""

import asyncio
from collections.abc import Awaitable, Mapping
from dataclasses import dataclass, field
from functools import partial
from typing import Any

import structlog

from ...domain.errors import ErrorKind, TemplateNotFoundError
from ...domain.models import (
    GATEWAY_PROVIDER,
    BulkDispatchRequest,
    Campaign,
    CampaignTicket,
    DeliveryRecord,
    DeliveryStatus,
    DispatchRequest,
    GatewayCredentials,
    InboundMessage,
    mint_session_id,
    new_campaign_id,
    normalize_number,
)
from ...domain.ports import (
    CampaignQueue,
    CarrierProvider,
    ContactGroupResolver,
    DeliveryRecordRepository,
    DeliveryStatusResult,
    TemplateResolver,
)
from ...gateway import GatewayAdapter, StatusResult
from ...infrastructure.logging import mask_number

logger = structlog.get_logger()


@dataclass(frozen=True)
class DispatchPolicy:
    """Provider selection and fallback order."""

    default_provider: str = "twilio"
    fallback_enabled: bool = True
    fallback_providers: tuple[str, ...] = ("vonage", "aws_sns")

    def chain(self, primary: str) -> list[str]:
        """Primary first, then each fallback once, in configured order."""
        order = [primary]
        if self.fallback_enabled:
            for slug in self.fallback_providers:
                if slug not in order:
                    order.append(slug)
        return order


@dataclass
class DispatchAttempt:
    """One provider's try within a dispatch."""

    provider: str
    success: bool
    message_id: str | None = None
    session_id: int | None = None
    cost: float | None = None
    currency: str | None = None
    error_kind: ErrorKind | None = None
    error_code: str | None = None
    error: str | None = None


@dataclass
class DispatchResult:
    record: DeliveryRecord
    attempts: list[DispatchAttempt] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.record.status == DeliveryStatus.SENT

    @property
    def providers_tried(self) -> list[str]:
        return [a.provider for a in self.attempts]


class ProviderPacer:
    """
    Spaces sends to each carrier by that carrier's own rate limit.

    A slot is reserved before sleeping, so concurrent callers queue up
    behind each other instead of firing together.
    """

    def __init__(self, providers: Mapping[str, CarrierProvider]) -> None:
        self._providers = providers
        self._next_slot: dict[str, float] = {}

    async def wait(self, slug: str) -> None:
        provider = self._providers.get(slug)
        if provider is None:
            return
        now = asyncio.get_running_loop().time()
        slot = max(now, self._next_slot.get(slug, now))
        self._next_slot[slug] = slot + 1.0 / provider.limits.rate_limit_per_second
        if slot > now:
            await asyncio.sleep(slot - now)


@dataclass(frozen=True)
class CostEstimate:
    provider: str
    segments: int
    recipients: int
    cost: float
    currency: str


class DispatchService:
    """
    Orchestrates single and bulk SMS dispatch.

    Stateless apart from the set of in-flight persistence tasks, so one
    instance can serve concurrent requests.
    """

    def __init__(
        self,
        providers: Mapping[str, CarrierProvider],
        gateway: GatewayAdapter,
        templates: TemplateResolver,
        contact_groups: ContactGroupResolver,
        records: DeliveryRecordRepository,
        campaigns: CampaignQueue,
        policy: DispatchPolicy | None = None,
    ) -> None:
        self._providers = dict(providers)
        self._gateway = gateway
        self._templates = templates
        self._contact_groups = contact_groups
        self._records = records
        self._campaigns = campaigns
        self._policy = policy or DispatchPolicy()
        self._background: set[asyncio.Task] = set()

    @property
    def policy(self) -> DispatchPolicy:
        return self._policy

    # Single dispatch

    async def send(
        self,
        request: DispatchRequest,
        gateway_credentials: GatewayCredentials | None = None,
    ) -> DispatchResult:
        """
        Send one SMS, falling back through the configured providers.

        Args:
            request: Validated send request
            gateway_credentials: Required when the chain reaches the hardware gateway

        Returns:
            DispatchResult with the persisted record and every attempt made
        """
        primary = request.provider or self._policy.default_provider

        try:
            body = await self._resolve_body(request.body, request.template_id, request.template_variables)
        except TemplateNotFoundError as e:
            logger.warning("Template not found", template_id=e.template_id, recipient=mask_number(request.recipient))
            record = DeliveryRecord.outbound(
                recipient=request.recipient,
                body=request.body or "",
                provider=primary,
                template_id=request.template_id,
                template_variables=request.template_variables,
            )
            record.mark_failed(e.kind, e.message)
            self._persist(record)
            return DispatchResult(record=record)

        return await self._dispatch(
            recipient=request.recipient,
            body=body,
            chain=self._policy.chain(primary),
            credentials=gateway_credentials,
            port=request.port,
            template_id=request.template_id,
            template_variables=request.template_variables,
        )

    async def _resolve_body(
        self,
        body: str | None,
        template_id: str | None,
        variables: dict[str, str] | None,
    ) -> str:
        if template_id:
            return await self._templates.resolve(template_id, variables)
        return body or ""

    async def _dispatch(
        self,
        recipient: str,
        body: str,
        chain: list[str],
        credentials: GatewayCredentials | None = None,
        port: int = 0,
        template_id: str | None = None,
        template_variables: dict[str, str] | None = None,
        pacer: ProviderPacer | None = None,
    ) -> DispatchResult:
        attempts: list[DispatchAttempt] = []
        log = logger.bind(recipient=mask_number(recipient), chain=chain)

        for slug in chain:
            attempt = await self._attempt(slug, recipient, body, credentials, port, pacer)
            attempts.append(attempt)
            if attempt.success:
                break
            log.warning(
                "Provider attempt failed",
                provider=slug,
                error_kind=attempt.error_kind.value if attempt.error_kind else None,
                error_code=attempt.error_code,
                error=attempt.error,
            )

        last = attempts[-1]
        record = DeliveryRecord.outbound(
            recipient=recipient,
            body=body,
            provider=last.provider,
            template_id=template_id,
            template_variables=template_variables,
        )
        record.session_id = last.session_id
        if last.provider == GATEWAY_PROVIDER:
            record.channel = port

        if last.success:
            record.provider_message_id = last.message_id
            record.cost = last.cost
            record.currency = last.currency
            record.apply_status(DeliveryStatus.SENT)
            log.info("SMS dispatched", provider=last.provider, record_id=record.id, attempts=len(attempts))
        else:
            record.mark_failed(last.error_kind, last.error, last.error_code)
            log.error("All providers failed", record_id=record.id, attempts=len(attempts))

        self._persist(record)
        return DispatchResult(record=record, attempts=attempts)

    async def _attempt(
        self,
        slug: str,
        recipient: str,
        body: str,
        credentials: GatewayCredentials | None,
        port: int,
        pacer: ProviderPacer | None = None,
    ) -> DispatchAttempt:
        if slug == GATEWAY_PROVIDER:
            return await self._attempt_gateway(recipient, body, credentials, port)

        provider = self._providers.get(slug)
        if provider is None:
            return DispatchAttempt(
                provider=slug,
                success=False,
                error_kind=ErrorKind.MISCONFIGURED_PROVIDER,
                error=f"SMS provider '{slug}' not found",
            )
        if len(body) > provider.limits.max_message_length:
            return DispatchAttempt(
                provider=slug,
                success=False,
                error_kind=ErrorKind.REJECTED,
                error=f"Message exceeds {provider.limits.max_message_length} characters",
            )

        if pacer is not None:
            await pacer.wait(slug)
        result = await provider.send(recipient, body)
        return DispatchAttempt(
            provider=slug,
            success=result.success,
            message_id=result.message_id,
            cost=result.cost,
            currency=result.currency,
            error_kind=result.error_kind,
            error_code=result.error_code,
            error=result.error,
        )

    async def _attempt_gateway(
        self,
        recipient: str,
        body: str,
        credentials: GatewayCredentials | None,
        port: int,
    ) -> DispatchAttempt:
        if credentials is None:
            return DispatchAttempt(
                provider=GATEWAY_PROVIDER,
                success=False,
                error_kind=ErrorKind.MISCONFIGURED_PROVIDER,
                error="Gateway credentials are required",
            )

        session_id = mint_session_id()
        result = await self._gateway.send_message(credentials, session_id, recipient, body, port)
        return DispatchAttempt(
            provider=GATEWAY_PROVIDER,
            success=result.sent,
            message_id=result.message_id,
            session_id=session_id,
            error_kind=result.error_kind,
            error_code=result.error_code,
            error=result.error,
        )

    # Status lookups

    async def check_status(
        self,
        session_id: int,
        credentials: GatewayCredentials,
        message_id: str | None = None,
    ) -> StatusResult:
        """Probe the gateway for a session's status and update its record when known."""
        result = await self._gateway.probe_status(credentials, session_id, message_id)
        if result.known and result.status is not None:
            self._spawn(
                self._update_record(session_id, result.status),
                action="status_update",
                session_id=session_id,
            )
        else:
            logger.info("Gateway status unknown", session_id=session_id, endpoints_tried=result.endpoints_tried)
        return result

    async def check_delivery(self, provider_slug: str, provider_message_id: str) -> DeliveryStatusResult:
        """Ask a carrier for a message's delivery status and update its record."""
        provider = self._providers.get(provider_slug)
        if provider is None:
            return DeliveryStatusResult(
                status=DeliveryStatus.FAILED,
                error_kind=ErrorKind.MISCONFIGURED_PROVIDER,
                error=f"SMS provider '{provider_slug}' not found",
            )

        result = await provider.delivery_status(provider_message_id)
        if result.error_kind is None:
            self._spawn(
                self._update_record(provider_message_id, result.status, result.error),
                action="status_update",
                provider=provider_slug,
                message_id=provider_message_id,
            )
        return result

    async def _update_record(
        self,
        correlation_id: str | int,
        status: DeliveryStatus,
        error: str | None = None,
    ) -> None:
        record = await self._records.load(correlation_id)
        if record is None:
            logger.info("No stored record to update", correlation_id=correlation_id)
            return
        record.apply_status(status, error)
        await self._records.save(record)

    # Bulk dispatch

    async def send_bulk(self, request: BulkDispatchRequest) -> CampaignTicket:
        """
        Queue a campaign for background delivery.

        Recipients are the explicit list plus every group member, normalised
        and with duplicates collapsed in first-seen order. Campaigns only go
        through carriers: the gateway needs per-request credentials that a
        queued campaign does not carry. Nothing is sent here.
        """
        campaign_id = new_campaign_id()
        provider_slug = request.provider or self._policy.default_provider
        numbers = list(request.recipients)
        if request.contact_groups:
            numbers.extend(await self._contact_groups.expand(list(request.contact_groups)))
        recipients = self._normalize_recipients(numbers, campaign_id)

        if provider_slug not in self._providers:
            logger.warning("Bulk SMS rejected for provider", campaign_id=campaign_id, provider=provider_slug)
            return CampaignTicket(
                campaign_id=campaign_id,
                total_recipients=len(recipients),
                status="failed",
                error_kind=ErrorKind.MISCONFIGURED_PROVIDER,
                error=f"Provider '{provider_slug}' cannot deliver bulk campaigns",
            )

        try:
            body = await self._resolve_body(request.body, request.template_id, request.template_variables)
        except TemplateNotFoundError as e:
            logger.warning("Template not found", template_id=e.template_id, campaign_id=campaign_id)
            return CampaignTicket(
                campaign_id=campaign_id,
                total_recipients=len(recipients),
                status="failed",
                error_kind=e.kind,
                error=e.message,
            )

        campaign = Campaign(
            id=campaign_id,
            recipients=tuple(recipients),
            body=body,
            provider=provider_slug,
            template_id=request.template_id,
            template_variables=request.template_variables,
            scheduled_at=request.scheduled_at,
        )
        await self._campaigns.enqueue(campaign)

        status = "scheduled" if request.scheduled_at else "queued"
        logger.info(
            "Bulk SMS campaign queued",
            campaign_id=campaign_id,
            total_recipients=len(recipients),
            provider=campaign.provider,
            status=status,
        )
        return CampaignTicket(campaign_id=campaign_id, total_recipients=len(recipients), status=status)

    @staticmethod
    def _normalize_recipients(numbers: list[str], campaign_id: str) -> list[str]:
        recipients: dict[str, None] = {}
        for number in numbers:
            try:
                recipients.setdefault(normalize_number(number))
            except ValueError:
                logger.warning("Skipping invalid recipient", campaign_id=campaign_id, recipient=mask_number(number))
        return list(recipients)

    async def deliver_campaign(self, campaign: Campaign) -> list[DispatchResult]:
        """
        Send a queued campaign recipient by recipient.

        Recipients go out in batches no larger than the bulk limit of the
        first configured carrier in the chain. Each attempt waits for a
        slot at the rate of the carrier it is made against, so traffic that
        falls back is paced by the fallback's limit.
        """
        chain = self._policy.chain(campaign.provider)
        lead = next((self._providers[slug] for slug in chain if slug in self._providers), None)
        batch_size = lead.limits.max_recipients_per_bulk if lead else len(campaign.recipients) or 1
        pacer = ProviderPacer(self._providers)

        results: list[DispatchResult] = []
        recipients = list(campaign.recipients)
        for start in range(0, len(recipients), batch_size):
            batch = recipients[start : start + batch_size]
            results.extend(
                await asyncio.gather(
                    *(
                        self._dispatch(
                            recipient=recipient,
                            body=campaign.body,
                            chain=chain,
                            template_id=campaign.template_id,
                            template_variables=campaign.template_variables,
                            pacer=pacer,
                        )
                        for recipient in batch
                    )
                )
            )
            logger.info(
                "Campaign batch delivered",
                campaign_id=campaign.id,
                batch_start=start,
                batch_size=len(batch),
            )

        sent = sum(1 for r in results if r.success)
        logger.info(
            "Campaign delivery completed",
            campaign_id=campaign.id,
            total_recipients=len(results),
            successful=sent,
        )
        return results

    # Inbound

    async def receive_inbound(self, message: InboundMessage) -> DeliveryRecord:
        record = DeliveryRecord.inbound(message)
        logger.info("Inbound SMS received", record_id=record.id, sender=mask_number(message.sender))
        self._persist(record)
        return record

    # Provider catalogue

    def estimate_cost(self, body: str, recipients: int = 1, provider_slug: str | None = None) -> CostEstimate:
        slug = provider_slug or self._policy.default_provider
        provider = self._providers.get(slug)
        if provider is None:
            raise ValueError(f"No pricing available for provider '{slug}'")
        return CostEstimate(
            provider=slug,
            segments=provider.pricing.segments(body),
            recipients=recipients,
            cost=provider.estimate_cost(body, recipients),
            currency=provider.pricing.currency,
        )

    def available_providers(self) -> list[dict[str, Any]]:
        providers = [
            {"slug": slug, "name": provider.name, "configured": provider.is_configured}
            for slug, provider in self._providers.items()
        ]
        providers.append({"slug": GATEWAY_PROVIDER, "name": "Hardware gateway", "configured": True})
        return providers

    async def provider_health(self, slug: str) -> bool:
        if slug == GATEWAY_PROVIDER:
            return True
        provider = self._providers.get(slug)
        if provider is None:
            return False
        return await provider.health_check()

    # Background persistence

    def _persist(self, record: DeliveryRecord) -> None:
        self._spawn(self._records.save(record), action="save", record_id=record.id)

    def _spawn(self, coro: Awaitable[None], action: str, **context: Any) -> None:
        task = asyncio.ensure_future(coro)
        self._background.add(task)
        task.add_done_callback(partial(self._on_background_done, action=action, context=context))

    def _on_background_done(self, task: asyncio.Task, action: str, context: dict[str, Any]) -> None:
        self._background.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error("Record persistence failed", action=action, error=str(error), **context)

    async def drain(self) -> None:
        """Wait for in-flight persistence tasks, e.g. on shutdown."""
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)
