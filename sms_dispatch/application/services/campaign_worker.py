"""
Background worker that delivers queued bulk campaigns.

Campaigns are pulled from a queue and handed to the DispatchService,
which owns batching and pacing. A campaign that is not due yet is parked
in its own task so it never holds up the queue behind it.
"""

import asyncio
from collections.abc import Awaitable, Callable
from functools import partial

import structlog

from ...domain.models import Campaign
from .dispatch_service import DispatchResult, DispatchService

logger = structlog.get_logger()


class CampaignWorker:
    """
    Delivers due campaigns as they arrive and parks scheduled ones.

    The campaign source is injected as an awaitable getter so the same
    worker drains an in-process queue or sits behind a stream consumer.
    """

    def __init__(
        self,
        service: DispatchService,
        next_campaign: Callable[[], Awaitable[Campaign]] | None = None,
    ) -> None:
        self._service = service
        self._next_campaign = next_campaign
        self._running = False
        self._scheduled: dict[str, asyncio.Task] = {}

    @property
    def running(self) -> bool:
        return self._running

    @property
    def scheduled(self) -> list[str]:
        """Ids of campaigns parked until their scheduled time."""
        return list(self._scheduled)

    async def start(self) -> None:
        """Pull and deliver campaigns until stopped."""
        if self._next_campaign is None:
            raise RuntimeError("CampaignWorker has no campaign source")

        self._running = True
        logger.info("Starting campaign worker")
        while self._running:
            campaign = await self._next_campaign()
            try:
                await self.process(campaign)
            except Exception as e:
                logger.error("Campaign delivery failed", campaign_id=campaign.id, error=str(e))

    async def stop(self) -> None:
        self._running = False
        pending = list(self._scheduled.values())
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        logger.info("Stopping campaign worker", dropped_scheduled=len(pending))

    async def process(self, campaign: Campaign) -> list[DispatchResult]:
        """
        Deliver a due campaign now, or park it until its scheduled time.

        Returns the dispatch results of a delivered campaign; a parked one
        returns an empty list and is delivered by its own task later.
        """
        delay = campaign.seconds_until_due()
        if delay > 0:
            self._park(campaign, delay)
            return []
        return await self._deliver(campaign)

    def _park(self, campaign: Campaign, delay: float) -> None:
        if campaign.id in self._scheduled:
            logger.info("Campaign already scheduled", campaign_id=campaign.id)
            return
        logger.info("Campaign parked until scheduled time", campaign_id=campaign.id, delay_seconds=round(delay, 1))
        task = asyncio.create_task(self._deliver_later(campaign, delay))
        self._scheduled[campaign.id] = task
        task.add_done_callback(partial(self._on_scheduled_done, campaign_id=campaign.id))

    async def _deliver_later(self, campaign: Campaign, delay: float) -> None:
        await asyncio.sleep(delay)
        await self._deliver(campaign)

    def _on_scheduled_done(self, task: asyncio.Task, campaign_id: str) -> None:
        self._scheduled.pop(campaign_id, None)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error("Scheduled campaign delivery failed", campaign_id=campaign_id, error=str(error))

    async def _deliver(self, campaign: Campaign) -> list[DispatchResult]:
        with structlog.contextvars.bound_contextvars(campaign_id=campaign.id):
            logger.info(
                "Delivering campaign",
                provider=campaign.provider,
                total_recipients=len(campaign.recipients),
            )
            return await self._service.deliver_campaign(campaign)
