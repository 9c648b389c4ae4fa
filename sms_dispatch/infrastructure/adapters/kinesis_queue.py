"""
Kinesis-backed campaign queue.

The API side publishes ``sms.campaign.queued`` events; the consumer side
reads them back per shard and hands each campaign to the CampaignWorker.
"""

import asyncio
import json
from datetime import datetime
from typing import Any

import structlog
from aiobotocore.session import get_session

from ...application.services import CampaignWorker
from ...config import Settings, settings
from ...domain.models import Campaign
from ...domain.ports import CampaignQueue
from ..logging import get_correlation_id, set_correlation_id
from .campaign_ledger import CampaignLedger

logger = structlog.get_logger()

CAMPAIGN_QUEUED_EVENT = "sms.campaign.queued"


def campaign_to_payload(campaign: Campaign) -> dict[str, Any]:
    return {
        "campaign_id": campaign.id,
        "recipients": list(campaign.recipients),
        "body": campaign.body,
        "provider": campaign.provider,
        "template_id": campaign.template_id,
        "template_variables": campaign.template_variables,
        "scheduled_at": campaign.scheduled_at.isoformat() if campaign.scheduled_at else None,
        "created_at": campaign.created_at.isoformat(),
    }


def campaign_from_payload(payload: dict[str, Any]) -> Campaign:
    scheduled_at = payload.get("scheduled_at")
    return Campaign(
        id=payload["campaign_id"],
        recipients=tuple(payload["recipients"]),
        body=payload["body"],
        provider=payload["provider"],
        template_id=payload.get("template_id"),
        template_variables=payload.get("template_variables"),
        scheduled_at=datetime.fromisoformat(scheduled_at) if scheduled_at else None,
        created_at=datetime.fromisoformat(payload["created_at"]),
    )


def kinesis_client_kwargs(config: Settings) -> dict[str, Any]:
    kwargs: dict[str, Any] = {"region_name": config.aws_region}
    if config.aws_endpoint_url:
        kwargs["endpoint_url"] = config.aws_endpoint_url
    return kwargs


class KinesisCampaignQueue(CampaignQueue):
    """Kinesis implementation of CampaignQueue."""

    def __init__(self, config: Settings = settings) -> None:
        self._config = config
        self._session = get_session()

    async def enqueue(self, campaign: Campaign) -> None:
        event = {
            "event_type": CAMPAIGN_QUEUED_EVENT,
            "correlation_id": get_correlation_id(),
            "payload": campaign_to_payload(campaign),
        }
        stream = self._config.kinesis_stream_name

        async with self._session.create_client("kinesis", **kinesis_client_kwargs(self._config)) as client:
            await client.put_record(
                StreamName=stream,
                Data=json.dumps(event).encode("utf-8"),
                PartitionKey=campaign.id,
            )
        logger.info("Campaign published", campaign_id=campaign.id, stream=stream)


class KinesisCampaignConsumer:
    """
    Reads campaign events from every shard of the stream.

    When delivering a record raises, the shard iterator is not advanced
    and the same batch is read again after ``kinesis_retry_delay``. The
    ledger skips campaigns of that batch that already went out.
    """

    def __init__(
        self,
        worker: CampaignWorker,
        ledger: CampaignLedger | None = None,
        config: Settings = settings,
    ) -> None:
        self._worker = worker
        self._config = config
        if ledger is None:
            ledger = CampaignLedger(
                ttl_seconds=config.campaign_ledger_ttl_seconds,
                max_entries=config.campaign_ledger_max_entries,
            )
        self._ledger = ledger
        self._session = get_session()
        self._running = False

    async def start(self) -> None:
        self._running = True
        stream = self._config.kinesis_stream_name
        logger.info("Starting Kinesis campaign consumer", stream=stream, region=self._config.aws_region)

        async with self._session.create_client("kinesis", **kinesis_client_kwargs(self._config)) as client:
            description = await client.describe_stream(StreamName=stream)
            shard_ids = [shard["ShardId"] for shard in description["StreamDescription"]["Shards"]]
            await asyncio.gather(*(self._consume_shard(client, shard_id) for shard_id in shard_ids))

    async def stop(self) -> None:
        self._running = False
        await self._worker.stop()
        logger.info("Stopping Kinesis campaign consumer")

    async def _consume_shard(self, client: Any, shard_id: str) -> None:
        log = logger.bind(shard_id=shard_id)
        response = await client.get_shard_iterator(
            StreamName=self._config.kinesis_stream_name,
            ShardId=shard_id,
            ShardIteratorType="LATEST",
        )
        iterator = response["ShardIterator"]
        log.info("Consuming shard")

        while self._running and iterator:
            try:
                batch = await client.get_records(ShardIterator=iterator, Limit=self._config.kinesis_batch_limit)
                for record in batch.get("Records", []):
                    await self.process_record(record)
            except Exception as e:
                log.error("Campaign batch failed, retrying", error=str(e))
                await asyncio.sleep(self._config.kinesis_retry_delay)
                continue

            iterator = batch.get("NextShardIterator")
            if not batch.get("Records"):
                await asyncio.sleep(self._config.kinesis_poll_interval)

    async def process_record(self, record: dict) -> None:
        """
        Decode one Kinesis record and hand its campaign to the worker.

        Undecodable or foreign events are logged and dropped. A delivery
        error is re-raised after the campaign is marked failed.
        """
        try:
            data = json.loads(record["Data"].decode("utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.error("Invalid JSON in record", error=str(e))
            return

        event_type = data.get("event_type")
        correlation_id = data.get("correlation_id") or ""
        if correlation_id:
            set_correlation_id(correlation_id)

        with structlog.contextvars.bound_contextvars(correlation_id=correlation_id, event_type=event_type):
            if event_type != CAMPAIGN_QUEUED_EVENT:
                logger.warning("Unknown event type")
                return

            try:
                campaign = campaign_from_payload(data.get("payload", {}))
            except (KeyError, TypeError, ValueError) as e:
                logger.error("Malformed campaign event", error=str(e))
                return

            blocking = self._ledger.claim(campaign.id)
            if blocking is not None:
                logger.info("Skipping campaign", campaign_id=campaign.id, state=blocking.value)
                return

            try:
                await self._worker.process(campaign)
            except Exception as e:
                self._ledger.mark_failed(campaign.id, str(e))
                raise
            self._ledger.mark_completed(campaign.id)
