"""
Idempotency ledger for campaign events.

Kinesis delivers at least once, so the consumer claims a campaign id
before delivering it. Completed and in-flight ids are skipped; a failed
id may be claimed again, which keeps a redelivered record retryable.
"""

import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

import structlog

logger = structlog.get_logger()

DEFAULT_TTL_SECONDS = 86400
DEFAULT_MAX_ENTRIES = 10000

# A processing claim older than this is treated as abandoned.
PROCESSING_TIMEOUT_SECONDS = 300


class CampaignState(str, Enum):
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class _Entry:
    state: CampaignState
    updated_at: float
    error: str | None = None


class CampaignLedger:
    """
    In-memory claim table keyed by campaign id.

    Entries expire ``ttl_seconds`` after their last update; past
    ``max_entries`` the least recently updated entry is dropped.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl_seconds = ttl_seconds
        self._max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[str, _Entry] = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def state(self, campaign_id: str) -> CampaignState | None:
        entry = self._entries.get(campaign_id)
        return entry.state if entry else None

    def claim(self, campaign_id: str) -> CampaignState | None:
        """
        Lock a campaign for delivery.

        Returns:
            The blocking state when the campaign is completed or in flight,
            None when the caller now holds the claim
        """
        self._expire()
        now = self._clock()

        entry = self._entries.get(campaign_id)
        if entry is not None:
            if entry.state == CampaignState.COMPLETED:
                return entry.state
            if entry.state == CampaignState.PROCESSING:
                if now - entry.updated_at <= PROCESSING_TIMEOUT_SECONDS:
                    return entry.state
                logger.warning("Processing claim timed out, allowing retry", campaign_id=campaign_id)

        self._put(campaign_id, _Entry(CampaignState.PROCESSING, now))
        return None

    def mark_completed(self, campaign_id: str) -> None:
        if campaign_id in self._entries:
            self._put(campaign_id, _Entry(CampaignState.COMPLETED, self._clock()))

    def mark_failed(self, campaign_id: str, error: str) -> None:
        if campaign_id in self._entries:
            self._put(campaign_id, _Entry(CampaignState.FAILED, self._clock(), error))
            logger.debug("Campaign marked failed", campaign_id=campaign_id, error=error)

    def _put(self, campaign_id: str, entry: _Entry) -> None:
        self._entries[campaign_id] = entry
        self._entries.move_to_end(campaign_id)
        while len(self._entries) > self._max_entries:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug("Evicted campaign from ledger", campaign_id=evicted)

    def _expire(self) -> None:
        cutoff = self._clock() - self._ttl_seconds
        expired = [key for key, entry in self._entries.items() if entry.updated_at < cutoff]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug("Expired campaign ledger entries", count=len(expired))
