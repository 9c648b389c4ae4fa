from .campaign_worker import CampaignWorker
from .dispatch_service import (
    CostEstimate,
    DispatchAttempt,
    DispatchPolicy,
    DispatchResult,
    DispatchService,
)

__all__ = [
    "CampaignWorker",
    "CostEstimate",
    "DispatchAttempt",
    "DispatchPolicy",
    "DispatchResult",
    "DispatchService",
]
