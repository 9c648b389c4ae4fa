from .adapter import GatewayAdapter, GatewayEndpoints, build_url, classify_send_response
from .normalizer import (
    KeyedPayload,
    SequencePayload,
    TextPayload,
    classify_payload,
    normalize_channels,
    normalize_inventory,
)
from .probing import Candidate, ProbeAttempt, ProbeReport, ProbeVerdict, RequestShape, probe_sequentially
from .results import AuthResult, GatewaySendResult, InventoryResult, Reachability, StatusResult

__all__ = [
    "AuthResult",
    "Candidate",
    "GatewayAdapter",
    "GatewayEndpoints",
    "GatewaySendResult",
    "InventoryResult",
    "KeyedPayload",
    "ProbeAttempt",
    "ProbeReport",
    "ProbeVerdict",
    "Reachability",
    "RequestShape",
    "SequencePayload",
    "StatusResult",
    "TextPayload",
    "build_url",
    "classify_payload",
    "classify_send_response",
    "normalize_channels",
    "normalize_inventory",
    "probe_sequentially",
]
