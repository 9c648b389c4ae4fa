"""Result types returned by the gateway adapter. None of its operations raise."""

from dataclasses import dataclass, field
from typing import Any

from ..domain.errors import ErrorKind
from ..domain.models import ChannelStatus, DeliveryStatus


@dataclass
class Reachability:
    reachable: bool
    url: str
    http_status: int | None = None
    error_kind: ErrorKind | None = None
    error: str | None = None


@dataclass
class AuthResult:
    authenticated: bool
    token: str | None = None
    error_kind: ErrorKind | None = None
    error: str | None = None
    http_status: int | None = None


@dataclass
class GatewaySendResult:
    sent: bool
    session_id: int
    port: int
    message_id: str | None = None
    error_kind: ErrorKind | None = None
    error_code: str | None = None
    error: str | None = None
    http_status: int | None = None
    raw: Any = None


@dataclass
class StatusResult:
    """
    Outcome of a status probe.

    ``known`` is False when every candidate endpoint was exhausted. That
    result is indeterminate, not a failed delivery.
    """

    known: bool
    session_id: int
    status: DeliveryStatus | None = None
    vendor_status: str | None = None
    endpoint: str | None = None
    endpoints_tried: list[str] = field(default_factory=list)
    error_kind: ErrorKind | None = None
    raw: Any = None


@dataclass
class InventoryResult:
    available: bool
    channels: list[ChannelStatus] = field(default_factory=list)
    endpoint: str | None = None
    shape: str | None = None
    endpoints_tried: list[str] = field(default_factory=list)
    model: str | None = None
    version: str | None = None
    error_kind: ErrorKind | None = None
