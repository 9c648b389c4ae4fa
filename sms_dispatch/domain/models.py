"""
Domain model for SMS dispatch.

Value objects are frozen dataclasses validated on construction. The
DeliveryRecord is the only mutable entity: a status check overwrites its
status in place.
"""

import base64
import random
import re
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from uuid import uuid4

from .errors import ErrorKind

GATEWAY_PROVIDER = "gateway"

SESSION_ID_MIN = 1000
SESSION_ID_MAX = 9999

PHONE_PATTERN = re.compile(r"^\+?\d{3,15}$")
_NUMBER_SEPARATORS = re.compile(r"[\s\-()]")


class DeliveryStatus(str, Enum):
    PENDING = "pending"
    SENT = "sent"
    DELIVERED = "delivered"
    FAILED = "failed"
    EXPIRED = "expired"
    RECEIVED = "received"


class Direction(str, Enum):
    OUTBOUND = "outbound"
    INBOUND = "inbound"


class ChannelState(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    ERROR = "error"


def mint_session_id() -> int:
    """
    Mint a correlation session id for a gateway send.

    Only 9000 values exist, so two in-flight sends may share an id.
    Callers must tolerate that collision.
    """
    return random.randint(SESSION_ID_MIN, SESSION_ID_MAX)


def normalize_number(value: str) -> str:
    """Strip spaces, dashes and brackets; raise ValueError if no valid number remains."""
    number = _NUMBER_SEPARATORS.sub("", value)
    if not PHONE_PATTERN.match(number):
        raise ValueError(f"Invalid phone number: {value!r}")
    return number


@dataclass(frozen=True)
class DispatchRequest:
    """Immutable single-recipient send request."""

    recipient: str
    body: str | None = None
    template_id: str | None = None
    template_variables: dict[str, str] | None = None
    provider: str | None = None
    port: int = 0

    def __post_init__(self) -> None:
        if not self.recipient or not self.recipient.strip():
            raise ValueError("Recipient is required")
        if not self.body and not self.template_id:
            raise ValueError("Either message body or template_id is required")
        if self.port < 0:
            raise ValueError("Gateway port index cannot be negative")


@dataclass(frozen=True)
class BulkDispatchRequest:
    """Immutable bulk (campaign) send request."""

    recipients: tuple[str, ...] = ()
    body: str | None = None
    template_id: str | None = None
    template_variables: dict[str, str] | None = None
    provider: str | None = None
    contact_groups: tuple[str, ...] = ()
    scheduled_at: datetime | None = None

    def __post_init__(self) -> None:
        if not self.recipients and not self.contact_groups:
            raise ValueError("At least one recipient or contact group is required")
        if not self.body and not self.template_id:
            raise ValueError("Either message body or template_id is required")


@dataclass(frozen=True)
class GatewayCredentials:
    """Connection details for the hardware gateway, supplied per call."""

    base_address: str
    port: int
    username: str
    password: str
    serial_number: str

    def __post_init__(self) -> None:
        if not self.base_address or not self.base_address.strip():
            raise ValueError("Gateway base address is required")
        if not 0 < self.port < 65536:
            raise ValueError("Gateway port must be between 1 and 65535")
        if not self.username or not self.password:
            raise ValueError("Gateway username and password are required")
        if not self.serial_number:
            raise ValueError("Gateway serial number is required")

    @property
    def authorization_header(self) -> str:
        token = base64.b64encode(f"{self.username}:{self.password}".encode()).decode()
        return f"Basic {token}"


@dataclass(frozen=True)
class ChannelStatus:
    """One SIM slot of the gateway as reported by an inventory probe."""

    index: int
    number: str | None
    state: ChannelState
    carrier: str
    signal: int
    signal_estimated: bool = False


@dataclass(frozen=True)
class InboundMessage:
    """Webhook-shaped inbound SMS."""

    sender: str
    message: str
    timestamp: datetime | None = None
    provider: str = GATEWAY_PROVIDER

    def __post_init__(self) -> None:
        if not self.sender or not self.message:
            raise ValueError("Sender and message are required")


@dataclass
class DeliveryRecord:
    """Canonical record of one inbound or outbound SMS."""

    id: str
    direction: Direction
    body: str
    provider: str
    status: DeliveryStatus
    created_at: datetime
    updated_at: datetime
    recipient: str | None = None
    sender: str | None = None
    provider_message_id: str | None = None
    error_kind: ErrorKind | None = None
    error_code: str | None = None
    error_message: str | None = None
    cost: float | None = None
    currency: str | None = None
    channel: int | None = None
    session_id: int | None = None
    template_id: str | None = None
    template_variables: dict[str, str] | None = None
    sent_at: datetime | None = None
    delivered_at: datetime | None = None
    failed_at: datetime | None = None
    received_at: datetime | None = None

    @classmethod
    def outbound(
        cls,
        recipient: str,
        body: str,
        provider: str,
        template_id: str | None = None,
        template_variables: dict[str, str] | None = None,
    ) -> "DeliveryRecord":
        """Factory for a new outbound record in pending state."""
        now = datetime.now(UTC)
        return cls(
            id=new_record_id(),
            direction=Direction.OUTBOUND,
            recipient=recipient,
            body=body,
            provider=provider,
            status=DeliveryStatus.PENDING,
            template_id=template_id,
            template_variables=template_variables,
            created_at=now,
            updated_at=now,
        )

    @classmethod
    def inbound(cls, message: InboundMessage) -> "DeliveryRecord":
        """Factory for a received message."""
        now = datetime.now(UTC)
        return cls(
            id=new_record_id(),
            direction=Direction.INBOUND,
            sender=message.sender,
            body=message.message,
            provider=message.provider,
            status=DeliveryStatus.RECEIVED,
            received_at=message.timestamp or now,
            created_at=now,
            updated_at=now,
        )

    def apply_status(self, status: DeliveryStatus, error: str | None = None) -> None:
        """Overwrite the status in place and stamp the matching timestamp."""
        now = datetime.now(UTC)
        self.status = status
        self.updated_at = now
        if status == DeliveryStatus.SENT:
            self.sent_at = self.sent_at or now
        elif status == DeliveryStatus.DELIVERED:
            self.delivered_at = now
        elif status in (DeliveryStatus.FAILED, DeliveryStatus.EXPIRED):
            self.failed_at = now
            if error:
                self.error_message = error
        elif status == DeliveryStatus.RECEIVED:
            self.received_at = self.received_at or now

    def mark_failed(
        self,
        kind: ErrorKind | None,
        message: str | None,
        code: str | None = None,
    ) -> None:
        self.error_kind = kind
        self.error_code = code
        self.apply_status(DeliveryStatus.FAILED, message)


@dataclass(frozen=True)
class Campaign:
    """A queued bulk dispatch covering a de-duplicated recipient set."""

    id: str
    recipients: tuple[str, ...]
    body: str
    provider: str
    template_id: str | None = None
    template_variables: dict[str, str] | None = None
    scheduled_at: datetime | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def seconds_until_due(self, now: datetime | None = None) -> float:
        """Zero or less once the campaign may be sent. Naive times are UTC."""
        if self.scheduled_at is None:
            return 0.0
        scheduled_at = self.scheduled_at
        if scheduled_at.tzinfo is None:
            scheduled_at = scheduled_at.replace(tzinfo=UTC)
        return (scheduled_at - (now or datetime.now(UTC))).total_seconds()


@dataclass(frozen=True)
class CampaignTicket:
    """Returned to the caller of a bulk dispatch. Delivery happens later."""

    campaign_id: str
    total_recipients: int
    status: str
    error_kind: ErrorKind | None = None
    error: str | None = None


def new_record_id() -> str:
    return f"sms_{uuid4().hex}"


def new_campaign_id() -> str:
    return f"campaign_{uuid4().hex}"
