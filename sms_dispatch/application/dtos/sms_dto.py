"""SMS request/response DTOs.

Message bodies are passed through untouched: they go out as SMS text,
never into HTML.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

from ...domain.models import (
    GATEWAY_PROVIDER,
    BulkDispatchRequest,
    DeliveryRecord,
    DispatchRequest,
    InboundMessage,
    normalize_number,
)
from .gateway_dto import GatewayCredentialsDTO


class SendSmsDTO(BaseModel):
    recipient: str
    message: str | None = Field(None, max_length=1600)
    template_id: str | None = None
    template_variables: dict[str, str] | None = None
    provider: str | None = None
    port: int = Field(0, ge=0)
    gateway: GatewayCredentialsDTO | None = None

    @field_validator("recipient", mode="after")
    @classmethod
    def validate_recipient(cls, v: str) -> str:
        return normalize_number(v)

    @model_validator(mode="after")
    def require_content(self) -> "SendSmsDTO":
        if not self.message and not self.template_id:
            raise ValueError("Either message or template_id is required")
        return self

    def to_domain(self) -> DispatchRequest:
        return DispatchRequest(
            recipient=self.recipient,
            body=self.message,
            template_id=self.template_id,
            template_variables=self.template_variables,
            provider=self.provider,
            port=self.port,
        )


class BulkSmsDTO(BaseModel):
    recipients: list[str] = Field(default_factory=list)
    message: str | None = Field(None, max_length=1600)
    template_id: str | None = None
    template_variables: dict[str, str] | None = None
    provider: str | None = None
    contact_groups: list[str] = Field(default_factory=list)
    scheduled_at: datetime | None = None

    @field_validator("recipients", mode="after")
    @classmethod
    def validate_recipients(cls, v: list[str]) -> list[str]:
        return [normalize_number(n) for n in v]

    @model_validator(mode="after")
    def require_audience_and_content(self) -> "BulkSmsDTO":
        if not self.recipients and not self.contact_groups:
            raise ValueError("At least one recipient or contact group is required")
        if not self.message and not self.template_id:
            raise ValueError("Either message or template_id is required")
        return self

    def to_domain(self) -> BulkDispatchRequest:
        return BulkDispatchRequest(
            recipients=tuple(self.recipients),
            body=self.message,
            template_id=self.template_id,
            template_variables=self.template_variables,
            provider=self.provider,
            contact_groups=tuple(self.contact_groups),
            scheduled_at=self.scheduled_at,
        )


class InboundSmsDTO(BaseModel):
    """Webhook payload posted by the gateway or a carrier."""

    sender: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1)
    timestamp: datetime | None = None
    provider: str = GATEWAY_PROVIDER

    def to_domain(self) -> InboundMessage:
        return InboundMessage(
            sender=self.sender,
            message=self.message,
            timestamp=self.timestamp,
            provider=self.provider,
        )


class EstimateCostDTO(BaseModel):
    message: str = Field(..., min_length=1, max_length=1600)
    recipients: int = Field(1, ge=1)
    provider: str | None = None


class DeliveryRecordDTO(BaseModel):
    id: str
    direction: str
    recipient: str | None = None
    sender: str | None = None
    message: str
    provider: str
    provider_message_id: str | None = None
    status: str
    error_kind: str | None = None
    error_code: str | None = None
    error_message: str | None = None
    cost: float | None = None
    currency: str | None = None
    sim_port: int | None = None
    session_id: int | None = None
    template_id: str | None = None
    template_variables: dict[str, str] | None = None
    sent_at: datetime | None = None
    delivered_at: datetime | None = None
    failed_at: datetime | None = None
    received_at: datetime | None = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_record(cls, record: DeliveryRecord) -> "DeliveryRecordDTO":
        return cls(
            id=record.id,
            direction=record.direction.value,
            recipient=record.recipient,
            sender=record.sender,
            message=record.body,
            provider=record.provider,
            provider_message_id=record.provider_message_id,
            status=record.status.value,
            error_kind=record.error_kind.value if record.error_kind else None,
            error_code=record.error_code,
            error_message=record.error_message,
            cost=record.cost,
            currency=record.currency,
            sim_port=record.channel,
            session_id=record.session_id,
            template_id=record.template_id,
            template_variables=record.template_variables,
            sent_at=record.sent_at,
            delivered_at=record.delivered_at,
            failed_at=record.failed_at,
            received_at=record.received_at,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )


class ApiResponseDTO(BaseModel):
    """Envelope shared by every SMS endpoint."""

    success: bool
    message: str
    data: Any = None
    errors: dict[str, list[str]] | None = None
