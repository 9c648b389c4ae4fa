from enum import Enum


class ErrorKind(str, Enum):
    """Diagnosable failure categories shared by every backend."""

    UNREACHABLE = "unreachable"
    TIMEOUT = "timeout"
    TLS_ERROR = "tls_error"
    AUTHENTICATION_FAILED = "authentication_failed"
    ENDPOINT_NOT_FOUND = "endpoint_not_found"
    GATEWAY_ERROR = "gateway_error"
    PROTOCOL_ERROR = "protocol_error"
    REJECTED = "rejected"
    MISCONFIGURED_PROVIDER = "misconfigured_provider"
    TEMPLATE_NOT_FOUND = "template_not_found"
    STATUS_UNKNOWN = "status_unknown"
    INVENTORY_UNAVAILABLE = "inventory_unavailable"


class DispatchError(Exception):
    """Base error raised by dispatch collaborators."""

    kind: ErrorKind = ErrorKind.GATEWAY_ERROR

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class TemplateNotFoundError(DispatchError):
    """Raised by a template resolver when the template id is unknown."""

    kind = ErrorKind.TEMPLATE_NOT_FOUND

    def __init__(self, template_id: str) -> None:
        super().__init__(f"Template with ID '{template_id}' not found")
        self.template_id = template_id
