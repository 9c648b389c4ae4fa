"""
Protocol adapter for the hardware SMS gateway.

The device exposes an HTTP API whose exact paths, auth expectations and
response encodings vary between firmware builds. Only the send payload
is fixed by the vendor:

    {"text": str, "port": [int], "param": [{"number": str, "user_id": int, "sn": str}]}

Status and inventory lookups are discovered by probing candidate
endpoints in order. Credentials are passed into every call and never
stored on the adapter.
"""

import json
import re
import ssl
from dataclasses import dataclass
from typing import Any

import httpx
import structlog

from ..domain.errors import ErrorKind
from ..domain.models import DeliveryStatus, GatewayCredentials
from ..infrastructure.logging import Timer, mask_number, sanitize_for_logging
from .normalizer import normalize_inventory
from .probing import (
    Candidate,
    ProbeAttempt,
    ProbeVerdict,
    RequestShape,
    expand_candidates,
    probe_sequentially,
)
from .results import AuthResult, GatewaySendResult, InventoryResult, Reachability, StatusResult

logger = structlog.get_logger()

SEND_SUCCESS_CODE = 202
STATUS_SUCCESS_CODE = 200

REACHABLE_STATUSES = frozenset({200, 401, 403})

INVENTORY_SHAPES = (RequestShape.FORM_POST, RequestShape.JSON_POST, RequestShape.QUERY_GET)

GATEWAY_STATUS_MAP: dict[str, DeliveryStatus] = {
    "pending": DeliveryStatus.PENDING,
    "queued": DeliveryStatus.PENDING,
    "sending": DeliveryStatus.PENDING,
    "sent": DeliveryStatus.SENT,
    "delivered": DeliveryStatus.DELIVERED,
    "failed": DeliveryStatus.FAILED,
    "expired": DeliveryStatus.EXPIRED,
}

_TOKEN_PATTERN = r"""token["\s]*[:=]["\s]*([^"'\s,}]+)"""


@dataclass(frozen=True)
class GatewayEndpoints:
    """Endpoint paths and per-operation deadlines (seconds)."""

    send_path: str = "/api/send_sms"
    login_path: str = "/api/login"
    status_paths: tuple[str, ...] = (
        "/api/check_status",
        "/api/status",
        "/api/get_status",
        "/api/sms_status",
    )
    inventory_paths: tuple[str, ...] = (
        "/api/get_sim_status",
        "/api/sim_status",
        "/api/status",
        "/api/get_status",
    )
    connect_timeout: float = 10.0
    auth_timeout: float = 15.0
    send_timeout: float = 30.0
    status_timeout: float = 15.0
    inventory_timeout: float = 10.0
    user_agent: str = "sms-dispatch/0.1"
    verify_tls: bool = True


def build_url(credentials: GatewayCredentials, path: str = "") -> httpx.URL:
    """Normalise the configured address and attach the credential port."""
    address = credentials.base_address.strip()
    if not address.startswith(("http://", "https://")):
        address = f"http://{address}"
    base = httpx.URL(address.rstrip("/"))
    return base.copy_with(port=credentials.port, path=base.path.rstrip("/") + path)


def looks_like_html(text: str) -> bool:
    lowered = text.lower()
    return "<html" in lowered or "<title>" in lowered


def classify_transport_error(exc: Exception) -> tuple[ErrorKind, str]:
    """Map an httpx failure to timeout / TLS / unreachable."""
    if isinstance(exc, httpx.TimeoutException):
        return ErrorKind.TIMEOUT, "Connection timeout - gateway not responding"
    if _is_tls_failure(exc):
        return ErrorKind.TLS_ERROR, f"SSL/certificate error: {exc}"
    if isinstance(exc, httpx.InvalidURL):
        return ErrorKind.UNREACHABLE, f"Invalid gateway address: {exc}"
    return ErrorKind.UNREACHABLE, f"Connection failed: {exc}"


def _is_tls_failure(exc: BaseException) -> bool:
    seen: BaseException | None = exc
    while seen is not None:
        if isinstance(seen, ssl.SSLError):
            return True
        message = str(seen)
        if "CERTIFICATE" in message.upper() or "SSL" in message:
            return True
        seen = seen.__cause__ or seen.__context__
    return False


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def classify_send_response(
    text: str,
    session_id: int,
    port: int,
    http_status: int | None = None,
) -> GatewaySendResult:
    """Classify the body of a send_sms response."""
    if looks_like_html(text):
        if "Unauthorized" in text:
            kind, message = ErrorKind.AUTHENTICATION_FAILED, "Authentication failed - check credentials"
        elif "Not Found" in text:
            kind, message = ErrorKind.ENDPOINT_NOT_FOUND, "Send endpoint not found on gateway"
        else:
            kind, message = ErrorKind.GATEWAY_ERROR, "Gateway returned HTML error page"
        return GatewaySendResult(
            sent=False,
            session_id=session_id,
            port=port,
            error_kind=kind,
            error=message,
            http_status=http_status,
            raw=text[:200],
        )

    try:
        result = json.loads(text)
    except ValueError:
        return GatewaySendResult(
            sent=False,
            session_id=session_id,
            port=port,
            error_kind=ErrorKind.PROTOCOL_ERROR,
            error=f"Invalid JSON response: {text[:100]}",
            http_status=http_status,
            raw=text[:200],
        )

    if not isinstance(result, dict):
        return GatewaySendResult(
            sent=False,
            session_id=session_id,
            port=port,
            error_kind=ErrorKind.REJECTED,
            error="Unexpected JSON response shape",
            http_status=http_status,
            raw=result,
        )

    error_code = result.get("error_code")
    message_id = result.get("message_id")
    if _is_int(error_code) and error_code == SEND_SUCCESS_CODE:
        return GatewaySendResult(
            sent=True,
            session_id=session_id,
            port=port,
            message_id=str(message_id) if message_id is not None else None,
            error_code=str(error_code),
            http_status=http_status,
            raw=result,
        )

    return GatewaySendResult(
        sent=False,
        session_id=session_id,
        port=port,
        message_id=str(message_id) if message_id is not None else None,
        error_kind=ErrorKind.REJECTED,
        error_code=str(error_code) if error_code is not None else None,
        error=result.get("error_msg") or "Unknown error",
        http_status=http_status,
        raw=result,
    )


def map_gateway_status(value: Any) -> DeliveryStatus:
    """Missing status means still pending; unrecognised values fail closed."""
    if value in (None, ""):
        return DeliveryStatus.PENDING
    return GATEWAY_STATUS_MAP.get(str(value).strip().lower(), DeliveryStatus.FAILED)


class GatewayAdapter:
    """
    Stateless adapter for the hardware gateway HTTP API.

    Safe to share between concurrent dispatches; each call opens its own
    client and carries its own deadline.
    """

    def __init__(
        self,
        endpoints: GatewayEndpoints | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._endpoints = endpoints or GatewayEndpoints()
        self._transport = transport

    @property
    def endpoints(self) -> GatewayEndpoints:
        return self._endpoints

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            transport=self._transport,
            follow_redirects=True,
            verify=self._endpoints.verify_tls,
            headers={"User-Agent": self._endpoints.user_agent},
        )

    async def connect(self, credentials: GatewayCredentials) -> Reachability:
        """
        Check that the device answers at all.

        401/403 count as reachable: an auth challenge proves the device
        is alive.
        """
        try:
            url = str(build_url(credentials))
        except httpx.InvalidURL as e:
            kind, message = classify_transport_error(e)
            return Reachability(reachable=False, url=credentials.base_address, error_kind=kind, error=message)

        try:
            async with self._client() as client:
                response = await client.get(url, timeout=self._endpoints.connect_timeout)
        except httpx.HTTPError as e:
            kind, message = classify_transport_error(e)
            logger.warning("Gateway unreachable", url=url, error_kind=kind.value, error=str(e))
            return Reachability(reachable=False, url=url, error_kind=kind, error=message)

        if response.status_code in REACHABLE_STATUSES:
            logger.info("Gateway reachable", url=url, http_status=response.status_code)
            return Reachability(reachable=True, url=url, http_status=response.status_code)

        return Reachability(
            reachable=False,
            url=url,
            http_status=response.status_code,
            error_kind=ErrorKind.GATEWAY_ERROR,
            error=f"Gateway responded with unexpected status: {response.status_code}",
        )

    async def authenticate(self, credentials: GatewayCredentials) -> AuthResult:
        """
        Log in with form-encoded credentials to obtain the optional token.

        Send and status calls use Basic auth regardless of this step.
        """
        try:
            async with self._client() as client:
                response = await client.post(
                    str(build_url(credentials, self._endpoints.login_path)),
                    data={"username": credentials.username, "password": credentials.password},
                    headers={"Accept": "application/json"},
                    timeout=self._endpoints.auth_timeout,
                )
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            kind, message = classify_transport_error(e)
            logger.warning("Gateway login failed", error_kind=kind.value, error=str(e))
            return AuthResult(authenticated=False, error_kind=kind, error=message)

        if not response.is_success:
            return AuthResult(
                authenticated=False,
                error_kind=ErrorKind.AUTHENTICATION_FAILED,
                error=f"Authentication failed: HTTP {response.status_code}",
                http_status=response.status_code,
            )

        text = response.text
        try:
            result = json.loads(text)
        except ValueError:
            result = None

        if isinstance(result, dict):
            if result.get("result") == "ok" or result.get("success") or result.get("token"):
                token = result.get("token")
                logger.info("Gateway login succeeded", token=sanitize_for_logging(str(token) if token else None))
                return AuthResult(
                    authenticated=True,
                    token=str(token) if token else None,
                    http_status=response.status_code,
                )
            return AuthResult(
                authenticated=False,
                error_kind=ErrorKind.AUTHENTICATION_FAILED,
                error=result.get("reason") or result.get("message") or "Login failed",
                http_status=response.status_code,
            )

        lowered = text.lower()
        if "token" in lowered or "success" in lowered:
            match = re.search(_TOKEN_PATTERN, text, re.IGNORECASE)
            return AuthResult(
                authenticated=True,
                token=match.group(1) if match else None,
                http_status=response.status_code,
            )

        return AuthResult(
            authenticated=False,
            error_kind=ErrorKind.AUTHENTICATION_FAILED,
            error="Invalid login response format",
            http_status=response.status_code,
        )

    async def send_message(
        self,
        credentials: GatewayCredentials,
        session_id: int,
        recipient: str,
        body: str,
        port: int = 0,
    ) -> GatewaySendResult:
        """POST one SMS to the gateway and classify the answer."""
        payload = {
            "text": body,
            "port": [port],
            "param": [
                {
                    "number": recipient,
                    "user_id": session_id,
                    "sn": credentials.serial_number,
                }
            ],
        }
        log = logger.bind(session_id=session_id, port=port, recipient=mask_number(recipient))

        try:
            async with self._client() as client:
                with Timer() as t:
                    response = await client.post(
                        str(build_url(credentials, self._endpoints.send_path)),
                        json=payload,
                        headers={
                            "Authorization": credentials.authorization_header,
                            "Content-Type": "application/json",
                        },
                        timeout=self._endpoints.send_timeout,
                    )
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            kind, message = classify_transport_error(e)
            log.error("Gateway send failed", error_kind=kind.value, error=str(e))
            return GatewaySendResult(
                sent=False,
                session_id=session_id,
                port=port,
                error_kind=kind,
                error=message,
            )

        result = classify_send_response(response.text, session_id, port, response.status_code)
        if result.sent:
            log.info("Gateway accepted SMS", message_id=result.message_id, duration_ms=t.duration_ms)
        else:
            log.warning(
                "Gateway did not accept SMS",
                error_kind=result.error_kind.value if result.error_kind else None,
                error_code=result.error_code,
                error=result.error,
                http_status=response.status_code,
            )
        return result

    async def probe_status(
        self,
        credentials: GatewayCredentials,
        session_id: int,
        message_id: str | None = None,
    ) -> StatusResult:
        """
        Look up delivery status by walking the candidate status endpoints.

        Returns an indeterminate result (``known=False``) when every
        candidate fails; that is never reported as a failed delivery.
        """
        payload = {"user_id": session_id, "sn": credentials.serial_number, "message_id": message_id}

        async def attempt(candidate: Candidate) -> ProbeAttempt:
            try:
                url = str(build_url(credentials, candidate.path))
            except httpx.InvalidURL as e:
                return ProbeAttempt(candidate, ProbeVerdict.FATAL, detail=str(e))
            try:
                async with self._client() as client:
                    response = await client.post(
                        url,
                        json=payload,
                        headers={"Authorization": credentials.authorization_header},
                        timeout=self._endpoints.status_timeout,
                    )
            except httpx.HTTPError as e:
                return ProbeAttempt(candidate, ProbeVerdict.RETRYABLE, detail=classify_transport_error(e)[1])

            text = response.text
            if looks_like_html(text):
                return ProbeAttempt(candidate, ProbeVerdict.RETRYABLE, detail="html response")
            try:
                result = json.loads(text)
            except ValueError:
                return ProbeAttempt(candidate, ProbeVerdict.RETRYABLE, detail="unparseable body")
            if not isinstance(result, dict):
                return ProbeAttempt(candidate, ProbeVerdict.RETRYABLE, detail="unexpected shape")

            code = result.get("error_code")
            if (_is_int(code) and code == STATUS_SUCCESS_CODE) or result.get("result") == "ok":
                return ProbeAttempt(candidate, ProbeVerdict.SUCCESS, body=result)
            return ProbeAttempt(candidate, ProbeVerdict.RETRYABLE, detail=f"error_code={code}")

        candidates = [Candidate(path, RequestShape.JSON_POST) for path in self._endpoints.status_paths]
        report = await probe_sequentially(candidates, attempt)
        tried = [candidate.path for candidate in report.tried]

        winner = report.winner
        if winner is None:
            logger.warning("Gateway status unknown", session_id=session_id, endpoints_tried=tried)
            return StatusResult(
                known=False,
                session_id=session_id,
                endpoints_tried=tried,
                error_kind=ErrorKind.STATUS_UNKNOWN,
            )

        body = winner.body
        vendor_status = body.get("delivery_status") or body.get("status")
        status = map_gateway_status(vendor_status)
        logger.info(
            "Gateway status retrieved",
            session_id=session_id,
            endpoint=winner.candidate.path,
            status=status.value,
        )
        return StatusResult(
            known=True,
            session_id=session_id,
            status=status,
            vendor_status=str(vendor_status) if vendor_status is not None else None,
            endpoint=winner.candidate.path,
            endpoints_tried=tried,
            raw=body,
        )

    async def probe_inventory(
        self,
        credentials: GatewayCredentials,
        token: str | None = None,
    ) -> InventoryResult:
        """
        Read SIM slot inventory from the first endpoint/shape that answers.

        No placeholder channels are synthesised when the gateway stays
        silent; the result is flagged unavailable instead.
        """
        params = {"token": token} if token else {}

        async def attempt(candidate: Candidate) -> ProbeAttempt:
            try:
                url = str(build_url(credentials, candidate.path))
            except httpx.InvalidURL as e:
                return ProbeAttempt(candidate, ProbeVerdict.FATAL, detail=str(e))
            timeout = self._endpoints.inventory_timeout
            headers = {"Accept": "application/json"}
            try:
                async with self._client() as client:
                    match candidate.shape:
                        case RequestShape.FORM_POST:
                            response = await client.post(url, data=params, headers=headers, timeout=timeout)
                        case RequestShape.JSON_POST:
                            response = await client.post(url, json=params, headers=headers, timeout=timeout)
                        case _:
                            response = await client.get(url, params=params, headers=headers, timeout=timeout)
            except httpx.HTTPError as e:
                return ProbeAttempt(candidate, ProbeVerdict.RETRYABLE, detail=classify_transport_error(e)[1])

            if not response.is_success:
                return ProbeAttempt(candidate, ProbeVerdict.RETRYABLE, detail=f"HTTP {response.status_code}")
            text = response.text
            if looks_like_html(text):
                return ProbeAttempt(candidate, ProbeVerdict.RETRYABLE, detail="html response")
            try:
                return ProbeAttempt(candidate, ProbeVerdict.SUCCESS, body=json.loads(text))
            except ValueError:
                lowered = text.lower()
                if "port" in lowered or "sim" in lowered:
                    return ProbeAttempt(candidate, ProbeVerdict.SUCCESS, body=text)
            return ProbeAttempt(candidate, ProbeVerdict.RETRYABLE, detail="unrecognised body")

        candidates = expand_candidates(self._endpoints.inventory_paths, INVENTORY_SHAPES)
        report = await probe_sequentially(candidates, attempt)
        tried = list(dict.fromkeys(candidate.path for candidate in report.tried))

        winner = report.winner
        if winner is None:
            logger.warning("Gateway inventory unavailable", endpoints_tried=tried)
            return InventoryResult(
                available=False,
                endpoints_tried=tried,
                error_kind=ErrorKind.INVENTORY_UNAVAILABLE,
            )

        body = winner.body
        channels = normalize_inventory(body)
        logger.info(
            "Gateway inventory retrieved",
            endpoint=winner.candidate.path,
            shape=winner.candidate.shape.value,
            channels=len(channels),
        )
        return InventoryResult(
            available=True,
            channels=channels,
            endpoint=winner.candidate.path,
            shape=winner.candidate.shape.value,
            endpoints_tried=tried,
            model=body.get("model") if isinstance(body, dict) else None,
            version=body.get("version") if isinstance(body, dict) else None,
        )
