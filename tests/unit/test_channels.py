from unittest.mock import AsyncMock, patch

import httpx
import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from sms_dispatch.channels import (
    SnsConfig,
    SnsProvider,
    TwilioConfig,
    TwilioProvider,
    VonageConfig,
    VonageProvider,
)
from sms_dispatch.domain.errors import ErrorKind
from sms_dispatch.domain.models import DeliveryStatus

TWILIO_CONFIG = TwilioConfig(account_sid="AC123456", auth_token="token", from_number="+15005550006")
VONAGE_CONFIG = VonageConfig(api_key="abcd1234", api_secret="0123456789abcdef", from_number="+447700900000")
SNS_CONFIG = SnsConfig(access_key_id="AKIAEXAMPLE", secret_access_key="s" * 40, region="eu-west-1", sender_id="MyApp")


class TestTwilioProvider:
    @pytest.mark.asyncio
    async def test_send_success(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["form"] = dict(httpx.QueryParams(request.content.decode()))
            return httpx.Response(201, json={"sid": "SM123", "status": "queued", "price": "-0.00750", "price_unit": "usd"})

        provider = TwilioProvider(TWILIO_CONFIG, transport=httpx.MockTransport(handler))
        result = await provider.send("+355691234567", "Hello")

        assert result.success is True
        assert result.message_id == "SM123"
        assert result.cost == pytest.approx(0.0075)
        assert result.currency == "USD"
        assert seen["url"].endswith("/Accounts/AC123456/Messages.json")
        assert seen["form"] == {"To": "+355691234567", "From": "+15005550006", "Body": "Hello"}

    @pytest.mark.asyncio
    async def test_send_rejected_keeps_vendor_code(self):
        def handler(request):
            return httpx.Response(400, json={"code": 21211, "message": "Invalid 'To' Phone Number"})

        provider = TwilioProvider(TWILIO_CONFIG, transport=httpx.MockTransport(handler))
        result = await provider.send("+1", "Hello")

        assert result.success is False
        assert result.error_kind == ErrorKind.REJECTED
        assert result.error_code == "21211"
        assert "Invalid" in result.error

    @pytest.mark.asyncio
    async def test_send_unauthorized(self):
        provider = TwilioProvider(
            TWILIO_CONFIG,
            transport=httpx.MockTransport(lambda r: httpx.Response(401, json={"code": 20003, "message": "Authenticate"})),
        )
        result = await provider.send("+355691234567", "Hello")
        assert result.error_kind == ErrorKind.AUTHENTICATION_FAILED

    @pytest.mark.asyncio
    async def test_misconfigured_makes_no_request(self):
        def handler(request):
            raise AssertionError("no request expected")

        provider = TwilioProvider(
            TwilioConfig(account_sid="XX1", auth_token="", from_number="bad"),
            transport=httpx.MockTransport(handler),
        )
        result = await provider.send("+355691234567", "Hello")

        assert result.success is False
        assert result.error_kind == ErrorKind.MISCONFIGURED_PROVIDER
        assert await provider.health_check() is False

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "vendor, expected",
        [
            ("queued", DeliveryStatus.PENDING),
            ("sent", DeliveryStatus.SENT),
            ("delivered", DeliveryStatus.DELIVERED),
            ("undelivered", DeliveryStatus.FAILED),
            ("something-new", DeliveryStatus.FAILED),
        ],
    )
    async def test_delivery_status(self, vendor, expected):
        provider = TwilioProvider(
            TWILIO_CONFIG,
            transport=httpx.MockTransport(lambda r: httpx.Response(200, json={"sid": "SM1", "status": vendor})),
        )
        result = await provider.delivery_status("SM1")
        assert result.status == expected
        assert result.vendor_status == vendor

    @pytest.mark.asyncio
    async def test_delivery_status_transport_error(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        provider = TwilioProvider(TWILIO_CONFIG, transport=httpx.MockTransport(handler))
        result = await provider.delivery_status("SM1")

        assert result.error_kind == ErrorKind.TIMEOUT

    def test_validate_config(self):
        provider = TwilioProvider(TWILIO_CONFIG)
        assert provider.validate_config(TWILIO_CONFIG) is True
        assert provider.validate_config(TwilioConfig("SK1", "t", "+15005550006")) is False
        assert provider.validate_config({"account_sid": "AC1"}) is False


class TestVonageProvider:
    @pytest.mark.asyncio
    async def test_send_success_strips_plus(self):
        seen = {}

        def handler(request):
            seen["form"] = dict(httpx.QueryParams(request.content.decode()))
            return httpx.Response(
                200,
                json={"messages": [{"status": "0", "message-id": "V-1", "message-price": "0.0072"}]},
            )

        provider = VonageProvider(VONAGE_CONFIG, transport=httpx.MockTransport(handler))
        result = await provider.send("+355691234567", "Hello")

        assert result.success is True
        assert result.message_id == "V-1"
        assert result.currency == "EUR"
        assert seen["form"]["to"] == "355691234567"
        assert seen["form"]["from"] == "447700900000"

    @pytest.mark.asyncio
    async def test_send_rejected(self):
        def handler(request):
            return httpx.Response(200, json={"messages": [{"status": "4", "error-text": "Bad Credentials"}]})

        provider = VonageProvider(VONAGE_CONFIG, transport=httpx.MockTransport(handler))
        result = await provider.send("+355691234567", "Hello")

        assert result.success is False
        assert result.error_code == "4"
        assert result.error == "Bad Credentials"

    @pytest.mark.asyncio
    async def test_empty_messages_is_protocol_error(self):
        provider = VonageProvider(
            VONAGE_CONFIG, transport=httpx.MockTransport(lambda r: httpx.Response(200, json={"messages": []}))
        )
        result = await provider.send("+355691234567", "Hello")
        assert result.error_kind == ErrorKind.PROTOCOL_ERROR

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "code, expected",
        [
            ("0", DeliveryStatus.SENT),
            ("1", DeliveryStatus.PENDING),
            ("5", DeliveryStatus.FAILED),
            ("12", DeliveryStatus.EXPIRED),
            ("13", DeliveryStatus.DELIVERED),
            ("99", DeliveryStatus.FAILED),
        ],
    )
    async def test_delivery_status_codes(self, code, expected):
        provider = VonageProvider(
            VONAGE_CONFIG, transport=httpx.MockTransport(lambda r: httpx.Response(200, json={"status": code}))
        )
        result = await provider.delivery_status("V-1")
        assert result.status == expected

    def test_validate_config(self):
        provider = VonageProvider(VONAGE_CONFIG)
        assert provider.is_configured is True
        assert provider.validate_config(VonageConfig("short", "0123456789abcdef", "+447700900000")) is False


class TestSnsProvider:
    @pytest.fixture
    def provider(self):
        return SnsProvider(SNS_CONFIG)

    @pytest.mark.asyncio
    async def test_send_success(self, provider):
        with patch.object(provider, "_session") as mock_session:
            mock_client = AsyncMock()
            mock_client.publish = AsyncMock(return_value={"MessageId": "sns-msg-456"})
            mock_session.create_client.return_value.__aenter__.return_value = mock_client

            result = await provider.send("+355691234567", "Hello via SMS!")

        assert result.success is True
        assert result.message_id == "sns-msg-456"
        assert result.cost == pytest.approx(0.00645)
        kwargs = mock_client.publish.call_args.kwargs
        assert kwargs["PhoneNumber"] == "+355691234567"
        assert kwargs["MessageAttributes"]["AWS.SNS.SMS.SenderID"]["StringValue"] == "MyApp"
        assert kwargs["MessageAttributes"]["AWS.SNS.SMS.SMSType"]["StringValue"] == "Transactional"

    @pytest.mark.asyncio
    async def test_client_error_is_rejected(self, provider):
        error = ClientError({"Error": {"Code": "InvalidParameter", "Message": "Invalid phone"}}, "Publish")
        with patch.object(provider, "_session") as mock_session:
            mock_client = AsyncMock()
            mock_client.publish = AsyncMock(side_effect=error)
            mock_session.create_client.return_value.__aenter__.return_value = mock_client

            result = await provider.send("+355691234567", "Hello")

        assert result.success is False
        assert result.error_kind == ErrorKind.REJECTED
        assert result.error_code == "InvalidParameter"

    @pytest.mark.asyncio
    async def test_connection_error_is_unreachable(self, provider):
        with patch.object(provider, "_session") as mock_session:
            mock_client = AsyncMock()
            mock_client.publish = AsyncMock(side_effect=EndpointConnectionError(endpoint_url="https://sns"))
            mock_session.create_client.return_value.__aenter__.return_value = mock_client

            result = await provider.send("+355691234567", "Hello")

        assert result.error_kind == ErrorKind.UNREACHABLE

    @pytest.mark.asyncio
    async def test_delivery_status_reports_sent(self, provider):
        result = await provider.delivery_status("sns-msg-456")
        assert result.status == DeliveryStatus.SENT

    def test_validate_config(self, provider):
        assert provider.is_configured is True
        assert provider.validate_config(SnsConfig("ASIA123", "s" * 40)) is False
        assert provider.validate_config(SnsConfig("AKIA123", "short")) is False
        assert provider.validate_config(SnsConfig("AKIA123", "s" * 40, region="EU WEST")) is False


class TestCostEstimate:
    def test_one_segment_two_recipients(self):
        provider = TwilioProvider(TWILIO_CONFIG)
        assert provider.estimate_cost("x" * 160, 2) == pytest.approx(0.015)

    def test_two_segments_two_recipients(self):
        provider = TwilioProvider(TWILIO_CONFIG)
        assert provider.pricing.segments("x" * 161) == 2
        assert provider.estimate_cost("x" * 161, 2) == pytest.approx(0.03)

    def test_empty_body_is_one_segment(self):
        assert TwilioProvider(TWILIO_CONFIG).pricing.segments("") == 1
