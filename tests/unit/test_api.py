import httpx
import pytest
from fastapi.testclient import TestClient

from sms_dispatch.gateway import GatewayAdapter
from sms_dispatch.main import app
from sms_dispatch.presentation.api.dependencies import get_dispatch_service, get_gateway_adapter

GATEWAY = {
    "base_address": "192.168.1.50",
    "port": 8080,
    "username": "admin",
    "password": "secret",
    "serial_number": "DWG-001",
}


def _gateway_handler(request: httpx.Request) -> httpx.Response:
    if request.url.path == "/api/login":
        return httpx.Response(200, json={"result": "ok", "token": "tok"})
    if request.url.path == "/api/get_sim_status":
        return httpx.Response(200, json=[{"port": 0, "msisdn": "+355691234567", "status": "ready", "signal": 22}])
    if request.url.path == "/api/send_sms":
        return httpx.Response(200, json={"error_code": 202})
    return httpx.Response(200, json={"error_code": 200, "status": "delivered"})


@pytest.fixture
def gateway():
    return GatewayAdapter(transport=httpx.MockTransport(_gateway_handler))


@pytest.fixture
def service(make_service, gateway):
    return make_service(groups={"vip": ["+355691111111", "+355692222222"]}, gateway=gateway)


@pytest.fixture
def client(service, gateway):
    app.dependency_overrides[get_dispatch_service] = lambda: service
    app.dependency_overrides[get_gateway_adapter] = lambda: gateway
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}

    def test_readiness(self, client):
        body = client.get("/health/ready").json()
        assert body["status"] == "ready"
        assert set(body["checks"]) == {"twilio", "vonage", "aws_sns", "gateway"}

    def test_correlation_id_is_echoed(self, client):
        response = client.get("/health", headers={"X-Request-ID": "req-123"})
        assert response.headers["X-Request-ID"] == "req-123"

    def test_unsafe_correlation_id_is_replaced(self, client):
        response = client.get("/health", headers={"X-Correlation-ID": "bad id with spaces"})
        assert response.headers["X-Correlation-ID"] != "bad id with spaces"
        assert response.headers["X-Request-ID"] == response.headers["X-Correlation-ID"]


class TestSendEndpoint:
    def test_send_success(self, client):
        response = client.post("/api/v1/sms/send", json={"recipient": "+355 69 123 4567", "message": "Hello"})

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["data"]["record"]["recipient"] == "+355691234567"
        assert body["data"]["record"]["provider"] == "twilio"
        assert body["data"]["attempts"][0]["success"] is True

    def test_all_providers_failing(self, client, providers):
        for provider in providers.values():
            provider.succeed = False

        response = client.post("/api/v1/sms/send", json={"recipient": "+355691234567", "message": "Hello"})

        assert response.status_code == 502
        body = response.json()
        assert body["success"] is False
        assert [a["provider"] for a in body["data"]["attempts"]] == ["twilio", "vonage", "aws_sns"]

    def test_missing_template(self, client):
        response = client.post("/api/v1/sms/send", json={"recipient": "+355691234567", "template_id": "nope"})

        assert response.status_code == 404
        assert response.json()["data"]["record"]["error_kind"] == "template_not_found"

    def test_through_gateway(self, client):
        response = client.post(
            "/api/v1/sms/send",
            json={"recipient": "+355691234567", "message": "Hi", "provider": "gateway", "port": 1, "gateway": GATEWAY},
        )

        assert response.status_code == 200
        record = response.json()["data"]["record"]
        assert record["provider"] == "gateway"
        assert record["sim_port"] == 1
        assert 1000 <= record["session_id"] <= 9999

    @pytest.mark.parametrize(
        "payload",
        [
            {"recipient": "not-a-number", "message": "Hi"},
            {"recipient": "+355691234567"},
            {"recipient": "+355691234567", "message": "x" * 1601},
        ],
    )
    def test_validation_errors(self, client, payload):
        assert client.post("/api/v1/sms/send", json=payload).status_code == 422


class TestBulkEndpoint:
    def test_queues_campaign(self, client, campaign_queue):
        response = client.post(
            "/api/v1/sms/bulk",
            json={"recipients": ["+355691111111", "+355693333333"], "contact_groups": ["vip"], "message": "Sale"},
        )

        assert response.status_code == 202
        data = response.json()["data"]
        assert data["total_recipients"] == 3
        assert data["status"] == "queued"
        assert campaign_queue.qsize() == 1

    def test_scheduled(self, client):
        response = client.post(
            "/api/v1/sms/bulk",
            json={"recipients": ["+355691111111"], "message": "Sale", "scheduled_at": "2030-01-01T09:00:00Z"},
        )
        assert response.json()["data"]["status"] == "scheduled"

    def test_missing_template(self, client):
        response = client.post("/api/v1/sms/bulk", json={"recipients": ["+355691111111"], "template_id": "nope"})
        assert response.status_code == 404

    def test_requires_audience(self, client):
        assert client.post("/api/v1/sms/bulk", json={"message": "Sale"}).status_code == 422

    def test_gateway_campaign_is_rejected(self, client, campaign_queue):
        response = client.post(
            "/api/v1/sms/bulk",
            json={"recipients": ["+355691111111"], "message": "Sale", "provider": "gateway"},
        )

        assert response.status_code == 400
        assert response.json()["data"]["status"] == "failed"
        assert campaign_queue.qsize() == 0


class TestOtherSmsEndpoints:
    def test_receive(self, client):
        response = client.post("/api/v1/sms/receive", json={"sender": "+355691234567", "message": "STOP"})

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["direction"] == "inbound"
        assert data["status"] == "received"

    def test_estimate(self, client):
        response = client.post("/api/v1/sms/estimate", json={"message": "x" * 161, "recipients": 2})

        data = response.json()["data"]
        assert data["segments"] == 2
        assert data["cost"] == pytest.approx(0.03)

    def test_estimate_unknown_provider(self, client):
        response = client.post("/api/v1/sms/estimate", json={"message": "hi", "provider": "gateway"})
        assert response.status_code == 400

    def test_providers(self, client):
        data = client.get("/api/v1/sms/providers").json()["data"]
        assert [p["slug"] for p in data] == ["twilio", "vonage", "aws_sns", "gateway"]

    def test_delivery_status(self, client):
        response = client.get("/api/v1/sms/delivery/twilio/twilio-1")

        assert response.status_code == 200
        assert response.json()["data"]["status"] == "delivered"

    def test_delivery_unknown_provider(self, client):
        assert client.get("/api/v1/sms/delivery/pigeon/abc").status_code == 404


class TestGatewayEndpoints:
    def test_connect(self, client):
        response = client.post("/api/v1/gateway/connect", json=GATEWAY)

        assert response.status_code == 200
        assert response.json()["success"] is True

    def test_channels(self, client):
        response = client.post("/api/v1/gateway/channels", json=GATEWAY)

        data = response.json()["data"]
        assert data["endpoint"] == "/api/get_sim_status"
        assert data["channels"] == [
            {
                "port": 0,
                "sim_number": "+355691234567",
                "status": "active",
                "operator": "Unknown",
                "signal": 22,
                "signal_estimated": False,
            }
        ]

    def test_channels_auth_failure(self, client):
        failing = GatewayAdapter(transport=httpx.MockTransport(lambda r: httpx.Response(401)))
        app.dependency_overrides[get_gateway_adapter] = lambda: failing

        response = client.post("/api/v1/gateway/channels", json=GATEWAY)

        assert response.status_code == 401
        assert response.json()["data"]["error_kind"] == "authentication_failed"

    def test_status(self, client):
        response = client.post("/api/v1/gateway/status", json={"credentials": GATEWAY, "session_id": 1234})

        data = response.json()["data"]
        assert data["status"] == "delivered"
        assert data["endpoint"] == "/api/check_status"

    def test_rejects_bad_port(self, client):
        assert client.post("/api/v1/gateway/connect", json={**GATEWAY, "port": 70000}).status_code == 422
