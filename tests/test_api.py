import json
import time
import uuid

import pytest
from starlette.websockets import WebSocketDisconnect

from fxdesk_api.api.routes import orders as orders_routes
from fxdesk_api.api.routes import organizations as organizations_routes
from fxdesk_api.core.errors import NotFoundError
from fxdesk_api.core.security import create_access_token
from fxdesk_api.services import orders as orders_service
from fxdesk_api.services.webhooks import sign_payload

from .conftest import WEBHOOK_SECRET


def test_health(client):
    response = client.get("/api/v1/health")
    assert response.status_code == 200
    assert response.json()["message"] == "Healthy"


def test_correlation_id_is_echoed(client):
    response = client.get("/api/v1/health", headers={"X-Correlation-ID": "corr-42"})
    assert response.headers["X-Correlation-ID"] == "corr-42"


def test_tenant_header_is_required(client):
    response = client.get("/api/v1/health/tenant")
    assert response.status_code == 400
    body = response.json()
    assert body["error"]["type"] == "http_error"
    assert body["path"] == "/api/v1/health/tenant"


def test_tenant_header_is_echoed(client, tenant_id):
    response = client.get("/api/v1/health/tenant", headers={"X-Tenant-ID": str(tenant_id)})
    assert response.json() == {"tenant_id": str(tenant_id)}


def test_websocket_info_lists_session_channel(client):
    endpoints = client.get("/api/v1/websocket-info").json()["endpoints"]
    assert [e["path"] for e in endpoints] == ["/ws/sessions"]


def test_webhook_without_svix_headers(client):
    response = client.post("/api/v1/webhooks/identity-provider", content=b"{}")
    assert response.status_code == 400
    assert response.json()["error"]["message"] == "Missing Svix headers"


def test_signed_webhook_is_handled(client, monkeypatch):
    handled = []

    class StubOrganizations:
        def __init__(self, session):
            pass

        async def handle_webhook_event(self, event):
            handled.append(event["type"])
            return {"ok": True}

    monkeypatch.setenv("IDENTITY_PROVIDER_WEBHOOK_SECRET", WEBHOOK_SECRET)
    monkeypatch.setattr(organizations_routes, "OrganizationService", StubOrganizations)

    body = json.dumps({"type": "organization.updated", "data": {"id": "org_1", "slug": "acme"}}).encode()
    timestamp = str(int(time.time()))
    headers = {
        "svix-id": "msg_9",
        "svix-timestamp": timestamp,
        "svix-signature": "v1," + sign_payload(WEBHOOK_SECRET, "msg_9", timestamp, body),
    }
    response = client.post("/api/v1/webhooks/identity-provider", content=body, headers=headers)

    assert response.status_code == 200
    assert response.json() == {"ok": True}
    assert handled == ["organization.updated"]


def _signed(body, message_id="msg_10"):
    timestamp = str(int(time.time()))
    return {
        "svix-id": message_id,
        "svix-timestamp": timestamp,
        "svix-signature": "v1," + sign_payload(WEBHOOK_SECRET, message_id, timestamp, body),
    }


def test_signed_webhook_with_malformed_data_is_rejected(client, monkeypatch):
    monkeypatch.setenv("IDENTITY_PROVIDER_WEBHOOK_SECRET", WEBHOOK_SECRET)

    body = json.dumps({"type": "organization.created", "data": "org_123"}).encode()
    response = client.post("/api/v1/webhooks/identity-provider", content=body, headers=_signed(body))
    assert response.status_code == 400
    assert response.json()["error"] == {
        "type": "business_rule",
        "message": "Missing organization fields",
        "details": None,
    }

    body = b"[]"
    response = client.post("/api/v1/webhooks/identity-provider", content=body, headers=_signed(body))
    assert response.status_code == 400
    assert response.json()["error"]["message"] == "Webhook payload must be a JSON object"


def test_domain_error_maps_to_envelope(as_membership, member, tenant_id, monkeypatch):
    class MissingOrders:
        def __init__(self, session):
            pass

        async def get(self, order_id):
            raise NotFoundError("Org order not found")

    monkeypatch.setattr(orders_routes, "OrderService", MissingOrders)
    client = as_membership(member)

    response = client.get(f"/api/v1/orders/{uuid.uuid4()}", headers={"X-Tenant-ID": str(tenant_id)})

    assert response.status_code == 404
    body = response.json()
    assert body["error"] == {"type": "not_found", "message": "Org order not found", "details": None}
    assert body["tenant_id"] == str(tenant_id)


def test_member_cannot_delete_orders(as_membership, member, tenant_id):
    client = as_membership(member)
    response = client.delete(f"/api/v1/orders/{uuid.uuid4()}", headers={"X-Tenant-ID": str(tenant_id)})
    assert response.status_code == 403


def test_quote_uses_org_currency_rates(as_membership, member, tenant_id, monkeypatch):
    class Currency:
        def __init__(self, ticker, rate):
            self.ticker, self.rate, self.type_of = ticker, rate, "FIAT"

    class StubCurrencies:
        def __init__(self, session):
            pass

        async def by_ticker(self):
            return {"CAD": Currency("CAD", 1.0), "USD": Currency("USD", 0.5)}

    monkeypatch.setattr(orders_service, "OrgCurrencyRepository", StubCurrencies)
    client = as_membership(member)

    response = client.post(
        "/api/v1/orders/quote",
        json={"inbound_ticker": "CAD", "outbound_ticker": "USD", "inbound_sum": 100},
        headers={"X-Tenant-ID": str(tenant_id)},
    )

    assert response.status_code == 200
    quote = response.json()
    assert quote["fx_rate"] == pytest.approx(2.0)
    assert quote["outbound_sum"] == pytest.approx(200)
    assert quote["final_rate"] == pytest.approx(2.04)


def test_quote_with_unknown_currency(as_membership, member, tenant_id, monkeypatch):
    class NoCurrencies:
        def __init__(self, session):
            pass

        async def by_ticker(self):
            return {}

    monkeypatch.setattr(orders_service, "OrgCurrencyRepository", NoCurrencies)
    response = as_membership(member).post(
        "/api/v1/orders/quote",
        json={"inbound_ticker": "CAD", "outbound_ticker": "USD", "inbound_sum": 100},
        headers={"X-Tenant-ID": str(tenant_id)},
    )
    assert response.status_code == 400
    assert response.json()["error"]["type"] == "business_rule"


def test_session_socket_greets_and_answers_ping(client, tenant_id):
    token = create_access_token(str(uuid.uuid4()), str(tenant_id))
    with client.websocket_connect(f"/ws/sessions?token={token}", headers={"X-Tenant-ID": str(tenant_id)}) as ws:
        greeting = ws.receive_json()
        assert greeting["type"] == "connected"
        assert greeting["payload"]["topic"] == f"sessions:{tenant_id}"
        ws.send_text("ping")
        assert ws.receive_text() == "pong"


def test_session_socket_without_token_is_closed(client, tenant_id):
    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect("/ws/sessions", headers={"X-Tenant-ID": str(tenant_id)}) as ws:
            ws.receive_text()
    assert exc.value.code == 4401


def test_session_socket_for_another_tenant_is_closed(client, tenant_id):
    token = create_access_token(str(uuid.uuid4()), str(uuid.uuid4()))
    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect(f"/ws/sessions?token={token}", headers={"X-Tenant-ID": str(tenant_id)}) as ws:
            ws.receive_text()
    assert exc.value.code == 4403
