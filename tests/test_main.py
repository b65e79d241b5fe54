from datetime import datetime, timezone

import httpx
import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient

from group_order_service.config import config
from group_order_service.credentials import SessionCredentialStore
from group_order_service.main import app, check_service_window

LINK = "https://www.ubereats.com/group-orders/6f1c2d3e-aaaa-bbbb-cccc-1234567890ab/join"
ENV_TOKEN = "env-session-token-0123456789"


class Upstream:
    """Canned provider; every request gets a freshly built response."""

    def __init__(self) -> None:
        self.join_status = 200
        self.join_body: dict = {"data": {}}
        self.checkout_body: dict = {"data": {}}
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path.endswith("addMemberToDraftOrderV1"):
            return httpx.Response(self.join_status, json=self.join_body)
        if path.endswith("getCheckoutPresentationV1"):
            return httpx.Response(200, json=self.checkout_body)
        return httpx.Response(404)


@pytest.fixture
def upstream():
    return Upstream()


@pytest.fixture
def client(tmp_path, upstream):
    transport = httpx.MockTransport(upstream)
    app.state.credentials = SessionCredentialStore(tmp_path / "sid.json", ENV_TOKEN, transport=transport)
    app.state.transport = transport
    yield TestClient(app)
    app.state.credentials = None
    app.state.transport = None


def _headers(**extra):
    return {"X-API-Key": config.api_key, **extra}


def _cart(*charges, items=()):
    return {
        "status": "success",
        "data": {
            "checkoutPayloads": {
                "fareBreakdown": {"charges": list(charges)},
                "cartItems": {"cartItems": list(items)},
            }
        },
    }


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "sid_configured": True}


def test_lookup_rejects_wrong_api_key(client):
    resp = client.post("/group-orders/lookup", json={"url": LINK}, headers={"X-API-Key": "wrong"})
    assert resp.status_code == 401


def test_lookup_requires_url(client):
    resp = client.post("/group-orders/lookup", json={"url": "   "}, headers=_headers())
    assert resp.status_code == 400
    assert resp.json()["detail"] == "URL is required"


def test_lookup_rejects_placeholder(client, upstream):
    url = "https://www.ubereats.com/group-orders/your-group-order-id/join"
    resp = client.post("/group-orders/lookup", json={"url": url}, headers=_headers())
    assert resp.status_code == 400
    assert "placeholder" in resp.json()["detail"]
    assert upstream.requests == []


def test_lookup_failure_is_reported(client, upstream):
    upstream.join_status = 503
    resp = client.post("/group-orders/lookup", json={"url": LINK}, headers=_headers())
    assert resp.status_code == 400
    assert resp.json() == {"success": False, "message": "join failed: 503"}


def test_lookup_empty_cart_is_rejected(client, upstream):
    upstream.checkout_body = _cart()
    resp = client.post("/group-orders/lookup", json={"url": LINK}, headers=_headers())
    assert resp.status_code == 400
    assert resp.json() == {"success": False, "message": "No items found in the order"}


def test_lookup_success(client, upstream):
    upstream.checkout_body = _cart(
        {"title": "Subtotal", "amount": 15.0},
        {"title": "Delivery Fee", "amount": 2.49},
        {"title": "Tax", "amount": 1.2},
        items=[{"title": "Pad Thai", "quantity": 1, "price": {"text": "$15.00"}}],
    )
    resp = client.post(
        "/group-orders/lookup",
        json={"url": LINK},
        headers=_headers(**{"X-Request-ID": "req-42"}),
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["request_id"] == "req-42"
    assert len(body["trace_id"]) == 32

    data = body["data"]
    assert data["pricing"]["subtotal"] == 15.0
    assert data["pricing"]["delivery_fee"] == 2.49
    assert data["pricing"]["total"] == 18.69
    assert data["pricing"]["currency"] == "USD"
    assert data["items"] == [{"name": "Pad Thai", "quantity": 1, "price": 15.0, "customizations": []}]
    assert data["delivery"]["coordinates"] is None
    assert set(data) == {"pricing", "uber_one", "restaurant", "delivery", "items", "customer_details"}


def test_lookup_rewrites_legacy_host(client, upstream):
    upstream.checkout_body = _cart({"title": "Subtotal", "amount": 15.0})
    url = LINK.replace("https://www.ubereats.com", "https://eats.uber.com")
    resp = client.post("/group-orders/lookup", json={"url": url}, headers=_headers())

    assert resp.status_code == 200
    page_fetches = [r for r in upstream.requests if r.method == "GET" and "group-orders" in r.url.path]
    assert [str(r.url.host) for r in page_fetches] == ["www.ubereats.com"]


def test_lookup_stores_caller_sid(client, upstream):
    upstream.checkout_body = _cart({"title": "Subtotal", "amount": 15.0})
    caller_sid = "caller-session-token-abcdefghij"

    client.post("/group-orders/lookup", json={"url": LINK, "sid": "too-short"}, headers=_headers())
    assert app.state.credentials.token == ENV_TOKEN

    client.post("/group-orders/lookup", json={"url": LINK, "sid": caller_sid}, headers=_headers())
    assert app.state.credentials.token == caller_sid
    join = [r for r in upstream.requests if r.url.path.endswith("addMemberToDraftOrderV1")][-1]
    assert join.headers["cookie"] == f"sid={caller_sid}"


def test_update_and_read_sid(client):
    resp = client.post("/sid", json={"sid": "  fresh-session-token-value  "}, headers=_headers())
    assert resp.status_code == 200
    assert resp.json() == {"success": True, "sid_preview": "fresh-sess..."}

    resp = client.get("/sid", headers=_headers())
    body = resp.json()
    assert body["sid_preview"] == "fresh-sess..."
    assert body["expires_at"] is not None
    assert body["is_expired"] is False


def test_update_sid_rejects_blank(client):
    resp = client.post("/sid", json={"sid": "   "}, headers=_headers())
    assert resp.status_code == 400


def test_service_window():
    window = ("09:00", "17:00")
    check_service_window(None)
    check_service_window(window, now=datetime(2026, 3, 2, 12, 30, tzinfo=timezone.utc))
    with pytest.raises(HTTPException) as excinfo:
        check_service_window(window, now=datetime(2026, 3, 2, 18, 0, tzinfo=timezone.utc))
    assert excinfo.value.status_code == 400
