import io
import json
import os
import sys
from decimal import Decimal
from urllib.error import HTTPError, URLError

import pytest

sys.path.append(os.path.join(os.path.dirname(__file__), ".."))

from cleanstock import create_app
from cleanstock.errors import StoreError
from cleanstock.extensions import db
from cleanstock.services import messaging
from cleanstock.services.inventory_container import get_inventory
from cleanstock.services.inventory_state import ItemDraft


@pytest.fixture
def app():
    app = create_app(
        {
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
            "TWILIO_SID": "AC123",
            "TWILIO_AUTH_TOKEN": "token",
            "TWILIO_PHONE_NUMBER": "+15550001111",
        }
    )
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def detergent(app):
    return get_inventory().add_item(
        ItemDraft(
            name="Detergente",
            category="Detergentes",
            unit="litro",
            quantity=Decimal("10"),
            min_stock=Decimal("5"),
            unit_price=Decimal("2.50"),
        )
    )


class FakeResponse:
    def __init__(self, payload):
        self._body = json.dumps(payload).encode("utf-8")

    def read(self):
        return self._body

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


def test_list_and_get_items(client, detergent):
    response = client.get("/api/items?q=DETER")
    data = response.get_json()
    assert data["count"] == 1
    assert data["items"][0]["name"] == "Detergente"
    assert data["items"][0]["status"] == "ok"

    assert client.get("/api/items?category=Otros").get_json()["count"] == 0
    # Query parameters never change the remembered list filters.
    assert get_inventory().state.search_term == ""

    single = client.get(f"/api/items/{detergent.id}").get_json()
    assert single["quantity"] == "10.00"
    assert client.get("/api/items/missing").status_code == 404


def test_stock_endpoint(client, detergent):
    response = client.post(
        f"/api/items/{detergent.id}/stock", json={"delta": -12, "reason": "loss"}
    )
    assert response.status_code == 200
    data = response.get_json()
    assert data["item"]["quantity"] == "0.00"
    assert data["item"]["status"] == "out"
    assert data["movement"]["type"] == "outbound"
    assert data["movement"]["quantity"] == "12.00"


def test_stock_endpoint_validation(client, detergent):
    assert client.post(f"/api/items/{detergent.id}/stock", json={"reason": "x"}).status_code == 400
    assert client.post(f"/api/items/{detergent.id}/stock", json={"delta": 1}).status_code == 400
    assert client.post("/api/items/missing/stock", json={"delta": 1, "reason": "x"}).status_code == 404


def test_stock_endpoint_partial_failure(client, detergent, monkeypatch):
    def broken_insert(draft):
        raise StoreError("ledger offline", operation="insert_movement")

    monkeypatch.setattr(get_inventory().store, "insert_movement", broken_insert)

    response = client.post(
        f"/api/items/{detergent.id}/stock", json={"delta": 1, "reason": "purchase"}
    )
    assert response.status_code == 500
    data = response.get_json()
    assert data["movement_recorded"] is False
    assert data["committed_quantity"] == "11.00"


def test_summary(client, detergent):
    get_inventory().update_stock(detergent.id, -6, "operational_use")
    data = client.get("/api/summary").get_json()
    assert data["total_items"] == 1
    assert data["low_stock_count"] == 1
    assert data["out_of_stock_count"] == 0
    assert data["total_value"] == "10.00"
    assert data["category_breakdown"] == [
        {"category": "Detergentes", "count": 1, "percent": 100.0}
    ]


def test_send_report_rejects_other_methods(client):
    response = client.get("/api/send-report")
    assert response.status_code == 405
    assert response.get_json() == {"success": False, "error": "Method not allowed"}


def test_send_report_requires_parameters(client):
    response = client.post("/api/send-report", json={"to": "+34600000000"})
    assert response.status_code == 400
    assert response.get_json()["success"] is False


def test_send_report_relays_to_twilio(client, monkeypatch):
    captured = {}

    def fake_urlopen(request, timeout=None):
        captured["url"] = request.full_url
        captured["body"] = request.data.decode("utf-8")
        captured["auth"] = request.get_header("Authorization")
        return FakeResponse({"sid": "SM42"})

    monkeypatch.setattr(messaging, "urlopen", fake_urlopen)

    response = client.post(
        "/api/send-report",
        json={"to": "+34600000000", "mediaUrl": "https://stock.example.com/r.pdf"},
    )
    assert response.status_code == 200
    assert response.get_json() == {"success": True, "sid": "SM42"}
    assert captured["url"] == "https://api.twilio.com/2010-04-01/Accounts/AC123/Messages.json"
    assert "To=whatsapp%3A%2B34600000000" in captured["body"]
    assert "From=whatsapp%3A%2B15550001111" in captured["body"]
    assert captured["auth"].startswith("Basic ")


def test_send_report_provider_error(client, monkeypatch):
    def failing_urlopen(request, timeout=None):
        raise HTTPError(
            request.full_url,
            401,
            "Unauthorized",
            {},
            io.BytesIO(b'{"message": "Authenticate"}'),
        )

    monkeypatch.setattr(messaging, "urlopen", failing_urlopen)

    response = client.post(
        "/api/send-report", json={"to": "+34600000000", "mediaUrl": "https://x/r.pdf"}
    )
    assert response.status_code == 500
    assert response.get_json() == {"success": False, "error": "Authenticate"}


def test_send_report_network_error(client, monkeypatch):
    def unreachable(request, timeout=None):
        raise URLError("connection refused")

    monkeypatch.setattr(messaging, "urlopen", unreachable)

    response = client.post(
        "/api/send-report", json={"to": "+34600000000", "mediaUrl": "https://x/r.pdf"}
    )
    assert response.status_code == 500
    assert response.get_json()["success"] is False


def test_send_report_accepts_numeric_phone(client, monkeypatch):
    captured = {}

    def fake_urlopen(request, timeout=None):
        captured["body"] = request.data.decode("utf-8")
        return FakeResponse({"sid": "SM7"})

    monkeypatch.setattr(messaging, "urlopen", fake_urlopen)

    response = client.post(
        "/api/send-report", json={"to": 5215550000, "mediaUrl": "https://x/r.pdf"}
    )
    assert response.status_code == 200
    assert response.get_json() == {"success": True, "sid": "SM7"}
    assert "To=whatsapp%3A5215550000" in captured["body"]


def test_send_report_rejects_non_object_body(client):
    response = client.post("/api/send-report", json=["+34600000000", "https://x/r.pdf"])
    assert response.status_code == 400
    data = response.get_json()
    assert data["success"] is False
    assert data["error"] == "Request body must be a JSON object"


def test_stock_endpoint_coerces_or_rejects_odd_payloads(client, detergent):
    response = client.post(
        f"/api/items/{detergent.id}/stock", json={"delta": 2, "reason": 7}
    )
    assert response.status_code == 200
    assert response.get_json()["movement"]["reason"] == "7"

    assert client.post(f"/api/items/{detergent.id}/stock", json=[1, "x"]).status_code == 400
    assert (
        client.post(
            f"/api/items/{detergent.id}/stock", json={"delta": [1], "reason": "x"}
        ).status_code
        == 400
    )
