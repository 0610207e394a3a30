from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from checkout.api.dependencies import (
    get_lock_service,
    get_notifier,
    get_product_client,
    get_shipping_client,
)
from checkout.data.database import get_db, get_session_factory
from checkout.dev_services.main import app as dev_app
from checkout.main import create_app

from tests.conftest import quote

ADMIN = {"X-Admin-API-Key": "test-admin-key"}
ADDRESS = "Rua da Consolacao, 200 - 01302-000"


@pytest.fixture
def client(session_factory, products, shipping, notifier, lock_service):
    app = create_app(create_tables=False)

    def override_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_product_client] = lambda: products
    app.dependency_overrides[get_shipping_client] = lambda: shipping
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_lock_service] = lambda: lock_service

    with TestClient(app) as c:
        yield c


def restock(client, product_id, delta):
    r = client.post(
        f"/inventory/{product_id}/adjust",
        json={"delta": delta, "reason": "restock", "performed_by": "tester"},
    )
    assert r.status_code == 200, r.text
    return r.json()


def place_order(client, owner="u1", product_id="P", quantity=1):
    client.post(f"/carts/{owner}/items", json={"product_id": product_id, "quantity": quantity})
    r = client.post("/orders/", json={"owner_id": owner, "shipping_address": ADDRESS})
    assert r.status_code == 201, r.text
    return r.json()


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "running"


def test_cart_endpoints(client):
    assert client.get("/carts/u1").json()["items"] == []

    r = client.post("/carts/u1/items", json={"product_id": "P", "quantity": 2})
    assert r.status_code == 200
    assert r.json()["total_items"] == 2

    r = client.put("/carts/u1/items/P", json={"quantity": 5})
    assert r.json()["items"] == [{"product_id": "P", "quantity": 5}]

    r = client.put("/carts/u1/items/Q", json={"quantity": 5})
    assert r.status_code == 404

    r = client.delete("/carts/u1/items/P")
    assert r.json()["items"] == []

    client.post("/carts/u1/items", json={"product_id": "Q", "quantity": 1})
    assert client.delete("/carts/u1").json()["total_items"] == 0


def test_cart_rejects_non_positive_quantity(client):
    r = client.post("/carts/u1/items", json={"product_id": "P", "quantity": 0})
    assert r.status_code == 422


def test_checkout_creates_order(client, shipping):
    shipping.quotes = [quote("Jadlog", "12.30")]
    restock(client, "P", 10)
    client.post("/carts/u1/items", json={"product_id": "P", "quantity": 2})

    r = client.post("/orders/", json={"owner_id": "u1", "shipping_address": ADDRESS, "payment_method": "card"})

    assert r.status_code == 201
    body = r.json()
    assert body["status"] == "pending"
    assert Decimal(body["total"]) == Decimal("32.30")
    assert body["shipping"]["method"] == "Jadlog"
    assert body["payment"] == {"method": "card", "status": "pending", "transaction_id": None}
    assert body["items"][0]["product_id"] == "P"
    assert client.get("/inventory/P").json()["quantity"] == 8
    assert client.get("/carts/u1").json()["items"] == []


def test_checkout_empty_cart(client):
    r = client.post("/orders/", json={"owner_id": "u1", "shipping_address": ADDRESS})
    assert r.status_code == 400


def test_checkout_reports_violations(client):
    restock(client, "P", 1)
    client.post("/carts/u1/items", json={"product_id": "P", "quantity": 3})
    client.post("/carts/u1/items", json={"product_id": "ghost", "quantity": 1})

    r = client.post("/orders/", json={"owner_id": "u1", "shipping_address": ADDRESS})

    assert r.status_code == 422
    violations = {v["product_id"]: v for v in r.json()["detail"]["violations"]}
    assert violations["P"] == {"product_id": "P", "requested": 3, "available": 1, "reason": "insufficient_stock"}
    assert violations["ghost"]["reason"] == "product_not_found"


def test_order_queries_are_scoped_to_owner(client):
    restock(client, "P", 10)
    order = place_order(client, owner="u1")

    assert client.get(f"/orders/{order['id']}", params={"owner_id": "u1"}).status_code == 200
    assert client.get(f"/orders/{order['id']}", params={"owner_id": "u2"}).status_code == 404
    assert [o["id"] for o in client.get("/orders/", params={"owner_id": "u1"}).json()] == [order["id"]]
    assert client.get("/orders/", params={"owner_id": "u2"}).json() == []


def test_payment_then_cancel(client):
    restock(client, "P", 10)
    order = place_order(client, quantity=3)

    r = client.post(f"/orders/{order['id']}/payment", json={"success": True, "transaction_id": "tx-9"})
    assert r.json()["status"] == "paid"
    assert r.json()["payment"]["transaction_id"] == "tx-9"

    r = client.post(f"/orders/{order['id']}/payment", json={"success": True})
    assert r.status_code == 409

    r = client.post(f"/orders/{order['id']}/cancel", params={"owner_id": "u1"})
    assert r.status_code == 200
    assert r.json()["status"] == "cancelled"
    assert client.get("/inventory/P").json()["quantity"] == 10


def test_admin_requires_key(client):
    assert client.get("/admin/orders/").status_code == 403
    assert client.get("/admin/orders/", headers={"X-Admin-API-Key": "wrong"}).status_code == 403
    assert client.get("/admin/orders/", headers=ADMIN).status_code == 200


def test_admin_status_updates(client):
    restock(client, "P", 10)
    order = place_order(client)
    url = f"/admin/orders/{order['id']}/status"

    r = client.patch(url, json={"status": "delivered"}, headers=ADMIN)
    assert r.status_code == 409
    assert r.json()["detail"]["current"] == "pending"

    for status in ("paid", "shipped", "delivered"):
        r = client.patch(url, json={"status": status}, headers=ADMIN)
        assert r.status_code == 200
        assert r.json()["status"] == status

    stats = client.get("/admin/orders/stats", headers=ADMIN).json()
    assert stats["orders_by_status"] == {"delivered": 1}
    assert Decimal(stats["total_revenue"]) == Decimal(order["total"])

    listed = client.get("/admin/orders/", params={"status": "delivered"}, headers=ADMIN).json()
    assert [o["id"] for o in listed] == [order["id"]]


def test_admin_cancel_of_shipped_order_is_rejected(client):
    restock(client, "P", 10)
    order = place_order(client)
    for status in ("paid", "shipped"):
        client.patch(f"/admin/orders/{order['id']}/status", json={"status": status}, headers=ADMIN)

    r = client.post(f"/admin/orders/{order['id']}/cancel", headers=ADMIN)

    assert r.status_code == 409
    assert client.get("/inventory/P").json()["quantity"] == 9


def test_inventory_endpoints(client):
    restock(client, "P", 50)
    restock(client, "Q", 3)

    assert client.get("/inventory/nope").status_code == 404

    r = client.post(
        "/inventory/P/adjust",
        json={"delta": 1, "reason": "stolen", "performed_by": "tester"},
    )
    assert r.status_code == 400

    r = client.put("/inventory/P/threshold", json={"threshold": 100})
    assert r.json()["low_stock_threshold"] == 100
    assert client.put("/inventory/nope/threshold", json={"threshold": 1}).status_code == 404

    alerts = client.get("/inventory/alerts/low-stock").json()
    assert {a["product_id"] for a in alerts} == {"P", "Q"}

    assert client.get("/inventory/summary").json() == {
        "total_products": 2,
        "total_quantity": 53,
        "low_stock_count": 2,
        "out_of_stock_count": 0,
    }

    batch = client.post("/inventory/batch", json={"product_ids": ["P", "Q", "nope"]}).json()
    assert set(batch) == {"P", "Q"}
    assert batch["Q"]["available"] == 3


def test_dev_mock_services():
    dev = TestClient(dev_app)

    assert dev.get("/products/1").json()["price"] == 199.99
    assert dev.get("/products/99").status_code == 404

    r = dev.post(
        "/shipment/calculate",
        json={
            "from": {"postal_code": "01001-000"},
            "to": {"postal_code": "20040-002"},
            "package": {"weight": 1000, "width": 20, "height": 10, "length": 30},
            "services": ["jadlog", "teleport"],
        },
    )
    quotes = r.json()
    assert quotes[0] == {
        "name": "Jadlog",
        "price": "18.50",
        "delivery_time": 4,
        "company": {"name": "Jadlog"},
    }
    assert quotes[1]["error"]
