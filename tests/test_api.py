import pytest
from fastapi import Depends
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from storefront.api.deps import get_order_service
from storefront.data.database import get_db
from storefront.main import create_app
from storefront.services.order_service import OrderService

from tests.conftest import VALID_ADDRESS, FakeLock, memory_database

ADMIN = {"X-User-Id": "999", "X-User-Role": "admin"}


def user_headers(user_id):
    return {"X-User-Id": str(user_id)}


@pytest.fixture
def client(notifier):
    app = create_app(database=memory_database())

    def order_service(db: Session = Depends(get_db)):
        return OrderService(db, notifier=notifier, lock_service=FakeLock())

    app.dependency_overrides[get_order_service] = order_service
    with TestClient(app) as c:
        yield c


@pytest.fixture
def shopper(client):
    user = client.post("/users/", json={"name": "Ana", "email": "ana@example.com"}).json()
    product = client.post(
        "/products/",
        json={"title": "Kombucha", "price": "10000", "stock": 5, "category": "fermentos"},
        headers=ADMIN,
    ).json()
    client.post(
        "/carts/me/items",
        json={"product_id": product["id"], "quantity": 2},
        headers=user_headers(user["id"]),
    )
    return user, product


def _place(client, user):
    return client.post(
        "/orders/",
        json={"shipping_address": VALID_ADDRESS, "payment_method": "credit_card"},
        headers=user_headers(user["id"]),
    )


def test_health(client):
    assert client.get("/health").json() == {"status": "ok", "database": "ok"}


def test_checkout_flow(client, shopper, notifier):
    user, product = shopper

    response = _place(client, user)

    assert response.status_code == 201
    body = response.json()
    assert body["unavailable_products"] == []
    order = body["order"]
    assert order["status"] == "pending"
    assert order["items"][0]["product_snapshot"]["title"] == "Kombucha"
    assert float(order["total"]) == 28800
    assert client.get(f"/products/{product['id']}").json()["stock"] == 3
    assert client.get("/carts/me", headers=user_headers(user["id"])).json()["items"] == []
    assert notifier.kinds() == ["created"]


def test_empty_cart_is_bad_request(client, shopper):
    user, _ = shopper
    _place(client, user)

    response = _place(client, user)

    assert response.status_code == 400
    assert response.json()["detail"]["message"] == "Cart is empty"


def test_missing_address_field_is_rejected(client, shopper):
    user, _ = shopper
    address = {k: v for k, v in VALID_ADDRESS.items() if k != "city"}

    response = client.post(
        "/orders/",
        json={"shipping_address": address, "payment_method": "credit_card"},
        headers=user_headers(user["id"]),
    )

    assert response.status_code == 422


def test_other_user_cannot_read_or_cancel(client, shopper):
    user, _ = shopper
    order_id = _place(client, user).json()["order"]["id"]
    intruder = {"X-User-Id": str(user["id"] + 100)}

    assert client.get(f"/orders/{order_id}", headers=intruder).status_code == 403
    assert client.post(f"/orders/{order_id}/cancel", json={"reason": "x"}, headers=intruder).status_code == 403


def test_owner_cancel_restores_stock(client, shopper):
    user, product = shopper
    order_id = _place(client, user).json()["order"]["id"]

    response = client.post(
        f"/orders/{order_id}/cancel", json={"reason": "changed my mind"}, headers=user_headers(user["id"])
    )

    assert response.status_code == 200
    assert response.json()["cancellation"]["reason"] == "changed my mind"
    assert client.get(f"/products/{product['id']}").json()["stock"] == 5


def test_admin_lifecycle_and_stats(client, shopper):
    user, _ = shopper
    order_id = _place(client, user).json()["order"]["id"]

    paid = client.post(f"/orders/{order_id}/confirm-payment", json={"transaction_id": "tx-1"}, headers=ADMIN)
    shipped = client.patch(f"/orders/{order_id}/status", json={"status": "shipped"}, headers=ADMIN)
    invalid = client.patch(f"/orders/{order_id}/status", json={"status": "pending"}, headers=ADMIN)
    stats = client.get("/orders/stats", headers=ADMIN).json()

    assert paid.json()["payment"]["status"] == "approved"
    assert shipped.json()["tracking"]["shipped_at"] is not None
    assert invalid.status_code == 409
    assert stats["total_orders"] == 1
    assert stats["by_status"]["shipped"] == 1


def test_admin_endpoints_require_admin(client, shopper):
    user, _ = shopper

    assert client.get("/orders/", headers=user_headers(user["id"])).status_code == 403
    assert client.get("/orders/stats", headers=user_headers(user["id"])).status_code == 403


def test_my_orders_pagination(client, shopper):
    user, _ = shopper
    _place(client, user)

    body = client.get("/orders/me?limit=5", headers=user_headers(user["id"])).json()

    assert body["pagination"] == {
        "page": 1, "limit": 5, "total": 1, "pages": 1, "has_next": False, "has_prev": False,
    }
    assert len(body["orders"]) == 1


def test_stats_accepts_mixed_date_bounds(client, shopper):
    user, _ = shopper
    _place(client, user)

    response = client.get(
        "/orders/stats",
        params={"start_date": "2020-01-01T00:00:00Z", "end_date": "2099-12-01T00:00:00"},
        headers=ADMIN,
    )

    assert response.status_code == 200
    assert response.json()["total_orders"] == 1
