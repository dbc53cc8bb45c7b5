"""Tests for the HTTP surface (cartengine.api)."""

import uuid

import pytest
from fastapi.testclient import TestClient

from cartengine.api import create_app
from cartengine.api.deps import get_cart_service, get_order_service
from cartengine.data.database import get_db
from cartengine.services.cart_service import CartService
from cartengine.services.order_service import OrderService

ORDER_PAYLOAD = {
    "shipping_method": {"id": "standard", "name": "Standard", "price": "5.00"},
    "payment_method": "paypal",
    "shipping_address": {
        "first_name": "Anna",
        "last_name": "Nowak",
        "address_line1": "1 Main St",
        "city": "Toronto",
        "postal_code": "M5V 2T6",
        "country": "CA",
    },
}


@pytest.fixture
def client(db, product_client, numbering, notifications):
    app = create_app()
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_cart_service] = lambda: CartService(db, product_client)
    app.dependency_overrides[get_order_service] = lambda: OrderService(
        db, numbering=numbering, notifications=notifications
    )
    return TestClient(app)


@pytest.fixture
def lamp(factory):
    product = factory.product("Lamp", price="40.00")
    factory.pooled(product, available=3)
    return product


GUEST = {"X-Session-Id": "sess-1"}


def add_item(client, cart_id, product, quantity, headers=GUEST):
    return client.post(
        f"/carts/{cart_id}/items", json={"product_id": str(product.id), "quantity": quantity}, headers=headers
    )


def new_cart(client, session_id="sess-1"):
    resp = client.post("/carts", headers={"X-Session-Id": session_id})
    assert resp.status_code == 200
    return resp.json()


class TestHealth:
    def test_ok(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"


class TestCartsApi:
    def test_create_requires_identity(self, client):
        assert client.post("/carts").status_code == 422

    def test_create_for_user(self, client):
        user_id = uuid.uuid4()
        resp = client.post("/carts", headers={"X-User-Id": str(user_id)})
        assert resp.status_code == 200
        assert resp.json()["user_id"] == str(user_id)

    def test_invalid_user_header(self, client):
        assert client.post("/carts", headers={"X-User-Id": "not-a-uuid"}).status_code == 422

    def test_add_update_remove(self, client, lamp):
        cart = new_cart(client)

        resp = add_item(client, cart["id"], lamp, 2)
        assert resp.status_code == 200
        body = resp.json()
        assert body["subtotal"] == "80.00"
        item_id = body["items"][0]["id"]

        resp = client.patch(f"/carts/items/{item_id}", json={"quantity": 3}, headers=GUEST)
        assert resp.status_code == 200
        assert resp.json()["total_amount"] == "120.00"

        resp = client.delete(f"/carts/items/{item_id}", headers=GUEST)
        assert resp.status_code == 200
        assert resp.json()["items"] == []

    def test_insufficient_stock_is_conflict(self, client, lamp):
        cart = new_cart(client)
        resp = add_item(client, cart["id"], lamp, 4)
        assert resp.status_code == 409
        assert resp.json()["detail"] == "Insufficient stock for Lamp"

    def test_zero_quantity_rejected(self, client, lamp):
        cart = new_cart(client)
        resp = add_item(client, cart["id"], lamp, 0)
        assert resp.status_code == 422

    def test_unknown_cart(self, client):
        assert client.get(f"/carts/{uuid.uuid4()}").status_code == 404

    def test_apply_and_clear_discount(self, client, factory, lamp):
        factory.discount(code="SAVE10", value="10")
        cart = new_cart(client)
        add_item(client, cart["id"], lamp, 1)

        resp = client.post(f"/carts/{cart['id']}/discount", json={"code": "save10"}, headers=GUEST)
        assert resp.status_code == 200
        assert resp.json()["discount_amount"] == "4.00"
        assert resp.json()["applied_discount"]["code"] == "SAVE10"

        resp = client.delete(f"/carts/{cart['id']}/discount", headers=GUEST)
        assert resp.status_code == 200
        assert resp.json()["discount_amount"] == "0.00"

    def test_inapplicable_discount_is_bad_request(self, client, lamp):
        cart = new_cart(client)
        add_item(client, cart["id"], lamp, 1)

        resp = client.post(f"/carts/{cart['id']}/discount", json={"code": "NOPE"}, headers=GUEST)

        assert resp.status_code == 400
        assert resp.json()["detail"] == "Invalid discount code"

    def test_merge_requires_user(self, client):
        cart = new_cart(client)
        assert client.post(f"/carts/{cart['id']}/merge").status_code == 401

    def test_merge_guest_cart(self, client, lamp):
        guest = new_cart(client, session_id="guest")
        add_item(client, guest["id"], lamp, 1, headers={"X-Session-Id": "guest"})
        user_id = uuid.uuid4()

        resp = client.post(
            f"/carts/{guest['id']}/merge",
            headers={"X-User-Id": str(user_id), "X-Session-Id": "guest"},
        )

        assert resp.status_code == 200
        assert resp.json()["user_id"] == str(user_id)
        assert resp.json()["item_count"] == 1


class TestOrdersApi:
    def test_place_and_read_order(self, client, lamp):
        cart = new_cart(client)
        add_item(client, cart["id"], lamp, 1)

        resp = client.post("/orders", json={"cart_id": cart["id"], **ORDER_PAYLOAD}, headers=GUEST)
        assert resp.status_code == 201
        placed = resp.json()
        assert placed["order_number"] == "ORD-26-10-000001"
        assert placed["warnings"] == []

        resp = client.get(f"/orders/{placed['order_id']}", headers=GUEST)
        assert resp.status_code == 200
        order = resp.json()
        assert order["payment_method"] == "paypal"
        assert order["total_amount"] == "45.00"
        assert order["shipping_address"]["country"] == "CA"
        assert order["items"][0]["product_name"] == "Lamp"

    def test_empty_cart_is_bad_request(self, client):
        cart = new_cart(client)
        resp = client.post("/orders", json={"cart_id": cart["id"], **ORDER_PAYLOAD}, headers=GUEST)
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Cart is empty"

    def test_unknown_order(self, client):
        assert client.get(f"/orders/{uuid.uuid4()}").status_code == 404


class TestAccessApi:
    def test_cart_of_other_session_is_forbidden(self, client):
        cart = new_cart(client)
        resp = client.get(f"/carts/{cart['id']}", headers={"X-Session-Id": "sess-2"})
        assert resp.status_code == 403
        assert resp.json()["detail"] == "Access to this cart is denied"

    def test_cart_of_other_user_is_forbidden(self, client):
        owner = uuid.uuid4()
        cart = client.post("/carts", headers={"X-User-Id": str(owner)}).json()

        assert client.get(f"/carts/{cart['id']}", headers={"X-User-Id": str(owner)}).status_code == 200
        assert client.get(f"/carts/{cart['id']}", headers={"X-User-Id": str(uuid.uuid4())}).status_code == 403
        assert client.get(f"/carts/{cart['id']}").status_code == 403

    def test_anonymous_checkout_of_user_cart_is_forbidden(self, client, lamp):
        owner = {"X-User-Id": str(uuid.uuid4())}
        cart = client.post("/carts", headers=owner).json()
        add_item(client, cart["id"], lamp, 1, headers=owner)

        resp = client.post("/orders", json={"cart_id": cart["id"], **ORDER_PAYLOAD}, headers=GUEST)

        assert resp.status_code == 403

    def test_order_of_other_user_is_forbidden(self, client, lamp):
        owner = {"X-User-Id": str(uuid.uuid4())}
        cart = client.post("/carts", headers=owner).json()
        add_item(client, cart["id"], lamp, 1, headers=owner)
        placed = client.post("/orders", json={"cart_id": cart["id"], **ORDER_PAYLOAD}, headers=owner).json()

        assert client.get(f"/orders/{placed['order_id']}", headers=owner).status_code == 200
        resp = client.get(f"/orders/{placed['order_id']}", headers={"X-User-Id": str(uuid.uuid4())})
        assert resp.status_code == 403
        assert client.get(f"/orders/{placed['order_id']}", headers=GUEST).status_code == 403

    def test_items_of_other_session_cannot_be_changed(self, client, lamp):
        cart = new_cart(client)
        body = add_item(client, cart["id"], lamp, 1).json()
        item_id = body["items"][0]["id"]
        other = {"X-Session-Id": "sess-2"}

        assert client.patch(f"/carts/items/{item_id}", json={"quantity": 2}, headers=other).status_code == 403
        assert client.delete(f"/carts/items/{item_id}", headers=other).status_code == 403
