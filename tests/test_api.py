import re

import pytest

from app import create_app
from troisquarts.config import load_env
from troisquarts.services.errors import PersistenceError

from conftest import FakeAddressValidator


@pytest.fixture
def validator():
    return FakeAddressValidator()


@pytest.fixture
def app(session_factory, menu, coupons, validator):
    config = load_env(overrides={"SECRET_KEY": "test", "VAT_RATE": "0.10", "DELIVERY_FEE": "5.00", "CURRENCY": "EUR"})
    app = create_app(config, session_factory=session_factory, address_validator=validator)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()


def test_cart_flow(client):
    body = client.post("/api/cart/add", json={"itemId": "pizza", "quantity": 2}).get_json()
    assert body["success"] is True
    assert body["cart"]["total"] == 30.0

    client.post("/api/cart/add", json={"itemId": "salad"})
    body = client.get("/api/cart").get_json()
    assert body["cart"]["item_count"] == 3
    assert body["cart"]["total"] == 38.5

    body = client.post("/api/cart/update", json={"itemId": "pizza", "quantity": 1}).get_json()
    assert body["cart"]["total"] == 23.5

    body = client.post("/api/cart/remove/salad").get_json()
    assert [it["id"] for it in body["cart"]["items"]] == ["pizza"]

    body = client.post("/api/cart/clear").get_json()
    assert body["cart"] == {"items": [], "total": 0.0, "item_count": 0}


def test_cart_errors_are_400(client):
    assert client.post("/api/cart/add", json={"itemId": "nothing"}).status_code == 400
    assert client.post("/api/cart/add", json={"itemId": "pizza", "quantity": 0}).status_code == 400
    assert client.post("/api/cart/update", json={"itemId": "pizza", "quantity": "x"}).status_code == 400
    assert client.post("/api/cart/remove/pizza").status_code == 400


def test_coupon_validation(client):
    resp = client.post("/api/coupon/validate", json={"code": "welcome10", "orderAmount": 30})
    assert resp.status_code == 200
    data = resp.get_json()["data"]
    assert data["discount_amount"] == 3.0
    assert data["new_total"] == 27.0


def test_coupon_validation_errors(client):
    resp = client.post("/api/coupon/validate", json={"orderAmount": 30})
    assert resp.status_code == 422
    resp = client.post("/api/coupon/validate", json={"code": "NOPE", "orderAmount": 30})
    assert resp.status_code == 400
    assert resp.get_json() == {"success": False, "message": "Code promo invalide"}
    resp = client.post("/api/coupon/validate", json={"code": "WELCOME10", "orderAmount": -1})
    assert resp.status_code == 400


def test_address_validation(client, validator):
    resp = client.post("/api/address/validate", json={"address": "12 rue de la République", "zipCode": "13001"})
    assert resp.status_code == 200
    assert resp.get_json()["data"]["valid"] is True
    assert validator.calls == [("12 rue de la République", "13001")]
    assert client.post("/api/address/validate", json={}).status_code == 422


def test_order_on_empty_cart(client, checkout_payload):
    resp = client.post("/api/order", json=checkout_payload)
    assert resp.status_code == 400
    assert resp.get_json()["message"] == "Le panier est vide"


def test_order_with_invalid_payload_lists_errors(client):
    client.post("/api/cart/add", json={"itemId": "pizza"})
    resp = client.post("/api/order", json={"deliveryMode": "drone"})
    assert resp.status_code == 400
    body = resp.get_json()
    assert body["message"] == "Erreur de validation"
    assert len(body["errors"]) >= 5
    assert client.get("/api/cart").get_json()["cart"]["item_count"] == 1


def test_order_created_and_fetched(client, checkout_payload, coupons):
    client.post("/api/cart/add", json={"itemId": "pizza", "quantity": 2})
    resp = client.post("/api/order", json=dict(checkout_payload, couponId=coupons["WELCOME10"]))
    assert resp.status_code == 201
    body = resp.get_json()
    assert body["message"] == "Commande créée avec succès"
    order = body["order"]
    assert re.match(r"^ORD-\d{8}-0001$", order["number"])
    assert order["total"] == 27.0
    assert order["subtotal"] == 24.55
    assert order["tax_amount"] == 2.45
    assert order["currency"] == "EUR"
    assert client.get("/api/cart").get_json()["cart"]["item_count"] == 0

    fetched = client.get(f"/api/order/{order['id']}").get_json()["order"]
    assert fetched["number"] == order["number"]
    assert len(fetched["items"]) == 1


def test_unknown_order_is_404(client):
    resp = client.get("/api/order/missing")
    assert resp.status_code == 404
    assert resp.get_json()["message"] == "Commande introuvable"


def test_persistence_failure_is_500_and_keeps_cart(app, client, checkout_payload, monkeypatch):
    orders = app.extensions["troisquarts_components"]["order_service"]

    def broken(draft):
        raise PersistenceError("database unavailable")

    monkeypatch.setattr(orders, "create_order", broken)
    client.post("/api/cart/add", json={"itemId": "pizza"})
    resp = client.post("/api/order", json=checkout_payload)
    assert resp.status_code == 500
    assert resp.get_json()["message"] == "Erreur lors de la création de la commande"
    assert client.get("/api/cart").get_json()["cart"]["item_count"] == 1


def test_restaurant_settings(client):
    data = client.get("/api/restaurant/settings").get_json()["data"]
    assert data["currency"] == "EUR"
    assert data["vat_rate"] == 0.1
    assert data["delivery_fee"] == 5.0
