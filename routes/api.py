"""提供前台購物車、優惠碼與結帳使用的 API 路由。"""

from __future__ import annotations

from typing import Any, Dict

from flask import Blueprint, current_app, jsonify, request, session

from troisquarts.services.cart_service import CartService
from troisquarts.services.errors import PersistenceError, ValidationError
from troisquarts.utils.dto import to_cart_dto
from troisquarts.utils.validators import ensure_positive_int, parse_amount


api_bp = Blueprint("troisquarts_api", __name__, url_prefix="/api")


def _components() -> Dict[str, Any]:
    return current_app.extensions["troisquarts_components"]


def _config():
    return current_app.config["TROISQUARTS_CONFIG"]


def _cart() -> CartService:
    return CartService(session, _components()["session_factory"])


def _payload() -> Dict[str, Any]:
    return request.get_json(silent=True) or {}


def _error(message: str, status: int, errors=None):
    body = {"success": False, "message": message}
    if errors:
        body["errors"] = errors
    return jsonify(body), status


@api_bp.errorhandler(ValueError)
def handle_value_error(exc: ValueError):
    # ValidationError 也是 ValueError，統一回 400
    if isinstance(exc, ValidationError):
        return _error(exc.message, exc.http_status, exc.errors)
    return _error(str(exc), 400)


@api_bp.errorhandler(PersistenceError)
def handle_persistence_error(exc: PersistenceError):
    return _error("Erreur lors de la création de la commande", exc.http_status)


@api_bp.get("/cart")
def get_cart():
    return jsonify({"success": True, "cart": to_cart_dto(_cart().get_cart())})


@api_bp.post("/cart/add")
def add_to_cart():
    payload = _payload()
    quantity = ensure_positive_int(payload.get("quantity", 1), "quantity")
    cart = _cart().add_item(item_id=str(payload.get("itemId") or ""), quantity=quantity)
    return jsonify({"success": True, "cart": to_cart_dto(cart)})


@api_bp.post("/cart/update")
def update_cart_item():
    payload = _payload()
    try:
        quantity = int(payload.get("quantity"))
    except (TypeError, ValueError):
        return _error("quantity must be an integer", 400)
    cart = _cart().update_item(item_id=str(payload.get("itemId") or ""), quantity=quantity)
    return jsonify({"success": True, "cart": to_cart_dto(cart)})


@api_bp.post("/cart/remove/<item_id>")
def remove_cart_item(item_id: str):
    cart = _cart().remove_item(item_id=item_id)
    return jsonify({"success": True, "cart": to_cart_dto(cart)})


@api_bp.post("/cart/clear")
def clear_cart():
    return jsonify({"success": True, "cart": to_cart_dto(_cart().clear())})


@api_bp.post("/coupon/validate")
def validate_coupon():
    payload = _payload()
    code = str(payload.get("code") or "").strip()
    if not code:
        return _error("Erreur de validation", 422, ["Le code est requis"])
    amount = parse_amount(payload.get("orderAmount"), "orderAmount")
    data = _components()["coupon_service"].validate_coupon(code, amount)
    return jsonify({"success": True, "message": None, "data": data})


@api_bp.post("/address/validate")
def validate_address():
    payload = _payload()
    address = str(payload.get("address") or "").strip()
    zip_code = str(payload.get("zipCode") or "").strip() or None
    if not address and not zip_code:
        return _error("Erreur de validation", 422, ["L'adresse est requise"])
    result = _components()["address_validator"].validate_address_for_delivery(address, zip_code)
    return jsonify({"success": True, "data": result})


@api_bp.post("/order")
def create_order():
    checkout = _components()["checkout_service"]
    order = checkout.checkout(_payload(), _cart())
    return jsonify({"success": True, "message": "Commande créée avec succès", "order": order}), 201


@api_bp.get("/order/<order_id>")
def get_order(order_id: str):
    order = _components()["order_service"].get_order(order_id)
    if not order:
        return _error("Commande introuvable", 404)
    return jsonify({"success": True, "order": order})


@api_bp.get("/restaurant/settings")
def restaurant_settings():
    return jsonify({"success": True, "data": _config().public_settings()})
