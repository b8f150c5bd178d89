from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List, Optional

from ..models.order import DeliveryMode, PaymentMode
from ..services.errors import ValidationError
from .validators import is_valid_email, parse_amount


def _text(payload: Dict, key: str) -> Optional[str]:
    value = payload.get(key)
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _check_length(errors: List[str], value: Optional[str], label: str, min_len: int = 0, max_len: int = 255) -> None:
    if value is None:
        return
    if len(value) < min_len:
        errors.append(f"{label} doit contenir au moins {min_len} caractères")
    elif len(value) > max_len:
        errors.append(f"{label} ne peut pas dépasser {max_len} caractères")


@dataclass
class CheckoutRequest:
    """Inbound checkout payload, validated before any computation."""

    delivery_mode: DeliveryMode
    payment_mode: PaymentMode
    client_first_name: str
    client_last_name: str
    client_phone: str
    client_email: str
    delivery_address: Optional[str] = None
    delivery_zip: Optional[str] = None
    delivery_instructions: Optional[str] = None
    delivery_fee: Optional[Decimal] = None
    coupon_id: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Optional[Dict[str, Any]]) -> "CheckoutRequest":
        if not isinstance(payload, dict):
            raise ValidationError("Requête invalide")
        errors: List[str] = []

        delivery_mode = None
        try:
            delivery_mode = DeliveryMode(payload.get("deliveryMode"))
        except ValueError:
            errors.append('Le mode de livraison doit être "delivery" ou "pickup"')
        payment_mode = None
        try:
            payment_mode = PaymentMode(payload.get("paymentMode"))
        except ValueError:
            errors.append('Le mode de paiement doit être "card", "cash" ou "tickets"')

        first_name = _text(payload, "clientFirstName")
        last_name = _text(payload, "clientLastName")
        phone = _text(payload, "clientPhone")
        email = _text(payload, "clientEmail")
        if first_name is None:
            errors.append("Le prénom est requis")
        if last_name is None:
            errors.append("Le nom est requis")
        if phone is None:
            errors.append("Le numéro de téléphone est requis")
        if email is None:
            errors.append("L'email est requis")
        elif not is_valid_email(email):
            errors.append("L'email n'est pas valide")
        _check_length(errors, first_name, "Le prénom", 2, 100)
        _check_length(errors, last_name, "Le nom", 2, 100)
        _check_length(errors, phone, "Le numéro de téléphone", 10, 20)

        address = _text(payload, "deliveryAddress")
        zip_code = _text(payload, "deliveryZip")
        instructions = _text(payload, "deliveryInstructions")
        _check_length(errors, address, "L'adresse de livraison", 0, 255)
        _check_length(errors, zip_code, "Le code postal", 0, 10)
        _check_length(errors, instructions, "Les instructions de livraison", 0, 500)

        fee = None
        if payload.get("deliveryFee") not in (None, ""):
            try:
                fee = parse_amount(payload.get("deliveryFee"), "deliveryFee")
            except ValueError:
                errors.append("Les frais de livraison doivent être un nombre positif")

        coupon_id = _text(payload, "couponId")

        if errors:
            raise ValidationError("Erreur de validation", errors)
        return cls(
            delivery_mode=delivery_mode,
            payment_mode=payment_mode,
            client_first_name=first_name,
            client_last_name=last_name,
            client_phone=phone,
            client_email=email,
            delivery_address=address,
            delivery_zip=zip_code,
            delivery_instructions=instructions,
            delivery_fee=fee,
            coupon_id=coupon_id,
        )


def to_cart_dto(cart: Dict) -> Dict:
    return {
        "items": [
            {
                "id": li.item_id,
                "name": li.name,
                "price": float(li.unit_price),
                "quantity": li.quantity,
                "line_total": float(li.line_total),
            }
            for li in cart.get("items") or []
        ],
        "total": float(cart.get("total") or 0),
        "item_count": int(cart.get("item_count") or 0),
    }


def to_order_dto(row: Any) -> Dict:
    return {
        "id": getattr(row, "id", None),
        "number": getattr(row, "number", None),
        "status": getattr(row, "status", None),
        "created_at": row.created_at.isoformat() if getattr(row, "created_at", None) else None,
        "delivery_mode": getattr(row, "delivery_mode", None),
        "delivery_address": getattr(row, "delivery_address", None),
        "delivery_zip": getattr(row, "delivery_zip", None),
        "delivery_instructions": getattr(row, "delivery_instructions", None),
        "delivery_fee": float(getattr(row, "delivery_fee", 0) or 0),
        "payment_mode": getattr(row, "payment_mode", None),
        "client_first_name": getattr(row, "client_first_name", None),
        "client_last_name": getattr(row, "client_last_name", None),
        "client_phone": getattr(row, "client_phone", None),
        "client_email": getattr(row, "client_email", None),
        "subtotal": float(getattr(row, "subtotal", 0) or 0),
        "tax_amount": float(getattr(row, "tax_amount", 0) or 0),
        "discount_amount": float(getattr(row, "discount_amount", 0) or 0),
        "total": float(getattr(row, "total", 0) or 0),
        "currency": getattr(row, "currency", None),
        "coupon_id": getattr(row, "coupon_id", None),
        "items": [
            {
                "id": it.id,
                "product_id": it.product_id,
                "product_name": it.product_name,
                "unit_price": float(it.unit_price or 0),
                "quantity": it.quantity,
                "line_total": float(it.line_total or 0),
            }
            for it in (getattr(row, "items", None) or [])
        ],
    }
