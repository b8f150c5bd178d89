"""Cart -> order checkout.

A transition walks ``idle -> validating -> computing -> persisting -> completed``.
It stops in ``rejected`` on any client-side problem found while validating or
computing, and in ``failed`` when the order write itself fails. Validation and coupon
resolution happen before anything is written; the cart is emptied only after
the order transaction has committed, so a cart is cleared if and only if its
order exists.
"""
import enum
from decimal import Decimal
from typing import Dict, Optional

from ..models.order import DeliveryMode
from ..utils.dto import CheckoutRequest
from .errors import (
    AddressValidationError,
    EmptyCartError,
    ExternalDependencyError,
    PersistenceError,
    ValidationError,
)
from .logging import log_event
from .order_service import OrderDraft, OrderService
from .totals import ZERO, calculate_totals, gross_total, to_money


class CheckoutState(str, enum.Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    COMPUTING = "computing"
    PERSISTING = "persisting"
    COMPLETED = "completed"
    REJECTED = "rejected"
    FAILED = "failed"


class CheckoutTransition:
    """One checkout attempt. Not reusable: create a new one per request."""

    def __init__(self, service: "CheckoutService", request, cart) -> None:
        self._service = service
        self._request = request
        self._cart = cart
        self.state = CheckoutState.IDLE
        self.error: Optional[Exception] = None

    def _move(self, state: CheckoutState) -> None:
        self.state = state

    def run(self) -> Dict:
        if self.state is not CheckoutState.IDLE:
            raise RuntimeError("checkout transition already used")
        try:
            self._move(CheckoutState.VALIDATING)
            line_items = self._cart.line_items()
            if not line_items:
                raise EmptyCartError()
            if not isinstance(self._request, CheckoutRequest):
                self._request = CheckoutRequest.from_payload(self._request)
            delivery = self._service.delivery_details(self._request)

            coupon = None
            if self._request.coupon_id:
                coupon = self._service.coupons.resolve(self._request.coupon_id, gross_total(line_items))

            self._move(CheckoutState.COMPUTING)
            totals = calculate_totals(
                line_items,
                self._service.tax_rate,
                coupon=coupon,
                delivery_fee=delivery["fee"],
            )
        except ValidationError as exc:
            self._reject(exc)
            raise
        except ValueError as exc:
            rejection = ValidationError("Montants de commande invalides")
            self._reject(rejection)
            raise rejection from exc

        self._move(CheckoutState.PERSISTING)
        req = self._request
        draft = OrderDraft(
            delivery_mode=req.delivery_mode.value,
            payment_mode=req.payment_mode.value,
            client_first_name=req.client_first_name,
            client_last_name=req.client_last_name,
            client_phone=req.client_phone,
            client_email=req.client_email,
            currency=self._service.currency,
            totals=totals,
            line_items=line_items,
            delivery_address=delivery["address"],
            delivery_zip=delivery["zip"],
            delivery_instructions=delivery["instructions"],
            coupon_id=coupon.id if coupon is not None else None,
        )
        try:
            order = self._service.orders.create_order(draft)
        except PersistenceError as exc:
            # the cart is left as it was; the client may resubmit
            self.error = exc
            self._move(CheckoutState.FAILED)
            log_event("error", "checkout.failed", reason=type(exc).__name__)
            raise
        self._cart.clear()
        self._move(CheckoutState.COMPLETED)
        return order

    def _reject(self, exc: ValidationError) -> None:
        self.error = exc
        self._move(CheckoutState.REJECTED)
        log_event("info", "checkout.rejected", reason=type(exc).__name__, message=exc.message)


class CheckoutService:
    """Wires the collaborators a checkout transition needs."""

    def __init__(
        self,
        *,
        orders: OrderService,
        coupons,
        address_validator,
        tax_rate,
        default_delivery_fee=Decimal("5.00"),
        currency: str = "EUR",
    ) -> None:
        self.orders = orders
        self.coupons = coupons
        self.address_validator = address_validator
        self.tax_rate = Decimal(str(tax_rate))
        self.default_delivery_fee = to_money(default_delivery_fee)
        self.currency = currency

    def delivery_details(self, request) -> Dict:
        """Delivery fields as they will be stored; raises when delivery is refused."""
        if request.delivery_mode is DeliveryMode.PICKUP:
            return {
                "address": None,
                "zip": None,
                "instructions": request.delivery_instructions,
                "fee": ZERO,
            }
        if not request.delivery_address:
            raise AddressValidationError("L'adresse de livraison est requise")
        if not request.delivery_zip:
            raise AddressValidationError("Le code postal est requis")
        try:
            result = self.address_validator.validate_address_for_delivery(
                request.delivery_address, request.delivery_zip
            )
        except ExternalDependencyError as exc:
            raise AddressValidationError("L'adresse n'a pas pu être vérifiée") from exc
        if not result.get("valid"):
            raise AddressValidationError(result.get("error") or "Livraison non disponible pour cette adresse")
        fee = request.delivery_fee if request.delivery_fee is not None else self.default_delivery_fee
        return {
            "address": request.delivery_address,
            "zip": request.delivery_zip,
            "instructions": request.delivery_instructions,
            "fee": to_money(fee),
        }

    def start(self, request, cart) -> CheckoutTransition:
        return CheckoutTransition(self, request, cart)

    def checkout(self, request, cart) -> Dict:
        """Run a full checkout for ``request`` against the session ``cart``."""
        return self.start(request, cart).run()
