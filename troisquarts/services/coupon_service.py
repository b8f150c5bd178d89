from datetime import datetime
from decimal import Decimal
from typing import Callable, Dict, Optional

from ..db.session import get_session
from ..models.coupon import Coupon, normalize_code
from .errors import (
    CouponBelowMinimumError,
    CouponError,
    CouponExpiredError,
    CouponInactiveError,
    CouponNotFoundError,
    CouponNotYetValidError,
)
from .logging import log_event
from .totals import compute_discount, to_money


class CouponService:
    """Coupon lookup and applicability checks.

    Checks run in a fixed order and stop at the first failure:
    active flag, validity window, minimum order amount.
    Coupons are never mutated here.
    """

    def __init__(self, session_factory=get_session, clock: Callable[[], datetime] = datetime.now):
        self._session_factory = session_factory
        self._clock = clock

    def find_by_code(self, code: Optional[str]) -> Optional[Coupon]:
        normalized = normalize_code(code)
        if not normalized:
            return None
        with self._session_factory() as session:
            return session.query(Coupon).filter(Coupon.code == normalized).first()

    def find_by_id(self, coupon_id: Optional[str]) -> Optional[Coupon]:
        if not coupon_id:
            return None
        with self._session_factory() as session:
            return session.query(Coupon).filter(Coupon.id == str(coupon_id)).first()

    def check_applicable(self, coupon: Optional[Coupon], order_amount) -> Coupon:
        """Return ``coupon`` if it may be applied to ``order_amount``, else raise."""
        if coupon is None:
            raise CouponNotFoundError()
        if not coupon.is_active:
            raise CouponInactiveError()
        now = self._clock()
        if coupon.valid_from is not None and now < coupon.valid_from:
            raise CouponNotYetValidError()
        if coupon.valid_until is not None and now > coupon.valid_until:
            raise CouponExpiredError()
        amount = Decimal(str(order_amount))
        if coupon.min_order_amount is not None and amount < Decimal(str(coupon.min_order_amount)):
            raise CouponBelowMinimumError(Decimal(str(coupon.min_order_amount)))
        return coupon

    def resolve(self, coupon_id: Optional[str], order_amount) -> Coupon:
        """Checkout path: coupon referenced by id."""
        try:
            return self.check_applicable(self.find_by_id(coupon_id), order_amount)
        except CouponError as exc:
            log_event("info", "coupon.rejected", coupon_id=coupon_id, reason=exc.kind)
            raise

    def validate_coupon(self, code: Optional[str], order_amount) -> Dict:
        """Preview used by "apply promo code" before checkout."""
        try:
            coupon = self.check_applicable(self.find_by_code(code), order_amount)
        except CouponError as exc:
            log_event("info", "coupon.rejected", code=normalize_code(code), reason=exc.kind)
            raise
        amount = to_money(order_amount)
        discount = compute_discount(coupon.discount_type, coupon.discount_value, amount, coupon.max_discount)
        log_event("info", "coupon.validated", code=coupon.code, discount=float(discount))
        return {
            "coupon_id": coupon.id,
            "code": coupon.code,
            "discount_type": coupon.discount_type,
            "discount_value": float(coupon.discount_value),
            "discount_amount": float(discount),
            "new_total": float(amount - discount),
        }
