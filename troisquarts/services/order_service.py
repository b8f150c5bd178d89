from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Callable, Dict, List, Optional
from uuid import uuid4

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..db.session import get_session
from ..models.order import Order, OrderItem, OrderStatus
from ..utils.dto import to_order_dto
from .errors import PersistenceError
from .logging import log_event
from .totals import CartLineItem, OrderTotals, calculate_totals


ORDER_NUMBER_PREFIX = "ORD"
MAX_NUMBER_ATTEMPTS = 3


@dataclass
class OrderDraft:
    """Everything needed to write one order; produced by the checkout transition."""

    delivery_mode: str
    payment_mode: str
    client_first_name: str
    client_last_name: str
    client_phone: str
    client_email: str
    currency: str
    totals: OrderTotals
    line_items: List[CartLineItem] = field(default_factory=list)
    delivery_address: Optional[str] = None
    delivery_zip: Optional[str] = None
    delivery_instructions: Optional[str] = None
    coupon_id: Optional[str] = None


def order_number_prefix(day: datetime) -> str:
    return f"{ORDER_NUMBER_PREFIX}-{day:%Y%m%d}-"


class OrderService:
    """Order creation and retrieval backed by DB."""

    def __init__(self, session_factory=get_session, clock: Callable[[], datetime] = datetime.now):
        self._session_factory = session_factory
        self._clock = clock

    @staticmethod
    def next_order_number(session, now: datetime) -> str:
        """Next ``ORD-YYYYMMDD-NNNN`` for the day of ``now`` (suffix grows past 9999)."""
        prefix = order_number_prefix(now)
        last = (
            session.query(Order.number)
            .filter(Order.number.like(prefix + "%"))
            .order_by(func.length(Order.number).desc(), Order.number.desc())
            .first()
        )
        seq = 1
        if last:
            try:
                seq = int(last[0][len(prefix):]) + 1
            except ValueError:
                seq = 1
        return f"{prefix}{seq:04d}"

    def create_order(self, draft: OrderDraft) -> Dict:
        """Write the order and its items in one transaction.

        Nothing is written unless the whole aggregate commits. A unique-number
        collision with a concurrent checkout retries with a fresh number.
        """
        if not draft.line_items:
            raise ValueError("an order needs at least one item")
        last_exc: Optional[Exception] = None
        for attempt in range(1, MAX_NUMBER_ATTEMPTS + 1):
            try:
                return self._write(draft)
            except IntegrityError as exc:
                last_exc = exc
                log_event("warning", "order.number_collision", attempt=attempt)
            except SQLAlchemyError as exc:
                log_event("error", "order.persist_failed", error=type(exc).__name__)
                raise PersistenceError("Erreur lors de la création de la commande") from exc
        log_event("error", "order.persist_failed", error=type(last_exc).__name__)
        raise PersistenceError("Erreur lors de la création de la commande") from last_exc

    def _write(self, draft: OrderDraft) -> Dict:
        now = self._clock()
        totals = draft.totals
        with self._session_factory() as session:
            order = Order(
                id=str(uuid4()),
                number=self.next_order_number(session, now),
                status=OrderStatus.PENDING.value,
                created_at=now,
                delivery_mode=draft.delivery_mode,
                delivery_address=draft.delivery_address,
                delivery_zip=draft.delivery_zip,
                delivery_instructions=draft.delivery_instructions,
                delivery_fee=totals.delivery_fee,
                payment_mode=draft.payment_mode,
                client_first_name=draft.client_first_name,
                client_last_name=draft.client_last_name,
                client_phone=draft.client_phone,
                client_email=draft.client_email,
                subtotal=totals.subtotal,
                tax_amount=totals.tax_amount,
                discount_amount=totals.discount_amount,
                total=totals.total,
                currency=draft.currency,
                coupon_id=draft.coupon_id,
            )
            for position, li in enumerate(draft.line_items):
                order.items.append(
                    OrderItem(
                        id=str(uuid4()),
                        position=position,
                        product_id=str(li.item_id),
                        product_name=li.name,
                        unit_price=li.unit_price,
                        quantity=li.quantity,
                        line_total=li.line_total,
                    )
                )
            session.add(order)
            session.flush()
            result = to_order_dto(order)
        log_event(
            "info",
            "order.created",
            order_id=result["id"],
            number=result["number"],
            items=len(draft.line_items),
            total=result["total"],
        )
        return result

    def get_order(self, order_id: str) -> Dict:
        if not order_id:
            return {}
        with self._session_factory() as session:
            o = session.query(Order).filter(Order.id == order_id).first()
            if not o:
                return {}
            return to_order_dto(o)

    def recalculate_totals(self, tax_rate) -> int:
        """Re-derive the money figures of every stored order from its item snapshots.

        The linked coupon's discount rule is re-applied without re-checking its
        validity window: the order was accepted when it was placed.
        """
        updated = 0
        with self._session_factory() as session:
            for order in session.query(Order).all():
                if not order.items:
                    continue
                lines = [
                    CartLineItem(
                        item_id=it.product_id,
                        name=it.product_name,
                        unit_price=Decimal(str(it.unit_price)),
                        quantity=it.quantity,
                    )
                    for it in order.items
                ]
                totals = calculate_totals(lines, tax_rate, coupon=order.coupon, delivery_fee=order.delivery_fee)
                for it, li in zip(order.items, lines):
                    it.line_total = li.line_total
                order.subtotal = totals.subtotal
                order.tax_amount = totals.tax_amount
                order.discount_amount = totals.discount_amount
                order.total = totals.total
                updated += 1
        log_event("info", "orders.recalculated", count=updated)
        return updated
