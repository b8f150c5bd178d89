import os
from datetime import datetime, timedelta
from decimal import Decimal

os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from sqlalchemy.pool import StaticPool

from troisquarts.db.session import init_db, make_session_factory
from troisquarts.models.coupon import TYPE_FIXED, TYPE_PERCENTAGE, Coupon
from troisquarts.models.menu_item import MenuItem


NOW = datetime(2026, 10, 18, 12, 0, 0)


class FakeAddressValidator:
    def __init__(self, valid=True, error=None, raises=None):
        self.valid = valid
        self.error = error
        self.raises = raises
        self.calls = []

    def validate_address_for_delivery(self, address, zip_code=None):
        self.calls.append((address, zip_code))
        if self.raises is not None:
            raise self.raises
        return {"valid": self.valid, "error": self.error, "distance": 1.2 if self.valid else None}


@pytest.fixture
def session_factory():
    factory = make_session_factory(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    init_db(factory.engine)
    yield factory
    factory.engine.dispose()


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def menu(session_factory):
    with session_factory() as session:
        session.add_all(
            [
                MenuItem(id="pizza", name="Pizza Margherita", category="plat", price=Decimal("15.00")),
                MenuItem(id="salad", name="Salade niçoise", category="entree", price=Decimal("8.50")),
                MenuItem(id="tiramisu", name="Tiramisu", category="dessert", price=Decimal("6.90")),
                MenuItem(id="retired", name="Plat retiré", price=Decimal("12.00"), is_active=False),
            ]
        )
    return {"pizza": "pizza", "salad": "salad", "tiramisu": "tiramisu", "retired": "retired"}


@pytest.fixture
def coupons(session_factory):
    rows = [
        Coupon(id="c-welcome", code="WELCOME10", discount_type=TYPE_PERCENTAGE, discount_value=Decimal("10")),
        Coupon(
            id="c-five",
            code="FIVEOFF",
            discount_type=TYPE_FIXED,
            discount_value=Decimal("5.00"),
            min_order_amount=Decimal("20.00"),
        ),
        Coupon(
            id="c-big",
            code="BIGFIXED",
            discount_type=TYPE_FIXED,
            discount_value=Decimal("100.00"),
        ),
        Coupon(
            id="c-capped",
            code="HALFCAP",
            discount_type=TYPE_PERCENTAGE,
            discount_value=Decimal("50"),
            max_discount=Decimal("5.00"),
        ),
        Coupon(
            id="c-expired",
            code="SUMMER",
            discount_type=TYPE_PERCENTAGE,
            discount_value=Decimal("20"),
            valid_from=NOW - timedelta(days=90),
            valid_until=NOW - timedelta(days=1),
        ),
        Coupon(
            id="c-future",
            code="XMAS",
            discount_type=TYPE_PERCENTAGE,
            discount_value=Decimal("15"),
            valid_from=NOW + timedelta(days=60),
            valid_until=NOW + timedelta(days=70),
        ),
        Coupon(
            id="c-inactive",
            code="OLDCODE",
            discount_type=TYPE_PERCENTAGE,
            discount_value=Decimal("10"),
            is_active=False,
        ),
    ]
    with session_factory() as session:
        session.add_all(rows)
    return {row.code: row.id for row in rows}


@pytest.fixture
def checkout_payload():
    return {
        "deliveryMode": "pickup",
        "paymentMode": "card",
        "clientFirstName": "Jean",
        "clientLastName": "Dupont",
        "clientPhone": "+33612345678",
        "clientEmail": "jean.dupont@example.com",
    }
