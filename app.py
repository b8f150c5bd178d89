"""Le Trois Quarts 餐廳網站訂餐 Flask 應用。"""

from __future__ import annotations

from typing import Optional

from flask import Flask

from routes import api
from services import AddressValidator
from troisquarts.config import AppConfig, load_env
from troisquarts.db.session import init_db, make_session_factory
from troisquarts.services.checkout import CheckoutService
from troisquarts.services.coupon_service import CouponService
from troisquarts.services.logging import configure_logging
from troisquarts.services.order_service import OrderService


def create_app(
    config: Optional[AppConfig] = None,
    *,
    session_factory=None,
    address_validator=None,
) -> Flask:
    config = config or load_env()
    configure_logging(config.log_level)
    session_factory = session_factory or make_session_factory(config.database_url)

    app = Flask(__name__)
    app.config["SECRET_KEY"] = config.secret_key
    app.config["TROISQUARTS_CONFIG"] = config

    order_service = OrderService(session_factory)
    coupon_service = CouponService(session_factory)
    address_validator = address_validator or AddressValidator.from_config(config)
    components = {
        "session_factory": session_factory,
        "order_service": order_service,
        "coupon_service": coupon_service,
        "address_validator": address_validator,
        "checkout_service": CheckoutService(
            orders=order_service,
            coupons=coupon_service,
            address_validator=address_validator,
            tax_rate=config.vat_rate,
            default_delivery_fee=config.delivery_fee,
            currency=config.currency,
        ),
    }
    app.extensions["troisquarts_components"] = components

    app.register_blueprint(api.api_bp)
    _register_commands(app)

    return app


def _register_commands(app: Flask) -> None:
    @app.cli.command("init-db")
    def init_db_command():
        """建立資料表。"""
        engine = getattr(app.extensions["troisquarts_components"]["session_factory"], "engine", None)
        init_db(engine)
        print("Database initialised")

    @app.cli.command("recalculate-order-totals")
    def recalculate_order_totals_command():
        """依訂單品項快照重新計算所有訂單金額。"""
        config = app.config["TROISQUARTS_CONFIG"]
        updated = app.extensions["troisquarts_components"]["order_service"].recalculate_totals(config.vat_rate)
        print(f"Successfully recalculated {updated} orders")


def main() -> None:
    app = create_app()
    app.run(host="0.0.0.0", port=8000, debug=False)


if __name__ == "__main__":
    main()
